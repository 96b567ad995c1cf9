"""Stable identity keys for listings."""

import re
from typing import Any, NamedTuple

from rent_scout.exceptions import ListingIdentityError
from rent_scout.models.pydantic_models import ListingData

_LINK_ID_RE = re.compile(r"/(\d+)")
_WHITESPACE_RE = re.compile(r"\s+")


class ListingIdentity(NamedTuple):
    """Identity key plus where it was derived from.

    ``source`` is ``"link"`` for ids taken from the listing URL (most
    reliable), ``"title-distance"`` for the composite fallback and
    ``"title"`` as a last resort.
    """

    key: str
    source: str

    @property
    def is_reliable(self) -> bool:
        return self.source in ("link", "title-distance")


def _field(listing: ListingData | dict[str, Any], name: str) -> str | None:
    if isinstance(listing, dict):
        value = listing.get(name)
    else:
        value = getattr(listing, name, None)
    if isinstance(value, str):
        value = value.strip()
    return value or None


def derive_identity(listing: ListingData | dict[str, Any]) -> ListingIdentity:
    """Derive the identity of a listing.

    Args:
        listing: Listing model or plain dict with ``link``/``title``/``distance_text``.

    Returns:
        ListingIdentity for the listing.

    Raises:
        ListingIdentityError: If neither a numeric link id nor a title is available.
    """
    link = _field(listing, "link")
    if link:
        match = _LINK_ID_RE.search(link)
        if match:
            return ListingIdentity(match.group(1), "link")

    title = _field(listing, "title")
    distance_text = _field(listing, "distance_text")
    if title and distance_text:
        return ListingIdentity(_WHITESPACE_RE.sub("-", f"{title}-{distance_text}"), "title-distance")

    if title:
        return ListingIdentity(_WHITESPACE_RE.sub("-", title), "title")

    raise ListingIdentityError("Listing must have at least a link or a title")


def listing_identity(listing: ListingData | dict[str, Any]) -> str:
    """Return the identity key string of a listing."""
    return derive_identity(listing).key


def has_identity(listing: ListingData | dict[str, Any]) -> bool:
    """Check whether an identity can be derived without raising."""
    try:
        derive_identity(listing)
    except ListingIdentityError:
        return False
    return True
