"""Ports the crawler depends on."""

from typing import Protocol, runtime_checkable

from rent_scout.models.pydantic_models import ListingData


@runtime_checkable
class Fetcher(Protocol):
    """Retrieves the HTML of a search page.

    Implementations own transport retries and raise once they give up.
    """

    async def fetch(self, url: str) -> str: ...


@runtime_checkable
class Parser(Protocol):
    """Turns search-page HTML into listings.

    Implementations never raise; a page without listings yields ``[]``.
    """

    def parse_listings(self, html: str) -> list[ListingData]: ...
