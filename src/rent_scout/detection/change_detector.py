"""Content-aware change detection between a fresh listing and its stored snapshot."""

import hashlib
import json

from rent_scout.detection.normalizer import normalize_set, normalize_value, titles_equivalent
from rent_scout.models.pydantic_models import ChangeResult, ListingData

NEW_RECORD = "new_record"
STATION_DISTANCES = "station_distances"

# Scalar fields compared after normalization; title uses titles_equivalent
SCALAR_FIELDS = ("title", "category", "rooms", "distance_title", "distance_text")
SET_FIELDS = ("tags", "image_urls")


def distance_pairs(listing: ListingData) -> frozenset[tuple[str, int | None]]:
    """(station name, distance) pairs, including the card's primary distance."""
    return frozenset(
        (normalize_value(d.station_name), d.distance_m) for d in listing.all_station_distances()
    )


def generate_hash(listing: ListingData) -> str:
    """Compute a stable fingerprint over the canonical field set.

    Args:
        listing: Listing to fingerprint.

    Returns:
        SHA256 hex digest.
    """
    payload = {field: normalize_value(getattr(listing, field)) for field in SCALAR_FIELDS}
    for field in SET_FIELDS:
        payload[field] = sorted(normalize_set(getattr(listing, field)))
    payload[STATION_DISTANCES] = sorted(
        [name, -1 if distance is None else distance] for name, distance in distance_pairs(listing)
    )
    canonical = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def compare(fresh: ListingData, stored: ListingData | None) -> ChangeResult:
    """Compare a freshly fetched listing against its last stored snapshot.

    Args:
        fresh: Listing as just parsed.
        stored: Snapshot rebuilt from the database, or None if never stored.

    Returns:
        ChangeResult with the changed field names and the fresh listing's hash.
    """
    fresh_hash = generate_hash(fresh)
    if stored is None:
        return ChangeResult(has_changed=True, changed_fields=[NEW_RECORD], hash=fresh_hash)

    changed_fields: list[str] = []

    for field in SCALAR_FIELDS:
        new_value = normalize_value(getattr(fresh, field))
        old_value = normalize_value(getattr(stored, field))
        if field == "title":
            if not titles_equivalent(new_value, old_value):
                changed_fields.append(field)
        elif new_value != old_value:
            changed_fields.append(field)

    for field in SET_FIELDS:
        if normalize_set(getattr(fresh, field)) != normalize_set(getattr(stored, field)):
            changed_fields.append(field)

    if distance_pairs(fresh) != distance_pairs(stored):
        changed_fields.append(STATION_DISTANCES)

    return ChangeResult(
        has_changed=bool(changed_fields),
        changed_fields=changed_fields,
        hash=fresh_hash,
    )


def changes_summary(changed_fields: list[str]) -> str:
    """Human-readable summary of a change set for logging."""
    if not changed_fields:
        return "No changes"
    if NEW_RECORD in changed_fields:
        return "New record"
    return f"Changed: {', '.join(changed_fields)}"
