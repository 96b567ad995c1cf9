"""Parsing of station distance annotations shown on listing cards."""

import re

# Average walking speed used to turn "N 分鐘" into meters
WALKING_METERS_PER_MINUTE = 80

_METERS_RE = re.compile(r"(\d+)\s*公尺")
_MINUTES_RE = re.compile(r"(\d+)\s*分鐘")
_KILOMETERS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:公里|km)", re.IGNORECASE)


def parse_distance_meters(text: str | None) -> int | None:
    """Parse a distance display string into meters.

    Examples:
        >>> parse_distance_meters("距捷運站 350公尺")
        350
        >>> parse_distance_meters("步行5分鐘")
        400
        >>> parse_distance_meters("1.2公里")
        1200
        >>> parse_distance_meters("nearby") is None
        True
    """
    if not text:
        return None

    match = _METERS_RE.search(text)
    if match:
        return int(match.group(1))

    match = _MINUTES_RE.search(text)
    if match:
        return int(match.group(1)) * WALKING_METERS_PER_MINUTE

    match = _KILOMETERS_RE.search(text)
    if match:
        return round(float(match.group(1)) * 1000)

    return None


def extract_station_name(distance_title: str | None) -> str:
    """Strip the leading 距 and trailing 捷運站 from a station label."""
    if not distance_title:
        return ""
    name = distance_title.strip()
    if name.startswith("距"):
        name = name[1:]
    if name.endswith("捷運站"):
        name = name[: -len("捷運站")]
    return name.strip()
