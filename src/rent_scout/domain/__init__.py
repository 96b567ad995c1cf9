"""Domain helpers: search URLs, distances and listing identity."""

from rent_scout.domain.distance import extract_station_name, parse_distance_meters
from rent_scout.domain.search_url import QueryId, SearchUrl

__all__ = ["QueryId", "SearchUrl", "extract_station_name", "parse_distance_meters"]
