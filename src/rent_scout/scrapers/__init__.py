"""Crawling of station-faceted search pages."""

from rent_scout.scrapers.base import Fetcher, Parser
from rent_scout.scrapers.station_crawler import (
    StationCrawler,
    get_url_station_info,
    has_multiple_stations,
)

__all__ = [
    "Fetcher",
    "Parser",
    "StationCrawler",
    "get_url_station_info",
    "has_multiple_stations",
]
