"""Data models for rent-scout."""

from rent_scout.models.pydantic_models import (
    ChangeResult,
    CrawlRunResult,
    ListingData,
    SaveResult,
    SessionOptions,
    Settings,
    StationCrawlResult,
    StationDistanceData,
    StationError,
)

__all__ = [
    "ChangeResult",
    "CrawlRunResult",
    "ListingData",
    "SaveResult",
    "SessionOptions",
    "Settings",
    "StationCrawlResult",
    "StationDistanceData",
    "StationError",
]
