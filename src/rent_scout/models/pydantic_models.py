"""Pydantic models for data validation."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rent_scout.domain.distance import extract_station_name, parse_distance_meters


def utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def _clean_string(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _clean_string_list(value: Any) -> Any:
    """Strip entries, drop empties and duplicates while keeping order."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple, set)):
        return value
    seen: dict[str, None] = {}
    for item in value:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            seen.setdefault(text, None)
    return list(seen)


class SessionStatus(str, Enum):
    """Status of a crawl session."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ListingStatus(str, Enum):
    """Outcome of persisting a single listing in a session."""

    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class StationDistanceData(BaseModel):
    """Distance from a listing to one transit station."""

    station_id: str | None = Field(None, description="Station facet id, None when unknown")
    station_name: str = Field("", description="Station name without 距/捷運站 decoration")
    distance_m: int | None = Field(None, ge=0, description="Distance in meters")
    distance_text: str | None = Field(None, description="Raw display text, e.g. '350公尺'")

    @field_validator("station_id", "distance_text", mode="before")
    @classmethod
    def _strip_optional(cls, value: Any) -> Any:
        return _clean_string(value)

    @field_validator("station_name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value.strip() if isinstance(value, str) else value


class NotificationInfo(BaseModel):
    """Notification state attached by the notifier before persistence."""

    sent: bool = False
    mode: str | None = None
    silent: bool = False


class ListingData(BaseModel):
    """A rental listing as produced by a parser.

    Strings are stripped and empty strings become None on construction, and
    tags/image URLs are de-duplicated, so change detection and persistence
    always see canonical values.
    """

    title: str | None = None
    link: str | None = None
    category: str | None = Field(None, description="House type, e.g. 整層住家")
    rooms: str | None = Field(None, description="Room layout, e.g. 2房1廳")
    distance_title: str | None = Field(None, description="Primary station label, e.g. 距台電大樓捷運站")
    distance_text: str | None = Field(None, description="Primary station distance text")
    tags: list[str] = Field(default_factory=list)
    image_urls: list[str] = Field(default_factory=list)
    station_distances: list[StationDistanceData] = Field(default_factory=list)
    notification: NotificationInfo = Field(default_factory=NotificationInfo)

    @field_validator(
        "title", "link", "category", "rooms", "distance_title", "distance_text", mode="before"
    )
    @classmethod
    def _strip_strings(cls, value: Any) -> Any:
        return _clean_string(value)

    @field_validator("tags", "image_urls", mode="before")
    @classmethod
    def _normalize_lists(cls, value: Any) -> Any:
        return _clean_string_list(value)

    @property
    def primary_distance_m(self) -> int | None:
        """Distance parsed from the card's own distance text."""
        return parse_distance_meters(self.distance_text)

    def primary_station_distance(self) -> StationDistanceData | None:
        """StationDistance built from distance_title/distance_text, if present."""
        if not self.distance_title or not self.distance_text:
            return None
        station_name = extract_station_name(self.distance_title)
        if not station_name:
            return None
        return StationDistanceData(
            station_id=None,
            station_name=station_name,
            distance_m=parse_distance_meters(self.distance_text),
            distance_text=self.distance_text,
        )

    def all_station_distances(self) -> list[StationDistanceData]:
        """Explicit station distances plus the primary one when not already listed."""
        distances = list(self.station_distances)
        primary = self.primary_station_distance()
        if primary is not None and not any(
            d.station_name == primary.station_name and d.distance_m == primary.distance_m
            for d in distances
        ):
            distances.insert(0, primary)
        return distances

    def add_station_distance(
        self, station_id: str | None, station_name: str, distance_text: str | None
    ) -> None:
        """Annotate the listing with its distance to a station, skipping duplicates."""
        self._append_station_distance(
            StationDistanceData(
                station_id=station_id,
                station_name=station_name,
                distance_m=parse_distance_meters(distance_text),
                distance_text=distance_text,
            )
        )

    def _append_station_distance(self, distance: StationDistanceData) -> None:
        # Rows are keyed by (station id or "", station name); an unknown id never matches by id alone
        key = (distance.station_id or "", distance.station_name)
        for existing in self.station_distances:
            if distance.station_id is not None and existing.station_id == distance.station_id:
                return
            if (existing.station_id or "", existing.station_name) == key:
                return
            if (
                existing.station_id is None
                and existing.station_name == distance.station_name
                and existing.distance_text == distance.distance_text
            ):
                return
        self.station_distances.append(distance)

    def merge_station_distances(self, other: "ListingData") -> None:
        """Fold another listing's station distances into this one."""
        for distance in other.station_distances:
            self._append_station_distance(distance.model_copy())


class StationError(BaseModel):
    """A station whose fetch failed during a crawl."""

    station_id: str | None
    url: str
    error: str


class StationCrawlResult(BaseModel):
    """Merged outcome of crawling every station facet of one search URL."""

    listings: list[ListingData] = Field(default_factory=list)
    stations: list[str] = Field(default_factory=list)
    station_count: int = 0
    total_found: int = Field(0, description="Listings returned across all stations")
    merged_count: int = Field(0, description="Unique listings after merging")
    duplicate_count: int = Field(0, description="total_found - merged_count")
    errors: list[StationError] = Field(default_factory=list)
    successful_stations: int = 0
    urls_crawled: list[str] = Field(default_factory=list)


class ChangeResult(BaseModel):
    """Result of comparing a fresh listing against its stored snapshot."""

    has_changed: bool
    changed_fields: list[str] = Field(default_factory=list)
    hash: str

    model_config = ConfigDict(frozen=True)


class SessionOptions(BaseModel):
    """Run options recorded on the crawl session for downstream notifiers."""

    max_latest: int | None = None
    notify_mode: str | None = Field(None, description="none, all or filtered")
    filtered_mode: str | None = Field(None, description="silent, normal or none")
    filter_config: dict[str, Any] | None = None
    is_multi_station: bool = False
    stations_crawled: list[str] = Field(default_factory=list)
    max_concurrent: int | None = None
    delay_between_requests: float | None = None
    enable_merging: bool = True


class SaveResult(BaseModel):
    """Best-effort summary of a persistence run."""

    query_id: str
    session_id: int
    saved_count: int = Field(0, description="Listings committed in this run")
    new_count: int = 0
    updated_count: int = 0
    unchanged_count: int = 0
    failed_count: int = Field(0, description="Listings that failed even when retried alone")
    skipped_count: int = Field(0, description="Listings without identity material")


class CrawlRunResult(BaseModel):
    """Outcome of one crawl-merge-persist pipeline run."""

    crawl: StationCrawlResult
    save: SaveResult
    new_identities: list[str] = Field(
        default_factory=list, description="Identities not previously associated with the query"
    )
    deactivated_count: int = 0


class CrawlSettings(BaseModel):
    """Crawl fan-out settings."""

    max_concurrent: int = Field(3, ge=1)
    delay_between_requests: float = Field(1.0, ge=0, description="Seconds between dispatch waves")
    include_station_info: bool = True
    merge_results: bool = Field(True, description="Merge listings seen under several stations")

    model_config = ConfigDict(frozen=True)


class PersistenceSettings(BaseModel):
    """Persistence batching, pagination and cache settings."""

    batch_size: int = Field(5, ge=3, le=8)
    page_size: int = Field(1000, ge=1)
    transaction_timeout_seconds: float = Field(60.0, gt=0)
    cache_ttl_seconds: float = Field(300.0, ge=0)
    cache_max_size: int = Field(100, ge=1)

    model_config = ConfigDict(frozen=True)


class Settings(BaseModel):
    """Complete rent-scout configuration."""

    allowed_hosts: list[str] = Field(default_factory=lambda: ["591.com.tw"])
    crawl: CrawlSettings = Field(default_factory=CrawlSettings)
    persistence: PersistenceSettings = Field(default_factory=PersistenceSettings)

    model_config = ConfigDict(frozen=True)
