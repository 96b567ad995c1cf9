"""Repository layer for database operations.

Repository methods stage changes on the session and flush where ids are
needed, but never commit; transaction boundaries belong to the caller.
"""

import functools
import re
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from typing import TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from typing_extensions import ParamSpec

from rent_scout.domain.search_url import QueryId, SearchUrl
from rent_scout.models.db_models import (
    CrawlSession,
    Listing,
    Query,
    QueryListing,
    SessionListing,
    StationDistance,
    utc_now,
)
from rent_scout.models.pydantic_models import (
    ListingData,
    ListingStatus,
    NotificationInfo,
    SessionOptions,
    SessionStatus,
    StationDistanceData,
)

P = ParamSpec("P")
R = TypeVar("R")

# Retry configuration for database operations
DB_RETRY_MAX_ATTEMPTS = 5
DB_RETRY_WAIT_MIN = 1  # seconds
DB_RETRY_WAIT_MAX = 8  # seconds
DB_RETRY_WAIT_MULTIPLIER = 2

_PRICE_RE = re.compile(r"(\d{1,3}(?:,\d{3})+|\d+)\s*元")


def with_db_retry(func: Callable[P, R]) -> Callable[P, R]:
    """Decorator to retry database operations on SQLite lock errors.

    Retries on sqlalchemy.exc.OperationalError using exponential backoff.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        for attempt in Retrying(
            retry=retry_if_exception_type(OperationalError),
            stop=stop_after_attempt(DB_RETRY_MAX_ATTEMPTS),
            wait=wait_exponential(
                multiplier=DB_RETRY_WAIT_MULTIPLIER,
                min=DB_RETRY_WAIT_MIN,
                max=DB_RETRY_WAIT_MAX,
            ),
            reraise=True,
        ):
            with attempt:
                return func(*args, **kwargs)
        raise RuntimeError("Retry logic failed unexpectedly")

    return wrapper


def as_naive_utc(value: datetime) -> datetime:
    """Drop tzinfo so timestamps read back from SQLite compare with fresh ones."""
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


def price_from_title(title: str | None) -> int | None:
    """Monthly rent parsed from a title such as ``套房 12,000元/月``."""
    if not title:
        return None
    match = _PRICE_RE.search(title)
    if match is None:
        return None
    return int(match.group(1).replace(",", ""))


class ListingRepository:
    """Repository for listings, queries, sessions and their relations."""

    def __init__(self, session: Session) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session instance.
        """
        self._session = session

    # ========== LISTINGS ==========

    def get_listing_by_identity(self, identity_key: str) -> Listing | None:
        """Get a listing by its identity key."""
        return self._session.query(Listing).filter(Listing.identity_key == identity_key).first()

    def get_listing_by_id(self, listing_id: int) -> Listing | None:
        return self._session.query(Listing).filter(Listing.id == listing_id).first()

    def create_listing(
        self, identity_key: str, data: ListingData, content_hash: str, seen_at: datetime | None = None
    ) -> Listing:
        """Create a listing and its station distances.

        Args:
            identity_key: Stable identity of the listing.
            data: Normalized listing data.
            content_hash: Fingerprint from the change detector.
            seen_at: Observation time. Defaults to now.

        Returns:
            Created Listing, flushed so its id is assigned.
        """
        now = seen_at or utc_now()
        listing = Listing(
            identity_key=identity_key,
            first_seen_at=now,
            last_seen_at=now,
            is_active=True,
        )
        self._apply_fields(listing, data, content_hash)
        self._session.add(listing)
        self._session.flush()
        self.sync_station_distances(listing, data)
        return listing

    def update_listing(
        self, listing: Listing, data: ListingData, content_hash: str, seen_at: datetime | None = None
    ) -> Listing:
        """Overwrite a listing's fields with fresh data and upsert its distances."""
        self._apply_fields(listing, data, content_hash)
        self.touch_listing(listing, seen_at)
        self.sync_station_distances(listing, data)
        return listing

    def touch_listing(self, listing: Listing, seen_at: datetime | None = None) -> None:
        """Mark a listing as seen now and reactivate it."""
        listing.last_seen_at = seen_at or utc_now()
        listing.is_active = True

    def _apply_fields(self, listing: Listing, data: ListingData, content_hash: str) -> None:
        listing.title = data.title
        listing.link = data.link
        listing.category = data.category
        listing.rooms = data.rooms
        listing.distance_title = data.distance_title
        listing.distance_text = data.distance_text
        listing.price = price_from_title(data.title)
        listing.tags = list(data.tags)
        listing.image_urls = list(data.image_urls)
        listing.content_hash = content_hash

    def sync_station_distances(self, listing: Listing, data: ListingData) -> list[StationDistance]:
        """Upsert the listing's station distances; existing rows are never removed.

        When the listing carries no explicit distances, the card's primary
        station annotation is stored with an empty station id.
        """
        distances = list(data.station_distances)
        if not distances:
            primary = data.primary_station_distance()
            if primary is not None:
                distances = [primary]
        return [self.upsert_station_distance(listing, distance) for distance in distances]

    def upsert_station_distance(
        self, listing: Listing, distance: StationDistanceData
    ) -> StationDistance:
        """Insert or update one StationDistance keyed by (listing, station id, station name)."""
        station_id = distance.station_id or ""
        for row in listing.station_distances:
            if row.station_id == station_id and row.station_name == distance.station_name:
                break
        else:
            row = StationDistance(station_id=station_id, station_name=distance.station_name)
            listing.station_distances.append(row)
        row.distance_m = distance.distance_m
        row.distance_text = distance.distance_text
        self._session.flush()
        return row

    def deactivate_missing(self, query_id: str, seen_identities: Iterable[str]) -> int:
        """Mark active listings of a query that were not seen as inactive.

        Returns:
            Number of listings deactivated.
        """
        seen = set(seen_identities)
        listings = (
            self._session.query(Listing)
            .join(QueryListing, QueryListing.listing_id == Listing.id)
            .filter(QueryListing.query_id == query_id, Listing.is_active.is_(True))
            .all()
        )
        count = 0
        for listing in listings:
            if listing.identity_key not in seen:
                listing.is_active = False
                count += 1
        return count

    # ========== QUERIES ==========

    def get_query(self, query_id: str) -> Query | None:
        return self._session.query(Query).filter(Query.id == query_id).first()

    def upsert_query(self, search_url: SearchUrl) -> Query:
        """Create the Query for a search URL, or refresh its description and url."""
        query_id = search_url.query_id()
        if query_id is None:
            raise ValueError(f"Cannot derive a query id from invalid URL: {search_url}")

        description = search_url.description()
        query = self.get_query(query_id)
        if query is not None:
            query.description = description
            query.url = str(search_url)
            query.updated_at = utc_now()
            return query

        parsed = QueryId.parse(query_id)
        price_min, price_max = parsed.price_range()
        query = Query(
            id=query_id,
            description=description,
            url=str(search_url),
            region=parsed.region,
            kind=parsed.kind,
            stations=",".join(parsed.stations) or None,
            metro=parsed.metro,
            price_min=price_min,
            price_max=price_max,
            sections=",".join(parsed.sections) or None,
            rooms=",".join(parsed.rooms) or None,
            floor_range=parsed.floor,
            group_hash=parsed.group_hash(),
            is_valid=parsed.is_valid,
        )
        self._session.add(query)
        self._session.flush()
        return query

    # ========== SESSIONS ==========

    def create_session(
        self, query_id: str, url: str, options: SessionOptions | None = None
    ) -> CrawlSession:
        """Create a running CrawlSession recording the run options."""
        options = options or SessionOptions()
        crawl_session = CrawlSession(
            query_id=query_id,
            url=url,
            status=SessionStatus.RUNNING,
            max_latest=options.max_latest,
            notify_mode=options.notify_mode,
            filtered_mode=options.filtered_mode,
            filter_config=options.filter_config,
            is_multi_station=options.is_multi_station,
            stations_crawled=",".join(options.stations_crawled) or None,
            max_concurrent=options.max_concurrent,
            delay_between_requests=options.delay_between_requests,
            enable_merging=options.enable_merging,
            errors=[],
        )
        self._session.add(crawl_session)
        self._session.flush()
        return crawl_session

    def get_session(self, session_id: int) -> CrawlSession | None:
        return self._session.query(CrawlSession).filter(CrawlSession.id == session_id).first()

    def complete_session(
        self,
        crawl_session: CrawlSession,
        status: SessionStatus = SessionStatus.COMPLETED,
        errors: list[str] | None = None,
    ) -> CrawlSession:
        """Finish a session, deriving its counts from its SessionListing rows."""
        counts = {status_value: 0 for status_value in ListingStatus}
        rows = (
            self._session.query(SessionListing.status)
            .filter(SessionListing.session_id == crawl_session.id)
            .all()
        )
        for (row_status,) in rows:
            counts[ListingStatus(row_status)] += 1

        crawl_session.total_listings = len(rows)
        crawl_session.new_listings = counts[ListingStatus.NEW]
        crawl_session.updated_listings = counts[ListingStatus.UPDATED]
        crawl_session.unchanged_listings = counts[ListingStatus.UNCHANGED]
        crawl_session.failed_listings = len(errors or [])
        crawl_session.errors = list(errors or [])
        crawl_session.status = status
        crawl_session.completed_at = utc_now()
        return crawl_session

    # ========== RELATIONS ==========

    def upsert_query_listing(
        self,
        query_id: str,
        listing_id: int,
        seen_at: datetime | None = None,
        notification: NotificationInfo | None = None,
    ) -> QueryListing:
        """Record that a listing appeared in a query; last_appeared_at only moves forward."""
        now = seen_at or utc_now()
        row = (
            self._session.query(QueryListing)
            .filter(QueryListing.query_id == query_id, QueryListing.listing_id == listing_id)
            .first()
        )
        if row is None:
            row = QueryListing(
                query_id=query_id,
                listing_id=listing_id,
                first_appeared_at=now,
                last_appeared_at=now,
            )
            self._session.add(row)
        else:
            row.last_appeared_at = max(as_naive_utc(row.last_appeared_at), as_naive_utc(now))

        if notification is not None and notification.sent and not row.notified:
            row.notified = True
            row.notified_at = now
        self._session.flush()
        return row

    def upsert_session_listing(
        self,
        session_id: int,
        listing_id: int,
        status: ListingStatus,
        notification: NotificationInfo | None = None,
        notify_mode: str | None = None,
    ) -> SessionListing:
        """Record a listing's outcome within a session."""
        notification = notification or NotificationInfo()
        row = (
            self._session.query(SessionListing)
            .filter(
                SessionListing.session_id == session_id,
                SessionListing.listing_id == listing_id,
            )
            .first()
        )
        if row is None:
            row = SessionListing(session_id=session_id, listing_id=listing_id)
            self._session.add(row)
        row.status = status
        row.was_new = status == ListingStatus.NEW
        row.was_notified = notification.sent
        row.notify_mode = notification.mode or notify_mode
        row.silent_notify = notification.silent
        self._session.flush()
        return row

    def iter_query_identity_pages(self, query_id: str, page_size: int = 1000) -> Iterator[list[str]]:
        """Yield identity keys of a query's listings in pages ordered by listing id.

        Keyset pagination: each page continues after the last listing id of
        the previous one, and iteration stops on a short page.
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")

        cursor = 0
        while True:
            rows = (
                self._session.query(QueryListing.listing_id, Listing.identity_key)
                .join(Listing, Listing.id == QueryListing.listing_id)
                .filter(QueryListing.query_id == query_id, QueryListing.listing_id > cursor)
                .order_by(QueryListing.listing_id)
                .limit(page_size)
                .all()
            )
            if rows:
                yield [identity_key for _, identity_key in rows]
                cursor = rows[-1][0]
            if len(rows) < page_size:
                return

    def count_query_listings(self, query_id: str) -> int:
        return self._session.query(QueryListing).filter(QueryListing.query_id == query_id).count()
