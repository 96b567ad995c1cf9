"""Batched, partial-failure-tolerant persistence of crawled listings."""

import logging
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from rent_scout.database.cache import QueryCache
from rent_scout.database.repository import ListingRepository, with_db_retry
from rent_scout.detection.change_detector import changes_summary, compare, generate_hash
from rent_scout.domain.identity import derive_identity
from rent_scout.domain.search_url import DEFAULT_ALLOWED_HOSTS, SearchUrl
from rent_scout.exceptions import (
    InvalidSearchUrlError,
    ListingIdentityError,
    PersistenceUnavailableError,
    TransactionTimeoutError,
)
from rent_scout.models.db_models import utc_now
from rent_scout.models.pydantic_models import (
    ListingData,
    ListingStatus,
    PersistenceSettings,
    SaveResult,
    SessionOptions,
    SessionStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SLOW_QUERY_SECONDS = 1.0

# One staged listing: (identity key, normalized data)
StagedListing = tuple[str, ListingData]


class BatchState(str, Enum):
    """Lifecycle of one batch of listings."""

    PENDING = "pending"
    BATCH_ATTEMPTED = "batch_attempted"
    COMMITTED = "committed"
    PER_ITEM_RETRY = "per_item_retry"
    DONE = "done"


def existing_ids_cache_key(query_id: str) -> str:
    return f"existing_ids_{query_id}"


def _coerce_listings(listings: Any) -> list[ListingData]:
    if not isinstance(listings, (list, tuple)):
        raise TypeError(f"listings must be a list, got {type(listings).__name__}")
    coerced: list[ListingData] = []
    for item in listings:
        if isinstance(item, ListingData):
            coerced.append(item)
        elif isinstance(item, dict):
            coerced.append(ListingData.model_validate(item))
        else:
            raise TypeError(f"listing must be ListingData or dict, got {type(item).__name__}")
    return coerced


class PersistenceEngine:
    """Persists a crawl's listings and their query/session relations.

    Listings are written in fixed-size batches, each in its own transaction
    with a wall-clock deadline. A failed batch is rolled back and its
    listings retried one per transaction, so one bad listing costs only
    itself.

    Args:
        session: SQLAlchemy session; the engine owns its commits and rollbacks.
        settings: Batch, pagination and cache settings.
        cache: Lookup cache. Defaults to one sized from settings.
        clock: Monotonic time source for transaction deadlines.
        allowed_hosts: Hosts accepted for search URLs given as strings.
    """

    def __init__(
        self,
        session: Session,
        settings: PersistenceSettings | None = None,
        cache: QueryCache | None = None,
        clock: Callable[[], float] = time.monotonic,
        allowed_hosts: Sequence[str] = DEFAULT_ALLOWED_HOSTS,
    ) -> None:
        self._session = session
        self._settings = settings or PersistenceSettings()
        self._cache = cache or QueryCache(
            max_size=self._settings.cache_max_size, ttl=self._settings.cache_ttl_seconds
        )
        self._clock = clock
        self._allowed_hosts = tuple(allowed_hosts)
        self._repo = ListingRepository(session)

    @property
    def cache(self) -> QueryCache:
        return self._cache

    @property
    def repository(self) -> ListingRepository:
        return self._repo

    # ========== SAVE ==========

    def save(
        self,
        search_url: SearchUrl | str,
        listings: list[ListingData] | list[dict[str, Any]],
        session_options: SessionOptions | None = None,
    ) -> SaveResult:
        """Persist listings found for a search URL.

        Args:
            search_url: Search the listings were found under.
            listings: Listings as ListingData models or plain dicts.
            session_options: Run options recorded on the crawl session.

        Returns:
            SaveResult with per-status counts.

        Raises:
            TypeError: If listings is not a list of ListingData/dicts.
            InvalidSearchUrlError: If the search URL is invalid.
            OperationalError: If creating the query/session keeps failing.
            PersistenceUnavailableError: If no listing of a batch could be
                written because the database is unavailable.
        """
        items = _coerce_listings(listings)
        url = search_url
        if not isinstance(url, SearchUrl):
            url = SearchUrl(url, self._allowed_hosts)
        if not url.is_valid:
            raise InvalidSearchUrlError(str(url))
        options = session_options or SessionOptions()

        staged, skipped = self._stage(items)
        query_id, session_id = self._bootstrap(url, options)
        result = SaveResult(query_id=query_id, session_id=session_id, skipped_count=skipped)
        errors: list[str] = []

        batch_size = self._settings.batch_size
        batches = [staged[i : i + batch_size] for i in range(0, len(staged), batch_size)]
        for number, batch in enumerate(batches, start=1):
            logger.info(
                "Saving batch %d/%d (%d listings) for query %s",
                number,
                len(batches),
                len(batch),
                query_id,
            )
            statuses = self._save_batch(batch, query_id, session_id, options, errors)
            for status in statuses:
                result.saved_count += 1
                if status == ListingStatus.NEW:
                    result.new_count += 1
                elif status == ListingStatus.UPDATED:
                    result.updated_count += 1
                else:
                    result.unchanged_count += 1

        result.failed_count = len(errors)
        self._cache.invalidate(existing_ids_cache_key(query_id))
        try:
            self._finish_session(session_id, SessionStatus.COMPLETED, errors)
        except SQLAlchemyError as e:
            logger.error("Could not finalize session %d for %s: %s", session_id, query_id, e)

        logger.info(
            "Saved %d listings for %s (new=%d updated=%d unchanged=%d failed=%d skipped=%d)",
            result.saved_count,
            query_id,
            result.new_count,
            result.updated_count,
            result.unchanged_count,
            result.failed_count,
            result.skipped_count,
        )
        return result

    def _stage(self, items: list[ListingData]) -> tuple[list[StagedListing], int]:
        """Attach identities, skipping listings without any and folding duplicates."""
        staged: dict[str, ListingData] = {}
        skipped = 0
        for item in items:
            try:
                identity = derive_identity(item).key
            except ListingIdentityError:
                logger.warning("Skipping listing without link or title")
                skipped += 1
                continue
            existing = staged.get(identity)
            if existing is None:
                staged[identity] = item.model_copy(deep=True)
            else:
                existing.merge_station_distances(item)
        return list(staged.items()), skipped

    @with_db_retry
    def _bootstrap(self, search_url: SearchUrl, options: SessionOptions) -> tuple[str, int]:
        """Upsert the query and open a crawl session for this save."""
        try:
            query = self._repo.upsert_query(search_url)
            crawl_session = self._repo.create_session(query.id, str(search_url), options)
            self._session.commit()
        except SQLAlchemyError:
            self._session.rollback()
            raise
        return query.id, crawl_session.id

    def _save_batch(
        self,
        batch: list[StagedListing],
        query_id: str,
        session_id: int,
        options: SessionOptions,
        errors: list[str],
    ) -> list[ListingStatus]:
        state = BatchState.PENDING
        statuses: list[ListingStatus] = []

        state = BatchState.BATCH_ATTEMPTED
        try:
            statuses = self._write(batch, query_id, session_id, options)
            self._session.commit()
            state = BatchState.COMMITTED
        except (SQLAlchemyError, TransactionTimeoutError) as batch_error:
            self._session.rollback()
            logger.warning(
                "Batch of %d failed (%s), retrying listings individually", len(batch), batch_error
            )
            state = BatchState.PER_ITEM_RETRY
            statuses = self._retry_individually(batch, query_id, session_id, options, errors)
            if not statuses and isinstance(batch_error, OperationalError):
                self._mark_failed(session_id, errors)
                raise PersistenceUnavailableError(
                    f"Database unavailable while saving query {query_id}"
                ) from batch_error

        state = BatchState.DONE
        logger.debug("Batch finished in state %s with %d saved", state.value, len(statuses))
        return statuses

    def _retry_individually(
        self,
        batch: list[StagedListing],
        query_id: str,
        session_id: int,
        options: SessionOptions,
        errors: list[str],
    ) -> list[ListingStatus]:
        statuses: list[ListingStatus] = []
        for staged in batch:
            try:
                statuses.extend(self._write([staged], query_id, session_id, options))
                self._session.commit()
            except (SQLAlchemyError, TransactionTimeoutError) as e:
                self._session.rollback()
                logger.error("Failed to save listing %s: %s", staged[0], e)
                errors.append(f"{staged[0]}: {e}")
        return statuses

    def _write(
        self,
        batch: list[StagedListing],
        query_id: str,
        session_id: int,
        options: SessionOptions,
    ) -> list[ListingStatus]:
        """Stage one transaction's writes, enforcing the transaction deadline."""
        timeout = self._settings.transaction_timeout_seconds
        started = self._clock()
        self._apply_statement_timeout(timeout)

        statuses = []
        for identity, data in batch:
            if self._clock() - started > timeout:
                raise TransactionTimeoutError(timeout)
            statuses.append(self._write_one(identity, data, query_id, session_id, options))
        if self._clock() - started > timeout:
            raise TransactionTimeoutError(timeout)
        return statuses

    def _apply_statement_timeout(self, timeout: float) -> None:
        bind = self._session.get_bind()
        if bind.dialect.name == "postgresql":
            self._session.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))

    def _write_one(
        self,
        identity: str,
        data: ListingData,
        query_id: str,
        session_id: int,
        options: SessionOptions,
    ) -> ListingStatus:
        now = utc_now()
        fresh_hash = generate_hash(data)
        listing = self._repo.get_listing_by_identity(identity)

        if listing is None:
            listing = self._repo.create_listing(identity, data, fresh_hash, seen_at=now)
            status = ListingStatus.NEW
        elif listing.content_hash == fresh_hash:
            self._repo.touch_listing(listing, now)
            status = ListingStatus.UNCHANGED
        else:
            change = compare(data, listing.to_snapshot())
            if change.has_changed:
                logger.debug("Listing %s: %s", identity, changes_summary(change.changed_fields))
                self._repo.update_listing(listing, data, change.hash, seen_at=now)
                status = ListingStatus.UPDATED
            else:
                self._repo.touch_listing(listing, now)
                status = ListingStatus.UNCHANGED

        self._repo.upsert_query_listing(query_id, listing.id, seen_at=now, notification=data.notification)
        self._repo.upsert_session_listing(
            session_id,
            listing.id,
            status,
            notification=data.notification,
            notify_mode=options.notify_mode,
        )
        return status

    @with_db_retry
    def _finish_session(self, session_id: int, status: SessionStatus, errors: list[str]) -> None:
        """Write the session's final status and counts, retried on lock errors."""
        try:
            crawl_session = self._repo.get_session(session_id)
            if crawl_session is None:
                return
            self._repo.complete_session(crawl_session, status=status, errors=errors)
            self._session.commit()
        except SQLAlchemyError:
            self._session.rollback()
            raise

    def _mark_failed(self, session_id: int, errors: list[str]) -> None:
        try:
            self._finish_session(session_id, SessionStatus.FAILED, errors)
        except SQLAlchemyError as e:
            logger.warning("Could not mark session %d as failed: %s", session_id, e)

    # ========== READS ==========

    def get_cached_or_compute(self, key: str, compute: Callable[[], T], ttl: float | None = None) -> T:
        """Return a cached value, computing and caching it on a miss.

        Computations slower than one second are logged as warnings.
        """
        entry = self._cache.get(key, ttl)
        if entry is not None:
            logger.debug("Cache hit: %s", key)
            return entry.data

        started = self._clock()
        value = compute()
        elapsed = self._clock() - started
        if elapsed > SLOW_QUERY_SECONDS:
            logger.warning("Slow query %s took %.2fs", key, elapsed)

        self._cache.set(key, value, ttl)
        return value

    def existing_identities_for_query(self, query_id: str) -> set[str]:
        """Identity keys of every listing ever associated with a query."""

        def load() -> set[str]:
            identities: set[str] = set()
            for page in self._repo.iter_query_identity_pages(query_id, self._settings.page_size):
                identities.update(page)
            return identities

        return set(self.get_cached_or_compute(existing_ids_cache_key(query_id), load))

    def deactivate_missing(self, query_id: str, seen_identities: set[str] | list[str]) -> int:
        """Mark the query's listings not in seen_identities as inactive."""
        try:
            count = self._repo.deactivate_missing(query_id, seen_identities)
            self._session.commit()
        except SQLAlchemyError:
            self._session.rollback()
            raise
        if count:
            logger.info("Deactivated %d listings no longer listed for %s", count, query_id)
        return count
