"""Service layer for the crawl-merge-persist pipeline."""

import logging

from sqlalchemy.orm import Session

from rent_scout.database.cache import QueryCache
from rent_scout.database.persistence import PersistenceEngine
from rent_scout.domain.identity import has_identity, listing_identity
from rent_scout.domain.search_url import SearchUrl
from rent_scout.exceptions import InvalidSearchUrlError
from rent_scout.models.pydantic_models import (
    CrawlRunResult,
    SessionOptions,
    Settings,
)
from rent_scout.scrapers.base import Fetcher, Parser
from rent_scout.scrapers.station_crawler import StationCrawler

logger = logging.getLogger(__name__)


class CrawlService:
    """Runs one search URL through crawling, change detection and persistence."""

    def __init__(
        self,
        session: Session,
        fetcher: Fetcher,
        parser: Parser,
        settings: Settings | None = None,
        cache: QueryCache | None = None,
    ) -> None:
        """Initialize with database session and crawl ports.

        Args:
            session: SQLAlchemy session instance.
            fetcher: Retrieves page HTML.
            parser: Extracts listings from HTML.
            settings: Application settings. Uses defaults if not provided.
            cache: Lookup cache shared across runs.
        """
        self._settings = settings or Settings()
        self._crawler = StationCrawler(
            fetcher, parser, self._settings.crawl, allowed_hosts=self._settings.allowed_hosts
        )
        self._persistence = PersistenceEngine(
            session,
            self._settings.persistence,
            cache=cache,
            allowed_hosts=self._settings.allowed_hosts,
        )

    @property
    def persistence(self) -> PersistenceEngine:
        return self._persistence

    async def run(
        self, url: str, session_options: SessionOptions | None = None
    ) -> CrawlRunResult:
        """Crawl a search URL and persist what was found.

        Listings no longer returned for the query are deactivated only when
        every station was crawled successfully.

        Args:
            url: Search URL, possibly naming several stations.
            session_options: Run options recorded on the crawl session.

        Returns:
            CrawlRunResult with crawl and save summaries and the identities
            new to this query.

        Raises:
            InvalidSearchUrlError: If the URL is invalid.
        """
        search_url = SearchUrl(url, self._settings.allowed_hosts)
        if not search_url.is_valid:
            raise InvalidSearchUrlError(url)
        query_id = search_url.query_id() or "unknown"

        crawl = await self._crawler.crawl(search_url)
        for error in crawl.errors:
            logger.warning("Station %s failed: %s", error.station_id, error.error)

        options = (session_options or SessionOptions()).model_copy(
            update={
                "is_multi_station": crawl.station_count > 1,
                "stations_crawled": crawl.stations,
                "max_concurrent": self._settings.crawl.max_concurrent,
                "delay_between_requests": self._settings.crawl.delay_between_requests,
                "enable_merging": self._settings.crawl.merge_results,
            }
        )

        known = self._persistence.existing_identities_for_query(query_id)
        save = self._persistence.save(search_url, crawl.listings, options)

        seen: list[str] = []
        for listing in crawl.listings:
            if not has_identity(listing):
                continue
            identity = listing_identity(listing)
            if identity not in seen:
                seen.append(identity)
        new_identities = [identity for identity in seen if identity not in known]

        deactivated = 0
        if not crawl.errors and seen:
            deactivated = self._persistence.deactivate_missing(save.query_id, set(seen))

        logger.info(
            "Crawl of %s finished: %d listings, %d new to query, %d deactivated",
            query_id,
            len(crawl.listings),
            len(new_identities),
            deactivated,
        )
        return CrawlRunResult(
            crawl=crawl,
            save=save,
            new_identities=new_identities,
            deactivated_count=deactivated,
        )
