"""Concurrent crawling of every station facet of a search URL."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from rent_scout.domain.distance import extract_station_name
from rent_scout.domain.identity import derive_identity
from rent_scout.domain.search_url import DEFAULT_ALLOWED_HOSTS, SearchUrl
from rent_scout.exceptions import InvalidSearchUrlError, ListingIdentityError
from rent_scout.models.pydantic_models import (
    CrawlSettings,
    ListingData,
    StationCrawlResult,
    StationError,
)
from rent_scout.scrapers.base import Fetcher, Parser

logger = logging.getLogger(__name__)


@dataclass
class _StationOutcome:
    station_id: str | None
    url: str
    listings: list[ListingData] = field(default_factory=list)
    error: str | None = None


class StationCrawler:
    """Crawls a search URL once per station facet and merges the results.

    A URL naming zero or one station is fetched once and returned as
    parsed. A URL naming several stations is split into one URL per
    station; fetches run concurrently up to ``max_concurrent`` and the
    listings are merged by identity, collecting each station's distance on
    the merged listing. A failing station is reported in ``errors`` and
    never aborts its siblings.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        parser: Parser,
        config: CrawlSettings | None = None,
        allowed_hosts: Sequence[str] = DEFAULT_ALLOWED_HOSTS,
    ) -> None:
        """Initialize crawler.

        Args:
            fetcher: Retrieves page HTML.
            parser: Extracts listings from HTML.
            config: Crawl settings. Uses defaults if not provided.
            allowed_hosts: Hosts accepted for search URLs.
        """
        self._fetcher = fetcher
        self._parser = parser
        self._config = config or CrawlSettings()
        self._allowed_hosts = tuple(allowed_hosts)

    async def crawl(
        self, url: str | SearchUrl, options: CrawlSettings | None = None
    ) -> StationCrawlResult:
        """Crawl a search URL across its station facets.

        Args:
            url: Search URL, possibly naming several stations.
            options: Per-call settings overriding the crawler's config.

        Returns:
            StationCrawlResult with merged listings and per-station errors.

        Raises:
            InvalidSearchUrlError: If the URL is unparsable or its host is not allowed.
        """
        config = options or self._config
        search_url = url if isinstance(url, SearchUrl) else SearchUrl(url, self._allowed_hosts)
        if not search_url.is_valid:
            raise InvalidSearchUrlError(str(search_url))

        stations = search_url.station_ids()
        if len(stations) <= 1:
            return await self._crawl_single(search_url, stations)

        station_urls = search_url.split_by_stations()
        logger.info("Crawling %d stations for %s", len(stations), search_url)

        semaphore = asyncio.Semaphore(config.max_concurrent)
        outcomes = await asyncio.gather(
            *(
                self._crawl_station(index, station_id, str(station_url), semaphore, config)
                for index, (station_id, station_url) in enumerate(zip(stations, station_urls))
            )
        )

        result = self._merge(outcomes, config)
        result.stations = stations
        result.station_count = len(stations)
        result.urls_crawled = [str(station_url) for station_url in station_urls]
        logger.info(
            "Found %d unique listings from %d/%d stations (%d duplicates)",
            result.merged_count,
            result.successful_stations,
            result.station_count,
            result.duplicate_count,
        )
        return result

    async def _crawl_single(self, search_url: SearchUrl, stations: list[str]) -> StationCrawlResult:
        url = str(search_url)
        station_id = stations[0] if stations else None
        result = StationCrawlResult(
            stations=stations,
            station_count=len(stations),
            urls_crawled=[url],
        )
        outcome = await self._fetch(station_id, url)
        if outcome.error is not None:
            result.errors.append(StationError(station_id=station_id, url=url, error=outcome.error))
            return result

        result.listings = outcome.listings
        result.total_found = len(outcome.listings)
        result.merged_count = len(outcome.listings)
        result.successful_stations = 1
        return result

    async def _crawl_station(
        self,
        index: int,
        station_id: str,
        url: str,
        semaphore: asyncio.Semaphore,
        config: CrawlSettings,
    ) -> _StationOutcome:
        async with semaphore:
            # Every dispatch after the first wave waits before fetching
            if index >= config.max_concurrent and config.delay_between_requests > 0:
                await asyncio.sleep(config.delay_between_requests)
            logger.debug("Crawling station %s: %s", station_id, url)
            outcome = await self._fetch(station_id, url)

        if outcome.error is None:
            logger.info("Station %s: %d listings", station_id, len(outcome.listings))
        return outcome

    async def _fetch(self, station_id: str | None, url: str) -> _StationOutcome:
        try:
            html = await self._fetcher.fetch(url)
            listings = self._parser.parse_listings(html)
        except Exception as e:
            logger.error("Station %s failed: %s", station_id or "-", e)
            return _StationOutcome(station_id=station_id, url=url, error=str(e) or type(e).__name__)
        return _StationOutcome(station_id=station_id, url=url, listings=list(listings))

    def _merge(self, outcomes: list[_StationOutcome], config: CrawlSettings) -> StationCrawlResult:
        result = StationCrawlResult()
        merged: dict[str, ListingData] = {}
        unkeyed: list[ListingData] = []

        for outcome in outcomes:
            if outcome.error is not None:
                result.errors.append(
                    StationError(station_id=outcome.station_id, url=outcome.url, error=outcome.error)
                )
                continue

            result.successful_stations += 1
            result.total_found += len(outcome.listings)
            for listing in outcome.listings:
                annotated = _annotate(listing, outcome.station_id or "")
                if not config.merge_results:
                    unkeyed.append(annotated)
                    continue
                try:
                    key = derive_identity(annotated).key
                except ListingIdentityError:
                    unkeyed.append(annotated)
                    continue
                existing = merged.get(key)
                if existing is None:
                    merged[key] = annotated
                else:
                    existing.merge_station_distances(annotated)

        listings = list(merged.values()) + unkeyed
        if not config.include_station_info:
            for listing in listings:
                listing.station_distances = []

        result.listings = listings
        result.merged_count = len(listings)
        result.duplicate_count = result.total_found - result.merged_count
        return result


def _annotate(listing: ListingData, station_id: str) -> ListingData:
    """Copy of a listing carrying its distance to the station it was found under."""
    annotated = listing.model_copy(deep=True)
    annotated.add_station_distance(
        station_id,
        extract_station_name(listing.distance_title or ""),
        listing.distance_text,
    )
    return annotated


def has_multiple_stations(url: str, allowed_hosts: Sequence[str] = DEFAULT_ALLOWED_HOSTS) -> bool:
    """Check if a search URL names more than one station."""
    search_url = SearchUrl(url, allowed_hosts)
    return search_url.is_valid and search_url.has_multiple_stations()


def get_url_station_info(
    url: str, allowed_hosts: Sequence[str] = DEFAULT_ALLOWED_HOSTS
) -> dict[str, Any]:
    """Describe the station facet of a search URL."""
    search_url = SearchUrl(url, allowed_hosts)
    if not search_url.is_valid:
        return {"is_valid": False, "has_multiple": False, "stations": [], "station_count": 0}

    stations = search_url.station_ids()
    return {
        "is_valid": True,
        "has_multiple": len(stations) > 1,
        "stations": stations,
        "station_count": len(stations),
        "query_id": search_url.query_id(),
        "description": search_url.description(),
    }
