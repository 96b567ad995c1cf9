"""Service layer for rent-scout business logic."""

from rent_scout.services.crawl_service import CrawlService

__all__ = ["CrawlService"]
