"""Database module."""

from rent_scout.database.cache import QueryCache
from rent_scout.database.engine import get_engine, get_session, init_db
from rent_scout.database.persistence import PersistenceEngine
from rent_scout.database.repository import ListingRepository

__all__ = [
    "ListingRepository",
    "PersistenceEngine",
    "QueryCache",
    "get_engine",
    "get_session",
    "init_db",
]
