"""In-memory TTL cache for repeated read queries."""

import time
from collections.abc import Callable
from typing import Any, NamedTuple


class CacheEntry(NamedTuple):
    """Cached value with the time it was stored and its own TTL, if any."""

    data: Any
    timestamp: float
    ttl: float | None = None


class QueryCache:
    """Dictionary-backed cache with a per-entry time-to-live.

    Cache strategy:
    - An entry older than its TTL is a miss
    - Expired entries are evicted lazily, when a write pushes the cache past max_size
    - No LRU ordering; a cache full of live entries keeps growing until they expire

    Not thread-safe; intended for a single-threaded caller.
    """

    DEFAULT_MAX_SIZE = 100
    DEFAULT_TTL_SECONDS = 300.0  # 5 minutes

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache.

        Args:
            max_size: Size above which expired entries are evicted on write.
            ttl: Default time-to-live in seconds.
            clock: Monotonic time source, injectable for tests.
        """
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def _is_expired(self, entry: CacheEntry, now: float, ttl: float | None = None) -> bool:
        if ttl is None:
            ttl = self.ttl if entry.ttl is None else entry.ttl
        return now - entry.timestamp > ttl

    def get(self, key: str, ttl: float | None = None) -> CacheEntry | None:
        """Get a cached entry if present and not expired.

        Args:
            key: Cache key.
            ttl: Override for the TTL the entry was stored with.

        Returns:
            CacheEntry if found and fresh, None otherwise.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock(), ttl):
            return None
        return entry

    def set(self, key: str, data: Any, ttl: float | None = None) -> None:
        """Store a value, evicting expired entries once over max_size.

        Args:
            key: Cache key.
            data: Value to cache.
            ttl: Time-to-live for this entry. Defaults to the cache TTL.
        """
        self._entries[key] = CacheEntry(data=data, timestamp=self._clock(), ttl=ttl)
        if len(self._entries) > self.max_size:
            self.clear_expired()

    def invalidate(self, key: str) -> bool:
        """Drop one entry. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """Remove every entry.

        Returns:
            Number of entries removed.
        """
        count = len(self._entries)
        self._entries.clear()
        return count

    def clear_expired(self) -> int:
        """Remove expired entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        expired = sum(1 for entry in self._entries.values() if self._is_expired(entry, now))
        total = len(self._entries)
        return {
            "total": total,
            "expired": expired,
            "valid": total - expired,
            "max_size": self.max_size,
            "ttl_seconds": self.ttl,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None
