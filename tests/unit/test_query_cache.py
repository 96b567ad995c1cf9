"""Tests for the TTL query cache."""

from rent_scout.database.cache import CacheEntry, QueryCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestQueryCacheGetSet:
    """Tests for get/set with TTL."""

    def test_hit_within_ttl(self) -> None:
        clock = FakeClock()
        cache = QueryCache(ttl=300, clock=clock)
        cache.set("k", {"a"})
        clock.advance(299)
        assert cache.get("k") == CacheEntry(data={"a"}, timestamp=1000.0)

    def test_miss_after_ttl(self) -> None:
        """An entry older than its TTL is a miss."""
        clock = FakeClock()
        cache = QueryCache(ttl=300, clock=clock)
        cache.set("k", 1)
        clock.advance(301)
        assert cache.get("k") is None

    def test_ttl_override(self) -> None:
        clock = FakeClock()
        cache = QueryCache(ttl=300, clock=clock)
        cache.set("k", 1)
        clock.advance(10)
        assert cache.get("k", ttl=5) is None
        assert cache.get("k", ttl=60) is not None

    def test_missing_key(self) -> None:
        assert QueryCache().get("nope") is None

    def test_set_overwrites_and_refreshes(self) -> None:
        clock = FakeClock()
        cache = QueryCache(ttl=10, clock=clock)
        cache.set("k", 1)
        clock.advance(8)
        cache.set("k", 2)
        clock.advance(8)
        entry = cache.get("k")
        assert entry is not None
        assert entry.data == 2

    def test_contains(self) -> None:
        cache = QueryCache()
        cache.set("k", 1)
        assert "k" in cache
        assert "other" not in cache


class TestQueryCacheEviction:
    """Tests for lazy eviction."""

    def test_expired_entries_evicted_when_over_max_size(self) -> None:
        clock = FakeClock()
        cache = QueryCache(max_size=2, ttl=10, clock=clock)
        cache.set("old1", 1)
        cache.set("old2", 2)
        clock.advance(11)
        cache.set("fresh", 3)
        assert len(cache) == 1
        assert cache.get("fresh") is not None

    def test_live_entries_not_evicted(self) -> None:
        """Eviction is not LRU; live entries survive past max_size."""
        cache = QueryCache(max_size=2, ttl=10, clock=FakeClock())
        for key in ("a", "b", "c"):
            cache.set(key, key)
        assert len(cache) == 3

    def test_entry_ttl_respected_on_eviction(self) -> None:
        clock = FakeClock()
        cache = QueryCache(max_size=2, ttl=10, clock=clock)
        cache.set("long", 1, ttl=600)
        cache.set("short", 2)
        clock.advance(11)
        cache.set("fresh", 3)
        assert "long" in cache
        assert "short" not in cache
        assert len(cache) == 2

    def test_entry_ttl_used_on_read(self) -> None:
        clock = FakeClock()
        cache = QueryCache(ttl=10, clock=clock)
        cache.set("k", 1, ttl=60)
        clock.advance(30)
        assert cache.get("k") == CacheEntry(data=1, timestamp=1000.0, ttl=60)
        clock.advance(31)
        assert cache.get("k") is None

    def test_no_eviction_at_or_below_max_size(self) -> None:
        clock = FakeClock()
        cache = QueryCache(max_size=2, ttl=10, clock=clock)
        cache.set("a", 1)
        clock.advance(11)
        cache.set("b", 2)
        assert len(cache) == 2


class TestQueryCacheMaintenance:
    """Tests for invalidate, clear, clear_expired and stats."""

    def test_invalidate(self) -> None:
        cache = QueryCache()
        cache.set("k", 1)
        assert cache.invalidate("k") is True
        assert cache.invalidate("k") is False
        assert cache.get("k") is None

    def test_clear(self) -> None:
        cache = QueryCache()
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.clear() == 2
        assert len(cache) == 0

    def test_clear_expired(self) -> None:
        clock = FakeClock()
        cache = QueryCache(ttl=10, clock=clock)
        cache.set("old", 1)
        clock.advance(11)
        cache.set("new", 2)
        assert cache.clear_expired() == 1
        assert cache.get("new") is not None

    def test_stats(self) -> None:
        clock = FakeClock()
        cache = QueryCache(max_size=50, ttl=10, clock=clock)
        cache.set("old", 1)
        clock.advance(11)
        cache.set("new", 2)
        assert cache.stats() == {
            "total": 2,
            "expired": 1,
            "valid": 1,
            "max_size": 50,
            "ttl_seconds": 10,
        }
