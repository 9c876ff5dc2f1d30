"""
Tests for MemoryCache.

A controllable clock replaces time.monotonic so expiry is deterministic.
"""

import threading

import pytest

from app.infrastructure.cache.memory_cache import MemoryCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> MemoryCache:
    return MemoryCache(clock=clock)


# =============================================================================
# Basic operations
# =============================================================================


class TestGetSet:

    def test_get_returns_stored_value(self, cache):
        cache.set("book:abc", {"title": "Dune"})

        assert cache.get("book:abc") == {"title": "Dune"}

    def test_get_missing_key_returns_none(self, cache):
        assert cache.get("book:missing") is None

    def test_set_overwrites_value(self, cache):
        cache.set("k", 1)
        cache.set("k", 2)

        assert cache.get("k") == 2
        assert len(cache) == 1

    def test_has(self, cache):
        cache.set("k", "v")

        assert cache.has("k") is True
        assert cache.has("other") is False

    def test_delete(self, cache):
        cache.set("k", "v")

        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert cache.get("k") is None

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)

        cache.clear()

        assert len(cache) == 0
        assert cache.get("a") is None

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            MemoryCache(max_entries=0)


# =============================================================================
# Expiry
# =============================================================================


class TestExpiry:

    def test_default_ttl_is_15_minutes(self, cache, clock):
        cache.set("k", "v")

        clock.advance(15 * 60)
        assert cache.get("k") == "v"

        clock.advance(1)
        assert cache.get("k") is None

    def test_custom_ttl(self, cache, clock):
        cache.set("k", "v", ttl=10)

        clock.advance(11)

        assert cache.get("k") is None

    def test_expired_entry_is_evicted_on_get(self, cache, clock):
        cache.set("k", "v", ttl=10)
        clock.advance(11)

        cache.get("k")

        assert len(cache) == 0

    def test_has_evicts_expired_entry(self, cache, clock):
        cache.set("k", "v", ttl=10)
        clock.advance(11)

        assert cache.has("k") is False
        assert len(cache) == 0


# =============================================================================
# Capacity cleanup
# =============================================================================


class TestCleanup:

    def test_insert_past_capacity_evicts_oldest_fifth(self, clock):
        cache = MemoryCache(max_entries=1000, clock=clock)
        for i in range(1000):
            cache.set(f"k{i}", i)
            clock.advance(0.001)

        cache.set("k1000", 1000)

        assert len(cache) <= 1000
        assert len(cache) == 801
        assert cache.get("k0") is None
        assert cache.get("k199") is None
        assert cache.get("k200") == 200
        assert cache.get("k1000") == 1000

    def test_expired_entries_removed_first(self, clock):
        cache = MemoryCache(max_entries=5, clock=clock)
        cache.set("short", 0, ttl=1)
        for i in range(4):
            cache.set(f"k{i}", i, ttl=100)
        clock.advance(2)

        cache.set("new", 5)

        assert len(cache) == 5
        assert all(cache.get(f"k{i}") == i for i in range(4))
        assert cache.get("short") is None

    def test_equal_expiry_evicts_in_insertion_order(self, clock):
        cache = MemoryCache(max_entries=5, clock=clock)
        for i in range(5):
            cache.set(f"k{i}", i)

        cache.set("new", 5)

        # floor(5 * 0.2) == 1 entry evicted
        assert cache.get("k0") is None
        assert cache.get("k1") == 1
        assert len(cache) == 5

    def test_small_cache_evicts_at_least_one(self, clock):
        cache = MemoryCache(max_entries=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.set("c", 3)

        assert len(cache) == 2
        assert cache.get("a") is None


# =============================================================================
# Stats
# =============================================================================


class TestStats:

    def test_get_stats(self, clock):
        cache = MemoryCache(max_entries=4, clock=clock)
        cache.set("a", 1)

        stats = cache.get_stats()

        assert stats.size == 1
        assert stats.max_size == 4
        assert stats.usage == 25.0
        assert stats.usage_formatted == "25%"

    def test_detailed_stats_counts_expired(self, cache, clock):
        cache.set("short", 1, ttl=5)
        cache.set("long", 2, ttl=500)
        clock.advance(10)

        stats = cache.get_detailed_stats()

        assert stats.size == 2
        assert stats.total_entries == 2
        assert stats.valid_entries == 1
        assert stats.expired_entries == 1

    def test_detailed_stats_extend_occupancy(self, clock):
        cache = MemoryCache(max_entries=4, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        basic = cache.get_stats()
        detailed = cache.get_detailed_stats()

        assert (detailed.size, detailed.max_size, detailed.usage) == (basic.size, basic.max_size, basic.usage)
        assert detailed.valid_entries == 2
        assert detailed.expired_entries == 0


class TestThreadSafety:

    def test_concurrent_sets_respect_capacity(self):
        cache = MemoryCache(max_entries=50)

        def worker(prefix: str) -> None:
            for i in range(200):
                cache.set(f"{prefix}:{i}", i)

        threads = [threading.Thread(target=worker, args=(f"t{n}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(cache) <= 50
