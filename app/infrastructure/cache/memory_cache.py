"""
In-process TTL cache implementing the BookCache port.

Entries expire lazily: an expired entry is only removed when it is read or
when a `set` finds the cache at capacity. Capacity cleanup first drops
expired entries and then, if still full, the 20% of entries closest to
expiry. This approximates LRU without tracking access order.

The lookup service is called from worker threads, so every access to the
backing dict happens under a lock.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from app.domain.ports import BookCache
from app.domain.value_objects import MemoryCacheStats


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    data: T
    expiry: float
    """Absolute expiry on the cache clock, in seconds"""


class MemoryCache(BookCache):
    """
    Bounded key/value cache with per-entry TTL.

    Usage:
        cache = MemoryCache()
        cache.set("book:abc123", result)             # default TTL (15 min)
        cache.set("search:dune:10:auto", results, ttl=600)
        cache.get("book:abc123")
    """

    DEFAULT_TTL_SECONDS = 15 * 60
    MAX_ENTRIES = 1000
    EVICTION_FRACTION = 0.2

    def __init__(
        self,
        max_entries: int = MAX_ENTRIES,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            max_entries: Entry count at which `set` triggers a cleanup
            default_ttl: TTL in seconds used when `set` gets no explicit ttl
            clock: Time source in seconds. Tests inject a controllable clock.
        """
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")

        self._max_entries = max_entries
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._lock = threading.RLock()

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl

        with self._lock:
            if len(self._entries) >= self._max_entries:
                self._cleanup()

            self._entries[key] = CacheEntry(data=value, expiry=self._clock() + ttl)
            size = len(self._entries)

        logger.debug("Cache SET: %s (TTL: %ss, Size: %s)", key, ttl, size)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)

            if entry is None:
                logger.debug("Cache MISS: %s", key)
                return None

            if self._clock() > entry.expiry:
                del self._entries[key]
                logger.debug("Cache EXPIRED: %s", key)
                return None

        logger.debug("Cache HIT: %s", key)
        return entry.data

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False

            if self._clock() > entry.expiry:
                del self._entries[key]
                return False

            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            deleted = self._entries.pop(key, None) is not None

        if deleted:
            logger.debug("Cache DELETE: %s", key)
        return deleted

    def clear(self) -> None:
        with self._lock:
            size = len(self._entries)
            self._entries.clear()

        logger.info("Cache cleared: %s entries removed", size)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> MemoryCacheStats:
        """Occupancy without scanning entries for expiry."""
        with self._lock:
            size = len(self._entries)
        return MemoryCacheStats(size=size, max_size=self._max_entries)

    def get_detailed_stats(self) -> MemoryCacheStats:
        """Occupancy plus a count of valid vs. expired-but-not-yet-evicted entries."""
        # Reentrant lock: occupancy and the expiry scan see the same entries
        with self._lock:
            stats = self.get_stats()
            now = self._clock()
            expired = sum(1 for entry in self._entries.values() if now > entry.expiry)

        return replace(stats, valid_entries=stats.size - expired, expired_entries=expired)

    def _cleanup(self) -> None:
        """Make room for a new entry. Caller must hold the lock."""
        now = self._clock()

        expired_keys = [key for key, entry in self._entries.items() if now > entry.expiry]
        for key in expired_keys:
            del self._entries[key]

        if len(self._entries) < self._max_entries:
            logger.debug("Cache cleanup: removed %s expired entries", len(expired_keys))
            return

        # sorted() is stable, so entries with equal expiry go in insertion order
        by_expiry = sorted(self._entries.items(), key=lambda item: item[1].expiry)
        n_evict = max(1, math.floor(self._max_entries * self.EVICTION_FRACTION))
        to_delete = by_expiry[:n_evict]
        for key, _ in to_delete:
            del self._entries[key]

        logger.info(
            "Cache cleanup: removed %s expired + %s oldest entries",
            len(expired_keys),
            len(to_delete),
        )
