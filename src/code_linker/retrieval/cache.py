"""TTL cache with hit-weighted eviction."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL = 300.0
# Each hit buys an entry this many seconds of apparent freshness at eviction time
DEFAULT_HIT_WEIGHT = 60.0


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its insertion time and hit count."""

    value: T
    timestamp: float
    hits: int = 0


class CacheStats(BaseModel):
    """Counters describing cache behaviour since creation or the last clear."""

    size: int
    max_size: int
    hits: int
    misses: int
    evictions: int
    expirations: int


class TTLCache(Generic[T]):
    """Bounded key/value cache.

    Entries expire ``ttl`` seconds after insertion. When full, the entry with
    the lowest ``timestamp + hits * hit_weight`` is evicted, so frequently read
    entries outlive newer but unused ones. Not thread-safe: all access is
    expected on the event loop thread.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl: float = DEFAULT_TTL,
        *,
        hit_weight: float = DEFAULT_HIT_WEIGHT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Configure capacity, lifetime and the clock (injectable for tests)."""
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl
        self.hit_weight = hit_weight
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key) if isinstance(key, str) else None
        return entry is not None and not self._expired(entry)

    def _expired(self, entry: CacheEntry[T]) -> bool:
        return self._clock() - entry.timestamp > self.ttl

    def get(self, key: str) -> T | None:
        """Return the cached value and count a hit, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._expired(entry):
            del self._entries[key]
            self._expirations += 1
            self._misses += 1
            return None
        entry.hits += 1
        self._hits += 1
        return entry.value

    def set(self, key: str, value: T) -> None:
        """Insert or replace a value, evicting one entry first if the cache is full."""
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict()
        self._entries[key] = CacheEntry(value=value, timestamp=self._clock())

    def _evict(self) -> None:
        victim = min(
            self._entries,
            key=lambda k: self._entries[k].timestamp + self._entries[k].hits * self.hit_weight,
        )
        del self._entries[victim]
        self._evictions += 1
        logger.debug("Evicted cache entry %s", victim[:40])

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        expired = [key for key, entry in self._entries.items() if self._expired(entry)]
        for key in expired:
            del self._entries[key]
        self._expirations += len(expired)
        return len(expired)

    def clear(self) -> None:
        """Remove all entries and reset counters."""
        self._entries.clear()
        self._hits = self._misses = self._evictions = self._expirations = 0

    def stats(self) -> CacheStats:
        """Snapshot of size and counters."""
        return CacheStats(
            size=len(self._entries),
            max_size=self.max_size,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            expirations=self._expirations,
        )
