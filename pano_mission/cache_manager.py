"""In-memory panorama cache shared by concurrent graph builds."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .providers.base import PanoramaMetadata

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Counters describing cache effectiveness."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
        }


class PanoramaCache:
    """Capacity-bounded, TTL-expiring LRU cache keyed by panorama id.

    Responsibilities:
    - Return cached metadata snapshots without touching the provider
    - Evict the least recently used entry once ``capacity`` is exceeded
    - Expire entries lazily, on the first read after ``ttl_seconds``

    Values are frozen :class:`PanoramaMetadata` instances, so readers never
    see partially written entries. A lock guards the ordering bookkeeping.
    """

    DEFAULT_CAPACITY = 1000
    DEFAULT_TTL_SECONDS = 30 * 60

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, PanoramaMetadata]]" = OrderedDict()
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def get(self, pano_id: str) -> Optional[PanoramaMetadata]:
        """Return the cached snapshot, or None on a miss or expired entry."""
        with self._lock:
            entry = self._entries.get(pano_id)
            if entry is None:
                self.stats.misses += 1
                return None

            stored_at, metadata = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[pano_id]
                self.stats.expirations += 1
                self.stats.misses += 1
                return None

            self._entries.move_to_end(pano_id)
            self.stats.hits += 1
            return metadata

    def put(self, metadata: PanoramaMetadata) -> None:
        """Store a snapshot, evicting the least recently used entry if full."""
        with self._lock:
            self._entries[metadata.pano_id] = (self._clock(), metadata)
            self._entries.move_to_end(metadata.pano_id)
            while len(self._entries) > self.capacity:
                evicted_id, _ = self._entries.popitem(last=False)
                self.stats.evictions += 1
                logger.debug("Evicted panorama %s from cache", evicted_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, pano_id: object) -> bool:
        # Membership ignores expiry and does not touch LRU order or stats.
        with self._lock:
            return pano_id in self._entries


_default_cache: Optional[PanoramaCache] = None
_default_cache_lock = threading.Lock()


def get_default_cache() -> PanoramaCache:
    """Return the process-wide cache, creating it on first use."""
    global _default_cache
    with _default_cache_lock:
        if _default_cache is None:
            _default_cache = PanoramaCache()
        return _default_cache


def configure_default_cache(capacity: int, ttl_seconds: float) -> PanoramaCache:
    """Replace the process-wide cache with one using the given bounds."""
    global _default_cache
    with _default_cache_lock:
        _default_cache = PanoramaCache(capacity=capacity, ttl_seconds=ttl_seconds)
        return _default_cache


__all__ = [
    "CacheStats",
    "PanoramaCache",
    "configure_default_cache",
    "get_default_cache",
]
