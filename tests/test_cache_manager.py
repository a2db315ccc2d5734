"""
Tests for the panorama cache.

Tests hits and misses, lazy TTL expiry, LRU eviction and the
process-wide default instance.
"""

import pytest

from pano_mission import cache_manager
from pano_mission.cache_manager import (
    PanoramaCache,
    configure_default_cache,
    get_default_cache,
)
from tests.test_fixtures import make_metadata


class TestPanoramaCache:
    """Test cases for PanoramaCache class."""

    def test_hit_within_ttl(self, panorama_cache, fake_clock):
        """A stored entry is returned until the TTL elapses."""
        metadata = make_metadata("a", [("b", 0.0)])
        panorama_cache.put(metadata)
        fake_clock.advance(59)

        assert panorama_cache.get("a") is metadata
        assert panorama_cache.stats.hits == 1
        assert panorama_cache.stats.misses == 0

    def test_miss_after_ttl(self, panorama_cache, fake_clock):
        """Expired entries are dropped lazily on read."""
        panorama_cache.put(make_metadata("a", []))
        fake_clock.advance(60)

        assert "a" in panorama_cache
        assert panorama_cache.get("a") is None
        assert "a" not in panorama_cache
        assert panorama_cache.stats.expirations == 1
        assert panorama_cache.stats.misses == 1

    def test_unknown_id_is_miss(self, panorama_cache):
        assert panorama_cache.get("missing") is None
        assert panorama_cache.stats.misses == 1

    def test_put_refreshes_timestamp(self, panorama_cache, fake_clock):
        panorama_cache.put(make_metadata("a", []))
        fake_clock.advance(50)
        panorama_cache.put(make_metadata("a", []))
        fake_clock.advance(50)

        assert panorama_cache.get("a") is not None

    def test_lru_eviction(self, fake_clock):
        """The least recently used entry goes first once capacity is exceeded."""
        cache = PanoramaCache(capacity=2, ttl_seconds=60, clock=fake_clock)
        cache.put(make_metadata("a", []))
        cache.put(make_metadata("b", []))
        cache.get("a")
        cache.put(make_metadata("c", []))

        assert len(cache) == 2
        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache
        assert cache.stats.evictions == 1

    def test_contains_does_not_touch_stats(self, panorama_cache):
        panorama_cache.put(make_metadata("a", []))
        assert "a" in panorama_cache
        assert panorama_cache.stats.to_dict() == {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "expirations": 0,
        }

    def test_clear(self, panorama_cache):
        panorama_cache.put(make_metadata("a", []))
        panorama_cache.clear()
        assert len(panorama_cache) == 0

    @pytest.mark.parametrize("capacity,ttl", [(0, 10), (-1, 10), (10, 0), (10, -5)])
    def test_rejects_invalid_bounds(self, capacity, ttl):
        with pytest.raises(ValueError):
            PanoramaCache(capacity=capacity, ttl_seconds=ttl)


class TestDefaultCache:
    """Test cases for the process-wide cache."""

    @pytest.fixture(autouse=True)
    def reset_default(self, monkeypatch):
        monkeypatch.setattr(cache_manager, "_default_cache", None)

    def test_default_cache_is_shared(self):
        assert get_default_cache() is get_default_cache()

    def test_configure_replaces_default(self):
        original = get_default_cache()
        configured = configure_default_cache(capacity=5, ttl_seconds=10)

        assert configured is not original
        assert get_default_cache() is configured
        assert configured.capacity == 5
        assert configured.ttl_seconds == 10
