"""Tests for the TTL cache."""

import pytest

from code_linker.retrieval.cache import TTLCache


def test_get_and_set(clock):
    cache = TTLCache(max_size=3, ttl=10, clock=clock)
    assert cache.get("a") is None
    cache.set("a", 1)
    assert cache.get("a") == 1
    assert "a" in cache
    assert len(cache) == 1
    stats = cache.stats()
    assert (stats.hits, stats.misses) == (1, 1)


def test_entries_expire_after_ttl(clock):
    cache = TTLCache(max_size=3, ttl=10, clock=clock)
    cache.set("a", 1)
    clock.advance(10)
    assert cache.get("a") == 1
    clock.advance(0.5)
    assert "a" not in cache
    assert cache.get("a") is None
    assert cache.stats().expirations == 1
    assert len(cache) == 0


def test_oldest_unused_entry_is_evicted(clock):
    cache = TTLCache(max_size=2, ttl=100, clock=clock)
    cache.set("a", 1)
    clock.advance(1)
    cache.set("b", 2)
    clock.advance(1)
    cache.set("c", 3)
    assert "a" not in cache
    assert "b" in cache and "c" in cache
    assert cache.stats().evictions == 1


def test_hits_protect_entries_from_eviction(clock):
    cache = TTLCache(max_size=2, ttl=100, clock=clock)
    cache.set("a", 1)
    clock.advance(1)
    cache.set("b", 2)
    cache.get("a")
    clock.advance(1)
    cache.set("c", 3)
    assert "a" in cache
    assert "b" not in cache


def test_replacing_a_key_does_not_evict(clock):
    cache = TTLCache(max_size=1, ttl=100, clock=clock)
    cache.set("a", 1)
    cache.set("a", 2)
    assert cache.get("a") == 2
    assert cache.stats().evictions == 0


def test_purge_expired(clock):
    cache = TTLCache(max_size=5, ttl=10, clock=clock)
    cache.set("old", 1)
    clock.advance(8)
    cache.set("new", 2)
    clock.advance(5)
    assert cache.purge_expired() == 1
    assert "new" in cache
    assert len(cache) == 1


def test_clear_resets_counters(clock):
    cache = TTLCache(max_size=5, ttl=10, clock=clock)
    cache.set("a", 1)
    cache.get("a")
    cache.get("b")
    cache.clear()
    stats = cache.stats()
    assert (stats.size, stats.hits, stats.misses) == (0, 0, 0)
    assert stats.max_size == 5


def test_size_must_be_positive():
    with pytest.raises(ValueError):
        TTLCache(max_size=0)
