# tests/test_ttl_cache.py

import pytest

from utils.ttl_cache import CacheEntry, TTLCache, is_fresh


def test_is_fresh_boundary():
    entry = CacheEntry(key="k", value=1, stored_at=100.0)
    assert is_fresh(entry, now=100.0, window_seconds=300) is True
    assert is_fresh(entry, now=399.9, window_seconds=300) is True
    # exactly at the window edge the entry is stale
    assert is_fresh(entry, now=400.0, window_seconds=300) is False


def test_put_overwrites_single_entry_per_key(clock):
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.put("quotes:AAPL", "v1")
    clock.advance(10)
    cache.put("quotes:AAPL", "v2")

    entry = cache.get("quotes:AAPL")
    assert len(cache) == 1
    assert entry.value == "v2"
    assert entry.stored_at == clock.now


def test_get_missing_returns_none():
    cache = TTLCache(ttl_seconds=60)
    assert cache.get("nope") is None
    assert "nope" not in cache


def test_stale_entries_are_kept_not_removed(clock):
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.put("k", "old")
    clock.advance(120)

    entry = cache.get("k")
    assert entry is not None
    assert entry.value == "old"
    assert cache.is_fresh(entry) is False
    assert cache.get_fresh("k", "default") == "default"
    assert "k" in cache


def test_put_accepts_explicit_timestamp(clock):
    cache = TTLCache(ttl_seconds=60, clock=clock)
    entry = cache.put("k", 1, now=5.0)
    assert entry.stored_at == 5.0
    assert cache.get("k").stored_at == 5.0


def test_lru_eviction_drops_least_recently_used(clock):
    cache = TTLCache(ttl_seconds=60, max_size=2, clock=clock)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.get("a")  # touch a, b is now least recently used
    cache.put("c", 3)

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache
    assert len(cache) == 2


def test_invalid_max_size():
    with pytest.raises(ValueError):
        TTLCache(ttl_seconds=60, max_size=0)
