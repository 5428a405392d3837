"""Tests for TTLCache expiry and invalidation."""

import pytest

from franchise_kernel.utils.ttl_cache import TTLCache


class FakeTimer:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def timer():
    return FakeTimer()


def test_value_expires_after_ttl(timer):
    cache = TTLCache(5, timer)
    cache.put("k", "v")

    timer.now += 4.9
    assert cache.get("k") == "v"
    timer.now += 0.1
    assert cache.get("k") is None
    assert len(cache) == 0


def test_zero_ttl_disables_caching(timer):
    cache = TTLCache(0, timer)
    cache.put("k", "v")
    assert cache.get("k") is None


def test_stale_load_is_dropped_after_invalidation(timer):
    cache = TTLCache(30, timer)
    generation = cache.generation

    cache.invalidate("k")
    cache.put("k", "loaded-before-write", generation)

    assert cache.get("k") is None


def test_get_or_load_caches_values_but_not_none(timer):
    cache = TTLCache(30, timer)
    calls = []

    def loader():
        calls.append(1)
        return None if len(calls) == 1 else "found"

    assert cache.get_or_load("k", loader) is None
    assert cache.get_or_load("k", loader) == "found"
    assert cache.get_or_load("k", loader) == "found"
    assert len(calls) == 2


def test_clear(timer):
    cache = TTLCache(30, timer)
    cache.put("a", 1)
    cache.put("b", 2)

    cache.clear()

    assert len(cache) == 0
    assert cache.generation == 1


def test_negative_ttl():
    with pytest.raises(ValueError):
        TTLCache(-1)
