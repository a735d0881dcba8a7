"""
Tests for the expiring cache.
"""

from unittest.mock import AsyncMock

import pytest

from nexus_gateway.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_get_and_set():
    """Test values are returned until they expire."""
    clock = FakeClock()
    cache: TTLCache[str] = TTLCache(ttl_seconds=10, clock=clock)

    cache.set("k", "v")
    assert cache.get("k") == "v"

    clock.now = 9.9
    assert cache.get("k") == "v"

    clock.now = 10.0
    assert cache.get("k") is None
    assert len(cache) == 0


def test_invalidate_and_clear():
    """Test explicit removal."""
    cache: TTLCache[int] = TTLCache(ttl_seconds=60)
    cache.set("a", 1)
    cache.set("b", 2)

    cache.invalidate("a")
    cache.invalidate("missing")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.clear()
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_get_or_load_refreshes_lazily():
    """Test the loader only runs on a miss or after expiry."""
    clock = FakeClock()
    cache: TTLCache[str] = TTLCache(ttl_seconds=5, clock=clock)
    loader = AsyncMock(side_effect=["first", "second"])

    assert await cache.get_or_load("k", loader) == "first"
    assert await cache.get_or_load("k", loader) == "first"
    assert loader.await_count == 1

    clock.now = 6
    assert await cache.get_or_load("k", loader) == "second"
    assert loader.await_count == 2


@pytest.mark.asyncio
async def test_get_or_load_does_not_cache_none():
    """Test failed loads are retried on the next read."""
    cache: TTLCache[str] = TTLCache(ttl_seconds=5)
    loader = AsyncMock(return_value=None)

    assert await cache.get_or_load("k", loader) is None
    assert await cache.get_or_load("k", loader) is None
    assert loader.await_count == 2
