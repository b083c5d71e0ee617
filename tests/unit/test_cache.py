"""Unit tests for TTL caches, the sweeper and the request throttle."""

import asyncio
from unittest.mock import AsyncMock

from waffle_intel.commons.cache import CacheSweeper, RequestThrottle, TTLCache


class TestTTLCache:
    """Tests for the in-memory TTL cache."""

    async def test_set_and_get(self, cache):
        await cache.set("k", "v", ttl_seconds=10)
        assert await cache.get("k") == "v"

    async def test_missing_key(self, cache):
        assert await cache.get("nope") is None

    async def test_expired_entry_is_evicted_on_read(self, cache, clock):
        await cache.set("k", "v", ttl_seconds=10)
        clock.advance(10)
        assert await cache.get("k") is None
        assert await cache.size() == 0

    async def test_default_ttl_applies(self, clock):
        cache = TTLCache(name="t", default_ttl_seconds=5, clock=clock)
        await cache.set("k", "v")
        clock.advance(4.9)
        assert await cache.get("k") == "v"
        clock.advance(0.2)
        assert await cache.get("k") is None

    async def test_no_ttl_never_expires(self, cache, clock):
        await cache.set("k", "v")
        clock.advance(10**9)
        assert await cache.get("k") == "v"

    async def test_overwrite_resets_expiry(self, cache, clock):
        await cache.set("k", 1, ttl_seconds=10)
        clock.advance(8)
        await cache.set("k", 2, ttl_seconds=10)
        clock.advance(8)
        assert await cache.get("k") == 2

    async def test_evict(self, cache):
        await cache.set(("u", "s"), "task")
        assert await cache.evict(("u", "s")) is True
        assert await cache.evict(("u", "s")) is False

    async def test_sweep_removes_only_expired(self, cache, clock):
        await cache.set("old", 1, ttl_seconds=1)
        await cache.set("new", 2, ttl_seconds=100)
        await cache.set("forever", 3)
        clock.advance(5)
        assert await cache.sweep() == 1
        assert await cache.size() == 2


class TestCacheSweeper:
    """Tests for the periodic sweeper."""

    async def test_sweep_once_sums_evictions(self, clock):
        a = TTLCache(name="a", clock=clock)
        b = TTLCache(name="b", clock=clock)
        await a.set("x", 1, ttl_seconds=1)
        await b.set("y", 1, ttl_seconds=1)
        await b.set("z", 1, ttl_seconds=1)
        clock.advance(2)
        assert await CacheSweeper([a, b], interval_seconds=60).sweep_once() == 3

    async def test_failing_cache_does_not_stop_others(self, clock):
        broken = AsyncMock()
        broken.sweep.side_effect = RuntimeError("down")
        ok = TTLCache(name="ok", clock=clock)
        await ok.set("x", 1, ttl_seconds=1)
        clock.advance(2)
        assert await CacheSweeper([broken, ok], interval_seconds=60).sweep_once() == 1

    async def test_background_loop_sweeps_and_stops(self):
        target = AsyncMock()
        target.sweep.return_value = 0
        sweeper = CacheSweeper([target], interval_seconds=0.01)
        sweeper.start()
        await asyncio.sleep(0.05)
        await sweeper.stop()
        assert target.sweep.await_count >= 1

    async def test_stop_without_start(self):
        await CacheSweeper([], interval_seconds=1).stop()


class TestRequestThrottle:
    """Tests for the minimum-interval throttle."""

    async def test_disabled_always_allows(self, cache):
        throttle = RequestThrottle(cache, interval_seconds=30, enabled=False)
        assert await throttle.try_acquire("u", "g") is True
        assert await throttle.try_acquire("u", "g") is True

    async def test_second_call_within_interval_is_rejected(self, cache):
        throttle = RequestThrottle(cache, interval_seconds=30)
        assert await throttle.try_acquire("u", "g") is True
        assert await throttle.try_acquire("u", "g") is False

    async def test_keys_are_per_user_and_group(self, cache):
        throttle = RequestThrottle(cache, interval_seconds=30)
        assert await throttle.try_acquire("u", "g1") is True
        assert await throttle.try_acquire("u", "g2") is True
        assert await throttle.try_acquire("v", "g1") is True

    async def test_allowed_again_after_interval(self, cache, clock):
        throttle = RequestThrottle(cache, interval_seconds=30)
        await throttle.try_acquire("u", "g")
        clock.advance(30)
        assert await throttle.try_acquire("u", "g") is True

    async def test_zero_interval_disables(self, cache):
        throttle = RequestThrottle(cache, interval_seconds=0)
        assert await throttle.try_acquire("u", "g") is True
        assert await throttle.try_acquire("u", "g") is True
