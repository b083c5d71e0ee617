"""In-memory TTL cache and a background sweeper."""

import asyncio
import contextlib
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from waffle_intel.commons.cache.base import CacheBase
from waffle_intel.commons.telemetry import get_logger

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = get_logger(__name__)


@dataclass
class _Entry(Generic[V]):
    value: V
    expires_at: float | None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class TTLCache(CacheBase[K, V]):
    """Dictionary-backed cache with lazy and periodic expiry.

    All operations run on the event loop without awaiting, so no lock is
    needed for a single-loop process.
    """

    def __init__(
        self,
        name: str,
        default_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            name: Label used in log records.
            default_ttl_seconds: Lifetime applied when ``set`` gets no TTL.
            clock: Monotonic time source, injectable for tests.
        """
        self.name = name
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._entries: dict[K, _Entry[V]] = {}

    async def get(self, key: K) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    async def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = self._clock() + ttl if ttl is not None else None
        self._entries[key] = _Entry(value=value, expires_at=expires_at)

    async def evict(self, key: K) -> bool:
        return self._entries.pop(key, None) is not None

    async def sweep(self) -> int:
        now = self._clock()
        stale = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    async def size(self) -> int:
        return len(self._entries)


class CacheSweeper:
    """Periodically sweeps a set of caches until stopped."""

    def __init__(
        self,
        caches: list[CacheBase[Any, Any]],
        interval_seconds: float,
    ) -> None:
        self._caches = caches
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start the sweep loop on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="cache-sweeper")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to exit."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def sweep_once(self) -> int:
        """Sweep every cache once. Returns the total number of evictions."""
        removed = 0
        for cache in self._caches:
            try:
                removed += await cache.sweep()
            except Exception:
                logger.exception(
                    "Cache sweep failed",
                    extra={"cache": getattr(cache, "name", type(cache).__name__)},
                )
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            removed = await self.sweep_once()
            if removed:
                logger.debug("Swept expired cache entries", extra={"evicted": removed})
