"""Minimum-interval request throttle keyed by (user, group)."""

from waffle_intel.commons.cache.base import CacheBase


class RequestThrottle:
    """Allows one request per key within ``interval_seconds``.

    The last-accepted marker is stored in a TTL cache whose expiry equals the
    interval, so a present entry means the caller is still inside the window.
    """

    def __init__(
        self,
        cache: CacheBase[tuple[str, str], bool],
        interval_seconds: float,
        enabled: bool = True,
    ) -> None:
        self._cache = cache
        self._interval = interval_seconds
        self.enabled = enabled

    async def try_acquire(self, user_id: str, group_id: str) -> bool:
        """Record a request and report whether it is allowed."""
        if not self.enabled or self._interval <= 0:
            return True
        key = (user_id, group_id)
        if await self._cache.get(key) is not None:
            return False
        await self._cache.set(key, True, ttl_seconds=self._interval)
        return True

    @property
    def interval_seconds(self) -> float:
        return self._interval
