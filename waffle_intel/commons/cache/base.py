"""Abstract base class for process-local or shared key-value caches."""

from abc import ABC, abstractmethod
from collections.abc import Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class CacheBase(ABC, Generic[K, V]):
    """Async key-value cache with per-entry expiry.

    Implementations should handle:
    - In-process dictionaries (single worker)
    - Shared stores such as Redis (multiple workers)
    """

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Return the live value for ``key`` or None.

        Expired entries are treated as absent and evicted on read.
        """

    @abstractmethod
    async def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        """Store ``value`` under ``key``.

        Args:
            key: Cache key.
            value: Value to store.
            ttl_seconds: Entry lifetime. Falls back to the cache default;
                None on both means the entry never expires.
        """

    @abstractmethod
    async def evict(self, key: K) -> bool:
        """Remove ``key``. Returns True if an entry was removed."""

    @abstractmethod
    async def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""

    @abstractmethod
    async def size(self) -> int:
        """Number of entries currently held, expired or not."""
