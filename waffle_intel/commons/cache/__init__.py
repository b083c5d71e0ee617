"""Cache abstractions and implementations."""

from waffle_intel.commons.cache.base import CacheBase
from waffle_intel.commons.cache.memory import CacheSweeper, TTLCache
from waffle_intel.commons.cache.throttle import RequestThrottle

__all__ = [
    "CacheBase",
    "TTLCache",
    "CacheSweeper",
    "RequestThrottle",
]
