"""Throttle storage adapters.

A small abstraction layer so policies can run against an in-process cache
or a shared Redis instance without changing the calling code.
"""

from throttlekit.adapters.throttle_store.base import AbstractThrottleRepository
from throttlekit.adapters.throttle_store.factory import create_throttle_repository
from throttlekit.adapters.throttle_store.in_memory import (
    InMemoryThrottleRepository,
    ThrottleCacheItem,
)
from throttlekit.adapters.throttle_store.redis_store import RedisThrottleRepository

__all__ = [
    "AbstractThrottleRepository",
    "InMemoryThrottleRepository",
    "RedisThrottleRepository",
    "ThrottleCacheItem",
    "create_throttle_repository",
]
