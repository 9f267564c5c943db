"""In-memory throttle repository.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: the counter read-modify-write runs under a repository lock.
- ``set_lock`` removes the window counter before locking. The Redis backend
  leaves the counter alone; both behaviors are kept as they are.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from throttlekit.adapters.throttle_store.base import AbstractThrottleRepository
from throttlekit.core.clock import Clock, utc_now
from throttlekit.core.logging import hash_for_log
from throttlekit.domain.keys import ThrottleKey
from throttlekit.domain.limiter import Limiter
from throttlekit.utils.expiring_cache import ExpiringCache

logger = logging.getLogger(__name__)

_LOCK_MARKER_VALUE = True


@dataclass
class ThrottleCacheItem:
    """Counter for one fixed window."""

    count: int
    expiration: datetime


class InMemoryThrottleRepository(AbstractThrottleRepository):
    """Repository storing counters and locks in an :class:`ExpiringCache`.

    The cache and the repository share one clock, so advancing a fake clock
    in tests both ages counters and expires locks.
    """

    def __init__(
        self,
        cache: ExpiringCache | None = None,
        *,
        clock: Clock = utc_now,
        policy_identity_values: Sequence[Any] | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            cache: Backing cache; a new unbounded one using ``clock`` when omitted.
            clock: Time source returning the current datetime.
            policy_identity_values: Values prefixed to every key.
        """
        super().__init__(clock=clock, policy_identity_values=policy_identity_values)
        self._store = cache if cache is not None else ExpiringCache(clock=clock)
        self._lock = threading.RLock()

    @property
    def cache(self) -> ExpiringCache:
        return self._store

    def get_throttle_count(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> int | None:
        throttle_id = self.create_throttle_key(key, limiter, identity_values=identity_values, now=now)
        item = self._store.get(throttle_id)
        if isinstance(item, ThrottleCacheItem):
            return item.count
        return None

    async def get_throttle_count_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> int | None:
        return self.get_throttle_count(key, limiter, identity_values=identity_values, now=now)

    def add_or_increment_with_expiration(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        now = now if now is not None else self._clock()
        throttle_id = self.create_throttle_key(key, limiter, identity_values=identity_values, now=now)

        with self._lock:
            item = self._store.get(throttle_id)
            if isinstance(item, ThrottleCacheItem):
                item = ThrottleCacheItem(count=item.count + 1, expiration=item.expiration)
            else:
                item = ThrottleCacheItem(count=1, expiration=now + limiter.period)
                logger.debug(
                    "throttle.window_started",
                    extra={
                        "key_hash": hash_for_log(throttle_id),
                        "period_s": limiter.period.total_seconds(),
                    },
                )

            self._store.set(throttle_id, item, item.expiration)

    async def add_or_increment_with_expiration_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        self.add_or_increment_with_expiration(key, limiter, identity_values=identity_values, now=now)

    def set_lock(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        lock_duration = limiter.require_lock_duration()
        now = now if now is not None else self._clock()
        lock_id = self.create_lock_key(key, limiter, identity_values=identity_values)
        throttle_id = self.create_throttle_key(key, limiter, identity_values=identity_values, now=now)

        with self._lock:
            self._store.remove(throttle_id)
            self._store.set(lock_id, _LOCK_MARKER_VALUE, now + lock_duration)

        logger.info(
            "throttle.lock_set",
            extra={
                "key_hash": hash_for_log(lock_id),
                "lock_s": lock_duration.total_seconds(),
                "backend": "memory",
            },
        )

    async def set_lock_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        self.set_lock(key, limiter, identity_values=identity_values, now=now)

    def lock_exists(
        self, key: ThrottleKey, limiter: Limiter, *, identity_values: Sequence[Any] = ()
    ) -> bool:
        return self._store.contains(self.create_lock_key(key, limiter, identity_values=identity_values))

    async def lock_exists_async(
        self, key: ThrottleKey, limiter: Limiter, *, identity_values: Sequence[Any] = ()
    ) -> bool:
        return self.lock_exists(key, limiter, identity_values=identity_values)

    def remove_throttle(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        self._store.remove(
            self.create_throttle_key(key, limiter, identity_values=identity_values, now=now)
        )

    async def remove_throttle_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        self.remove_throttle(key, limiter, identity_values=identity_values, now=now)
