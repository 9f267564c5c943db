"""Redis-backed throttle repository.

Counters are plain Redis integers (decimal strings) with a TTL; locks are
integers whose existence is all that matters. Correctness relies on Redis'
atomic INCR and on MULTI/EXEC for the lock, so any number of processes can
share the same counters.

Store errors (connection, timeout) are not handled here: they reach the
caller as raised by redis-py, with no retry.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Sequence

import redis
import redis.asyncio as redis_async

from throttlekit.adapters.throttle_store.base import AbstractThrottleRepository
from throttlekit.core.clock import Clock, utc_now
from throttlekit.core.errors import ValidationAppError
from throttlekit.core.logging import hash_for_log
from throttlekit.domain.keys import ThrottleKey
from throttlekit.domain.limiter import Limiter

logger = logging.getLogger(__name__)


def _parse_count(value: Any) -> int | None:
    """Parse a stored counter; missing or malformed values yield None."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class RedisThrottleRepository(AbstractThrottleRepository):
    """Repository using a shared Redis instance.

    Blocking methods use ``client`` (``redis.Redis``); ``*_async`` methods use
    ``async_client`` (``redis.asyncio.Redis``). Either may be omitted when the
    application only uses one form.
    """

    def __init__(
        self,
        client: redis.Redis | None = None,
        async_client: redis_async.Redis | None = None,
        *,
        clock: Clock = utc_now,
        policy_identity_values: Sequence[Any] | None = None,
    ) -> None:
        if client is None and async_client is None:
            raise ValidationAppError(
                code="redis_client_missing",
                message="RedisThrottleRepository needs a sync or an async Redis client",
                details={"backend": "redis"},
            )
        super().__init__(clock=clock, policy_identity_values=policy_identity_values)
        self._client = client
        self._async_client = async_client

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        socket_timeout: float | None = None,
        socket_connect_timeout: float | None = None,
        clock: Clock = utc_now,
        policy_identity_values: Sequence[Any] | None = None,
    ) -> "RedisThrottleRepository":
        """Build a repository with both clients pointing at ``url``."""
        options = {
            "decode_responses": True,
            "socket_timeout": socket_timeout,
            "socket_connect_timeout": socket_connect_timeout,
        }
        return cls(
            redis.Redis.from_url(url, **options),
            redis_async.Redis.from_url(url, **options),
            clock=clock,
            policy_identity_values=policy_identity_values,
        )

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise ValidationAppError(
                code="redis_client_missing",
                message="No synchronous Redis client configured; use the *_async methods",
                details={"backend": "redis"},
            )
        return self._client

    @property
    def async_client(self) -> redis_async.Redis:
        if self._async_client is None:
            raise ValidationAppError(
                code="redis_client_missing",
                message="No asyncio Redis client configured; use the blocking methods",
                details={"backend": "redis"},
            )
        return self._async_client

    def get_throttle_count(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> int | None:
        throttle_id = self.create_throttle_key(key, limiter, identity_values=identity_values, now=now)
        return _parse_count(self.client.get(throttle_id))

    async def get_throttle_count_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> int | None:
        throttle_id = self.create_throttle_key(key, limiter, identity_values=identity_values, now=now)
        return _parse_count(await self.async_client.get(throttle_id))

    def add_or_increment_with_expiration(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        throttle_id = self.create_throttle_key(key, limiter, identity_values=identity_values, now=now)

        result = self.client.incr(throttle_id)

        # 1 means the key is new or had just expired: the window starts now.
        if result == 1:
            self.client.expire(throttle_id, limiter.period)
            self._log_window_started(throttle_id, limiter)

    async def add_or_increment_with_expiration_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        throttle_id = self.create_throttle_key(key, limiter, identity_values=identity_values, now=now)

        result = await self.async_client.incr(throttle_id)

        if result == 1:
            await self.async_client.expire(throttle_id, limiter.period)
            self._log_window_started(throttle_id, limiter)

    def set_lock(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        lock_duration = limiter.require_lock_duration()
        lock_id = self.create_lock_key(key, limiter, identity_values=identity_values)

        with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(lock_id)
            pipe.expire(lock_id, lock_duration)
            pipe.execute()

        self._log_lock_set(lock_id, limiter)

    async def set_lock_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        lock_duration = limiter.require_lock_duration()
        lock_id = self.create_lock_key(key, limiter, identity_values=identity_values)

        async with self.async_client.pipeline(transaction=True) as pipe:
            pipe.incr(lock_id)
            pipe.expire(lock_id, lock_duration)
            await pipe.execute()

        self._log_lock_set(lock_id, limiter)

    def lock_exists(
        self, key: ThrottleKey, limiter: Limiter, *, identity_values: Sequence[Any] = ()
    ) -> bool:
        lock_id = self.create_lock_key(key, limiter, identity_values=identity_values)
        return bool(self.client.exists(lock_id))

    async def lock_exists_async(
        self, key: ThrottleKey, limiter: Limiter, *, identity_values: Sequence[Any] = ()
    ) -> bool:
        lock_id = self.create_lock_key(key, limiter, identity_values=identity_values)
        return bool(await self.async_client.exists(lock_id))

    def remove_throttle(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        self.client.delete(
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
        await self.async_client.delete(
            self.create_throttle_key(key, limiter, identity_values=identity_values, now=now)
        )

    def _log_window_started(self, throttle_id: str, limiter: Limiter) -> None:
        logger.debug(
            "throttle.window_started",
            extra={
                "key_hash": hash_for_log(throttle_id),
                "period_s": limiter.period.total_seconds(),
            },
        )

    def _log_lock_set(self, lock_id: str, limiter: Limiter) -> None:
        logger.info(
            "throttle.lock_set",
            extra={
                "key_hash": hash_for_log(lock_id),
                "lock_s": limiter.require_lock_duration().total_seconds(),
                "backend": "redis",
            },
        )
