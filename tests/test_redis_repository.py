"""Unit tests for the Redis throttle repository using mocked clients."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import redis

from throttlekit.adapters.throttle_store.redis_store import RedisThrottleRepository
from throttlekit.core.errors import LockNotConfiguredError, ValidationAppError
from throttlekit.domain.keys import ThrottleKey
from throttlekit.domain.limiter import Limiter, LimiterBuilder

KEY = ThrottleKey("test", "key")


def _sync_repository(clock) -> tuple[RedisThrottleRepository, MagicMock]:
    client = MagicMock()
    return RedisThrottleRepository(client, clock=clock), client


def _async_repository(clock) -> tuple[RedisThrottleRepository, MagicMock]:
    client = MagicMock()
    for name in ("get", "incr", "expire", "exists", "delete"):
        setattr(client, name, AsyncMock())
    return RedisThrottleRepository(async_client=client, clock=clock), client


class TestAddOrIncrementWithExpiration:
    def test_increment_returns_one_expires_key(self, clock) -> None:
        repository, client = _sync_repository(clock)
        limiter = LimiterBuilder().limit(1).over(10).build()
        throttle_id = repository.create_throttle_key(KEY, limiter)
        client.incr.return_value = 1

        repository.add_or_increment_with_expiration(KEY, limiter)

        client.incr.assert_called_once_with(throttle_id)
        client.expire.assert_called_once_with(throttle_id, limiter.period)

    @pytest.mark.asyncio
    async def test_increment_returns_one_expires_key_async(self, clock) -> None:
        repository, client = _async_repository(clock)
        key = ThrottleKey("testAsync", "keyAsync")
        limiter = LimiterBuilder().limit(1).over(10).build()
        throttle_id = repository.create_throttle_key(key, limiter)
        client.incr.return_value = 1

        await repository.add_or_increment_with_expiration_async(key, limiter)

        client.incr.assert_awaited_once_with(throttle_id)
        client.expire.assert_awaited_once_with(throttle_id, limiter.period)

    def test_live_window_keeps_its_ttl(self, clock) -> None:
        repository, client = _sync_repository(clock)
        limiter = Limiter(limit=5, period=10)
        client.incr.return_value = 2

        repository.add_or_increment_with_expiration(KEY, limiter)

        client.incr.assert_called_once()
        client.expire.assert_not_called()

    @pytest.mark.asyncio
    async def test_live_window_keeps_its_ttl_async(self, clock) -> None:
        repository, client = _async_repository(clock)
        limiter = Limiter(limit=5, period=10)
        client.incr.return_value = 7

        await repository.add_or_increment_with_expiration_async(KEY, limiter)

        client.expire.assert_not_awaited()

    def test_call_identity_values_and_now_shape_the_key(self, clock) -> None:
        repository = RedisThrottleRepository(
            MagicMock(), clock=clock, policy_identity_values=("tenant",)
        )
        client = repository.client
        client.incr.return_value = 1
        limiter = Limiter.per_second(3)
        window = clock()
        clock.advance(1)

        repository.add_or_increment_with_expiration(
            KEY, limiter, identity_values=("login",), now=window
        )

        client.incr.assert_called_once_with("tenant:login:test:key:1s:1893456000")
        client.expire.assert_called_once_with(
            "tenant:login:test:key:1s:1893456000", timedelta(seconds=1)
        )

    def test_store_errors_propagate(self, clock) -> None:
        repository, client = _sync_repository(clock)
        client.incr.side_effect = redis.ConnectionError("down")

        with pytest.raises(redis.ConnectionError):
            repository.add_or_increment_with_expiration(KEY, Limiter(limit=1, period=10))

        client.expire.assert_not_called()


class TestGetThrottleCount:
    def test_key_does_not_exist_returns_none(self, clock) -> None:
        repository, client = _sync_repository(clock)
        limiter = Limiter(limit=1, period=1)
        client.get.return_value = None

        assert repository.get_throttle_count(KEY, limiter) is None
        client.get.assert_called_once_with(repository.create_throttle_key(KEY, limiter))

    @pytest.mark.asyncio
    async def test_key_does_not_exist_returns_none_async(self, clock) -> None:
        repository, client = _async_repository(clock)
        client.get.return_value = None

        assert await repository.get_throttle_count_async(KEY, Limiter(limit=1, period=1)) is None

    @pytest.mark.parametrize("stored", ["10", b"10"])
    def test_key_exists_returns_parsed_value(self, clock, stored) -> None:
        repository, client = _sync_repository(clock)
        client.get.return_value = stored

        assert repository.get_throttle_count(KEY, Limiter(limit=1, period=1)) == 10

    @pytest.mark.asyncio
    async def test_key_exists_returns_parsed_value_async(self, clock) -> None:
        repository, client = _async_repository(clock)
        client.get.return_value = "10"

        assert await repository.get_throttle_count_async(KEY, Limiter(limit=1, period=1)) == 10

    def test_malformed_value_returns_none(self, clock) -> None:
        repository, client = _sync_repository(clock)
        client.get.return_value = "not-a-number"

        assert repository.get_throttle_count(KEY, Limiter(limit=1, period=1)) is None


class TestLockExists:
    @pytest.mark.parametrize(("exists", "expected"), [(1, True), (0, False)])
    def test_reports_lock_presence(self, clock, exists, expected) -> None:
        repository, client = _sync_repository(clock)
        limiter = LimiterBuilder().limit(1).over(1).lock_for(1).build()
        lock_id = repository.create_lock_key(KEY, limiter)
        client.exists.return_value = exists

        assert repository.lock_exists(KEY, limiter) is expected
        client.exists.assert_called_once_with(lock_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("exists", "expected"), [(1, True), (0, False)])
    async def test_reports_lock_presence_async(self, clock, exists, expected) -> None:
        repository, client = _async_repository(clock)
        limiter = LimiterBuilder().limit(1).over(1).lock_for(1).build()
        client.exists.return_value = exists

        assert await repository.lock_exists_async(KEY, limiter) is expected
        client.exists.assert_awaited_once_with("test:key:lock:1s")


class TestRemoveThrottle:
    def test_deletes_counter_key(self, clock) -> None:
        repository, client = _sync_repository(clock)
        limiter = Limiter(limit=1, period=1)
        throttle_id = repository.create_throttle_key(KEY, limiter)

        repository.remove_throttle(KEY, limiter)

        client.delete.assert_called_once_with(throttle_id)

    @pytest.mark.asyncio
    async def test_deletes_counter_key_async(self, clock) -> None:
        repository, client = _async_repository(clock)
        limiter = Limiter(limit=1, period=1)
        throttle_id = repository.create_throttle_key(KEY, limiter)

        await repository.remove_throttle_async(KEY, limiter)

        client.delete.assert_awaited_once_with(throttle_id)


class TestSetLock:
    def test_increments_and_expires_lock_in_one_transaction(self, clock) -> None:
        repository, client = _sync_repository(clock)
        limiter = LimiterBuilder().limit(1).over(1).lock_for(1).build()
        lock_id = repository.create_lock_key(KEY, limiter)
        pipe = MagicMock()
        client.pipeline.return_value.__enter__.return_value = pipe

        repository.set_lock(KEY, limiter)

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.incr.assert_called_once_with(lock_id)
        pipe.expire.assert_called_once_with(lock_id, timedelta(seconds=1))
        pipe.execute.assert_called_once_with()

    def test_counter_is_left_untouched(self, clock) -> None:
        # Unlike the in-memory backend, the window counter survives the lock.
        repository, client = _sync_repository(clock)
        limiter = LimiterBuilder().limit(1).over(1).lock_for(1).build()

        repository.set_lock(KEY, limiter)

        client.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_increments_and_expires_lock_in_one_transaction_async(self, clock) -> None:
        repository, client = _async_repository(clock)
        limiter = LimiterBuilder().limit(1).over(1).lock_for(1).build()
        lock_id = repository.create_lock_key(KEY, limiter)
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[1, True])
        client.pipeline.return_value.__aenter__.return_value = pipe

        await repository.set_lock_async(KEY, limiter)

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.incr.assert_called_once_with(lock_id)
        pipe.expire.assert_called_once_with(lock_id, timedelta(seconds=1))
        pipe.execute.assert_awaited_once_with()
        client.delete.assert_not_awaited()

    def test_lock_key_carries_call_identity_values(self, clock) -> None:
        repository, client = _sync_repository(clock)
        limiter = LimiterBuilder().limit(1).over(60).lock_for(30).build()
        client.exists.return_value = 1

        assert repository.lock_exists(KEY, limiter, identity_values=("login",)) is True

        client.exists.assert_called_once_with("login:test:key:lock:30s")

    def test_requires_lock_duration(self, clock) -> None:
        repository, client = _sync_repository(clock)

        with pytest.raises(LockNotConfiguredError):
            repository.set_lock(KEY, Limiter(limit=1, period=1))

        client.pipeline.assert_not_called()


class TestClients:
    def test_needs_at_least_one_client(self) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            RedisThrottleRepository()

        assert exc_info.value.code == "redis_client_missing"

    def test_sync_call_without_sync_client_fails(self, clock) -> None:
        repository, _ = _async_repository(clock)

        with pytest.raises(ValidationAppError):
            repository.get_throttle_count(KEY, Limiter(limit=1, period=1))

    @pytest.mark.asyncio
    async def test_async_call_without_async_client_fails(self, clock) -> None:
        repository, _ = _sync_repository(clock)

        with pytest.raises(ValidationAppError):
            await repository.get_throttle_count_async(KEY, Limiter(limit=1, period=1))

    def test_from_url_builds_both_clients(self) -> None:
        repository = RedisThrottleRepository.from_url(
            "redis://localhost:6379/0",
            socket_timeout=1.0,
            policy_identity_values=("api",),
        )

        assert isinstance(repository.client, redis.Redis)
        assert repository.async_client is not None
        assert repository.policy_identity_values == ("api",)
