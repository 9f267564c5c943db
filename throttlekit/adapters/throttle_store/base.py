"""Throttle repository interface.

The policy depends on this abstraction (not a concrete store) so the backend
is chosen once, at construction time. Every operation has a blocking and an
``*_async`` form with the same side effects and return semantics.

Counter operations accept keyword-only ``identity_values`` (placed after the
repository's own ``policy_identity_values``) and ``now`` (the moment used for
per-second keys; the repository clock when omitted). A caller that passes
the same ``now`` to every call of one check addresses the same window.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Sequence

from throttlekit.core.clock import Clock, utc_now
from throttlekit.domain.keys import ThrottleKey, lock_key_string, throttle_key_string
from throttlekit.domain.limiter import Limiter


class AbstractThrottleRepository(ABC):
    """Counter/lock storage for throttle policies.

    Key construction is shared by all backends so that the same key and
    limiter map to the same stored identifier regardless of the store.
    """

    def __init__(
        self,
        *,
        clock: Clock = utc_now,
        policy_identity_values: Sequence[Any] | None = None,
    ) -> None:
        self._clock = clock
        self._policy_identity_values: tuple[Any, ...] = tuple(policy_identity_values or ())

    @property
    def policy_identity_values(self) -> tuple[Any, ...]:
        """Values prefixed to every key this repository produces."""
        return self._policy_identity_values

    @policy_identity_values.setter
    def policy_identity_values(self, values: Sequence[Any] | None) -> None:
        self._policy_identity_values = tuple(values or ())

    def now(self) -> datetime:
        """Current time according to the repository clock."""
        return self._clock()

    def _identity(self, identity_values: Sequence[Any]) -> tuple[Any, ...]:
        return (*self._policy_identity_values, *identity_values)

    def create_throttle_key(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> str:
        return throttle_key_string(
            key,
            limiter,
            now=now if now is not None else self._clock(),
            policy_identity_values=self._identity(identity_values),
        )

    async def create_throttle_key_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> str:
        return self.create_throttle_key(key, limiter, identity_values=identity_values, now=now)

    def create_lock_key(
        self, key: ThrottleKey, limiter: Limiter, *, identity_values: Sequence[Any] = ()
    ) -> str:
        """Lock identifier for the key.

        Raises:
            LockNotConfiguredError: If the limiter has no lock duration.
        """
        return lock_key_string(
            key,
            limiter,
            policy_identity_values=self._identity(identity_values),
        )

    async def create_lock_key_async(
        self, key: ThrottleKey, limiter: Limiter, *, identity_values: Sequence[Any] = ()
    ) -> str:
        return self.create_lock_key(key, limiter, identity_values=identity_values)

    @abstractmethod
    def get_throttle_count(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> int | None:
        """Current window count, or None when no live counter exists."""
        raise NotImplementedError

    @abstractmethod
    async def get_throttle_count_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> int | None:
        raise NotImplementedError

    @abstractmethod
    def add_or_increment_with_expiration(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        """Create the counter at 1 expiring after ``limiter.period``, or add 1.

        An existing counter keeps its original expiration (fixed window).
        """
        raise NotImplementedError

    @abstractmethod
    async def add_or_increment_with_expiration_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_lock(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        """Install a lock marker living for ``limiter.lock_duration``.

        Raises:
            LockNotConfiguredError: If the limiter has no lock duration.
        """
        raise NotImplementedError

    @abstractmethod
    async def set_lock_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def lock_exists(
        self, key: ThrottleKey, limiter: Limiter, *, identity_values: Sequence[Any] = ()
    ) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def lock_exists_async(
        self, key: ThrottleKey, limiter: Limiter, *, identity_values: Sequence[Any] = ()
    ) -> bool:
        raise NotImplementedError

    @abstractmethod
    def remove_throttle(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        """Delete the counter; any lock is left in place."""
        raise NotImplementedError

    @abstractmethod
    async def remove_throttle_async(
        self,
        key: ThrottleKey,
        limiter: Limiter,
        *,
        identity_values: Sequence[Any] = (),
        now: datetime | None = None,
    ) -> None:
        raise NotImplementedError
