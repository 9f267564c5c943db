"""Throttle policy evaluation.

A policy owns an ordered set of limiters and evaluates each of them for a
throttle key through a repository:

    lock present            -> LOCKED (counter untouched)
    count > limit           -> THROTTLED (and lock engaged if configured)
    otherwise               -> OPEN

The policy as a whole is throttled when any limiter is THROTTLED or LOCKED.
Every limiter is evaluated on each check, so each counter keeps counting even
after another limiter has tripped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Sequence

from throttlekit.adapters.throttle_store.base import AbstractThrottleRepository
from throttlekit.core.errors import ValidationAppError
from throttlekit.core.logging import hash_for_log
from throttlekit.domain.keys import ThrottleKey
from throttlekit.domain.limiter import Limiter

logger = logging.getLogger(__name__)


class ThrottleState(str, Enum):
    """Outcome of one limiter for one key."""

    OPEN = "open"
    THROTTLED = "throttled"
    LOCKED = "locked"


@dataclass(frozen=True)
class LimiterCheck:
    """Per-limiter outcome.

    Attributes:
        limiter: The evaluated limiter.
        state: OPEN, THROTTLED or LOCKED.
        count: Window count observed after the (optional) increment; None when
            locked or when no counter exists.
        throttle_key: Canonical counter key used for this check.
        lock_key: Canonical lock key, None for limiters without a lock.
    """

    limiter: Limiter
    state: ThrottleState
    count: int | None
    throttle_key: str
    lock_key: str | None = None

    @property
    def remaining(self) -> int:
        if self.state is ThrottleState.LOCKED:
            return 0
        return max(0, self.limiter.limit - (self.count or 0))

    @property
    def retry_after_seconds(self) -> int | None:
        """Upper bound on the wait before this limiter lets requests through."""
        if self.state is ThrottleState.OPEN:
            return None
        if self.limiter.lock_duration is not None:
            return int(self.limiter.lock_duration.total_seconds())
        return int(self.limiter.period.total_seconds())


@dataclass(frozen=True)
class CheckResult:
    """Aggregated outcome of a policy check."""

    key: ThrottleKey
    checks: tuple[LimiterCheck, ...]

    @property
    def is_throttled(self) -> bool:
        return any(check.state is not ThrottleState.OPEN for check in self.checks)

    @property
    def is_locked(self) -> bool:
        return any(check.state is ThrottleState.LOCKED for check in self.checks)

    @property
    def triggered(self) -> tuple[LimiterCheck, ...]:
        """Checks that are THROTTLED or LOCKED, in limiter order."""
        return tuple(check for check in self.checks if check.state is not ThrottleState.OPEN)

    @property
    def retry_after_seconds(self) -> int | None:
        waits = [check.retry_after_seconds for check in self.triggered]
        return max((wait for wait in waits if wait is not None), default=None)


class ThrottlePolicy:
    """Evaluates limiters for throttle keys through a repository.

    When ``name`` or ``prefixes`` are given, ``(*prefixes, name)`` is placed
    after the repository's own identity values in every key this policy
    touches, so several policies can share one repository without colliding.
    The repository itself is never modified.
    """

    def __init__(
        self,
        repository: AbstractThrottleRepository,
        limiters: Iterable[Limiter],
        *,
        name: str | None = None,
        prefixes: Sequence[Any] = (),
    ) -> None:
        """Initialize the policy.

        Args:
            repository: Counter/lock storage.
            limiters: Rules evaluated in order on every check.
            name: Optional policy name, used as the last identity value.
            prefixes: Optional identity values placed before ``name``.

        Raises:
            ValidationAppError: If no limiter is supplied.
        """
        self._limiters: tuple[Limiter, ...] = tuple(limiters)
        if not self._limiters:
            raise ValidationAppError(
                code="policy_without_limiters",
                message="A throttle policy needs at least one limiter",
            )

        self.name = name
        self.prefixes = tuple(prefixes)
        self._repository = repository

        self._identity_values: tuple[Any, ...] = (*self.prefixes, *((name,) if name else ()))

    @property
    def limiters(self) -> tuple[Limiter, ...]:
        return self._limiters

    @property
    def repository(self) -> AbstractThrottleRepository:
        return self._repository

    @property
    def identity_values(self) -> tuple[Any, ...]:
        """Values this policy adds after the repository identity in its keys."""
        return self._identity_values

    def check(self, key: ThrottleKey, increment: bool = True) -> CheckResult:
        """Evaluate every limiter for ``key``.

        The clock is read once, so a per-second limiter increments and reads
        the same window even when the check straddles a second boundary.

        Args:
            key: Throttle key of the caller.
            increment: False performs a dry run that reads state without
                consuming quota (locks are still engaged when exceeded).

        Returns:
            CheckResult with one LimiterCheck per limiter.
        """
        repo = self._repository
        scope = {"identity_values": self._identity_values}
        now = repo.now()
        checks: list[LimiterCheck] = []

        for limiter in self._limiters:
            throttle_id = repo.create_throttle_key(key, limiter, now=now, **scope)
            lock_id = repo.create_lock_key(key, limiter, **scope) if limiter.has_lock else None

            if lock_id is not None and repo.lock_exists(key, limiter, **scope):
                checks.append(LimiterCheck(limiter, ThrottleState.LOCKED, None, throttle_id, lock_id))
                continue

            if increment:
                repo.add_or_increment_with_expiration(key, limiter, now=now, **scope)
            count = repo.get_throttle_count(key, limiter, now=now, **scope)

            state = ThrottleState.OPEN
            if count is not None and count > limiter.limit:
                state = ThrottleState.THROTTLED
                if limiter.has_lock:
                    repo.set_lock(key, limiter, now=now, **scope)

            checks.append(LimiterCheck(limiter, state, count, throttle_id, lock_id))

        return self._finish(key, checks, increment)

    async def check_async(self, key: ThrottleKey, increment: bool = True) -> CheckResult:
        """Async form of :meth:`check` with identical semantics."""
        repo = self._repository
        scope = {"identity_values": self._identity_values}
        now = repo.now()
        checks: list[LimiterCheck] = []

        for limiter in self._limiters:
            throttle_id = await repo.create_throttle_key_async(key, limiter, now=now, **scope)
            lock_id = (
                await repo.create_lock_key_async(key, limiter, **scope) if limiter.has_lock else None
            )

            if lock_id is not None and await repo.lock_exists_async(key, limiter, **scope):
                checks.append(LimiterCheck(limiter, ThrottleState.LOCKED, None, throttle_id, lock_id))
                continue

            if increment:
                await repo.add_or_increment_with_expiration_async(key, limiter, now=now, **scope)
            count = await repo.get_throttle_count_async(key, limiter, now=now, **scope)

            state = ThrottleState.OPEN
            if count is not None and count > limiter.limit:
                state = ThrottleState.THROTTLED
                if limiter.has_lock:
                    await repo.set_lock_async(key, limiter, now=now, **scope)

            checks.append(LimiterCheck(limiter, state, count, throttle_id, lock_id))

        return self._finish(key, checks, increment)

    def is_throttled(self, key: ThrottleKey, increment: bool = True) -> bool:
        return self.check(key, increment).is_throttled

    async def is_throttled_async(self, key: ThrottleKey, increment: bool = True) -> bool:
        return (await self.check_async(key, increment)).is_throttled

    def is_locked(self, key: ThrottleKey, increment: bool = True) -> bool:
        return self.check(key, increment).is_locked

    async def is_locked_async(self, key: ThrottleKey, increment: bool = True) -> bool:
        return (await self.check_async(key, increment)).is_locked

    def _finish(self, key: ThrottleKey, checks: list[LimiterCheck], increment: bool) -> CheckResult:
        result = CheckResult(key=key, checks=tuple(checks))

        for check in result.triggered:
            logger.warning(
                "throttle.locked" if check.state is ThrottleState.LOCKED else "throttle.exceeded",
                extra={
                    "policy": self.name,
                    "key_hash": hash_for_log(check.throttle_key),
                    "limit": check.limiter.limit,
                    "count": check.count,
                    "period_s": check.limiter.period.total_seconds(),
                    "dry_run": not increment,
                },
            )

        logger.debug(
            "throttle.check",
            extra={
                "policy": self.name,
                "limiters": len(checks),
                "throttled": result.is_throttled,
                "locked": result.is_locked,
                "dry_run": not increment,
            },
        )
        return result
