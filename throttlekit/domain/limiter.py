"""Limiter configuration.

A limiter is one rate-limit rule: how many requests are allowed over a fixed
window, and optionally how long to lock the caller out once the rule is
exceeded. Limiters are immutable; the builder produces new instances.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta

from throttlekit.core.errors import LockNotConfiguredError, ValidationAppError

DurationLike = timedelta | int | float


def to_timedelta(value: DurationLike, *, field: str) -> timedelta:
    """Coerce seconds or a timedelta into a positive whole-second timedelta.

    Raises:
        ValidationAppError: If the value is not positive, has a sub-second
            part, or is not a duration.
    """
    if isinstance(value, bool) or not isinstance(value, (timedelta, int, float)):
        raise ValidationAppError(
            code="invalid_duration",
            message=f"{field} must be a timedelta or a number of seconds",
            details={"field": field, "actual_value": repr(value)},
        )

    duration = value if isinstance(value, timedelta) else timedelta(seconds=value)
    if duration <= timedelta(0):
        raise ValidationAppError(
            code="invalid_duration",
            message=f"{field} must be greater than zero",
            details={"field": field, "actual_value": duration.total_seconds()},
        )
    # Keys and Redis TTLs have one-second resolution.
    if duration.microseconds:
        raise ValidationAppError(
            code="invalid_duration",
            message=f"{field} must be a whole number of seconds",
            details={"field": field, "actual_value": duration.total_seconds()},
        )
    return duration


@dataclass(frozen=True)
class Limiter:
    """Immutable rate-limit rule.

    Attributes:
        limit: Requests allowed per window (> 0).
        period: Window length; the counter expires this long after the first
            request of the window.
        lock_duration: Optional lock-out applied once ``limit`` is exceeded.
    """

    limit: int
    period: timedelta
    lock_duration: timedelta | None = None

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 1:
            raise ValidationAppError(
                code="invalid_limit",
                message="limit must be an integer >= 1",
                details={"field": "limit", "min_value": 1, "actual_value": self.limit},
            )
        object.__setattr__(self, "period", to_timedelta(self.period, field="period"))
        if self.lock_duration is not None:
            object.__setattr__(
                self,
                "lock_duration",
                to_timedelta(self.lock_duration, field="lock_duration"),
            )

    @property
    def has_lock(self) -> bool:
        return self.lock_duration is not None

    @property
    def is_per_second(self) -> bool:
        """Whether every second is its own window."""
        return self.period.total_seconds() == 1

    def require_lock_duration(self) -> timedelta:
        """Return the lock duration or fail fast when none is configured."""
        if self.lock_duration is None:
            raise LockNotConfiguredError(
                f"Limiter(limit={self.limit}, period={self.period}) has no lock duration"
            )
        return self.lock_duration

    def with_lock(self, duration: DurationLike) -> "Limiter":
        return replace(self, lock_duration=to_timedelta(duration, field="lock_duration"))

    @classmethod
    def per_second(cls, limit: int) -> "Limiter":
        return cls(limit=limit, period=timedelta(seconds=1))

    @classmethod
    def per_minute(cls, limit: int) -> "Limiter":
        return cls(limit=limit, period=timedelta(minutes=1))

    @classmethod
    def per_hour(cls, limit: int) -> "Limiter":
        return cls(limit=limit, period=timedelta(hours=1))

    @classmethod
    def per_day(cls, limit: int) -> "Limiter":
        return cls(limit=limit, period=timedelta(days=1))


class LimiterBuilder:
    """Fluent construction surface for limiters.

    Example:
        >>> LimiterBuilder().limit(5).over(60).lock_for(300).build()
        Limiter(limit=5, period=datetime.timedelta(seconds=60), lock_duration=datetime.timedelta(seconds=300))
    """

    def __init__(self) -> None:
        self._limit: int | None = None
        self._period: DurationLike | None = None
        self._lock_duration: DurationLike | None = None

    def limit(self, count: int) -> "LimiterBuilder":
        self._limit = count
        return self

    def over(self, period: DurationLike) -> "LimiterBuilder":
        self._period = period
        return self

    def lock_for(self, duration: DurationLike) -> "LimiterBuilder":
        self._lock_duration = duration
        return self

    def build(self) -> Limiter:
        """Create the limiter.

        Raises:
            ValidationAppError: If limit or period were never supplied or are invalid.
        """
        if self._limit is None or self._period is None:
            raise ValidationAppError(
                code="incomplete_limiter",
                message="Both limit(...) and over(...) are required to build a limiter",
            )
        return Limiter(
            limit=self._limit,
            period=self._period,
            lock_duration=self._lock_duration,
        )
