"""Unit tests for limiter configuration."""

from dataclasses import FrozenInstanceError
from datetime import timedelta

import pytest

from throttlekit.core.errors import LockNotConfiguredError, ValidationAppError
from throttlekit.domain.limiter import Limiter, LimiterBuilder


def test_builder_produces_limiter_with_lock() -> None:
    limiter = LimiterBuilder().limit(5).over(60).lock_for(300).build()

    assert limiter.limit == 5
    assert limiter.period == timedelta(seconds=60)
    assert limiter.lock_duration == timedelta(minutes=5)
    assert limiter.has_lock is True


def test_builder_accepts_timedelta_periods() -> None:
    limiter = LimiterBuilder().limit(1).over(timedelta(hours=1)).build()

    assert limiter.period == timedelta(hours=1)
    assert limiter.lock_duration is None
    assert limiter.has_lock is False


def test_builder_requires_limit_and_period() -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        LimiterBuilder().limit(1).build()

    assert exc_info.value.code == "incomplete_limiter"


@pytest.mark.parametrize(
    ("factory", "period"),
    [
        (Limiter.per_second, timedelta(seconds=1)),
        (Limiter.per_minute, timedelta(minutes=1)),
        (Limiter.per_hour, timedelta(hours=1)),
        (Limiter.per_day, timedelta(days=1)),
    ],
)
def test_shortcut_constructors(factory, period: timedelta) -> None:
    limiter = factory(3)

    assert limiter.limit == 3
    assert limiter.period == period


def test_only_one_second_periods_are_per_second() -> None:
    assert Limiter.per_second(1).is_per_second is True
    assert Limiter(limit=1, period=2).is_per_second is False
    assert Limiter(limit=1, period=timedelta(minutes=1)).is_per_second is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "period": 60},
        {"limit": -1, "period": 60},
        {"limit": 1, "period": 0},
        {"limit": 1, "period": timedelta(seconds=-5)},
        {"limit": 1, "period": 60, "lock_duration": 0},
        {"limit": 1, "period": "60"},
        {"limit": True, "period": 60},
    ],
)
def test_invalid_limiters_are_rejected(kwargs: dict) -> None:
    with pytest.raises(ValidationAppError):
        Limiter(**kwargs)


def test_limiter_is_immutable() -> None:
    limiter = Limiter(limit=1, period=10)

    with pytest.raises(FrozenInstanceError):
        limiter.limit = 2  # type: ignore[misc]


def test_with_lock_returns_new_instance() -> None:
    limiter = Limiter(limit=1, period=10)

    locked = limiter.with_lock(30)

    assert limiter.lock_duration is None
    assert locked.lock_duration == timedelta(seconds=30)
    assert locked.period == limiter.period


def test_require_lock_duration_fails_fast() -> None:
    with pytest.raises(LockNotConfiguredError):
        Limiter(limit=1, period=10).require_lock_duration()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 1, "period": 0.5},
        {"limit": 1, "period": 90.4},
        {"limit": 1, "period": timedelta(milliseconds=1500)},
        {"limit": 1, "period": 60, "lock_duration": 2.5},
    ],
)
def test_sub_second_durations_are_rejected(kwargs: dict) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        Limiter(**kwargs)

    assert exc_info.value.code == "invalid_duration"


def test_whole_second_floats_are_accepted() -> None:
    limiter = Limiter(limit=1, period=90.0, lock_duration=timedelta(seconds=30))

    assert limiter.period == timedelta(seconds=90)


def test_builder_rejects_sub_second_lock() -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        LimiterBuilder().limit(1).over(60).lock_for(timedelta(milliseconds=250)).build()

    assert exc_info.value.code == "invalid_duration"
