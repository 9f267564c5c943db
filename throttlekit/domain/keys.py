"""Throttle keys and canonical key strings.

Counter key:  ``[identity...]:[key values...]:<period>[:<unix seconds>]``
Lock key:     ``[identity...]:[key values...]:lock:<lock duration>``

Everything here is pure. The only time-dependent piece is the per-second
suffix, which is computed from the ``now`` argument supplied by the caller's
clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Sequence

from throttlekit.core.clock import unix_timestamp
from throttlekit.domain.limiter import Limiter

KEY_SEPARATOR = ":"
LOCK_MARKER = "lock"


@dataclass(frozen=True, init=False)
class ThrottleKey:
    """Ordered values identifying the throttled entity (e.g. policy, caller id)."""

    values: tuple[Any, ...]

    def __init__(self, *values: Any) -> None:
        object.__setattr__(self, "values", tuple(values))

    @classmethod
    def of(cls, values: Iterable[Any]) -> "ThrottleKey":
        return cls(*values)

    def __iter__(self):
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


def friendly_duration(duration: timedelta) -> str:
    """Render a duration as a compact token such as ``1h40m`` or ``1d30s``.

    The duration is normalized into days/hours/minutes/seconds first, so
    ``timedelta(seconds=100)`` becomes ``1m40s``. Zero components are omitted
    and sub-second remainders are ignored.
    """
    minutes, seconds = divmod(duration.seconds, 60)
    hours, minutes = divmod(minutes, 60)
    parts = (
        (duration.days, "d"),
        (hours, "h"),
        (minutes, "m"),
        (seconds, "s"),
    )
    return "".join(f"{value}{unit}" for value, unit in parts if value != 0)


def base_key_values(
    key: ThrottleKey,
    policy_identity_values: Sequence[Any] | None = None,
) -> list[Any]:
    """Identity values (if any) followed by the key's own values."""
    values = list(policy_identity_values or ())
    values.extend(key.values)
    return values


def _join(values: Iterable[Any]) -> str:
    return KEY_SEPARATOR.join(str(value) for value in values)


def throttle_key_string(
    key: ThrottleKey,
    limiter: Limiter,
    *,
    now: datetime,
    policy_identity_values: Sequence[Any] | None = None,
) -> str:
    """Canonical counter key for ``key`` under ``limiter``."""
    values = base_key_values(key, policy_identity_values)
    values.append(friendly_duration(limiter.period))

    # Per-second limiters get their own key for each second.
    if limiter.is_per_second:
        values.append(unix_timestamp(now))

    return _join(values)


def lock_key_string(
    key: ThrottleKey,
    limiter: Limiter,
    *,
    policy_identity_values: Sequence[Any] | None = None,
) -> str:
    """Canonical lock key for ``key`` under ``limiter``.

    Raises:
        LockNotConfiguredError: If the limiter has no lock duration.
    """
    lock_duration = limiter.require_lock_duration()
    values = base_key_values(key, policy_identity_values)
    values.append(LOCK_MARKER)
    values.append(friendly_duration(lock_duration))
    return _join(values)


def split_key_string(key_string: str) -> list[str]:
    """Split a canonical key back into its ordered segments."""
    return key_string.split(KEY_SEPARATOR)
