"""Time source used by key construction and the in-memory backend.

Repositories receive a clock as a constructor argument so tests can pass a
fixed or stepped clock instead of patching module globals.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


def unix_timestamp(moment: datetime) -> int:
    """Whole seconds since the Unix epoch for ``moment``.

    Naive datetimes are interpreted as UTC.
    """

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())
