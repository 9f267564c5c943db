"""Pytest configuration and fixtures shared across all test modules.

THROTTLE_ENV is pinned before any import that might load settings so a
developer's .env.development never leaks into the test run.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ["THROTTLE_ENV"] = "testing"
os.environ.setdefault("THROTTLE_BACKEND", "memory")


class FakeClock:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2030, 1, 1, tzinfo=timezone.utc))
