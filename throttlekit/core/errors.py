"""Application-level exception types.

This module defines domain errors used across the policy, repositories and
HTTP layer, enabling consistent error handling, logging, and API responses.

Store failures (redis-py exceptions) are deliberately not wrapped: they reach
the caller unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what is relevant.
    """

    code: str
    message: str
    hint: str
    field: str
    min_value: int
    actual_value: Any
    limit: int
    period_s: float
    backend: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for throttling failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when limiter, policy or backend configuration is invalid."""


class LockNotConfiguredError(ValidationAppError):
    """Raised when a lock operation targets a limiter without a lock duration.

    This is a programming error: callers must only lock limiters built with
    ``lock_for``.
    """

    def __init__(self, message: str = "Limiter has no lock duration configured") -> None:
        super().__init__(
            code="lock_duration_missing",
            message=message,
            details={"hint": "configure the limiter with lock_for(...)"},
        )
