"""Fixed-window throttling with optional lock-out, backed by Redis or memory."""

from throttlekit.adapters.throttle_store import (
    AbstractThrottleRepository,
    InMemoryThrottleRepository,
    RedisThrottleRepository,
    create_throttle_repository,
)
from throttlekit.core.errors import AppError, LockNotConfiguredError, ValidationAppError
from throttlekit.domain.keys import ThrottleKey, friendly_duration
from throttlekit.domain.limiter import Limiter, LimiterBuilder
from throttlekit.services.throttle_policy import (
    CheckResult,
    LimiterCheck,
    ThrottlePolicy,
    ThrottleState,
)

__version__ = "0.1.0"

__all__ = [
    "AbstractThrottleRepository",
    "AppError",
    "CheckResult",
    "InMemoryThrottleRepository",
    "Limiter",
    "LimiterBuilder",
    "LimiterCheck",
    "LockNotConfiguredError",
    "RedisThrottleRepository",
    "ThrottleKey",
    "ThrottlePolicy",
    "ThrottleState",
    "ValidationAppError",
    "__version__",
    "create_throttle_repository",
    "friendly_duration",
]
