"""Factory for creating throttle repositories from settings."""

from throttlekit.adapters.throttle_store.base import AbstractThrottleRepository
from throttlekit.adapters.throttle_store.in_memory import InMemoryThrottleRepository
from throttlekit.adapters.throttle_store.redis_store import RedisThrottleRepository
from throttlekit.core.clock import Clock, utc_now
from throttlekit.core.config import ThrottleSettings, parse_identity_prefixes, settings
from throttlekit.core.errors import ValidationAppError
from throttlekit.utils.expiring_cache import ExpiringCache


def create_throttle_repository(
    throttle_settings: ThrottleSettings | None = None,
    *,
    clock: Clock = utc_now,
) -> AbstractThrottleRepository:
    """Instantiate the repository named by ``throttle_settings.backend``.

    Args:
        throttle_settings: Settings to use; the global settings when omitted.
        clock: Time source shared by key construction and local expiry.

    Returns:
        AbstractThrottleRepository: Configured repository instance.

    Raises:
        ValidationAppError: If the backend is unknown.
    """
    cfg = throttle_settings or settings.throttle
    identity = parse_identity_prefixes(cfg.identity_prefixes)
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryThrottleRepository(
            ExpiringCache(cfg.local_max_entries, clock=clock),
            clock=clock,
            policy_identity_values=identity,
        )

    if backend == "redis":
        return RedisThrottleRepository.from_url(
            cfg.redis_url,
            socket_timeout=cfg.redis_socket_timeout_seconds,
            socket_connect_timeout=cfg.redis_connect_timeout_seconds,
            clock=clock,
            policy_identity_values=identity,
        )

    raise ValidationAppError(
        code="unknown_backend",
        message=f"Unknown throttle backend: '{backend}'. Supported backends: memory, redis",
        details={"backend": backend},
    )
