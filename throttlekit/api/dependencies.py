"""Throttle policy dependency for FastAPI routes.

This module wires a ThrottlePolicy into the HTTP layer:

- The caller is identified by API key when one is sent, otherwise by
  client IP.
- When the policy reports throttled or locked, the request is rejected with
  HTTP 429 and optional Retry-After / X-RateLimit-* headers.
"""

from __future__ import annotations

import logging
from typing import Annotated, Awaitable, Callable

from fastapi import Header, HTTPException, Request, status

from throttlekit.core.config import settings
from throttlekit.core.logging import hash_for_log
from throttlekit.domain.keys import ThrottleKey
from throttlekit.services.throttle_policy import CheckResult, ThrottlePolicy

logger = logging.getLogger(__name__)

KeyBuilder = Callable[[Request, str | None], ThrottleKey]


def build_request_key(request: Request, x_api_key: str | None) -> ThrottleKey:
    """Build the throttle key for the current request.

    Args:
        request: FastAPI request.
        x_api_key: API key value from the X-API-Key header.

    Returns:
        ThrottleKey: ``("api_key", <key>)`` or ``("ip", <client host>)``.
    """

    if x_api_key:
        return ThrottleKey("api_key", x_api_key)

    client_host = request.client.host if request.client else "unknown"
    return ThrottleKey("ip", client_host)


def build_throttle_headers(result: CheckResult) -> dict[str, str]:
    """Standard rate-limit headers for the most restrictive limiter."""

    headers: dict[str, str] = {}
    retry_after = result.retry_after_seconds
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)

    if result.checks:
        tightest = min(result.checks, key=lambda check: check.remaining)
        headers["X-RateLimit-Limit"] = str(tightest.limiter.limit)
        headers["X-RateLimit-Remaining"] = str(tightest.remaining)
    return headers


def throttle_dependency(
    policy: ThrottlePolicy,
    *,
    key_builder: KeyBuilder = build_request_key,
    increment: bool = True,
    include_headers: bool | None = None,
) -> Callable[..., Awaitable[CheckResult]]:
    """Create a FastAPI dependency enforcing ``policy``.

    Args:
        policy: Policy evaluated on each request.
        key_builder: Maps the request (and API key header) to a ThrottleKey.
        increment: False only inspects state without consuming quota.
        include_headers: Emit rate-limit headers on 429; defaults to settings.

    Returns:
        An async dependency returning the CheckResult for allowed requests.
    """

    async def enforce_throttle_policy(
        request: Request,
        x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
    ) -> CheckResult:
        """Reject the request with HTTP 429 when the caller is throttled.

        Raises:
            HTTPException: 429 Too Many Requests when throttled or locked.
        """

        key = key_builder(request, x_api_key)
        result = await policy.check_async(key, increment=increment)
        key_type = "api_key" if x_api_key else "ip"

        if not result.is_throttled:
            return result

        logger.warning(
            "throttle.rejected",
            extra={
                "policy": policy.name,
                "key_type": key_type,
                "key_hash": hash_for_log(":".join(str(v) for v in key.values)),
                "locked": result.is_locked,
                "retry_after_s": result.retry_after_seconds,
            },
        )

        emit_headers = settings.throttle.include_headers if include_headers is None else include_headers
        headers = build_throttle_headers(result) if emit_headers else {}

        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Try again later.",
            headers=headers or None,
        )

    return enforce_throttle_policy
