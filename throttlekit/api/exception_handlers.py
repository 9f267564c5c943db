"""Exception handlers for applications that throttle with this package.

Design:
- ValidationAppError -> 400 (bad configuration supplied by the client)
- LockNotConfiguredError -> 500 (programming error in the policy setup)
- redis.RedisError -> 503 (shared store unavailable; no retry here)
- Unexpected Exception -> generic 500 (safety net)
"""

import logging

import redis
from fastapi import Request
from fastapi.responses import JSONResponse

from throttlekit.core.errors import AppError, LockNotConfiguredError

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle throttling errors with a consistent JSON envelope.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with ``error.code``, ``error.message`` and optional details.
    """
    status_code = 400
    if isinstance(exc, LockNotConfiguredError):
        status_code = 500

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
        },
    )

    error_content: dict = {"code": exc.code, "message": exc.message}
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(status_code=status_code, content={"error": error_content})


async def store_error_handler(request: Request, exc: redis.RedisError) -> JSONResponse:
    """Report an unavailable throttle store as 503 without leaking internals."""
    logger.error(
        "throttle_store_unavailable",
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=503,
        content={
            "error": {
                "code": "throttle_store_unavailable",
                "message": "Rate limiting is temporarily unavailable. Please try again later.",
            }
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net)."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with a FastAPI app.

    Specific handlers are registered before the general fallback.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(redis.RedisError)(store_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
