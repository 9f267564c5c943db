from throttlekit.api.dependencies import build_request_key, throttle_dependency
from throttlekit.api.exception_handlers import setup_exception_handlers

__all__ = ["build_request_key", "setup_exception_handlers", "throttle_dependency"]
