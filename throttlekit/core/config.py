"""Throttling configuration using Pydantic Settings.

Configuration is environment-aware:
- THROTTLE_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
THROTTLE_ENV = os.getenv("THROTTLE_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(THROTTLE_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_throttle_settings() -> "ThrottleSettings":
    """Build throttle settings from environment."""

    return ThrottleSettings()


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()


def parse_identity_prefixes(raw: str | None) -> tuple[str, ...]:
    """Parse comma-separated identity prefixes into an ordered tuple.

    Order is significant because the prefixes become leading key segments.

    Examples:
        >>> parse_identity_prefixes("billing, v2")
        ('billing', 'v2')
        >>> parse_identity_prefixes(None)
        ()
    """
    if not raw:
        return ()

    return tuple(part.strip() for part in raw.split(",") if part.strip())


class ThrottleSettings(BaseSettings):
    """Backend selection and connection options for throttle storage."""

    backend: Literal["memory", "redis"] = Field(
        "memory",
        description="Storage backend for counters and locks (memory or redis)",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL used when backend=redis",
    )
    redis_socket_timeout_seconds: float = Field(
        2.0,
        description="Socket timeout for Redis commands in seconds",
        gt=0,
    )
    redis_connect_timeout_seconds: float = Field(
        2.0,
        description="Connection timeout for Redis in seconds",
        gt=0,
    )
    identity_prefixes: str | None = Field(
        None,
        description="Comma-separated values prefixed to every throttle key",
    )
    local_max_entries: int | None = Field(
        None,
        description="Upper bound on in-memory entries (None for unlimited)",
        ge=1,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="THROTTLE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log record format",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Where log records are written",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Automatically loads from the appropriate .env.{THROTTLE_ENV} file.
    Raises validation errors on startup if values are malformed.
    """

    throttle_env: str = THROTTLE_ENV
    throttle: ThrottleSettings = Field(default_factory=_build_throttle_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
