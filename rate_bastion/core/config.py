"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
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
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_limiter_settings() -> "LimiterSettings":
    """Build limiter settings from environment."""

    return LimiterSettings()


def _build_store_settings() -> "StoreSettings":
    """Build store settings from environment."""

    return StoreSettings()


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()


class LimiterSettings(BaseSettings):
    """Token bucket parameters shared by every key."""

    enabled: bool = Field(
        True,
        description="Enable request admission control on protected routes",
    )
    capacity: int = Field(
        10,
        description="Maximum number of tokens held by a bucket",
        ge=1,
    )
    refill_interval_seconds: float = Field(
        60.0,
        description="Seconds after which an empty or partial bucket is refilled to capacity",
        gt=0,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    key_prefix: str = Field(
        "ratelimit:",
        description="Namespace prepended to every bucket key written to the store",
    )

    model_config = SettingsConfigDict(
        env_prefix="LIMITER_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Key-value store backing the bucket state."""

    backend: Literal["memory", "redis"] = Field(
        "memory",
        description="Store implementation: in-process memory or shared Redis",
    )
    redis_url: str | None = Field(
        None,
        description="Redis connection URL (required when backend is redis)",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Redis socket read/write timeout in seconds",
        gt=0,
    )
    socket_connect_timeout_seconds: float = Field(
        2.0,
        description="Redis connect timeout in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Where log lines are written",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output is file",
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
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)
    store: StoreSettings = Field(default_factory=_build_store_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
