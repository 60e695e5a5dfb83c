"""Application-level exception types.

This module defines domain errors used across the limiter, the store adapters
and the HTTP layer, enabling consistent error handling, logging, and API
responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    key_hash: str
    backend: str
    error_type: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

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


class ConfigurationAppError(AppError):
    """Raised when server configuration is invalid or incomplete."""


class RateLimitStoreError(AppError):
    """Raised when bucket state cannot be read or recorded.

    Callers must treat it as a denied request.
    """


class StoreReadError(RateLimitStoreError):
    """Raised when the store read fails for a reason other than a missing key."""


class DeserializationError(RateLimitStoreError):
    """Raised when a stored bucket state is malformed."""


class StoreWriteError(RateLimitStoreError):
    """Raised when the updated bucket state cannot be written."""


class KeyNotFoundError(KeyError):
    """Raised by key-value stores when no value exists for a key."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key
