"""Rate limiting dependency for FastAPI routes.

This module wires the token bucket limiter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the store backend is chosen by configuration and injected
  into the limiter.
- Fail-closed: a store failure rejects the request (HTTP 503 via the
  exception handlers) instead of letting it through.

Keying strategy:
- Token bucket per API key.
- If API key is missing, fall back to client IP.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from rate_bastion.adapters.rate_limit.base import AbstractRateLimiter
from rate_bastion.adapters.rate_limit.token_bucket import TokenBucketRateLimiter
from rate_bastion.adapters.store.factory import create_store
from rate_bastion.core.config import settings
from rate_bastion.core.errors import RateLimitStoreError
from rate_bastion.core.logging import hash_key

logger = logging.getLogger(__name__)


_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module so the store client (and its connection
    pool) is reused across requests. If configuration changes (primarily in
    tests), the previous limiter's store is closed and the limiter is rebuilt.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = (
        settings.limiter.capacity,
        settings.limiter.refill_interval_seconds,
        settings.store.backend,
        settings.store.redis_url,
        settings.store.socket_timeout_seconds,
        settings.store.socket_connect_timeout_seconds,
    )

    if _limiter is None or _limiter_config != config:
        if _limiter is not None:
            _limiter.close()
        _limiter = TokenBucketRateLimiter(
            capacity=settings.limiter.capacity,
            refill_interval_seconds=settings.limiter.refill_interval_seconds,
            store=create_store(settings.store),
        )
        _limiter_config = config
        logger.info(
            "rate_limit.limiter_created",
            extra={
                "capacity": settings.limiter.capacity,
                "refill_interval_s": settings.limiter.refill_interval_seconds,
                "backend": settings.store.backend,
            },
        )

    return _limiter


def _build_rate_limit_key(request: Request, x_api_key: str | None) -> str:
    """Build the namespaced store key for the current request."""

    prefix = settings.limiter.key_prefix
    if x_api_key:
        return f"{prefix}api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"{prefix}ip:{client_host}"


def enforce_rate_limit(
    request: Request,
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency enforcing the token bucket.

    When enabled, consumes one token from the requester's bucket. If the bucket
    is empty, raises HTTP 429.

    Args:
        request: FastAPI request.
        limiter: Limiter resolved through get_rate_limiter().
        x_api_key: API key from X-API-Key header.

    Raises:
        HTTPException: 429 Too Many Requests when the bucket is empty.
        RateLimitStoreError: When bucket state cannot be read or recorded.
    """

    if not settings.limiter.enabled:
        return

    key = _build_rate_limit_key(request, x_api_key)
    key_hash = hash_key(key)
    key_type = "api_key" if x_api_key else "ip"

    try:
        result = limiter.check(key)
    except RateLimitStoreError as exc:
        logger.error(
            "rate_limit.failed_closed",
            extra={"key_type": key_type, "key_hash": key_hash, "error_code": exc.code},
        )
        raise

    if result.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.denied",
        extra={
            "key_type": key_type,
            "key_hash": key_hash,
            "limit": result.limit,
            "remaining": result.remaining,
            "refill_interval_s": settings.limiter.refill_interval_seconds,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if settings.limiter.include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers or None,
    )
