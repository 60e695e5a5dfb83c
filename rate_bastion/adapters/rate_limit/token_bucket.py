"""Token bucket rate limiter backed by a shared key-value store.

Refill policy: once a full refill interval has elapsed since the last refill,
the bucket is restored to capacity in one step. Tokens do not accrue
proportionally between refills.

Notes:
- Fail-closed: if state cannot be read, parsed or written, an error is raised
  and the request counts as denied.
- State is written on every decision, including denials.
- The read-compute-write sequence is not atomic. Concurrent requests for the
  same key may read the same state and both be admitted; callers needing
  strict per-key accounting must serialize access outside the limiter.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import ValidationError

from rate_bastion.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from rate_bastion.adapters.store.base import AbstractKeyValueStore
from rate_bastion.core.errors import (
    DeserializationError,
    KeyNotFoundError,
    StoreReadError,
    StoreWriteError,
)
from rate_bastion.core.logging import hash_key
from rate_bastion.schemas.bucket import BucketState

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenBucketRateLimiter(AbstractRateLimiter):
    """Per-key token bucket with step refill.

    The limiter holds only its immutable configuration, so one instance can
    serve concurrent callers without locking.
    """

    def __init__(
        self,
        *,
        capacity: int,
        refill_interval_seconds: float,
        store: AbstractKeyValueStore,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the token bucket limiter.

        Args:
            capacity: Maximum number of tokens in a bucket.
            refill_interval_seconds: Time after which a bucket is refilled to capacity.
            store: Key-value store holding serialized bucket state.
            clock: Time source returning the current UTC datetime.

        Raises:
            ValueError: If capacity or refill_interval_seconds are invalid.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if refill_interval_seconds <= 0:
            raise ValueError("refill_interval_seconds must be > 0")

        self._capacity = capacity
        self._refill_interval = timedelta(seconds=refill_interval_seconds)
        self._store = store
        self._clock = clock

    def close(self) -> None:
        self._store.close()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def refill_interval_seconds(self) -> float:
        return self._refill_interval.total_seconds()

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            return now.replace(tzinfo=timezone.utc)
        return now

    def _load_state(self, key: str, now: datetime) -> BucketState:
        """Read the bucket for key, synthesizing a full one when absent.

        Raises:
            StoreReadError: If the store read fails.
            DeserializationError: If the stored value is malformed.
        """
        try:
            raw = self._store.get(key)
        except KeyNotFoundError:
            return BucketState.full(self._capacity, now)
        except Exception as exc:
            logger.warning(
                "rate_limit.store_read_failed",
                extra={"key_hash": hash_key(key), "error_type": type(exc).__name__},
            )
            raise StoreReadError(
                code="store_read_failed",
                message="Could not read rate limit state",
                details={"key_hash": hash_key(key), "error_type": type(exc).__name__},
            ) from exc

        try:
            state = BucketState.from_json(raw)
        except ValidationError as exc:
            logger.warning(
                "rate_limit.state_invalid",
                extra={"key_hash": hash_key(key), "error_count": exc.error_count()},
            )
            raise DeserializationError(
                code="bucket_state_invalid",
                message="Stored rate limit state is malformed",
                details={"key_hash": hash_key(key)},
            ) from exc

        try:
            state.last_refill_time + self._refill_interval
        except OverflowError as exc:
            logger.warning(
                "rate_limit.state_invalid",
                extra={"key_hash": hash_key(key), "reason": "refill_time_out_of_range"},
            )
            raise DeserializationError(
                code="bucket_state_invalid",
                message="Stored rate limit state is malformed",
                details={"key_hash": hash_key(key), "hint": "last_refill_time out of range"},
            ) from exc

        if state.tokens_in_bucket > self._capacity:
            state = state.model_copy(update={"tokens_in_bucket": self._capacity})
        return state

    def _refill(self, state: BucketState, now: datetime) -> BucketState:
        if now - state.last_refill_time >= self._refill_interval:
            return BucketState.full(self._capacity, now)
        return state

    def _save_state(self, key: str, state: BucketState) -> None:
        try:
            self._store.set(key, state.to_json())
        except Exception as exc:
            logger.warning(
                "rate_limit.store_write_failed",
                extra={"key_hash": hash_key(key), "error_type": type(exc).__name__},
            )
            raise StoreWriteError(
                code="store_write_failed",
                message="Could not record rate limit state",
                details={"key_hash": hash_key(key), "error_type": type(exc).__name__},
            ) from exc

    def _build_result(self, *, allowed: bool, state: BucketState, now: datetime) -> RateLimitResult:
        next_refill = state.last_refill_time + self._refill_interval
        reset_at = int(math.ceil(next_refill.timestamp()))
        retry_after = None
        if not allowed:
            retry_after = max(0, int(math.ceil((next_refill - now).total_seconds())))
        return RateLimitResult(
            allowed=allowed,
            limit=self._capacity,
            remaining=state.tokens_in_bucket,
            reset_at=reset_at,
            retry_after_seconds=retry_after,
        )

    def check(self, key: str) -> RateLimitResult:
        """Consume one token for key if available and persist the new state.

        Args:
            key: Unique identifier for rate limiting (e.g., API key).

        Returns:
            RateLimitResult with the admission decision and metadata.

        Raises:
            ValueError: If key is empty.
            StoreReadError: If the store read fails (nothing is written).
            DeserializationError: If stored state is malformed (nothing is written).
            StoreWriteError: If the new state cannot be written, even when a
                token was available.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._now()
        state = self._refill(self._load_state(key, now), now)

        allowed = state.tokens_in_bucket > 0
        if allowed:
            state = state.model_copy(
                update={"tokens_in_bucket": state.tokens_in_bucket - 1}
            )

        self._save_state(key, state)

        logger.debug(
            "rate_limit.decision",
            extra={
                "key_hash": hash_key(key),
                "allowed": allowed,
                "remaining": state.tokens_in_bucket,
            },
        )
        return self._build_result(allowed=allowed, state=state, now=now)
