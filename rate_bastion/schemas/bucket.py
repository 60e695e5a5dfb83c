"""Pydantic schema for the per-key token bucket state stored in the cache."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class BucketState(BaseModel):
    """Token bucket state persisted as the cache value for a key.

    Serialized as a JSON object with exactly two fields; the timestamp is an
    ISO-8601 UTC string with microsecond precision.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    tokens_in_bucket: int = Field(
        ..., ge=0, description="Requests currently permitted without a refill."
    )
    last_refill_time: datetime = Field(
        ..., description="UTC time at which the bucket was last refilled."
    )

    @field_validator("last_refill_time")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        # Naive timestamps written by other instances are taken as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        try:
            return value.astimezone(timezone.utc)
        except OverflowError as exc:
            raise ValueError("last_refill_time is out of range once converted to UTC") from exc

    @field_serializer("last_refill_time")
    def _serialize_time(self, value: datetime) -> str:
        return value.isoformat()

    @classmethod
    def full(cls, capacity: int, now: datetime) -> "BucketState":
        """Build the state of a bucket that has never been seen before."""

        return cls(tokens_in_bucket=capacity, last_refill_time=now)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str) -> "BucketState":
        """Parse a stored value.

        Raises:
            pydantic.ValidationError: If the value is not a valid bucket state.
        """

        return cls.model_validate_json(raw)
