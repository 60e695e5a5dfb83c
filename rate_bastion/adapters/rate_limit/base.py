"""Rate limiter interfaces.

The API depends on this abstraction (not the concrete implementation) so the
HTTP layer stays unaware of how bucket state is stored.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Bucket capacity.
        remaining: Tokens left after this decision (0 when blocked).
        reset_at: UNIX epoch seconds of the next refill opportunity.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, key: str) -> RateLimitResult:
        """Decide whether one request for key is admitted and record it.

        Args:
            key: Unique identifier (e.g., API key, IP address).

        Returns:
            RateLimitResult describing whether it was allowed.

        Raises:
            RateLimitStoreError: If state could not be read or recorded. The
                request must be treated as denied.
        """
        raise NotImplementedError

    def is_request_allowed(self, key: str) -> bool:
        """Return True when a request for key is admitted.

        Raises:
            RateLimitStoreError: Same as check(); never returns True on failure.
        """
        return self.check(key).allowed

    def close(self) -> None:
        """Release resources held by the limiter. No-op by default."""
