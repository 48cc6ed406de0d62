"""Rate limiter interfaces.

The API depends on this abstraction (not the concrete implementation) so the
counting strategy can change without touching the interception layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for per-key rate limiters."""

    @abstractmethod
    def is_allowed(self, key: str, capacity: int, window_seconds: int) -> bool:
        """Record one request for key and report whether it may proceed.

        Args:
            key: Composed limiter key, e.g. ``login:203.0.113.7``.
            capacity: Max requests per window.
            window_seconds: Window length in seconds.
        """
        raise NotImplementedError

    @abstractmethod
    def consume(self, key: str, capacity: int, window_seconds: int) -> RateLimitResult:
        """Same decision as is_allowed, with header metadata attached."""
        raise NotImplementedError

    @abstractmethod
    def get_remaining_requests(self, key: str, capacity: int) -> int:
        """Requests left in the current window for key."""
        raise NotImplementedError

    @abstractmethod
    def get_time_until_reset(self, key: str) -> int:
        """Seconds until the current window for key closes (0 if none)."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forget the counter for key, reopening its window immediately."""
        raise NotImplementedError
