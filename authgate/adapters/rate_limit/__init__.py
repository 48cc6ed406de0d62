"""Rate limiting adapters.

The HTTP layer depends on ``AbstractRateLimiter``; the fixed-window
implementation keeps its counters in the shared key/value store so limits hold
across every process instance.
"""

from __future__ import annotations

from authgate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from authgate.adapters.rate_limit.fixed_window import (
    RATE_LIMIT_FAILURE_POLICY,
    FixedWindowRateLimiter,
)

__all__ = [
    "AbstractRateLimiter",
    "FixedWindowRateLimiter",
    "RATE_LIMIT_FAILURE_POLICY",
    "RateLimitResult",
]
