"""Distributed fixed-window rate limiter.

Counters live in the shared key/value store under ``rate_limit:{key}`` with a
TTL equal to the window, so every process instance sees the same budget and
the window resets when the key expires.

Two counting modes are available:

- atomic (default): a single store-side check-and-increment per request.
- read-then-write: ``get``, then ``set_with_ttl`` for a new window or
  ``increment`` for an open one. Concurrent first requests for a brand-new
  key may each see it absent and all be admitted, so the counter can briefly
  exceed ``capacity`` before converging.

In both modes a denied request does not increment the counter and does not
extend the window.

When the store is unreachable the limiter fails open: the request is allowed
and the failure is logged. Availability of the protected endpoint wins over
strict limiting.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from authgate.adapters.kv.base import AbstractKeyValueStore
from authgate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from authgate.core.errors import FailurePolicy, StoreUnavailableError
from authgate.core.logging import hash_identifier

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY_PREFIX = "rate_limit:"
RATE_LIMIT_FAILURE_POLICY = FailurePolicy.FAIL_OPEN


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Per-key request counter on top of an AbstractKeyValueStore."""

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        atomic: bool = True,
        failure_policy: FailurePolicy = RATE_LIMIT_FAILURE_POLICY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared key/value store holding the counters.
            atomic: Use the store's single-call check-and-increment.
            failure_policy: Decision applied when the store is unreachable.
            clock: Time source used only to compute ``reset_at``.
        """
        self._store = store
        self._atomic = atomic
        self._failure_policy = failure_policy
        self._clock = clock

    @property
    def failure_policy(self) -> FailurePolicy:
        return self._failure_policy

    @staticmethod
    def _validate(key: str, capacity: int, window_seconds: int) -> None:
        if not key:
            raise ValueError("key must be a non-empty string")
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

    @staticmethod
    def _counter_key(key: str) -> str:
        return f"{RATE_LIMIT_KEY_PREFIX}{key}"

    def _count_read_then_write(
        self, counter_key: str, capacity: int, window_seconds: int
    ) -> tuple[bool, int]:
        raw = self._store.get(counter_key)
        if raw is None:
            # First request opens the window
            self._store.set_with_ttl(counter_key, "1", window_seconds)
            return True, 1

        current = int(raw)
        if current < capacity:
            count = self._store.increment(counter_key)
            # The key may have expired between get and increment, leaving a
            # counter without a TTL that would never reset
            if self._store.get_ttl(counter_key) is None:
                self._store.expire(counter_key, window_seconds)
            return True, count

        return False, current

    def _count(self, key: str, capacity: int, window_seconds: int) -> tuple[bool, int]:
        """Apply the counting algorithm. Raises StoreUnavailableError."""
        counter_key = self._counter_key(key)
        if self._atomic:
            return self._store.increment_within_limit(counter_key, capacity, window_seconds)
        return self._count_read_then_write(counter_key, capacity, window_seconds)

    def is_allowed(self, key: str, capacity: int, window_seconds: int) -> bool:
        return self.consume(key, capacity, window_seconds).allowed

    def consume(self, key: str, capacity: int, window_seconds: int) -> RateLimitResult:
        """Count one request for key and return the decision with metadata.

        Raises:
            ValueError: If key is empty or capacity/window are invalid.
        """
        self._validate(key, capacity, window_seconds)
        now = int(self._clock())

        try:
            allowed, count = self._count(key, capacity, window_seconds)
        except StoreUnavailableError:
            allowed = self._failure_policy is FailurePolicy.FAIL_OPEN
            logger.error(
                "rate_limit.store_unavailable",
                extra={
                    "key_hash": hash_identifier(key),
                    "failure_policy": self._failure_policy.value,
                    "allowed": allowed,
                },
            )
            return RateLimitResult(
                allowed=allowed,
                limit=capacity,
                remaining=capacity if allowed else 0,
                reset_at=now + window_seconds,
                retry_after_seconds=None if allowed else window_seconds,
            )

        remaining = max(0, capacity - count)
        if allowed:
            logger.debug(
                "rate_limit.check_passed",
                extra={
                    "key_hash": hash_identifier(key),
                    "current": count,
                    "limit": capacity,
                },
            )
            return RateLimitResult(
                allowed=True,
                limit=capacity,
                remaining=remaining,
                reset_at=now + self.get_time_until_reset(key),
                retry_after_seconds=None,
            )

        retry_after = self.get_time_until_reset(key)
        logger.warning(
            "rate_limit.denied",
            extra={
                "key_hash": hash_identifier(key),
                "current": count,
                "limit": capacity,
                "retry_after_s": retry_after,
            },
        )
        return RateLimitResult(
            allowed=False,
            limit=capacity,
            remaining=0,
            reset_at=now + retry_after,
            retry_after_seconds=retry_after,
        )

    def get_remaining_requests(self, key: str, capacity: int) -> int:
        try:
            raw = self._store.get(self._counter_key(key))
        except StoreUnavailableError:
            logger.error(
                "rate_limit.remaining_failed",
                extra={"key_hash": hash_identifier(key)},
            )
            return capacity

        if raw is None:
            return capacity
        return max(0, capacity - int(raw))

    def get_time_until_reset(self, key: str) -> int:
        try:
            ttl = self._store.get_ttl(self._counter_key(key))
        except StoreUnavailableError:
            logger.error(
                "rate_limit.reset_time_failed",
                extra={"key_hash": hash_identifier(key)},
            )
            return 0

        return ttl if ttl is not None and ttl > 0 else 0

    def reset(self, key: str) -> None:
        try:
            self._store.delete(self._counter_key(key))
        except StoreUnavailableError:
            logger.error(
                "rate_limit.reset_failed",
                extra={"key_hash": hash_identifier(key)},
            )
            return

        logger.info("rate_limit.reset", extra={"key_hash": hash_identifier(key)})
