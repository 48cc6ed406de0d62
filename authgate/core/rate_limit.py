"""Rate limiting dependency for FastAPI routes.

This module wires the fixed-window limiter into the HTTP layer.

Each limited endpoint declares a ``RateLimitRule`` and attaches
``Depends(rate_limit(rule))``. The counter key is
``{rule.purpose_key}:{client identity}``, so each endpoint has its own budget
per client.

Client identity is the first entry of ``X-Forwarded-For`` when present
(deployments behind a proxy), else the socket peer address.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from authgate.adapters.kv.factory import get_kv_store
from authgate.adapters.rate_limit.base import AbstractRateLimiter
from authgate.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from authgate.core.config import settings
from authgate.core.errors import RateLimitExceededError
from authgate.core.logging import hash_identifier

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."
UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class RateLimitRule:
    """Limit attached to one endpoint.

    Attributes:
        purpose_key: Names the endpoint budget, e.g. ``login``.
        capacity: Max requests per window.
        window_seconds: Window length.
        message: Client-facing text of the 429 response.
    """

    purpose_key: str
    capacity: int = 10
    window_seconds: int = 60
    message: str = DEFAULT_RATE_LIMIT_MESSAGE


def register_rule() -> RateLimitRule:
    cfg = settings.rate_limit
    return RateLimitRule(
        "register", cfg.register_capacity, cfg.register_window_seconds, cfg.register_message
    )


def login_rule() -> RateLimitRule:
    cfg = settings.rate_limit
    return RateLimitRule("login", cfg.login_capacity, cfg.login_window_seconds, cfg.login_message)


def refresh_token_rule() -> RateLimitRule:
    cfg = settings.rate_limit
    return RateLimitRule(
        "refresh-token", cfg.refresh_capacity, cfg.refresh_window_seconds, cfg.refresh_message
    )


def logout_rule() -> RateLimitRule:
    cfg = settings.rate_limit
    return RateLimitRule("logout", cfg.logout_capacity, cfg.logout_window_seconds, cfg.logout_message)


_limiter: AbstractRateLimiter | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide limiter backed by the shared store."""

    global _limiter

    if _limiter is None:
        _limiter = FixedWindowRateLimiter(get_kv_store(), atomic=settings.rate_limit.atomic)
    return _limiter


def set_rate_limiter(limiter: AbstractRateLimiter | None) -> None:
    """Replace the process-wide limiter (None rebuilds it on next use)."""

    global _limiter
    _limiter = limiter


def resolve_client_identity(request: Request) -> str:
    """Return the address the limit is charged to.

    Args:
        request: FastAPI request.

    Returns:
        str: First ``X-Forwarded-For`` entry, peer host, or ``"unknown"``.
    """

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def build_rate_limit_key(rule: RateLimitRule, request: Request) -> str:
    return f"{rule.purpose_key}:{resolve_client_identity(request)}"


def rate_limit(
    rule: RateLimitRule | Callable[[], RateLimitRule],
) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency enforcing rule.

    Usage:
        @router.post("/login", dependencies=[Depends(rate_limit(login_rule))])

    ``rule`` may be a callable so limits are read from settings per request.

    Raises:
        RateLimitExceededError: The client exhausted the window. The protected
            handler does not run.
    """

    async def enforce_rate_limit(request: Request) -> None:
        if not settings.rate_limit.enabled:
            return

        current = rule() if callable(rule) else rule
        key = build_rate_limit_key(current, request)
        limiter = get_rate_limiter()

        # Store calls block; keep them off the event loop
        result = await run_in_threadpool(
            limiter.consume, key, current.capacity, current.window_seconds
        )
        if result.allowed:
            return

        retry_after = result.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "purpose": current.purpose_key,
                "key_hash": hash_identifier(key),
                "limit": result.limit,
                "window_s": current.window_seconds,
                "retry_after_s": retry_after,
                "path": request.url.path,
            },
        )
        raise RateLimitExceededError(
            message=current.message,
            details={"retry_after": retry_after},
            key=key,
            retry_after=retry_after,
            limit=result.limit,
            reset_at=result.reset_at,
        )

    return enforce_rate_limit
