"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, NotRequired, TypedDict


class FailurePolicy(str, Enum):
    """What a call site does when a backing store is unreachable."""

    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    limit: int
    store: str
    operation: str
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


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class ConflictError(AppError):
    """Raised when a write collides with an existing record."""


@dataclass
class InvalidCredentialsError(AuthenticationAppError):
    """Raised when a login attempt does not authenticate."""

    code: str = "invalid_credentials"
    message: str = "Invalid username/email or password"


@dataclass
class TokenError(AuthenticationAppError):
    """Base for every access/refresh token failure. Requires a new login."""

    code: str = "invalid_token"
    message: str = "Invalid token"


@dataclass
class TokenExpiredError(TokenError):
    code: str = "token_expired"
    message: str = "Token has expired. Please make a new signin request"


@dataclass
class TokenRevokedError(TokenError):
    code: str = "token_revoked"
    message: str = "Token has been revoked. Please make a new signin request"


@dataclass
class TokenNotFoundError(TokenError):
    code: str = "token_not_found"
    message: str = "Refresh token is not in database"


@dataclass
class TokenMalformedError(TokenError):
    code: str = "token_malformed"
    message: str = "Invalid JWT token"


@dataclass
class TokenBadSignatureError(TokenError):
    code: str = "token_bad_signature"
    message: str = "Invalid JWT signature"


@dataclass
class TokenUnsupportedError(TokenError):
    code: str = "token_unsupported"
    message: str = "Unsupported JWT token"


@dataclass
class TokenEmptyError(TokenError):
    code: str = "token_empty"
    message: str = "JWT claims string is empty"


@dataclass
class RateLimitExceededError(AppError):
    """Raised when a client exhausted its window for a limited endpoint.

    Attributes:
        key: Composed limiter key ({purpose}:{client identity}).
        retry_after: Seconds until the window resets.
        limit: Capacity of the window.
        reset_at: Epoch second at which the window resets.
    """

    code: str = "rate_limit_exceeded"
    message: str = "Too many requests. Please try again later."
    key: str = ""
    retry_after: int = 0
    limit: int | None = None
    reset_at: int | None = None


@dataclass
class StoreUnavailableError(AppError):
    """Raised when the KV store or the durable store cannot be reached."""

    code: str = "store_unavailable"
    message: str = "A backing store is temporarily unavailable"
