"""Translate raised errors into the service's JSON error envelope.

Body shape: ``{"error": {"code", "message", "request_id", "details"?}}``.

Status policy:
- ValidationAppError: 400
- AuthenticationAppError and every TokenError: 401 (Bearer challenge)
- TokenNotFoundError: 404
- ConflictError: 409
- RateLimitExceededError: 429 with Retry-After
- StoreUnavailableError: 503
- anything else: 500 with a fixed message, details stay in the logs
"""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from authgate.core.config import settings
from authgate.core.errors import (
    AppError,
    AuthenticationAppError,
    ConflictError,
    RateLimitExceededError,
    StoreUnavailableError,
    TokenNotFoundError,
)
from authgate.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_code_for(exc: AppError) -> int:
    """HTTP status for a domain error. Order matters: subclasses first."""

    if isinstance(exc, TokenNotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, AuthenticationAppError):
        return 401
    if isinstance(exc, RateLimitExceededError):
        return 429
    if isinstance(exc, StoreUnavailableError):
        return 503
    return 400


def _rate_limit_headers(exc: RateLimitExceededError) -> dict[str, str]:
    headers = {"Retry-After": str(exc.retry_after)}
    if settings.rate_limit.include_headers and exc.limit is not None:
        headers["X-RateLimit-Limit"] = str(exc.limit)
        headers["X-RateLimit-Remaining"] = "0"
        reset_at = exc.reset_at if exc.reset_at is not None else int(time.time()) + exc.retry_after
        headers["X-RateLimit-Reset"] = str(reset_at)
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError with the status from status_code_for.

    429 responses carry rate limit headers; 401 responses carry a Bearer
    challenge. 5xx outcomes are logged at error level, the rest at warning.
    """
    status_code = status_code_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = _rate_limit_headers(exc)
    elif status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for exceptions no other handler claimed.

    The client gets a fixed message; type and text of the error go to the log.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Install both handlers on app. Call from the app factory."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
