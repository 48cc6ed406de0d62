"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from authgate.core.errors import (
    AppError,
    AuthenticationAppError,
    ConflictError,
    InvalidCredentialsError,
    RateLimitExceededError,
    StoreUnavailableError,
    TokenExpiredError,
    TokenNotFoundError,
    ValidationAppError,
)
from authgate.core.exception_handlers import (
    general_exception_handler,
    setup_exception_handlers,
    status_code_for,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers)


class TestStatusMapping:
    """Domain error → HTTP status."""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (ValidationAppError(code="bad", message="bad"), 400),
            (AuthenticationAppError(code="nope", message="nope"), 401),
            (InvalidCredentialsError(), 401),
            (TokenExpiredError(), 401),
            (TokenNotFoundError(), 404),
            (ConflictError(code="username_taken", message="taken"), 409),
            (RateLimitExceededError(retry_after=5, limit=5), 429),
            (StoreUnavailableError(), 503),
        ],
    )
    def test_status_code_for(self, error: AppError, expected: int) -> None:
        assert status_code_for(error) == expected


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_includes_details(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify ValidationAppError returns 400 with details."""
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="invalid_signing_key",
                message="JWT secret too short",
                details={"hint": "openssl rand -base64 64"},
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "invalid_signing_key"
        assert data["error"]["details"] == {"hint": "openssl rand -base64 64"}
        assert "request_id" in data["error"]

    def test_token_error_returns_401_with_challenge(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify token failures return 401 and a Bearer challenge."""
        @app_with_handlers.get("/test-token")
        async def test_endpoint():
            raise TokenExpiredError()

        response = client.get("/test-token")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"]["code"] == "token_expired"
        assert "details" not in response.json()["error"]

    def test_rate_limit_error_sets_headers(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify 429 carries Retry-After and X-RateLimit-* headers."""
        @app_with_handlers.get("/test-429")
        async def test_endpoint():
            raise RateLimitExceededError(
                message="Too many login attempts.",
                details={"retry_after": 42},
                key="login:1.2.3.4",
                retry_after=42,
                limit=5,
                reset_at=1_700_000_042,
            )

        response = client.get("/test-429")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1700000042"
        assert response.json()["error"]["details"] == {"retry_after": 42}
        # The composed key (client address) is never echoed back
        assert "1.2.3.4" not in response.text

    @patch("authgate.core.exception_handlers.settings")
    def test_rate_limit_headers_can_be_disabled(self, mock_settings, client: TestClient, app_with_handlers: FastAPI):
        """Only Retry-After remains when X-RateLimit-* headers are off."""
        mock_settings.rate_limit.include_headers = False

        @app_with_handlers.get("/test-429-plain")
        async def test_endpoint():
            raise RateLimitExceededError(retry_after=3, limit=5)

        response = client.get("/test-429-plain")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "3"
        assert "X-RateLimit-Limit" not in response.headers

    def test_store_unavailable_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-503")
        async def test_endpoint():
            raise StoreUnavailableError(details={"store": "database", "operation": "revoke"})

        response = client.get("/test-503")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "store_unavailable"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_logic(self):
        """Verify general_exception_handler returns correct structure."""
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: database connection failed")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "database connection" not in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_general_exception_handler_never_leaks_stack_trace(self):
        """Verify stack traces are never included in response."""
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("Test error with details")))

        response_text = bytes(response.body).decode()
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers
