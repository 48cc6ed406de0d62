from __future__ import annotations

from typing import Annotated, List

from fastapi import APIRouter, Depends, Request

from authgate.api.dependencies import get_auth_service, get_registration_service
from authgate.core.rate_limit import (
    login_rule,
    logout_rule,
    rate_limit,
    refresh_token_rule,
    register_rule,
    resolve_client_identity,
)
from authgate.core.security import get_current_user_id
from authgate.schemas.auth import (
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MessageResponse,
    SessionView,
    SignUpRequest,
    TokenRefreshRequest,
    TokenRefreshResponse,
)
from authgate.services.auth_service import AuthService
from authgate.services.registration import RegistrationService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=MessageResponse,
    status_code=201,
    dependencies=[Depends(rate_limit(register_rule))],
)
def register(
    payload: SignUpRequest,
    service: Annotated[RegistrationService, Depends(get_registration_service)],
) -> MessageResponse:
    """Create an account. Log in afterwards to obtain tokens.

    Raises:
        ConflictError: 409 when the username or email is taken.
        RateLimitExceededError: 429 after too many sign-ups from one client.
    """
    return service.register(payload)


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(rate_limit(login_rule))],
)
def login(
    payload: LoginRequest,
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> LoginResponse:
    """Authenticate and return an access token plus a refresh token.

    Raises:
        InvalidCredentialsError: 401 on unknown user, wrong password or locked account.
        RateLimitExceededError: 429 after too many attempts from one client.
    """
    return service.login(
        payload.username_or_email,
        payload.password,
        device_info=(payload.device_info or request.headers.get("User-Agent") or "")[:255] or None,
        ip_address=resolve_client_identity(request),
    )


@router.post(
    "/refresh-token",
    response_model=TokenRefreshResponse,
    dependencies=[Depends(rate_limit(refresh_token_rule))],
)
def refresh_token(
    payload: TokenRefreshRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> TokenRefreshResponse:
    """Exchange a refresh token for a new access token."""
    return service.refresh(payload.refresh_token)


@router.post(
    "/logout",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit(logout_rule))],
)
def logout(
    payload: LogoutRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Revoke a refresh token. Access tokens stay valid until they expire."""
    return service.logout(payload.refresh_token)


@router.get("/sessions", response_model=List[SessionView])
def list_sessions(
    user_id: Annotated[int, Depends(get_current_user_id)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> List[SessionView]:
    return service.list_active_sessions(user_id)


@router.post("/sessions/revoke-all", response_model=MessageResponse)
def revoke_all_sessions(
    user_id: Annotated[int, Depends(get_current_user_id)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Sign the caller out of every device."""
    return service.revoke_all_sessions(user_id)
