"""Dependency providers wiring services for the HTTP layer.

Routes receive services through ``Depends``; tests swap them with
``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends

from authgate.adapters.kv.factory import get_kv_store
from authgate.adapters.persistence import RefreshTokenRepository, UserRepository
from authgate.core.config import settings
from authgate.services.auth_service import AuthService
from authgate.services.authenticator import PasswordAuthenticator
from authgate.services.refresh_token_service import RefreshTokenService
from authgate.services.registration import RegistrationService
from authgate.services.token_codec import TokenCodec, get_token_codec
from authgate.services.user_view import UserViewService
from authgate.utils.view_cache import ViewCache

_view_cache: ViewCache | None = None


def get_view_cache() -> ViewCache:
    """Process-wide view cache (its hit/miss counters span requests)."""

    global _view_cache

    if _view_cache is None:
        _view_cache = ViewCache(get_kv_store(), settings.cache)
    return _view_cache


def reset_view_cache() -> None:
    global _view_cache
    _view_cache = None


def build_refresh_token_service() -> RefreshTokenService:
    return RefreshTokenService(
        RefreshTokenRepository(),
        ttl_seconds=settings.jwt.refresh_token_ttl_seconds,
        cache=get_view_cache(),
    )


def get_refresh_token_service() -> RefreshTokenService:
    return build_refresh_token_service()


def get_user_view_service(cache: ViewCache = Depends(get_view_cache)) -> UserViewService:
    return UserViewService(UserRepository(), cache)


def get_auth_service(
    codec: TokenCodec = Depends(get_token_codec),
    refresh_tokens: RefreshTokenService = Depends(get_refresh_token_service),
    user_views: UserViewService = Depends(get_user_view_service),
) -> AuthService:
    return AuthService(
        authenticator=PasswordAuthenticator(UserRepository()),
        codec=codec,
        refresh_tokens=refresh_tokens,
        user_views=user_views,
    )


def get_registration_service() -> RegistrationService:
    return RegistrationService(UserRepository())
