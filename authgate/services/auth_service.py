"""Token lifecycle: login, refresh, logout and session management."""

from __future__ import annotations

import logging
from typing import List

from authgate.core.errors import TokenRevokedError, TokenNotFoundError
from authgate.core.logging import hash_identifier
from authgate.schemas.auth import LoginResponse, MessageResponse, SessionView, TokenRefreshResponse
from authgate.services.authenticator import Authenticator
from authgate.services.refresh_token_service import RefreshTokenService
from authgate.services.token_codec import TokenCodec
from authgate.services.user_view import UserViewService

logger = logging.getLogger(__name__)


class AuthService:
    """Coordinate credential checks, access tokens and refresh tokens.

    A refresh token is the long-lived credential; each refresh yields a new
    access token for the same user and hands back the same refresh token.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        codec: TokenCodec,
        refresh_tokens: RefreshTokenService,
        user_views: UserViewService,
    ) -> None:
        self._authenticator = authenticator
        self._codec = codec
        self._refresh_tokens = refresh_tokens
        self._user_views = user_views

    def login(
        self,
        username_or_email: str,
        password: str,
        *,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> LoginResponse:
        """Authenticate and open a new session.

        Raises:
            InvalidCredentialsError: Unknown user, wrong password or locked account.
            StoreUnavailableError: Durable store unreachable.
        """
        user = self._authenticator.authenticate(username_or_email, password)

        access_token = self._codec.issue(user.id)
        refresh_row = self._refresh_tokens.create_refresh_token(
            user.id, device_info=device_info, ip_address=ip_address
        )

        view = self._user_views.get_user_view(user.id)
        roles = view.roles if view is not None else []

        logger.info("auth.login_succeeded", extra={"user_id": user.id, "token_id": refresh_row.id})
        return LoginResponse(
            access_token=access_token,
            refresh_token=refresh_row.token,
            expires_in=self._codec.access_ttl_seconds,
            id=user.id,
            username=user.username,
            email=user.email,
            roles=roles,
        )

    def refresh(self, refresh_token: str) -> TokenRefreshResponse:
        """Issue a new access token from a valid refresh token.

        Raises:
            TokenNotFoundError: No such refresh token.
            TokenRevokedError: The token was revoked by logout.
            TokenExpiredError: The token expired; its row is deleted.
        """
        row = self._refresh_tokens.find_by_token(refresh_token)
        if row is None:
            logger.warning("auth.refresh_unknown", extra={"token_hash": hash_identifier(refresh_token)})
            raise TokenNotFoundError()

        if row.is_revoked:
            logger.warning("auth.refresh_revoked", extra={"user_id": row.user_id, "token_id": row.id})
            raise TokenRevokedError()

        row = self._refresh_tokens.verify_expiration(row)

        access_token = self._codec.issue(row.user_id)
        logger.info("auth.refresh_succeeded", extra={"user_id": row.user_id, "token_id": row.id})
        return TokenRefreshResponse(
            access_token=access_token,
            refresh_token=row.token,
            expires_in=self._codec.access_ttl_seconds,
        )

    def logout(self, refresh_token: str) -> MessageResponse:
        """Revoke refresh_token. Repeating logout for the same token succeeds.

        Raises:
            TokenNotFoundError: No such refresh token.
        """
        row = self._refresh_tokens.revoke(refresh_token)
        logger.info("auth.logout", extra={"user_id": row.user_id, "token_id": row.id})
        return MessageResponse(message="Log out successful")

    def list_active_sessions(self, user_id: int) -> List[SessionView]:
        return [SessionView(**item) for item in self._refresh_tokens.list_active(user_id)]

    def revoke_all_sessions(self, user_id: int) -> MessageResponse:
        count = self._refresh_tokens.revoke_all_for_user(user_id)
        return MessageResponse(message=f"Revoked {count} session(s)")

    def purge_expired_refresh_tokens(self) -> int:
        return self._refresh_tokens.purge_expired()
