"""Refresh token lifecycle rules on top of the durable store.

States: Active -> Expired, or Active -> Revoked. Both are terminal; nothing
re-activates a token. Expired rows are deleted lazily when presented and by a
periodic sweep.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from authgate.adapters.persistence.models import RefreshToken, as_utc
from authgate.adapters.persistence.refresh_tokens import RefreshTokenRepository
from authgate.core.errors import StoreUnavailableError, TokenExpiredError, TokenNotFoundError
from authgate.core.logging import hash_identifier
from authgate.utils.view_cache import CacheName, ViewCache

logger = logging.getLogger(__name__)

TOKEN_BYTES = 48


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_token_value() -> str:
    """Opaque, URL-safe random token (64 characters)."""
    return secrets.token_urlsafe(TOKEN_BYTES)


class RefreshTokenService:
    """Create, check, revoke and purge refresh tokens."""

    def __init__(
        self,
        repository: RefreshTokenRepository,
        *,
        ttl_seconds: int,
        cache: ViewCache | None = None,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._repository = repository
        self._ttl = timedelta(seconds=ttl_seconds)
        self._cache = cache
        self._now = now

    def create_refresh_token(
        self,
        user_id: int,
        *,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> RefreshToken:
        now = self._now()
        row = self._repository.create(
            user_id=user_id,
            token=generate_token_value(),
            expires_at=now + self._ttl,
            created_at=now,
            device_info=device_info,
            ip_address=ip_address,
        )
        self._evict_sessions(user_id)
        logger.info(
            "refresh_token.created",
            extra={"user_id": user_id, "token_id": row.id},
        )
        return row

    def find_by_token(self, token: str) -> RefreshToken | None:
        return self._repository.find_by_token(token)

    def verify_expiration(self, row: RefreshToken) -> RefreshToken:
        """Return row if it has not expired; otherwise delete it and raise.

        Raises:
            TokenExpiredError: ``expires_at`` is in the past.
        """
        if row.is_expired(self._now()):
            self._repository.delete(row.id)
            self._evict_sessions(row.user_id)
            logger.info(
                "refresh_token.expired_removed",
                extra={"user_id": row.user_id, "token_id": row.id},
            )
            raise TokenExpiredError()
        return row

    def revoke(self, token: str) -> RefreshToken:
        """Revoke token. Revoking an already-revoked token changes nothing.

        Raises:
            TokenNotFoundError: No row holds this token value.
        """
        row = self._repository.revoke(token, self._now())
        if row is None:
            logger.warning("refresh_token.revoke_unknown", extra={"token_hash": hash_identifier(token)})
            raise TokenNotFoundError()

        self._evict_sessions(row.user_id)
        logger.info(
            "refresh_token.revoked",
            extra={"user_id": row.user_id, "token_id": row.id},
        )
        return row

    def revoke_all_for_user(self, user_id: int) -> int:
        count = self._repository.revoke_all_for_user(user_id, self._now())
        self._evict_sessions(user_id)
        logger.info("refresh_token.revoked_all", extra={"user_id": user_id, "count": count})
        return count

    def list_active(self, user_id: int) -> list[dict[str, Any]]:
        """Active sessions of user_id, newest first, without token values.

        A cached listing can outlive sessions that expired or were swept
        since it was stored, so entries past ``expires_at`` are dropped on
        every read.
        """

        def load() -> list[dict[str, Any]]:
            return [
                {
                    "id": row.id,
                    "device_info": row.device_info,
                    "ip_address": row.ip_address,
                    "created_at": as_utc(row.created_at).isoformat(),
                    "expires_at": as_utc(row.expires_at).isoformat(),
                }
                for row in self._repository.find_active_by_user(user_id, self._now())
            ]

        if self._cache is None:
            return load()

        now = self._now()
        return [
            session
            for session in self._cache.get_or_load(CacheName.REFRESH_TOKENS, user_id, load)
            if datetime.fromisoformat(session["expires_at"]) > now
        ]

    def purge_expired(self) -> int:
        """Delete every expired row. Returns the number removed."""
        removed = self._repository.delete_expired(self._now())
        logger.info("refresh_token.sweep", extra={"removed": removed})
        return removed

    def _evict_sessions(self, user_id: int) -> None:
        if self._cache is not None:
            self._cache.evict(CacheName.REFRESH_TOKENS, user_id)


async def sweep_expired_forever(
    service_factory: Callable[[], RefreshTokenService],
    interval_seconds: int,
) -> None:
    """Purge expired refresh tokens every interval_seconds until cancelled.

    The purge is a blocking database call, so it runs in a worker thread.
    A failed sweep is logged and retried on the next tick.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(service_factory().purge_expired)
        except StoreUnavailableError:
            logger.error("refresh_token.sweep_failed")
        except Exception as exc:
            logger.exception(
                "refresh_token.sweep_crashed",
                extra={"error_type": type(exc).__name__},
            )
