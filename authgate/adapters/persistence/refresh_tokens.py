"""Refresh token repository.

Lookups by token value include revoked rows so callers can tell a revoked
token apart from an unknown one.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select, update

from authgate.adapters.persistence.base import SqlRepository
from authgate.adapters.persistence.models import RefreshToken


class RefreshTokenRepository(SqlRepository):
    """Durable storage of refresh tokens."""

    def create(
        self,
        *,
        user_id: int,
        token: str,
        expires_at: datetime,
        device_info: str | None = None,
        ip_address: str | None = None,
        created_at: datetime | None = None,
    ) -> RefreshToken:
        row = RefreshToken(
            token=token,
            user_id=user_id,
            expires_at=expires_at,
            is_revoked=False,
            device_info=device_info,
            ip_address=ip_address,
        )
        if created_at is not None:
            row.created_at = created_at
        with self._unit_of_work("create") as session:
            session.add(row)
            session.flush()
            session.refresh(row)
        return row

    def find_by_token(self, token: str) -> RefreshToken | None:
        with self._unit_of_work("find_by_token") as session:
            return session.scalars(
                select(RefreshToken).where(RefreshToken.token == token)
            ).first()

    def find_active_by_user(self, user_id: int, now: datetime) -> list[RefreshToken]:
        with self._unit_of_work("find_active_by_user") as session:
            return list(
                session.scalars(
                    select(RefreshToken)
                    .where(
                        RefreshToken.user_id == user_id,
                        RefreshToken.is_revoked.is_(False),
                        RefreshToken.expires_at > now,
                    )
                    .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
                )
            )

    def revoke(self, token: str, now: datetime) -> RefreshToken | None:
        """Mark the row for token revoked.

        Returns the row (already-revoked rows are returned unchanged) or None
        when no row matches.
        """
        with self._unit_of_work("revoke") as session:
            row = session.scalars(
                select(RefreshToken).where(RefreshToken.token == token)
            ).first()
            if row is None:
                return None
            if not row.is_revoked:
                row.is_revoked = True
                row.revoked_at = now
            return row

    def revoke_all_for_user(self, user_id: int, now: datetime) -> int:
        with self._unit_of_work("revoke_all_for_user") as session:
            result = session.execute(
                update(RefreshToken)
                .where(RefreshToken.user_id == user_id, RefreshToken.is_revoked.is_(False))
                .values(is_revoked=True, revoked_at=now)
            )
            return result.rowcount or 0

    def delete(self, token_id: int) -> bool:
        with self._unit_of_work("delete") as session:
            result = session.execute(delete(RefreshToken).where(RefreshToken.id == token_id))
            return bool(result.rowcount)

    def delete_expired(self, now: datetime) -> int:
        """Remove every row whose expiry has passed, revoked or not."""
        with self._unit_of_work("delete_expired") as session:
            result = session.execute(delete(RefreshToken).where(RefreshToken.expires_at <= now))
            return result.rowcount or 0
