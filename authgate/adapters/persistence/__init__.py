"""Durable store adapters (SQLAlchemy)."""

from __future__ import annotations

from authgate.adapters.persistence.base import TOKEN_STORE_FAILURE_POLICY
from authgate.adapters.persistence.refresh_tokens import RefreshTokenRepository
from authgate.adapters.persistence.users import UserRepository

__all__ = ["TOKEN_STORE_FAILURE_POLICY", "RefreshTokenRepository", "UserRepository"]
