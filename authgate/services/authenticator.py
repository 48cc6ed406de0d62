"""Credential verification for login.

The lifecycle manager only needs "who is this, if anyone"; hashing policy
lives here behind the ``Authenticator`` protocol so it can be swapped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NoReturn, Protocol

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

from authgate.adapters.persistence.users import UserRepository
from authgate.core.errors import InvalidCredentialsError
from authgate.core.logging import hash_identifier

logger = logging.getLogger(__name__)

_hasher = PasswordHasher(type=Type.ID)


def hash_password(password: str) -> str:
    """Argon2id hash for storage in ``users.password_hash``."""
    return _hasher.hash(password)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Principal produced by a successful authentication."""

    id: int
    username: str
    email: str


class Authenticator(Protocol):
    def authenticate(self, identity: str, password: str) -> AuthenticatedUser:
        """Return the principal or raise InvalidCredentialsError."""
        ...


class PasswordAuthenticator:
    """Authenticate by username or email against argon2 hashes."""

    def __init__(self, users: UserRepository) -> None:
        self._users = users

    def authenticate(self, identity: str, password: str) -> AuthenticatedUser:
        user = self._users.find_by_username_or_email(identity)
        if user is None:
            # Hash anyway so unknown users cost the same as wrong passwords
            _hasher.hash(password)
            self._reject(identity, "unknown_user")

        try:
            _hasher.verify(user.password_hash, password)
        except (VerificationError, InvalidHashError):
            self._reject(identity, "password_mismatch")

        if user.is_account_locked:
            self._reject(identity, "account_locked")

        return AuthenticatedUser(id=user.id, username=user.username, email=user.email)

    @staticmethod
    def _reject(identity: str, reason: str) -> NoReturn:
        logger.warning(
            "auth.login_rejected",
            extra={"identity_hash": hash_identifier(identity), "reason": reason},
        )
        raise InvalidCredentialsError()
