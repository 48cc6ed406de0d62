"""Self-service account creation."""

from __future__ import annotations

import logging

from authgate.adapters.persistence.users import UserRepository
from authgate.core.errors import ConflictError
from authgate.core.logging import hash_identifier
from authgate.schemas.auth import MessageResponse, SignUpRequest
from authgate.services.authenticator import hash_password

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "ROLE_USER"


class RegistrationService:
    def __init__(self, users: UserRepository) -> None:
        self._users = users

    def register(self, request: SignUpRequest) -> MessageResponse:
        """Create an account with the default role.

        Raises:
            ConflictError: The username or the email is already registered.
            StoreUnavailableError: Durable store unreachable.
        """
        email = request.email.strip().lower()

        if self._users.exists_by_username(request.username):
            logger.info("auth.register_conflict", extra={"field": "username"})
            raise ConflictError(code="username_taken", message="Username is already taken")
        if self._users.exists_by_email(email):
            logger.info("auth.register_conflict", extra={"field": "email"})
            raise ConflictError(code="email_taken", message="Email address is already in use")

        user = self._users.create(
            username=request.username,
            email=email,
            password_hash=hash_password(request.password),
            roles=[DEFAULT_ROLE],
            first_name=request.first_name,
            last_name=request.last_name,
        )
        logger.info(
            "auth.registered",
            extra={"user_id": user.id, "email_hash": hash_identifier(email)},
        )
        return MessageResponse(message="User registered successfully")
