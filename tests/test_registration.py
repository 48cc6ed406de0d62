"""Tests for account registration and the user repository's conflict handling."""

import pytest

from authgate.core.errors import ConflictError
from authgate.schemas.auth import SignUpRequest
from authgate.services.authenticator import PasswordAuthenticator
from authgate.services.registration import DEFAULT_ROLE, RegistrationService


@pytest.fixture
def service(user_repo) -> RegistrationService:
    return RegistrationService(user_repo)


def _request(**overrides) -> SignUpRequest:
    fields = {
        "username": "dora",
        "email": "Dora@Example.com",
        "password": "explorer-password",
        "first_name": "Dora",
    }
    fields.update(overrides)
    return SignUpRequest(**fields)


class TestRegistrationService:
    def test_creates_user_with_default_role(self, service: RegistrationService, user_repo) -> None:
        result = service.register(_request())

        assert result.message == "User registered successfully"
        user = user_repo.find_by_username_or_email("dora@example.com")
        assert user is not None
        assert user.first_name == "Dora"
        assert user_repo.get_role_names(user.id) == [DEFAULT_ROLE]

    def test_password_is_stored_hashed_and_verifies(self, service: RegistrationService, user_repo) -> None:
        service.register(_request())

        user = user_repo.find_by_username_or_email("dora")
        assert user.password_hash != "explorer-password"
        assert PasswordAuthenticator(user_repo).authenticate("dora", "explorer-password").id == user.id

    def test_taken_username(self, service: RegistrationService, alice) -> None:
        with pytest.raises(ConflictError) as exc_info:
            service.register(_request(username="alice"))

        assert exc_info.value.code == "username_taken"

    def test_taken_email_ignores_case(self, service: RegistrationService, alice) -> None:
        with pytest.raises(ConflictError) as exc_info:
            service.register(_request(email="ALICE@example.com"))

        assert exc_info.value.code == "email_taken"


class TestUserRepositoryConflicts:
    def test_exists_lookups(self, user_repo, alice) -> None:
        assert user_repo.exists_by_username("alice") is True
        assert user_repo.exists_by_username("nobody") is False
        assert user_repo.exists_by_email("alice@example.com") is True

    def test_unique_violation_is_a_conflict_not_an_outage(self, user_repo, alice) -> None:
        # Two concurrent sign-ups can both pass the exists checks
        with pytest.raises(ConflictError) as exc_info:
            user_repo.create(username="alice", email="other@example.com", password_hash="x")

        assert exc_info.value.details == {"store": "database", "operation": "create"}
