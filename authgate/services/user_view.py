"""Cached projection of a user with roles and permissions."""

from __future__ import annotations

import logging
from typing import Any

from authgate.adapters.persistence.users import UserRepository
from authgate.schemas.auth import UserView
from authgate.utils.view_cache import CacheName, ViewCache

logger = logging.getLogger(__name__)


class UserViewService:
    """Build ``UserView`` objects through the view cache.

    Base profile, role names and permission names are cached separately so
    each follows its own TTL.
    """

    def __init__(self, users: UserRepository, cache: ViewCache) -> None:
        self._users = users
        self._cache = cache

    def _load_profile(self, user_id: int) -> dict[str, Any] | None:
        user = self._users.get_by_id(user_id)
        if user is None:
            return None
        return {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "enabled": not user.is_account_locked,
        }

    def get_user_view(self, user_id: int) -> UserView | None:
        """Return the view for user_id, or None if the user does not exist."""

        profile = self._cache.get_or_load(
            CacheName.USERS, user_id, lambda: self._load_profile(user_id)
        )
        if profile is None:
            return None

        roles = self._cache.get_or_load(
            CacheName.ROLES, user_id, lambda: self._users.get_role_names(user_id)
        )
        permissions = self._cache.get_or_load(
            CacheName.PERMISSIONS, user_id, lambda: self._users.get_permission_names(user_id)
        )
        return UserView(**profile, roles=roles, permissions=permissions)

