"""User, role and permission lookups."""

from __future__ import annotations

from sqlalchemy import or_, select

from authgate.adapters.persistence.base import SqlRepository
from authgate.adapters.persistence.models import Role, User


class UserRepository(SqlRepository):
    """Read access to users plus the seeding used by scripts and tests."""

    def get_by_id(self, user_id: int) -> User | None:
        with self._unit_of_work("get_by_id") as session:
            return session.get(User, user_id)

    def find_by_username_or_email(self, identity: str) -> User | None:
        with self._unit_of_work("find_by_username_or_email") as session:
            return session.scalars(
                select(User).where(or_(User.username == identity, User.email == identity))
            ).first()

    def exists_by_username(self, username: str) -> bool:
        with self._unit_of_work("exists_by_username") as session:
            return session.scalar(select(User.id).where(User.username == username)) is not None

    def exists_by_email(self, email: str) -> bool:
        with self._unit_of_work("exists_by_email") as session:
            return session.scalar(select(User.id).where(User.email == email)) is not None

    def get_role_names(self, user_id: int) -> list[str]:
        user = self.get_by_id(user_id)
        if user is None:
            return []
        return sorted(role.name for role in user.roles)

    def get_permission_names(self, user_id: int) -> list[str]:
        user = self.get_by_id(user_id)
        if user is None:
            return []
        return sorted({perm.name for role in user.roles for perm in role.permissions})

    def create(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        roles: list[str] | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        """Insert a user, creating any missing role by name."""
        with self._unit_of_work("create") as session:
            role_rows: list[Role] = []
            for name in roles or []:
                role = session.scalars(select(Role).where(Role.name == name)).first()
                if role is None:
                    role = Role(name=name, permissions=[])
                    session.add(role)
                role_rows.append(role)

            user = User(
                username=username,
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                roles=role_rows,
            )
            session.add(user)
            session.flush()
            session.refresh(user)
            return user
