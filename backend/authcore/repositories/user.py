"""User repository for credential lookups."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from authcore.models.user import User
from authcore.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It NEVER issues tokens or sessions; it only reads and writes user rows.
    """

    model = User

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == email.lower().strip())
        result = self.session.execute(stmt).scalars().first()
        return cast(User | None, result)

    def set_active(self, user_id: str, active: bool) -> bool:
        """Toggle ``is_active``. :returns: ``True`` if the user exists."""
        return self.update_where(User.id == user_id, values={"is_active": active}) == 1
