# comments in English; reST docstrings
from __future__ import annotations

from dataclasses import dataclass

from authcore.models.user import User
from authcore.services._shared.dto import Principal
from authcore.services._shared.errors import NotFoundError
from authcore.services._shared.ports import UserLookup, normalize_identity
from authcore.uow import SessionFactory, SQLAlchemyUnitOfWork


def to_principal(user: User) -> Principal:
    return Principal(
        user_id=str(user.id),
        email=user.email,
        role=user.role,
        is_active=bool(user.is_active),
        display_name=user.full_name or user.username,
        password_hash=user.password_hash,
    )


@dataclass(slots=True)
class SqlAlchemyUserDirectory(UserLookup):
    """
    Read-only :class:`UserLookup` over the ``users`` table.

    :param session_factory: Callable returning a new SQLAlchemy session.
    """

    session_factory: SessionFactory

    def find_by_email(self, email: str) -> Principal:
        key = normalize_identity(email)
        with SQLAlchemyUnitOfWork(self.session_factory) as uow:
            user = uow.users.get_by_email(key)
            if user is None:
                raise NotFoundError("User", key)
            return to_principal(user)

    def find_by_id(self, user_id: str) -> Principal:
        with SQLAlchemyUnitOfWork(self.session_factory) as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return to_principal(user)
