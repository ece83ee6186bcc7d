"""
SQLAlchemy implementation of UnitOfWork.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.orm import Session

from authcore.repositories import SessionRepository, UserRepository
from authcore.uow.base import UnitOfWork

SessionFactory = Callable[[], Session]


class SQLAlchemyRepositoryContainer:
    """Provide repository instances that share a SQLAlchemy session."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=self.session)
        self.sessions = SessionRepository(session=self.session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    SQLAlchemy-backed UoW owning a short-lived session.

    Each unit opens its own session from ``session_factory`` so concurrent
    requests never share a transaction; the same session is shared across all
    repositories of the unit. Build the factory with
    ``expire_on_commit=False`` so loaded rows stay readable after commit.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        """Initialise the Unit of Work with a fresh session.

        :param session_factory: Callable returning a new :class:`Session`
            (typically a :class:`sqlalchemy.orm.sessionmaker`).
        """
        super().__init__(session=session_factory())

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # No-op: the session is lazily started on the first statement.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                try:
                    self.commit()
                except Exception:
                    self.rollback()
                    raise
            else:
                self.rollback()
        finally:
            self.session.close()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
