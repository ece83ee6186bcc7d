"""
Unit of Work contract used by the SQL adapters.

A unit spans exactly one adapter call (one ``create``, one
``rotate_atomically`` ...). The conditional ``UPDATE`` and any insert that
depends on it must commit together or not at all.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from authcore.repositories import SessionRepository, UserRepository


class UnitOfWork(ABC):
    """
    Transactional boundary over the ``users`` and ``auth_sessions`` tables.

    Leaving the ``with`` block normally commits; leaving it with an exception
    rolls back and re-raises. Implementations expose:

    - ``users``: :class:`~authcore.repositories.UserRepository`
    - ``sessions``: :class:`~authcore.repositories.SessionRepository`
    """

    users: UserRepository
    sessions: SessionRepository

    @abstractmethod
    def __enter__(self) -> UnitOfWork: ...
    @abstractmethod
    def __exit__(self, exc_type, exc, tb) -> None: ...
    @abstractmethod
    def commit(self) -> None: ...
    @abstractmethod
    def rollback(self) -> None: ...
