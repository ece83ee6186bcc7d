"""Persistence-only repositories sharing a Unit of Work session."""

from authcore.repositories.session import SessionRepository
from authcore.repositories.user import UserRepository

__all__ = [
    "SessionRepository",
    "UserRepository",
]
