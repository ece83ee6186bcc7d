"""Unit of Work abstractions and concrete implementations.

This package re-exports the SQLAlchemy-backed unit of work used by the SQL
adapters, alongside the abstract contract.
"""

from .base import UnitOfWork
from .sqlalchemy_uow import SessionFactory, SQLAlchemyUnitOfWork

__all__ = [
    "SessionFactory",
    "UnitOfWork",
    "SQLAlchemyUnitOfWork",
]
