"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask or HTTP
helpers. They are the stable contract between the session stores, the
rotation engine and the coordinator.

The translation to HTTP responses (RFC 7807) is handled by
``authcore/core/errors.py``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

log = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from stores, adapters or services.
    """

    pass


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in a store or directory.

    :param entity: Entity name (e.g., "Session").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a uniqueness rule is violated (e.g., duplicated token hash).

    :param entity: Entity name (e.g., "Session").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:  # pragma: no cover
        return f"Conflict on {self.entity}: {self.detail}"


# --------------------------------------------------------------------------- #
# Authentication errors
# --------------------------------------------------------------------------- #


class ErrorKind(str, Enum):
    """Closed set of authentication failure kinds callers switch on."""

    INVALID_CREDENTIALS = "invalid_credentials"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    ACCOUNT_INACTIVE = "account_inactive"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    REFRESH_TOKEN_EXPIRED = "refresh_token_expired"
    SESSION_REVOKED = "session_revoked"
    REFRESH_TOKEN_REUSED = "refresh_token_reused"
    REFRESH_TOO_SOON = "refresh_too_soon"
    USER_DEACTIVATED = "user_deactivated"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    INVALID_TOKEN = "invalid_token"
    REAUTHENTICATION_REQUIRED = "reauthentication_required"


# Client-safe messages; they never tell an unknown email from a bad password.
_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_CREDENTIALS: "Invalid email or password.",
    ErrorKind.TOO_MANY_ATTEMPTS: "Too many failed login attempts. Try again later.",
    ErrorKind.ACCOUNT_INACTIVE: "Account is inactive.",
    ErrorKind.INVALID_REFRESH_TOKEN: "Refresh token is invalid.",
    ErrorKind.REFRESH_TOKEN_EXPIRED: "Refresh token has expired. Please sign in again.",
    ErrorKind.SESSION_REVOKED: "Session has been revoked. Please sign in again.",
    ErrorKind.REFRESH_TOKEN_REUSED: "Refresh token reuse detected. Please sign in again.",
    ErrorKind.REFRESH_TOO_SOON: "Refresh requested too soon. Try again shortly.",
    ErrorKind.USER_DEACTIVATED: "Account has been deactivated.",
    ErrorKind.STORAGE_UNAVAILABLE: "Authentication storage is temporarily unavailable.",
    ErrorKind.INVALID_TOKEN: "Token is invalid or expired.",
    ErrorKind.REAUTHENTICATION_REQUIRED: "Please sign in again to continue.",
}


class AuthError(ServiceError):
    """
    Authentication failure carrying a closed :class:`ErrorKind`.

    :param kind: Failure kind.
    :type kind: ErrorKind
    :param retry_after: Seconds the client should wait before retrying, when known.
    :type retry_after: int | None
    """

    def __init__(self, kind: ErrorKind, *, retry_after: int | None = None) -> None:
        self.kind = kind
        self.retry_after = retry_after
        self.message = _MESSAGES[kind]
        super().__init__(self.message)

    @property
    def transient(self) -> bool:
        """``True`` when the caller may retry the same request later."""
        return self.kind is ErrorKind.STORAGE_UNAVAILABLE

    def __repr__(self) -> str:
        return f"AuthError(kind={self.kind.value!r}, retry_after={self.retry_after!r})"


# Connectivity/timeout failures of the SQL and Redis backends.
TRANSIENT_STORAGE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, RedisError)


@contextmanager
def storage_errors() -> Iterator[None]:
    """
    Translate transient persistence failures into ``STORAGE_UNAVAILABLE``.

    Integrity errors and :class:`ServiceError` subclasses propagate untouched.

    :raises AuthError: When SQLAlchemy or Redis report a connectivity/timeout issue.
    """
    try:
        yield
    except TRANSIENT_STORAGE_ERRORS as exc:
        log.error(
            "session storage unavailable: %s",
            type(exc).__name__,
            extra={"event": "storage_unavailable"},
            exc_info=True,
        )
        raise AuthError(ErrorKind.STORAGE_UNAVAILABLE) from exc
