"""Service layer public API.

This package exposes the auth core so callers can import from
:mod:`authcore.services` without knowing internal structure.

Re-exports
----------
- Coordinator (from ``authcore.services.auth.service``)
    * :class:`AuthCoordinator`
    * DTOs: :class:`LoginIn`, :class:`RefreshIn`, :class:`LogoutIn`,
      :class:`LoginOut`, :class:`RefreshOut`, :class:`LogoutOut`,
      :class:`SessionInfoOut`, :class:`AuthSettings`

- Errors (from ``authcore.services._shared.errors``)
    * :class:`AuthError`, :class:`ErrorKind`, :class:`ServiceError`,
      :class:`NotFoundError`
"""

from __future__ import annotations

from authcore.services._shared.errors import AuthError, ErrorKind, NotFoundError, ServiceError
from authcore.services.auth.dto import (
    AuthSettings,
    LoginIn,
    LoginOut,
    LogoutIn,
    LogoutOut,
    RefreshIn,
    RefreshOut,
    SessionInfoOut,
)
from authcore.services.auth.service import AuthCoordinator

__all__ = [
    "AuthCoordinator",
    "AuthError",
    "AuthSettings",
    "ErrorKind",
    "LoginIn",
    "LoginOut",
    "LogoutIn",
    "LogoutOut",
    "NotFoundError",
    "RefreshIn",
    "RefreshOut",
    "ServiceError",
    "SessionInfoOut",
]
