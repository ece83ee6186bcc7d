"""Convenience exports for authcore schemas."""

from __future__ import annotations

from .auth import (
    LoginSchema,
    LogoutResponseSchema,
    RefreshSchema,
    SessionInfoSchema,
    SessionRecordSchema,
    TokenResponseSchema,
    UserInfoSchema,
)

__all__ = [
    "LoginSchema",
    "LogoutResponseSchema",
    "RefreshSchema",
    "SessionInfoSchema",
    "SessionRecordSchema",
    "TokenResponseSchema",
    "UserInfoSchema",
]
