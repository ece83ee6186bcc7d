"""Request-layer glue for applications that mount the auth core."""

from __future__ import annotations

from .cookies import clear_refresh_cookie, read_refresh_cookie, set_refresh_cookie
from .deps import client_fingerprint, extract_bearer, require_admin, require_auth

__all__ = [
    "clear_refresh_cookie",
    "client_fingerprint",
    "extract_bearer",
    "read_refresh_cookie",
    "require_admin",
    "require_auth",
    "set_refresh_cookie",
]
