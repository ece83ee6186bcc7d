"""
authcore.services._shared.ports
===============================

Collection of *ports* (hexagonal interfaces) that define the contracts
for credential issuance and session-lifecycle infrastructure.

Modules
-------
- :mod:`token_codec`:
    Defines :class:`~.TokenCodec`, signing and verification of access/refresh tokens.

- :mod:`session_store`:
    Defines :class:`~.SessionStore` and :class:`~.InMemorySessionStore`,
    refresh-token sessions with conditional rotation.

- :mod:`login_rate_limiter`:
    Defines :class:`~.LoginRateLimiter`, :class:`~.LoginThrottlePolicy`
    and :class:`~.InMemoryLoginRateLimiter`.

- :mod:`user_directory`:
    Defines :class:`~.UserLookup` and :class:`~.PasswordVerifier`, the
    collaborators owned by user management.

Design Notes
------------
Concrete adapters (Redis, SQLAlchemy, PyJWT, Werkzeug) implement these
interfaces under ``authcore.infra``.
"""

from __future__ import annotations

from .login_rate_limiter import (
    AttemptCounter,
    InMemoryLoginRateLimiter,
    LoginRateLimiter,
    LoginThrottlePolicy,
)
from .session_store import InMemorySessionStore, SessionStore, hash_refresh_token
from .token_codec import TokenCodec
from .user_directory import (
    InMemoryUserDirectory,
    PasswordVerifier,
    UserLookup,
    normalize_identity,
)

__all__ = [
    "AttemptCounter",
    "InMemoryLoginRateLimiter",
    "InMemorySessionStore",
    "InMemoryUserDirectory",
    "LoginRateLimiter",
    "LoginThrottlePolicy",
    "PasswordVerifier",
    "SessionStore",
    "TokenCodec",
    "UserLookup",
    "hash_refresh_token",
    "normalize_identity",
]
