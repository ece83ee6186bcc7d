# authcore/services/auth/dto.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from authcore.services._shared.dto import Fingerprint, Principal

TOKEN_TYPE = "Bearer"

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email (normalized by the coordinator).
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    :param fingerprint: Client context recorded on the new session.
    :type fingerprint: Fingerprint
    """

    email: str
    password: str = field(repr=False)
    fingerprint: Fingerprint = field(default_factory=Fingerprint)


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    :param fingerprint: Client context of the refresh request.
    :type fingerprint: Fingerprint
    """

    refresh_token: str = field(repr=False)
    fingerprint: Fingerprint = field(default_factory=Fingerprint)


@dataclass(frozen=True, slots=True)
class LogoutIn:
    """
    Input DTO for logout.

    Exactly one mode applies: with ``refresh_token`` only its session is
    revoked; otherwise every session of ``principal_id`` is revoked.

    :param refresh_token: Encoded refresh JWT of the session to end.
    :type refresh_token: str | None
    :param principal_id: Authenticated user id (from a verified access token).
    :type principal_id: str | None
    :param fingerprint: Client context for the audit trail.
    :type fingerprint: Fingerprint
    """

    refresh_token: str | None = field(default=None, repr=False)
    principal_id: str | None = None
    fingerprint: Fingerprint = field(default_factory=Fingerprint)


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserInfoOut:
    """Public projection of the authenticated user."""

    id: str
    email: str
    name: str | None
    role: str

    @classmethod
    def from_principal(cls, principal: Principal) -> UserInfoOut:
        return cls(
            id=principal.user_id,
            email=principal.email,
            name=principal.display_name,
            role=principal.role,
        )


@dataclass(frozen=True, slots=True)
class LoginOut:
    """
    Output DTO of a successful login.

    :param access_token: Encoded access JWT.
    :param refresh_token: Encoded refresh JWT (hand it over as an HTTP-only cookie).
    :param expires_in: Access token lifetime in seconds.
    :param refresh_expires_in: Refresh token lifetime in seconds.
    :param session_id: Identifier of the created session.
    :param user: Public user projection.
    :param token_type: Always ``"Bearer"``.
    """

    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_in: int
    session_id: str
    user: UserInfoOut
    token_type: str = TOKEN_TYPE


@dataclass(frozen=True, slots=True)
class RefreshOut:
    """
    Output DTO of a successful refresh.

    ``refresh_token`` is only set when the session was rotated; otherwise the
    client keeps using its current refresh token.
    """

    access_token: str
    expires_in: int
    session_id: str
    user: UserInfoOut
    refresh_token: str | None = None
    refresh_expires_in: int | None = None
    token_type: str = TOKEN_TYPE

    @property
    def rotated(self) -> bool:
        return self.refresh_token is not None


@dataclass(frozen=True, slots=True)
class LogoutOut:
    """Number of sessions this logout revoked (``0`` when already revoked)."""

    revoked_sessions: int


@dataclass(frozen=True, slots=True)
class SessionInfoOut:
    """Session listing entry as shown to its owner."""

    id: str
    ip_address: str | None
    user_agent: str | None
    created_at: datetime
    last_used_at: datetime | None
    expires_at: datetime
    is_current: bool


# ------------------------------ Settings ---------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthSettings:
    """
    Policy knobs of the auth core, decoupled from Flask config.

    :param access_token_ttl: Access token lifetime.
    :param refresh_token_ttl: Refresh token / session lifetime.
    :param max_login_attempts: Failures tolerated per window.
    :param attempt_window: Failure counting window.
    :param lockout: Lock duration once the threshold is reached.
    :param refresh_min_interval: Minimum spacing between refreshes of a session.
    :param rotation_max_age: Rotate sessions older than this.
    :param rotation_max_refresh_count: Rotate sessions refreshed more often than this.
    :param rotate_always: Rotate on every refresh.
    :param single_session_login: Revoke other sessions of the user at login.
    :param reuse_revoke_scope: ``"family"`` or ``"user"``.
    :param anomaly_policy: ``"flag"`` or ``"reauthenticate"``.
    :param ipv4_prefix: Network prefix treated as "same place" for IPv4.
    :param ipv6_prefix: Network prefix treated as "same place" for IPv6.
    """

    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=7)
    max_login_attempts: int = 5
    attempt_window: timedelta = timedelta(minutes=15)
    lockout: timedelta = timedelta(minutes=15)
    refresh_min_interval: timedelta = timedelta(seconds=10)
    rotation_max_age: timedelta = timedelta(hours=24)
    rotation_max_refresh_count: int = 10
    rotate_always: bool = False
    single_session_login: bool = False
    reuse_revoke_scope: str = "family"
    anomaly_policy: str = "flag"
    ipv4_prefix: int = 24
    ipv6_prefix: int = 64

    def __post_init__(self) -> None:
        if self.reuse_revoke_scope not in {"family", "user"}:
            raise ValueError(f"Unknown reuse revoke scope: {self.reuse_revoke_scope!r}")
        if self.anomaly_policy not in {"flag", "reauthenticate"}:
            raise ValueError(f"Unknown anomaly policy: {self.anomaly_policy!r}")
        if self.max_login_attempts < 1:
            raise ValueError("max_login_attempts must be >= 1")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> AuthSettings:
        """
        Build settings from a Flask-style config mapping.

        Missing keys keep the dataclass defaults.

        :param config: Mapping such as ``app.config``.
        :returns: Frozen settings.
        """

        def seconds(key: str, default: timedelta) -> timedelta:
            value = config.get(key)
            return default if value is None else timedelta(seconds=int(value))

        d = cls()
        return cls(
            access_token_ttl=seconds("ACCESS_TOKEN_TTL_SECONDS", d.access_token_ttl),
            refresh_token_ttl=seconds("REFRESH_TOKEN_TTL_SECONDS", d.refresh_token_ttl),
            max_login_attempts=int(config.get("LOGIN_MAX_ATTEMPTS", d.max_login_attempts)),
            attempt_window=seconds("LOGIN_ATTEMPT_WINDOW_SECONDS", d.attempt_window),
            lockout=seconds("LOGIN_LOCKOUT_SECONDS", d.lockout),
            refresh_min_interval=seconds("REFRESH_MIN_INTERVAL_SECONDS", d.refresh_min_interval),
            rotation_max_age=seconds("ROTATION_MAX_AGE_SECONDS", d.rotation_max_age),
            rotation_max_refresh_count=int(
                config.get("ROTATION_MAX_REFRESH_COUNT", d.rotation_max_refresh_count)
            ),
            rotate_always=bool(config.get("ROTATION_ALWAYS", d.rotate_always)),
            single_session_login=bool(config.get("SINGLE_SESSION_LOGIN", d.single_session_login)),
            reuse_revoke_scope=str(config.get("REUSE_REVOKE_SCOPE", d.reuse_revoke_scope)).lower(),
            anomaly_policy=str(config.get("ANOMALY_POLICY", d.anomaly_policy)).lower(),
            ipv4_prefix=int(config.get("ANOMALY_IPV4_PREFIX", d.ipv4_prefix)),
            ipv6_prefix=int(config.get("ANOMALY_IPV6_PREFIX", d.ipv6_prefix)),
        )
