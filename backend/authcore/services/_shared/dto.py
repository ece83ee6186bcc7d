# comments in English; reST docstrings strict
"""Shared records exchanged between the auth services and their ports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

ADMIN_ROLE = "admin"


# ------------------------------ Identity ----------------------------------- #


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Read-only snapshot of a user as seen by the auth core.

    :param user_id: Opaque user identifier.
    :type user_id: str
    :param email: Normalized login email.
    :type email: str
    :param role: Role name (``"admin"`` grants the admin flag).
    :type role: str
    :param is_active: Whether the account may authenticate.
    :type is_active: bool
    :param display_name: Optional human-friendly name.
    :type display_name: str | None
    :param password_hash: Stored credential hash; never part of ``repr``.
    :type password_hash: str | None
    """

    user_id: str
    email: str
    role: str = "user"
    is_active: bool = True
    display_name: str | None = None
    password_hash: str | None = field(default=None, repr=False, compare=False)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """
    Client context observed on a request.

    :param ip_address: Remote address (after proxy resolution).
    :type ip_address: str | None
    :param user_agent: Raw ``User-Agent`` header.
    :type user_agent: str | None
    """

    ip_address: str | None = None
    user_agent: str | None = None


# ------------------------------- Tokens ------------------------------------ #


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """
    Verified claims of an access token.

    :param subject: User id the token was issued to.
    :param email: Email snapshot at issuance.
    :param role: Role snapshot at issuance.
    :param is_admin: ``role == "admin"`` at issuance.
    :param issued_at: ``iat`` (UTC).
    :param not_before: ``nbf`` (UTC).
    :param expires_at: ``exp`` (UTC).
    :param issuer: ``iss``.
    :param token_id: ``jti``.
    """

    subject: str
    email: str
    role: str
    is_admin: bool
    issued_at: datetime
    not_before: datetime
    expires_at: datetime
    issuer: str
    token_id: str


@dataclass(frozen=True, slots=True)
class RefreshClaims:
    """Structural claims of a refresh token (``sub``, ``iat``, ``exp``, ``jti``)."""

    subject: str
    issued_at: datetime
    expires_at: datetime
    token_id: str


# ------------------------------ Sessions ----------------------------------- #


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """
    Durable refresh-token session.

    Only the SHA-256 hex digest of the raw refresh token is ever stored.

    :ivar id: Session identifier (uuid4 string).
    :ivar user_id: Owner.
    :ivar refresh_token_hash: Hex digest of the raw refresh token (unique).
    :ivar family_id: Rotation lineage; shared by every descendant of a login.
    :ivar created_at: Creation instant (UTC).
    :ivar expires_at: Absolute expiry (UTC).
    :ivar parent_session_id: Session this one superseded, if any.
    :ivar ip_address: Creation IP.
    :ivar user_agent: Creation user agent.
    :ivar last_ip: IP seen on the last successful refresh.
    :ivar last_user_agent: User agent seen on the last successful refresh.
    :ivar last_used_at: Last successful refresh (UTC).
    :ivar refresh_count: Successful non-rotating refreshes.
    :ivar revoked_at: Revocation instant; set once, never cleared.
    :ivar was_rotated: ``True`` when revoked *because* it was superseded.
    :ivar rotated_at: Supersession instant.
    """

    id: str
    user_id: str
    refresh_token_hash: str
    family_id: str
    created_at: datetime
    expires_at: datetime
    parent_session_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    last_ip: str | None = None
    last_user_agent: str | None = None
    last_used_at: datetime | None = None
    refresh_count: int = 0
    revoked_at: datetime | None = None
    was_rotated: bool = False
    rotated_at: datetime | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def last_activity_at(self) -> datetime:
        """Last successful refresh, or creation when never refreshed."""
        return self.last_used_at or self.created_at

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_active(self, now: datetime) -> bool:
        return not self.is_revoked and not self.is_expired(now)


@dataclass(frozen=True, slots=True)
class SessionMetadata:
    """
    Values written on a successful non-rotating refresh.

    :param last_used_at: Refresh instant.
    :param last_ip: Client IP (may be unknown).
    :param last_user_agent: Client user agent (may be unknown).
    :param refresh_count: New refresh count.
    """

    last_used_at: datetime
    last_ip: str | None
    last_user_agent: str | None
    refresh_count: int


class ActivityAction(str, Enum):
    """Audit actions recorded against a session."""

    LOGIN = "login"
    REFRESH = "refresh"
    ROTATE = "rotate"
    LOGOUT = "logout"
    REVOKE = "revoke"
    REUSE_DETECTED = "reuse_detected"
    ANOMALY = "anomaly"
    DEACTIVATED = "deactivated"


@dataclass(frozen=True, slots=True)
class SessionActivityRecord:
    """Append-only audit entry for a session."""

    session_id: str
    action: ActivityAction
    created_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
