# authcore/services/auth/rotation.py
"""
Refresh validation, reuse detection and refresh-token rotation.

Session states
--------------
``Active`` -> ``Rotated`` (superseded by a descendant, ``was_rotated=True``),
``Active`` -> ``Revoked`` (logout, admin action, family cascade) and
``Rotated`` presented again -> reuse, which revokes the whole family.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from uuid import uuid4

from authcore.services._shared.base import BaseService, Clock
from authcore.services._shared.dto import (
    ActivityAction,
    Fingerprint,
    Principal,
    SessionMetadata,
    SessionRecord,
)
from authcore.services._shared.errors import AuthError, ErrorKind, NotFoundError
from authcore.services._shared.ports.session_store import SessionStore, hash_refresh_token
from authcore.services._shared.ports.token_codec import TokenCodec
from authcore.services._shared.ports.user_directory import UserLookup
from authcore.services.auth.anomaly import AnomalyDetector, AnomalyReport
from authcore.services.auth.dto import AuthSettings


@dataclass(frozen=True, slots=True)
class RotationPolicy:
    """
    When a refresh must also replace the refresh token.

    :param max_age: Rotate sessions older than this.
    :param max_refresh_count: Rotate sessions refreshed more than this many times.
    :param rotate_always: Rotate on every refresh.
    """

    max_age: timedelta = timedelta(hours=24)
    max_refresh_count: int = 10
    rotate_always: bool = False

    def should_rotate(self, session: SessionRecord, now: datetime) -> bool:
        if self.rotate_always:
            return True
        if now - session.created_at > self.max_age:
            return True
        return session.refresh_count > self.max_refresh_count


@dataclass(frozen=True, slots=True)
class RefreshOutcome:
    """
    Result of a successful refresh.

    :ivar access_token: Newly issued access JWT.
    :ivar principal: Owner snapshot used for the access token.
    :ivar session: Session the client is now bound to.
    :ivar refresh_token: New refresh JWT when rotated, else ``None``.
    :ivar anomaly: Fingerprint assessment of this request.
    """

    access_token: str
    principal: Principal
    session: SessionRecord
    refresh_token: str | None
    anomaly: AnomalyReport

    @property
    def rotated(self) -> bool:
        return self.refresh_token is not None


class RotationEngine(BaseService):
    """
    Orchestrate one refresh request against a session.

    Checks run in a fixed order (revoked, reused, expired, owner, interval) so
    a revoked or reused token is reported as such even after it expired.
    """

    def __init__(
        self,
        *,
        codec: TokenCodec,
        sessions: SessionStore,
        users: UserLookup,
        settings: AuthSettings | None = None,
        detector: AnomalyDetector | None = None,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize the engine with its dependencies.

        :param codec: Token signer/verifier.
        :param sessions: Session store performing conditional rotation.
        :param users: Read-only user directory.
        :param settings: Rotation, interval and anomaly policies.
        :param detector: Fingerprint comparator (built from settings when omitted).
        :param clock: Injected clock.
        """
        super().__init__(sessions=sessions, clock=clock)
        self.codec = codec
        self.users = users
        self.settings = settings or AuthSettings()
        self.detector = detector or AnomalyDetector(
            ipv4_prefix=self.settings.ipv4_prefix, ipv6_prefix=self.settings.ipv6_prefix
        )
        self.policy = RotationPolicy(
            max_age=self.settings.rotation_max_age,
            max_refresh_count=self.settings.rotation_max_refresh_count,
            rotate_always=self.settings.rotate_always,
        )

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def refresh(self, raw_token: str, fingerprint: Fingerprint) -> RefreshOutcome:
        """
        Validate ``raw_token`` and issue a new access token.

        :param raw_token: Encoded refresh JWT presented by the client.
        :param fingerprint: Client context of this request.
        :returns: Refresh outcome (new access token, optional new refresh token).
        :raises AuthError: ``INVALID_REFRESH_TOKEN``, ``SESSION_REVOKED``,
            ``REFRESH_TOKEN_REUSED``, ``REFRESH_TOKEN_EXPIRED``,
            ``USER_DEACTIVATED``, ``REFRESH_TOO_SOON`` or
            ``REAUTHENTICATION_REQUIRED``.
        """
        now = self.now()

        # 1) Structural parse; expiry is judged on the session row below.
        try:
            claims = self.codec.parse_refresh(raw_token, verify_expiry=False)
        except AuthError as exc:
            raise AuthError(ErrorKind.INVALID_REFRESH_TOKEN) from exc

        # 2) Lookup by hash
        try:
            session = self.sessions.find_by_token_hash(hash_refresh_token(raw_token))
        except NotFoundError:
            raise AuthError(ErrorKind.INVALID_REFRESH_TOKEN) from None
        if session.user_id != claims.subject:
            raise AuthError(ErrorKind.INVALID_REFRESH_TOKEN)

        # 3) + 4) Revoked / reused
        self._ensure_unrevoked(session, fingerprint, now)

        # 5) Expired
        if session.is_expired(now):
            raise AuthError(ErrorKind.REFRESH_TOKEN_EXPIRED)

        # 6) Owner still active
        principal = self._active_owner(session, fingerprint, now)

        # 7) Minimum interval
        elapsed = now - session.last_activity_at
        if elapsed < self.settings.refresh_min_interval:
            wait = (self.settings.refresh_min_interval - elapsed).total_seconds()
            raise AuthError(ErrorKind.REFRESH_TOO_SOON, retry_after=max(1, math.ceil(wait)))

        # 8) Fingerprint
        anomaly = self._check_anomaly(session, fingerprint, now)

        # 9) Access token
        access_token = self.codec.issue_access(principal)

        # 10) Rotation
        if self.policy.should_rotate(session, now):
            return self._rotate(session, principal, access_token, fingerprint, anomaly, now)

        # 11) Plain refresh
        metadata = SessionMetadata(
            last_used_at=now,
            last_ip=fingerprint.ip_address or session.last_ip,
            last_user_agent=fingerprint.user_agent or session.last_user_agent,
            refresh_count=session.refresh_count + 1,
        )
        if not self.sessions.update_metadata(
            session.id, metadata, expected_refresh_count=session.refresh_count
        ):
            self._lost_race(session, fingerprint, now)

        self.audit(session.id, ActivityAction.REFRESH, fingerprint=fingerprint, at=now)
        self.log.info(
            "access token refreshed",
            extra={
                "event": "token_refreshed",
                "user_id": session.user_id,
                "session_id": session.id,
            },
        )
        current = replace(
            session,
            last_used_at=metadata.last_used_at,
            last_ip=metadata.last_ip,
            last_user_agent=metadata.last_user_agent,
            refresh_count=metadata.refresh_count,
        )
        return RefreshOutcome(
            access_token=access_token,
            principal=principal,
            session=current,
            refresh_token=None,
            anomaly=anomaly,
        )

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    def _ensure_unrevoked(
        self, session: SessionRecord, fingerprint: Fingerprint, now: datetime
    ) -> None:
        if session.revoked_at is None:
            return
        if session.was_rotated:
            self._handle_reuse(session, fingerprint, now)
        raise AuthError(ErrorKind.SESSION_REVOKED)

    def _active_owner(
        self, session: SessionRecord, fingerprint: Fingerprint, now: datetime
    ) -> Principal:
        try:
            principal = self.users.find_by_id(session.user_id)
        except NotFoundError:
            principal = None
        if principal is not None and principal.is_active:
            return principal

        revoked = self.sessions.revoke_all_for_user(session.user_id, now)
        self.audit(session.id, ActivityAction.DEACTIVATED, fingerprint=fingerprint, at=now)
        self.log.warning(
            "refresh by deactivated user; sessions revoked",
            extra={
                "event": "user_deactivated",
                "user_id": session.user_id,
                "session_id": session.id,
                "revoked": revoked,
            },
        )
        raise AuthError(ErrorKind.USER_DEACTIVATED)

    def _check_anomaly(
        self, session: SessionRecord, fingerprint: Fingerprint, now: datetime
    ) -> AnomalyReport:
        report = self.detector.assess(session, fingerprint)
        if not report.is_anomalous:
            return report

        self.audit(
            session.id,
            ActivityAction.ANOMALY,
            fingerprint=fingerprint,
            at=now,
            reasons=report.reasons(),
        )
        self.log.warning(
            "session fingerprint changed",
            extra={
                "event": "session_anomaly",
                "user_id": session.user_id,
                "session_id": session.id,
                "reason": ",".join(report.reasons()),
                "client_ip": fingerprint.ip_address,
            },
        )
        if self.settings.anomaly_policy == "reauthenticate":
            self.sessions.revoke(session.id, now)
            raise AuthError(ErrorKind.REAUTHENTICATION_REQUIRED)
        return report

    def _rotate(
        self,
        session: SessionRecord,
        principal: Principal,
        access_token: str,
        fingerprint: Fingerprint,
        anomaly: AnomalyReport,
        now: datetime,
    ) -> RefreshOutcome:
        raw_refresh = self.codec.issue_refresh(session.user_id)
        ip = fingerprint.ip_address or session.last_ip or session.ip_address
        ua = fingerprint.user_agent or session.last_user_agent or session.user_agent
        successor = SessionRecord(
            id=str(uuid4()),
            user_id=session.user_id,
            refresh_token_hash=hash_refresh_token(raw_refresh),
            family_id=session.family_id,
            parent_session_id=session.id,
            created_at=now,
            expires_at=now + self.settings.refresh_token_ttl,
            ip_address=ip,
            user_agent=ua,
            last_ip=ip,
            last_user_agent=ua,
            last_used_at=now,
        )
        if not self.sessions.rotate_atomically(session.id, successor, now):
            self._lost_race(session, fingerprint, now)

        self.audit(
            successor.id,
            ActivityAction.ROTATE,
            fingerprint=fingerprint,
            at=now,
            parent_session_id=session.id,
        )
        self.log.info(
            "refresh token rotated",
            extra={
                "event": "token_rotated",
                "user_id": session.user_id,
                "session_id": successor.id,
                "family_id": session.family_id,
            },
        )
        return RefreshOutcome(
            access_token=access_token,
            principal=principal,
            session=successor,
            refresh_token=raw_refresh,
            anomaly=anomaly,
        )

    def _lost_race(
        self, session: SessionRecord, fingerprint: Fingerprint, now: datetime
    ) -> None:
        """Classify a failed conditional write from the session's fresh state."""
        try:
            current = self.sessions.get(session.id)
        except NotFoundError:
            raise AuthError(ErrorKind.INVALID_REFRESH_TOKEN) from None
        self._ensure_unrevoked(current, fingerprint, now)
        # Still active: a concurrent refresh already consumed this slot.
        raise AuthError(ErrorKind.REFRESH_TOO_SOON, retry_after=1)

    def _handle_reuse(
        self, session: SessionRecord, fingerprint: Fingerprint, now: datetime
    ) -> None:
        if self.settings.reuse_revoke_scope == "user":
            revoked = self.sessions.revoke_all_for_user(session.user_id, now)
        else:
            revoked = self.sessions.revoke_family(session.family_id, now)

        self.audit(
            session.id,
            ActivityAction.REUSE_DETECTED,
            fingerprint=fingerprint,
            at=now,
            revoked=revoked,
        )
        self.log.error(
            "refresh token reuse detected; family revoked",
            extra={
                "event": "refresh_token_reused",
                "user_id": session.user_id,
                "session_id": session.id,
                "family_id": session.family_id,
                "client_ip": fingerprint.ip_address,
                "revoked": revoked,
            },
        )
        raise AuthError(ErrorKind.REFRESH_TOKEN_REUSED)
