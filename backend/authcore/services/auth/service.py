# authcore/services/auth/service.py
from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from authcore.services._shared.base import BaseService, Clock
from authcore.services._shared.dto import (
    ActivityAction,
    Principal,
    SessionRecord,
    TokenClaims,
)
from authcore.services._shared.errors import (
    TRANSIENT_STORAGE_ERRORS,
    AuthError,
    ErrorKind,
    NotFoundError,
    storage_errors,
)
from authcore.services._shared.ports.login_rate_limiter import LoginRateLimiter
from authcore.services._shared.ports.session_store import SessionStore, hash_refresh_token
from authcore.services._shared.ports.token_codec import TokenCodec
from authcore.services._shared.ports.user_directory import (
    PasswordVerifier,
    UserLookup,
    normalize_identity,
)
from authcore.services.auth.anomaly import AnomalyDetector

# DTOs
from authcore.services.auth.dto import (
    AuthSettings,
    LoginIn,
    LoginOut,
    LogoutIn,
    LogoutOut,
    RefreshIn,
    RefreshOut,
    SessionInfoOut,
    UserInfoOut,
)
from authcore.services.auth.rotation import RotationEngine


class AuthCoordinator(BaseService):
    """
    Credential issuance and session lifecycle (login / refresh / logout).

    Tokens are signed by a pluggable :class:`TokenCodec`; sessions live in a
    :class:`SessionStore` that rotates atomically; failed logins are throttled
    by a :class:`LoginRateLimiter`. Every public operation reports failures as
    :class:`AuthError` and transient backend failures as
    ``STORAGE_UNAVAILABLE``.
    """

    def __init__(
        self,
        *,
        codec: TokenCodec,
        sessions: SessionStore,
        users: UserLookup,
        passwords: PasswordVerifier,
        limiter: LoginRateLimiter,
        settings: AuthSettings | None = None,
        detector: AnomalyDetector | None = None,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize the coordinator with its dependencies.

        :param codec: Adapter for signing/verifying JWTs.
        :param sessions: Stateful store for refresh sessions.
        :param users: Read-only user directory.
        :param passwords: Password hash verifier.
        :param limiter: Failed-login throttle.
        :param settings: Token lifetimes and policies.
        :param detector: Optional fingerprint comparator.
        :param clock: Injected clock (aware UTC).
        """
        super().__init__(sessions=sessions, clock=clock)
        self.codec = codec
        self.users = users
        self.passwords = passwords
        self.limiter = limiter
        self.settings = settings or AuthSettings()
        self.engine = RotationEngine(
            codec=codec,
            sessions=sessions,
            users=users,
            settings=self.settings,
            detector=detector,
            clock=self.clock,
        )

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> LoginOut:
        """
        Authenticate credentials and open a new session.

        :param dto: Login input.
        :returns: Access/refresh token pair and the user projection.
        :raises AuthError: ``TOO_MANY_ATTEMPTS``, ``INVALID_CREDENTIALS`` or
            ``ACCOUNT_INACTIVE``.
        """
        identity = normalize_identity(dto.email)
        now = self.now()
        with storage_errors():
            self.limiter.check_login_attempt(identity, now)

            # The admitted slot is held until the attempt gets a verdict.
            pending = True
            try:
                principal = self._find_principal(identity)
                stored_hash = principal.password_hash if principal else None
                # Always verify so unknown emails cost the same as wrong passwords.
                verified = self.passwords.verify(dto.password, stored_hash)
                if principal is None or not verified:
                    attempts = self.limiter.record_failed_attempt(identity, now)
                    pending = False
                    self.log.info(
                        "login failed",
                        extra={
                            "event": "login_failed",
                            "identity": identity,
                            "attempts": attempts,
                            "client_ip": dto.fingerprint.ip_address,
                        },
                    )
                    raise AuthError(ErrorKind.INVALID_CREDENTIALS)

                self.limiter.reset_attempts(identity)
                pending = False
            finally:
                if pending:
                    self._release_attempt(identity, now)

            if not principal.is_active:
                raise AuthError(ErrorKind.ACCOUNT_INACTIVE)

            if self.settings.single_session_login:
                self.sessions.revoke_all_for_user(principal.user_id, now)

            access_token = self.codec.issue_access(principal)
            refresh_token = self.codec.issue_refresh(principal.user_id)
            session = SessionRecord(
                id=str(uuid4()),
                user_id=principal.user_id,
                refresh_token_hash=hash_refresh_token(refresh_token),
                family_id=str(uuid4()),
                created_at=now,
                expires_at=now + self.settings.refresh_token_ttl,
                ip_address=dto.fingerprint.ip_address,
                user_agent=dto.fingerprint.user_agent,
            )
            self.sessions.create(session)
            self.audit(session.id, ActivityAction.LOGIN, fingerprint=dto.fingerprint, at=now)

        self.log.info(
            "session issued",
            extra={
                "event": "login_succeeded",
                "user_id": principal.user_id,
                "session_id": session.id,
                "family_id": session.family_id,
                "client_ip": dto.fingerprint.ip_address,
            },
        )
        return LoginOut(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(self.settings.access_token_ttl.total_seconds()),
            refresh_expires_in=int(self.settings.refresh_token_ttl.total_seconds()),
            session_id=session.id,
            user=UserInfoOut.from_principal(principal),
        )

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> RefreshOut:
        """
        Exchange a refresh token for a new access token.

        :param dto: Refresh input.
        :returns: New access token, plus a new refresh token when rotated.
        :raises AuthError: See :meth:`RotationEngine.refresh`.
        """
        with storage_errors():
            outcome = self.engine.refresh(dto.refresh_token, dto.fingerprint)
        refresh_ttl = int(self.settings.refresh_token_ttl.total_seconds())
        return RefreshOut(
            access_token=outcome.access_token,
            expires_in=int(self.settings.access_token_ttl.total_seconds()),
            session_id=outcome.session.id,
            user=UserInfoOut.from_principal(outcome.principal),
            refresh_token=outcome.refresh_token,
            refresh_expires_in=refresh_ttl if outcome.rotated else None,
        )

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, dto: LogoutIn) -> LogoutOut:
        """
        Revoke the session of a refresh token, or every session of a principal.

        Revoking an already revoked session is not an error; it reports
        ``revoked_sessions=0``.

        :param dto: Logout input.
        :returns: Number of sessions revoked by this call.
        :raises AuthError: ``INVALID_REFRESH_TOKEN`` for unknown tokens,
            ``INVALID_TOKEN`` when neither a token nor a principal is given.
        """
        now = self.now()
        with storage_errors():
            if dto.refresh_token:
                try:
                    token_hash = hash_refresh_token(dto.refresh_token)
                    session = self.sessions.find_by_token_hash(token_hash)
                except NotFoundError:
                    raise AuthError(ErrorKind.INVALID_REFRESH_TOKEN) from None
                if dto.principal_id is not None and session.user_id != dto.principal_id:
                    raise AuthError(ErrorKind.INVALID_REFRESH_TOKEN)

                revoked = 1 if self.sessions.revoke(session.id, now) else 0
                if revoked:
                    self.audit(
                        session.id, ActivityAction.LOGOUT, fingerprint=dto.fingerprint, at=now
                    )
                self.log.info(
                    "session logged out",
                    extra={"event": "logout", "user_id": session.user_id, "session_id": session.id},
                )
                return LogoutOut(revoked_sessions=revoked)

            if dto.principal_id:
                count = self.sessions.revoke_all_for_user(dto.principal_id, now)
                self.log.info(
                    "all sessions logged out",
                    extra={"event": "logout_all", "user_id": dto.principal_id, "revoked": count},
                )
                return LogoutOut(revoked_sessions=count)

        raise AuthError(ErrorKind.INVALID_TOKEN)

    # ------------------------------------------------------------------ #
    # Access tokens
    # ------------------------------------------------------------------ #

    def validate_access_token(self, token: str) -> TokenClaims:
        """
        Verify an access token without touching storage.

        :raises AuthError: ``INVALID_TOKEN``.
        """
        return self.codec.parse_access(token)

    # ------------------------------------------------------------------ #
    # Session management
    # ------------------------------------------------------------------ #

    def list_sessions(
        self, principal_id: str, *, current_refresh_token: str | None = None
    ) -> list[SessionInfoOut]:
        """
        List the principal's active sessions.

        :param principal_id: Authenticated user id.
        :param current_refresh_token: Refresh token of the caller, used to flag ``is_current``.
        """
        now = self.now()
        current_hash = hash_refresh_token(current_refresh_token) if current_refresh_token else None
        with storage_errors():
            rows = self.sessions.list_for_user(principal_id, active_only=True, now=now)
        return [
            SessionInfoOut(
                id=s.id,
                ip_address=s.last_ip or s.ip_address,
                user_agent=s.last_user_agent or s.user_agent,
                created_at=s.created_at,
                last_used_at=s.last_used_at,
                expires_at=s.expires_at,
                is_current=s.refresh_token_hash == current_hash,
            )
            for s in rows
        ]

    def revoke_session(self, principal_id: str, session_id: str) -> bool:
        """
        Revoke one of the principal's own sessions.

        :returns: ``True`` if the session was active until now.
        :raises NotFoundError: If the session does not exist or belongs to someone else.
        """
        now = self.now()
        with storage_errors():
            session = self.sessions.get(session_id)
            if session.user_id != principal_id:
                raise NotFoundError("Session", session_id)
            revoked = self.sessions.revoke(session_id, now)
            if revoked:
                self.audit(session_id, ActivityAction.REVOKE, at=now)
        return revoked

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _release_attempt(self, identity: str, now: datetime) -> None:
        try:
            self.limiter.release_attempt(identity, now)
        except TRANSIENT_STORAGE_ERRORS:
            # The original failure is propagating; the slot expires with the window.
            self.log.error(
                "login attempt slot not released",
                extra={"event": "login_slot_leaked", "identity": identity},
                exc_info=True,
            )

    def _find_principal(self, identity: str) -> Principal | None:
        try:
            return self.users.find_by_email(identity)
        except NotFoundError:
            return None
