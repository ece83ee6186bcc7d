# authcore/infra/jwt/pyjwt_token_codec.py
from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, ClassVar
from uuid import uuid4

import jwt

from authcore.services._shared.base import Clock, utcnow
from authcore.services._shared.dto import Principal, RefreshClaims, TokenClaims
from authcore.services._shared.errors import AuthError, ErrorKind
from authcore.services._shared.ports import TokenCodec

log = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_COMMON_CLAIMS = ["sub", "iat", "nbf", "exp", "iss", "jti", "type"]
_ACCESS_CLAIMS = [*_COMMON_CLAIMS, "email", "role", "is_admin"]


def derive_refresh_secret(secret: str) -> str:
    """Derive a distinct refresh-signing key from the access key."""
    return hmac.new(secret.encode("utf-8"), b"authcore:refresh", hashlib.sha256).hexdigest()


@dataclass(slots=True)
class JWTTokenCodec(TokenCodec):
    """
    HS256 token codec built on PyJWT.

    Access and refresh tokens are signed with different keys, so one can never
    be accepted as the other even if the ``type`` claim were forged.

    :param secret: Access token signing key.
    :param refresh_secret: Refresh token signing key (derived from ``secret`` when empty).
    :param issuer: ``iss`` claim written and required.
    :param access_ttl: Access token lifetime.
    :param refresh_ttl: Refresh token lifetime.
    :param leeway: Clock skew tolerated on ``exp``/``nbf``.
    :param clock: Injected clock; all time claims are checked against it.
    """

    secret: str
    refresh_secret: str | None = None
    issuer: str = "authcore"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    leeway: timedelta = timedelta(0)
    clock: Clock = field(default=utcnow)

    algorithm: ClassVar[str] = "HS256"

    def __post_init__(self) -> None:
        if not self.secret:
            raise ValueError("JWT signing secret must not be empty.")
        if not self.refresh_secret:
            self.refresh_secret = derive_refresh_secret(self.secret)
        if hmac.compare_digest(self.secret, self.refresh_secret):
            raise ValueError("Access and refresh secrets must differ.")

    # -------------------- helpers --------------------

    @staticmethod
    def _ts(dt: datetime) -> int:
        return int(dt.timestamp())

    @staticmethod
    def _dt(value: Any) -> datetime:
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise TypeError("time claim must be numeric")
        return datetime.fromtimestamp(value, tz=UTC)

    def _encode(self, payload: dict[str, Any], key: str) -> str:
        return jwt.encode(payload, key, algorithm=self.algorithm)

    def _decode(
        self,
        token: str,
        *,
        key: str,
        expected_type: str,
        required: list[str],
        verify_expiry: bool,
    ) -> dict[str, Any]:
        """
        Verify signature, algorithm, issuer and times; return the payload.

        PyJWT's own time checks are disabled so the injected clock decides.
        """
        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={
                    "require": required,
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                },
            )
            if payload.get("type") != expected_type:
                raise jwt.InvalidTokenError("unexpected token type")
            now = self.clock()
            expires_at = self._dt(payload["exp"])
            not_before = self._dt(payload["nbf"])
            self._dt(payload["iat"])
            if verify_expiry and now >= expires_at + self.leeway:
                raise jwt.ExpiredSignatureError("token expired")
            if now + self.leeway < not_before:
                raise jwt.ImmatureSignatureError("token not yet valid")
        except (jwt.PyJWTError, TypeError, ValueError, OverflowError) as exc:
            log.debug("token rejected: %s", exc, extra={"event": "token_rejected"})
            raise AuthError(ErrorKind.INVALID_TOKEN) from exc
        return payload

    # -------------------- API ------------------------

    def issue_access(self, principal: Principal) -> str:
        now = self.clock()
        payload = {
            "sub": principal.user_id,
            "email": principal.email,
            "role": principal.role,
            "is_admin": principal.is_admin,
            "iss": self.issuer,
            "iat": self._ts(now),
            "nbf": self._ts(now),
            "exp": self._ts(now + self.access_ttl),
            "jti": uuid4().hex,
            "type": ACCESS_TOKEN_TYPE,
        }
        return self._encode(payload, self.secret)

    def issue_refresh(self, user_id: str) -> str:
        now = self.clock()
        payload = {
            "sub": user_id,
            "iss": self.issuer,
            "iat": self._ts(now),
            "nbf": self._ts(now),
            "exp": self._ts(now + self.refresh_ttl),
            "jti": uuid4().hex,
            "type": REFRESH_TOKEN_TYPE,
        }
        return self._encode(payload, self.refresh_secret)

    def parse_access(self, token: str) -> TokenClaims:
        payload = self._decode(
            token,
            key=self.secret,
            expected_type=ACCESS_TOKEN_TYPE,
            required=_ACCESS_CLAIMS,
            verify_expiry=True,
        )
        return TokenClaims(
            subject=str(payload["sub"]),
            email=str(payload["email"]),
            role=str(payload["role"]),
            is_admin=bool(payload["is_admin"]),
            issued_at=self._dt(payload["iat"]),
            not_before=self._dt(payload["nbf"]),
            expires_at=self._dt(payload["exp"]),
            issuer=str(payload["iss"]),
            token_id=str(payload["jti"]),
        )

    def parse_refresh(self, token: str, *, verify_expiry: bool = True) -> RefreshClaims:
        payload = self._decode(
            token,
            key=self.refresh_secret,
            expected_type=REFRESH_TOKEN_TYPE,
            required=_COMMON_CLAIMS,
            verify_expiry=verify_expiry,
        )
        return RefreshClaims(
            subject=str(payload["sub"]),
            issued_at=self._dt(payload["iat"]),
            expires_at=self._dt(payload["exp"]),
            token_id=str(payload["jti"]),
        )
