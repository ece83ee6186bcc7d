# tests/unit/infra/test_pyjwt_token_codec.py
"""
Unit tests for JWTTokenCodec.

Flows covered:
- access/refresh issuance and parsing
- key separation between token types
- issuer, algorithm and structural checks
- expiry and not-before against the injected clock, with leeway
"""

from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from authcore.infra.jwt.pyjwt_token_codec import JWTTokenCodec, derive_refresh_secret
from authcore.services import AuthError, ErrorKind
from authcore.services._shared.dto import Principal

ADMIN = Principal(user_id="u-1", email="ops@example.com", role="admin")


def _invalid(call, *args, **kwargs) -> None:
    with pytest.raises(AuthError) as exc:
        call(*args, **kwargs)
    assert exc.value.kind is ErrorKind.INVALID_TOKEN


def test_access_token_round_trip(codec, clock):
    token = codec.issue_access(ADMIN)
    claims = codec.parse_access(token)

    assert claims.subject == "u-1"
    assert claims.email == "ops@example.com"
    assert claims.role == "admin"
    assert claims.is_admin is True
    assert claims.issuer == "authcore-tests"
    assert claims.issued_at == clock()
    assert claims.not_before == clock()
    assert claims.expires_at == clock() + timedelta(minutes=15)
    assert len(claims.token_id) == 32


def test_refresh_token_carries_only_structural_claims(codec, clock):
    token = codec.issue_refresh("u-1")
    payload = jwt.decode(token, options={"verify_signature": False})

    assert set(payload) == {"sub", "iss", "iat", "nbf", "exp", "jti", "type"}
    claims = codec.parse_refresh(token)
    assert claims.subject == "u-1"
    assert claims.expires_at == clock() + timedelta(days=7)


def test_every_token_is_unique(codec):
    assert codec.issue_refresh("u-1") != codec.issue_refresh("u-1")


def test_token_types_are_not_interchangeable(codec):
    _invalid(codec.parse_refresh, codec.issue_access(ADMIN))
    _invalid(codec.parse_access, codec.issue_refresh("u-1"))


def test_forged_type_claim_fails_on_key(codec):
    """A refresh-shaped token signed with the access key is still rejected."""
    payload = jwt.decode(
        codec.issue_refresh("u-1"), options={"verify_signature": False}
    )
    forged = jwt.encode(payload, codec.secret, algorithm="HS256")
    _invalid(codec.parse_refresh, forged)


def test_wrong_secret_is_rejected(codec, clock):
    other = JWTTokenCodec(secret="someone-else", issuer=codec.issuer, clock=clock)
    _invalid(codec.parse_access, other.issue_access(ADMIN))


def test_wrong_issuer_is_rejected(codec, clock):
    other = JWTTokenCodec(
        secret=codec.secret, refresh_secret=codec.refresh_secret, issuer="other", clock=clock
    )
    _invalid(codec.parse_access, other.issue_access(ADMIN))


def test_alg_none_is_rejected(codec):
    payload = jwt.decode(codec.issue_access(ADMIN), options={"verify_signature": False})
    unsigned = jwt.encode(payload, None, algorithm="none")
    _invalid(codec.parse_access, unsigned)


def test_missing_claim_is_rejected(codec):
    payload = jwt.decode(codec.issue_access(ADMIN), options={"verify_signature": False})
    del payload["role"]
    _invalid(codec.parse_access, jwt.encode(payload, codec.secret, algorithm="HS256"))


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_tokens(codec, token):
    _invalid(codec.parse_access, token)


def test_expiry_follows_injected_clock(codec, clock):
    token = codec.issue_access(ADMIN)
    clock.advance(minutes=15)
    _invalid(codec.parse_access, token)


def test_leeway_tolerates_small_skew(clock):
    codec = JWTTokenCodec(secret="s3cret", leeway=timedelta(seconds=30), clock=clock)
    token = codec.issue_access(ADMIN)

    clock.advance(minutes=15, seconds=29)
    assert codec.parse_access(token).subject == "u-1"
    clock.advance(1)
    _invalid(codec.parse_access, token)


def test_not_before_in_the_future_is_rejected(codec, clock):
    token = codec.issue_access(ADMIN)
    clock.advance(seconds=-60)
    _invalid(codec.parse_access, token)


def test_refresh_expiry_can_be_deferred(codec, clock):
    token = codec.issue_refresh("u-1")
    clock.advance(days=8)

    _invalid(codec.parse_refresh, token)
    assert codec.parse_refresh(token, verify_expiry=False).subject == "u-1"


def test_refresh_secret_is_derived_when_missing(clock):
    codec = JWTTokenCodec(secret="s3cret", clock=clock)
    assert codec.refresh_secret == derive_refresh_secret("s3cret")
    assert codec.refresh_secret != "s3cret"


@pytest.mark.parametrize(
    ("secret", "refresh_secret"),
    [("", None), ("same", "same")],
)
def test_invalid_secrets_are_refused(secret, refresh_secret):
    with pytest.raises(ValueError):
        JWTTokenCodec(secret=secret, refresh_secret=refresh_secret)
