"""Tests for the Marshmallow request and response schemas."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from marshmallow import ValidationError

from authcore.schemas import (
    LoginSchema,
    LogoutResponseSchema,
    RefreshSchema,
    SessionInfoSchema,
    TokenResponseSchema,
)
from authcore.services import LoginOut, LogoutOut, RefreshOut, SessionInfoOut
from authcore.services.auth.dto import UserInfoOut

USER = UserInfoOut(id="u-1", email="ann@example.com", name="Ann", role="user")


def test_login_schema_loads_valid_payload():
    data = LoginSchema().load({"email": "ann@example.com", "password": "pw"})
    assert data == {"email": "ann@example.com", "password": "pw"}


@pytest.mark.parametrize(
    ("payload", "field"),
    [
        ({"password": "pw"}, "email"),
        ({"email": "not-an-email", "password": "pw"}, "email"),
        ({"email": "ann@example.com", "password": ""}, "password"),
        ({"email": "ann@example.com", "password": "x" * 129}, "password"),
    ],
)
def test_login_schema_rejects(payload, field):
    with pytest.raises(ValidationError) as exc:
        LoginSchema().load(payload)
    assert field in exc.value.messages


def test_password_is_never_dumped():
    assert LoginSchema().dump({"email": "ann@example.com", "password": "pw"}) == {
        "email": "ann@example.com"
    }


def test_refresh_schema_requires_token():
    assert RefreshSchema().load({"refresh_token": "abc"}) == {"refresh_token": "abc"}
    with pytest.raises(ValidationError):
        RefreshSchema().load({})


def test_token_response_from_login():
    out = LoginOut(
        access_token="acc",
        refresh_token="ref",
        expires_in=900,
        refresh_expires_in=604800,
        session_id="s-1",
        user=USER,
    )

    body = TokenResponseSchema().dump(out)

    assert body["token_type"] == "Bearer"
    assert body["refresh_token"] == "ref"
    assert body["user"] == {"id": "u-1", "email": "ann@example.com", "name": "Ann", "role": "user"}
    assert list(body)[0] == "access_token"


def test_token_response_from_plain_refresh():
    """A refresh without rotation carries no new refresh token."""
    out = RefreshOut(access_token="acc", expires_in=900, session_id="s-1", user=USER)

    body = TokenResponseSchema().dump(out)

    assert body["refresh_token"] is None
    assert body["refresh_expires_in"] is None


def test_session_info_schema():
    created = datetime(2025, 1, 6, 9, 0, tzinfo=UTC)
    out = SessionInfoOut(
        id="s-1",
        ip_address="203.0.113.7",
        user_agent="Firefox/128.0",
        created_at=created,
        last_used_at=None,
        expires_at=created,
        is_current=True,
    )

    body = SessionInfoSchema().dump(out)

    assert body["created_at"] == "2025-01-06T09:00:00+00:00"
    assert body["last_used_at"] is None
    assert body["is_current"] is True


def test_logout_response_schema():
    assert LogoutResponseSchema().dump(LogoutOut(revoked_sessions=2)) == {"revoked_sessions": 2}
