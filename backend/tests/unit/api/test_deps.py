"""Unit tests for the request helpers in ``authcore.api.deps``."""

from __future__ import annotations

import pytest
from flask import jsonify

from authcore.api import client_fingerprint, extract_bearer, require_admin, require_auth
from authcore.api.deps import USER_AGENT_MAX_LENGTH
from authcore.core.auth import get_auth
from authcore.services._shared.dto import Principal

ALICE = Principal(user_id="u-alice", email="alice@example.com")
ROOT = Principal(user_id="u-root", email="root@example.com", role="admin")


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer abc", "abc"),
        ("BEARER   abc  ", "abc"),
        ("Bearer ", None),
        ("Basic dXNlcjpwYXNz", None),
        ("Bearerabc", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer(header, expected):
    assert extract_bearer(header) == expected


@pytest.fixture()
def guarded_app(app):
    """App with two throw-away routes protected by the guards."""

    @app.get("/_test/me")
    @require_auth
    def me(claims):
        return jsonify(sub=claims.subject, admin=claims.is_admin)

    @app.get("/_test/admin")
    @require_admin
    def admin_only(claims):
        return jsonify(sub=claims.subject)

    @app.get("/_test/fingerprint")
    def fingerprint():
        fp = client_fingerprint()
        return jsonify(ip=fp.ip_address, ua=fp.user_agent)

    return app


def _bearer(app, principal) -> dict[str, str]:
    with app.app_context():
        token = get_auth().codec.issue_access(principal)
    return {"Authorization": f"Bearer {token}"}


def test_require_auth_injects_claims(guarded_app):
    client = guarded_app.test_client()
    resp = client.get("/_test/me", headers=_bearer(guarded_app, ALICE))

    assert resp.status_code == 200
    assert resp.get_json() == {"sub": "u-alice", "admin": False}


def test_missing_token_is_401_with_challenge(guarded_app):
    resp = guarded_app.test_client().get("/_test/me")

    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"
    body = resp.get_json()
    assert body["code"] == "missing_token"
    assert body["status"] == 401


def test_invalid_token_is_401_invalid_token(guarded_app):
    resp = guarded_app.test_client().get(
        "/_test/me", headers={"Authorization": "Bearer not-a-token"}
    )

    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_token"
    assert resp.headers["WWW-Authenticate"] == 'Bearer error="invalid_token"'


def test_require_admin(guarded_app):
    client = guarded_app.test_client()

    denied = client.get("/_test/admin", headers=_bearer(guarded_app, ALICE))
    allowed = client.get("/_test/admin", headers=_bearer(guarded_app, ROOT))

    assert denied.status_code == 403
    assert denied.get_json()["code"] == "forbidden"
    assert allowed.status_code == 200
    assert allowed.get_json() == {"sub": "u-root"}


def test_fingerprint_honours_forwarded_for(guarded_app):
    """With ProxyFix enabled the first trusted hop is the client address."""
    resp = guarded_app.test_client().get(
        "/_test/fingerprint",
        headers={"X-Forwarded-For": "198.51.100.23", "User-Agent": "x" * 600},
    )

    body = resp.get_json()
    assert body["ip"] == "198.51.100.23"
    assert len(body["ua"]) == USER_AGENT_MAX_LENGTH


def test_fingerprint_without_user_agent(app):
    with app.test_request_context("/", environ_base={"REMOTE_ADDR": "192.0.2.1"}):
        fp = client_fingerprint()
    assert fp.ip_address == "192.0.2.1"
    assert fp.user_agent is None
