"""
Unit tests for the problem+json error mapping.

Flows covered:
- every auth failure kind has an HTTP status
- Retry-After and WWW-Authenticate headers
- request id correlation
- generic handlers (not found, validation, unexpected)
"""

from __future__ import annotations

import pytest
from marshmallow import ValidationError

from authcore.core.errors import AUTH_ERROR_STATUS, auth_error_response
from authcore.services import AuthError, ErrorKind, NotFoundError


@pytest.fixture()
def failing_app(app):
    """App with routes raising the errors under test."""

    @app.get("/_test/auth/<kind>")
    def raise_auth(kind: str):
        retry_after = 60 if kind in {"too_many_attempts", "refresh_too_soon"} else None
        raise AuthError(ErrorKind(kind), retry_after=retry_after)

    @app.get("/_test/missing")
    def raise_not_found():
        raise NotFoundError("Session", "s-1")

    @app.get("/_test/invalid")
    def raise_validation():
        raise ValidationError({"email": ["Not a valid email address."]})

    @app.get("/_test/boom")
    def raise_unexpected():
        raise RuntimeError("secret internals")

    return app


def test_every_kind_is_mapped():
    assert set(AUTH_ERROR_STATUS) == set(ErrorKind)


@pytest.mark.parametrize(
    ("kind", "status"),
    [
        (ErrorKind.INVALID_CREDENTIALS, 401),
        (ErrorKind.REFRESH_TOKEN_REUSED, 401),
        (ErrorKind.REAUTHENTICATION_REQUIRED, 401),
        (ErrorKind.ACCOUNT_INACTIVE, 403),
        (ErrorKind.USER_DEACTIVATED, 403),
        (ErrorKind.TOO_MANY_ATTEMPTS, 429),
        (ErrorKind.REFRESH_TOO_SOON, 429),
        (ErrorKind.STORAGE_UNAVAILABLE, 503),
    ],
)
def test_auth_error_status(failing_app, kind, status):
    resp = failing_app.test_client().get(f"/_test/auth/{kind.value}")

    assert resp.status_code == status
    assert resp.mimetype == "application/problem+json"
    body = resp.get_json()
    assert body["code"] == kind.value
    assert body["status"] == status
    assert body["instance"] == f"/_test/auth/{kind.value}"


def test_throttled_response_carries_retry_after(failing_app):
    resp = failing_app.test_client().get("/_test/auth/too_many_attempts")

    assert resp.headers["Retry-After"] == "60"
    assert resp.get_json()["details"] == {"retry_after": 60}
    assert "WWW-Authenticate" not in resp.headers


def test_unauthorized_response_carries_challenge(failing_app):
    resp = failing_app.test_client().get("/_test/auth/session_revoked")

    assert resp.headers["WWW-Authenticate"] == 'Bearer error="session_revoked"'
    assert "Retry-After" not in resp.headers
    assert "details" not in resp.get_json()


def test_request_id_is_echoed(failing_app):
    resp = failing_app.test_client().get(
        "/_test/auth/invalid_credentials", headers={"X-Request-Id": "req-123"}
    )

    assert resp.get_json()["request_id"] == "req-123"
    assert resp.headers["X-Request-ID"] == "req-123"


def test_auth_error_response_outside_handlers(app):
    with app.test_request_context("/login"):
        resp, status = auth_error_response(
            AuthError(ErrorKind.REFRESH_TOO_SOON, retry_after=4)
        )
    assert status == 429
    assert resp.headers["Retry-After"] == "4"


def test_not_found_error(failing_app):
    resp = failing_app.test_client().get("/_test/missing")

    assert resp.status_code == 404
    assert resp.get_json()["detail"] == "Session not found"


def test_unknown_route(app):
    resp = app.test_client().get("/nope")

    assert resp.status_code == 404
    assert resp.get_json()["code"] == "not_found"


def test_validation_error(failing_app):
    resp = failing_app.test_client().get("/_test/invalid")

    assert resp.status_code == 422
    body = resp.get_json()
    assert body["code"] == "validation_error"
    assert body["details"]["errors"] == {"email": ["Not a valid email address."]}


def test_unexpected_error_hides_internals(failing_app):
    resp = failing_app.test_client().get("/_test/boom")

    assert resp.status_code == 500
    assert "secret internals" not in resp.get_data(as_text=True)
