"""Unit tests for the refresh-token cookie helpers."""

from __future__ import annotations

from flask import Response

from authcore.api import clear_refresh_cookie, read_refresh_cookie, set_refresh_cookie


def test_set_refresh_cookie_attributes(app):
    """The cookie is HTTP-only, Secure, SameSite=Strict and path-scoped."""
    with app.test_request_context("/"):
        resp = set_refresh_cookie(Response(), "tok.en.value", max_age=3600)

    header = resp.headers["Set-Cookie"]
    assert header.startswith("refresh_token=tok.en.value;")
    assert "HttpOnly" in header
    assert "Secure" in header
    assert "SameSite=Strict" in header
    assert "Path=/api/v1/auth/refresh" in header
    assert "Max-Age=3600" in header


def test_clear_refresh_cookie_expires_same_cookie(app):
    with app.test_request_context("/"):
        resp = clear_refresh_cookie(Response())

    header = resp.headers["Set-Cookie"]
    assert header.startswith("refresh_token=;")
    assert "Max-Age=0" in header
    assert "Path=/api/v1/auth/refresh" in header


def test_cookie_name_and_path_follow_config(app):
    app.config.update(REFRESH_COOKIE_NAME="rt", REFRESH_COOKIE_PATH="/auth")
    with app.test_request_context("/"):
        header = set_refresh_cookie(Response(), "abc", max_age=10).headers["Set-Cookie"]
    assert header.startswith("rt=abc;")
    assert "Path=/auth" in header


def test_read_refresh_cookie(app):
    with app.test_request_context("/", headers={"Cookie": "refresh_token=abc"}):
        assert read_refresh_cookie() == "abc"
    with app.test_request_context("/", headers={"Cookie": "refresh_token="}):
        assert read_refresh_cookie() is None
    with app.test_request_context("/"):
        assert read_refresh_cookie() is None
