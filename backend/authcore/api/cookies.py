"""Refresh-token cookie helpers.

The refresh token never travels in a readable place: it is set as an
HTTP-only cookie scoped to the refresh endpoint, so scripts on the page and
requests to other paths never see it.
"""

from __future__ import annotations

from flask import Response, current_app, request


def _cookie_options() -> dict:
    cfg = current_app.config
    return {
        "path": cfg.get("REFRESH_COOKIE_PATH", "/api/v1/auth/refresh"),
        "secure": bool(cfg.get("REFRESH_COOKIE_SECURE", True)),
        "httponly": True,
        "samesite": cfg.get("REFRESH_COOKIE_SAMESITE", "Strict"),
    }


def cookie_name() -> str:
    return current_app.config.get("REFRESH_COOKIE_NAME", "refresh_token")


def set_refresh_cookie(response: Response, refresh_token: str, max_age: int) -> Response:
    """
    Attach the refresh token to ``response``.

    :param response: Outgoing response.
    :param refresh_token: Encoded refresh JWT.
    :param max_age: Cookie lifetime in seconds (the refresh TTL).
    :returns: The same response, for chaining.
    """
    response.set_cookie(cookie_name(), refresh_token, max_age=max_age, **_cookie_options())
    return response


def clear_refresh_cookie(response: Response) -> Response:
    """Expire the refresh cookie on the client."""
    response.delete_cookie(cookie_name(), **_cookie_options())
    return response


def read_refresh_cookie() -> str | None:
    """Return the refresh token sent with the current request, if any."""
    return request.cookies.get(cookie_name()) or None
