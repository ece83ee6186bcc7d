"""Shared request helpers: bearer extraction, client fingerprint and guards."""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar

from flask import request

from authcore.core.auth import get_auth
from authcore.core.errors import Forbidden, Unauthorized
from authcore.services._shared.dto import Fingerprint, TokenClaims

F = TypeVar("F", bound=Callable[..., Any])

BEARER_PREFIX = "bearer "
USER_AGENT_MAX_LENGTH = 512


def extract_bearer(header: str | None) -> str | None:
    """
    Return the token of an ``Authorization: Bearer <token>`` header.

    The scheme is matched case-insensitively; anything else yields ``None``.

    :param header: Raw ``Authorization`` header value.
    :returns: Token string or ``None``.
    """
    if not header or header[: len(BEARER_PREFIX)].lower() != BEARER_PREFIX:
        return None
    token = header[len(BEARER_PREFIX) :].strip()
    return token or None


def client_fingerprint() -> Fingerprint:
    """
    Describe the client of the current request.

    ``remote_addr`` already reflects ``X-Forwarded-For`` when ProxyFix is
    enabled. The user agent is truncated to keep stored rows bounded.
    """
    user_agent = request.headers.get("User-Agent") or None
    if user_agent is not None:
        user_agent = user_agent[:USER_AGENT_MAX_LENGTH]
    return Fingerprint(ip_address=request.remote_addr or None, user_agent=user_agent)


def current_claims() -> TokenClaims:
    """
    Validate the bearer token of the current request.

    :raises Unauthorized: When no bearer token is present.
    :raises AuthError: ``INVALID_TOKEN`` when it does not verify.
    """
    token = extract_bearer(request.headers.get("Authorization"))
    if token is None:
        raise Unauthorized("Missing bearer token", code="missing_token")
    return get_auth().validate_access_token(token)


def require_auth(func: F) -> F:
    """Validate the bearer token and pass its claims as ``claims=``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        kwargs["claims"] = current_claims()
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def require_admin(func: F) -> F:
    """Like :func:`require_auth`, additionally requiring the admin flag."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        claims = current_claims()
        if not claims.is_admin:
            raise Forbidden("Administrator privileges required")
        kwargs["claims"] = claims
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]
