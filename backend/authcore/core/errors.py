"""Centralized JSON (RFC 7807) error handling for the API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, cast
from uuid import uuid4

from flask import Flask, Response, g, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from authcore.services._shared.errors import (
    AuthError,
    ConflictError,
    ErrorKind,
    NotFoundError,
)

log = logging.getLogger(__name__)

# Closed mapping: every ErrorKind must appear here.
AUTH_ERROR_STATUS: dict[ErrorKind, HTTPStatus] = {
    ErrorKind.INVALID_CREDENTIALS: HTTPStatus.UNAUTHORIZED,
    ErrorKind.INVALID_REFRESH_TOKEN: HTTPStatus.UNAUTHORIZED,
    ErrorKind.REFRESH_TOKEN_EXPIRED: HTTPStatus.UNAUTHORIZED,
    ErrorKind.SESSION_REVOKED: HTTPStatus.UNAUTHORIZED,
    ErrorKind.REFRESH_TOKEN_REUSED: HTTPStatus.UNAUTHORIZED,
    ErrorKind.INVALID_TOKEN: HTTPStatus.UNAUTHORIZED,
    ErrorKind.REAUTHENTICATION_REQUIRED: HTTPStatus.UNAUTHORIZED,
    ErrorKind.ACCOUNT_INACTIVE: HTTPStatus.FORBIDDEN,
    ErrorKind.USER_DEACTIVATED: HTTPStatus.FORBIDDEN,
    ErrorKind.TOO_MANY_ATTEMPTS: HTTPStatus.TOO_MANY_REQUESTS,
    ErrorKind.REFRESH_TOO_SOON: HTTPStatus.TOO_MANY_REQUESTS,
    ErrorKind.STORAGE_UNAVAILABLE: HTTPStatus.SERVICE_UNAVAILABLE,
}


def _ensure_request_id() -> str:
    """
    Get or generate a request-scoped correlation identifier.

    The function reads standard correlation headers and falls back
    to a newly generated UUID4. The value is stored in ``g.request_id``.

    :returns: Correlation/request identifier.
    :rtype: str
    """
    if hasattr(g, "request_id"):
        return cast(str, g.request_id)

    hdr = request.headers.get("X-Request-Id") or request.headers.get("X-Correlation-Id")
    req_id = hdr or str(uuid4())
    g.request_id = req_id
    return req_id


def _http_status_to_code(status_code: int) -> str:
    """Map common HTTP status codes to canonical, stable error codes."""
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        415: "unsupported_media_type",
        422: "unprocessable_entity",
        429: "too_many_requests",
        500: "internal_server_error",
        503: "service_unavailable",
    }
    return mapping.get(status_code, "error")


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 Problem Details dict.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param details: Optional safe, structured details.
    :returns: Problem+JSON dictionary.
    :rtype: dict
    """
    problem = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path,
        "code": code,
    }
    if details:
        problem["details"] = details
    problem["request_id"] = _ensure_request_id()
    return problem


def _problem_response(problem: dict[str, Any]) -> Response:
    """
    Return a Flask response with ``application/problem+json`` media type.

    :param problem: Problem details payload.
    :returns: Flask JSON Response with proper MIME type.
    :rtype: flask.Response
    """
    resp = jsonify(problem)
    resp.mimetype = "application/problem+json"
    return resp


def auth_error_status(err: AuthError) -> HTTPStatus:
    """Return the HTTP status an :class:`AuthError` is rendered with."""
    return AUTH_ERROR_STATUS[err.kind]


def auth_error_response(err: AuthError) -> tuple[Response, int]:
    """
    Render an :class:`AuthError` as problem+json.

    ``Retry-After`` is set whenever the error carries a delay, and 401
    responses advertise the bearer scheme through ``WWW-Authenticate``.

    :param err: Service-level authentication error.
    :returns: ``(response, status)`` pair for a Flask view or handler.
    """
    status = auth_error_status(err)
    details = {"retry_after": err.retry_after} if err.retry_after is not None else None
    problem = _as_problem(status=status, code=err.kind.value, message=err.message, details=details)
    resp = _problem_response(problem)
    if err.retry_after is not None:
        resp.headers["Retry-After"] = str(err.retry_after)
    if status == HTTPStatus.UNAUTHORIZED:
        resp.headers["WWW-Authenticate"] = f'Bearer error="{err.kind.value}"'
    return resp, int(status)


class APIError(Exception):
    """
    Represent a JSON-serializable API error.

    Parameters
    ----------
    message : str
        Human-readable description presented to clients.
    status_code : int, optional
        HTTP status code to return. Defaults to ``400``.
    code : str, optional
        Machine-readable identifier, typically snake_case. Defaults to
        ``"bad_request"``.
    details : dict[str, Any] | None, optional
        Optional structured payload included in the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        """
        Serialize error metadata into an RFC 7807 problem.

        :returns: Problem details dictionary.
        :rtype: dict
        """
        return _as_problem(
            status=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details or None,
        )


class Unauthorized(APIError):
    """401 when no usable credentials were presented."""

    def __init__(self, message: str = "Unauthorized", code: str = "unauthorized") -> None:
        super().__init__(message, status_code=HTTPStatus.UNAUTHORIZED, code=code)


class Forbidden(APIError):
    """403 when authorization denies access."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message, status_code=HTTPStatus.FORBIDDEN, code="forbidden")


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Guarantees RFC 7807 responses for all handled errors.
    - Auth failures keep their :class:`ErrorKind` value as ``code``.
    - Emits 5xx with ``exc_info`` for traceability; 4xx as warnings.
    """

    @app.before_request
    def _seed_request_id() -> None:
        _ensure_request_id()

    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        resp, status = auth_error_response(err)
        level = log.error if status >= 500 else log.warning
        level(
            "AuthError: code=%s status=%s request_id=%s",
            err.kind.value,
            status,
            _ensure_request_id(),
        )
        return resp, status

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        problem = err.to_problem()
        level = log.error if err.status_code >= 500 else log.warning
        level(
            "APIError: code=%s status=%s msg=%s request_id=%s",
            err.code,
            err.status_code,
            err.message,
            problem.get("request_id"),
        )
        resp = _problem_response(problem)
        if err.status_code == HTTPStatus.UNAUTHORIZED:
            resp.headers["WWW-Authenticate"] = "Bearer"
        return resp, err.status_code

    @app.errorhandler(NotFoundError)
    def handle_not_found(err: NotFoundError):
        problem = _as_problem(
            status=HTTPStatus.NOT_FOUND,
            code="not_found",
            message=f"{err.entity} not found",
        )
        log.warning("NotFoundError: entity=%s request_id=%s", err.entity, problem["request_id"])
        return _problem_response(problem), HTTPStatus.NOT_FOUND

    @app.errorhandler(ConflictError)
    def handle_conflict(err: ConflictError):
        problem = _as_problem(status=HTTPStatus.CONFLICT, code="conflict", message=err.detail)
        log.warning("ConflictError: entity=%s request_id=%s", err.entity, problem["request_id"])
        return _problem_response(problem), HTTPStatus.CONFLICT

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        # Werkzeug may provide HTML-ish description; normalize for clients
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND:
            message = f"Route '{request.path}' not found"
        problem = _as_problem(status=status, code=error_code, message=message)
        level = log.error if status >= 500 else log.warning
        level(
            "HTTPException: code=%s status=%s detail=%s request_id=%s",
            error_code,
            status,
            message,
            problem.get("request_id"),
        )
        return _problem_response(problem), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        problem = _as_problem(
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": err.messages},
        )
        log.warning("ValidationError: request_id=%s", problem.get("request_id"))
        return _problem_response(problem), HTTPStatus.UNPROCESSABLE_ENTITY

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        # Do not leak raw DB error to clients
        problem = _as_problem(
            status=HTTPStatus.CONFLICT,
            code="conflict",
            message="Resource conflict",
        )
        log.error("IntegrityError: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem), HTTPStatus.CONFLICT

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        problem = _as_problem(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="service_unavailable",
            message="Service temporarily unavailable",
        )
        log.error("OperationalError: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem), HTTPStatus.SERVICE_UNAVAILABLE

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Unexpected server-side error; never leak internal details
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
        )
        log.error(
            "Unhandled exception: request_id=%s",
            problem.get("request_id"),
            exc_info=True,
        )
        return _problem_response(problem), HTTPStatus.INTERNAL_SERVER_ERROR
