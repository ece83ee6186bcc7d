"""Composition root for the auth core.

Builds one :class:`AuthCoordinator` per Flask app from its config and keeps it
in ``app.extensions["auth"]``. Nothing in :mod:`authcore.services` reads Flask
state; everything they need is passed in here.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from typing import Any

import redis  # type: ignore[import-untyped]
from flask import Flask, current_app
from sqlalchemy.orm import sessionmaker

from authcore.core.extensions import db
from authcore.infra.jwt.pyjwt_token_codec import JWTTokenCodec
from authcore.infra.redis.redis_login_rate_limiter import RedisLoginRateLimiter
from authcore.infra.redis.redis_session_store import RedisSessionStore
from authcore.infra.security.werkzeug_password_verifier import WerkzeugPasswordVerifier
from authcore.infra.sql.sqlalchemy_session_store import SqlAlchemySessionStore
from authcore.infra.sql.sqlalchemy_user_directory import SqlAlchemyUserDirectory
from authcore.services import AuthCoordinator, AuthSettings
from authcore.services._shared.base import Clock
from authcore.services._shared.ports import (
    InMemoryLoginRateLimiter,
    InMemorySessionStore,
    LoginRateLimiter,
    LoginThrottlePolicy,
    SessionStore,
)
from authcore.uow import SessionFactory

EXTENSION_KEY = "auth"


def _require_redis(client: redis.Redis | None, backend: str) -> redis.Redis:
    if client is None:
        raise RuntimeError(f"{backend} backend 'redis' requires REDIS_URL to be configured")
    return client


def build_session_store(
    config: Mapping[str, Any],
    *,
    session_factory: SessionFactory,
    redis_client: redis.Redis | None,
) -> SessionStore:
    """Select the session backend named by ``SESSION_BACKEND``."""
    backend = str(config.get("SESSION_BACKEND", "sql")).lower()
    if backend == "sql":
        return SqlAlchemySessionStore(session_factory)
    if backend == "redis":
        return RedisSessionStore(_require_redis(redis_client, "SESSION_BACKEND"))
    if backend == "memory":
        return InMemorySessionStore()
    raise ValueError(f"Unknown SESSION_BACKEND: {backend!r}")


def build_rate_limiter(
    config: Mapping[str, Any],
    settings: AuthSettings,
    *,
    redis_client: redis.Redis | None,
) -> LoginRateLimiter:
    """Select the login throttle backend named by ``RATE_LIMIT_BACKEND``."""
    policy = LoginThrottlePolicy(
        max_attempts=settings.max_login_attempts,
        window=settings.attempt_window,
        lockout=settings.lockout,
    )
    backend = str(config.get("RATE_LIMIT_BACKEND", "memory")).lower()
    if backend == "memory":
        return InMemoryLoginRateLimiter(policy)
    if backend == "redis":
        return RedisLoginRateLimiter(_require_redis(redis_client, "RATE_LIMIT_BACKEND"), policy)
    raise ValueError(f"Unknown RATE_LIMIT_BACKEND: {backend!r}")


def build_coordinator(
    config: Mapping[str, Any],
    *,
    session_factory: SessionFactory,
    redis_client: redis.Redis | None = None,
    clock: Clock | None = None,
) -> AuthCoordinator:
    """
    Wire an :class:`AuthCoordinator` from a config mapping.

    :param config: Flask config or any mapping with the same keys.
    :param session_factory: SQLAlchemy session factory for the user directory
        and the ``sql`` session backend.
    :param redis_client: Client for the ``redis`` backends.
    :param clock: Optional clock shared by the codec and the services.
    :returns: Ready coordinator.
    :raises RuntimeError: When a selected backend misses its connection.
    :raises ValueError: On unknown backend names or invalid settings.
    """
    settings = AuthSettings.from_mapping(config)
    codec_kwargs: dict[str, Any] = {}
    if clock is not None:
        codec_kwargs["clock"] = clock
    codec = JWTTokenCodec(
        secret=config["JWT_SECRET_KEY"],
        refresh_secret=config.get("JWT_REFRESH_SECRET_KEY"),
        issuer=config.get("JWT_ISSUER", "authcore"),
        access_ttl=settings.access_token_ttl,
        refresh_ttl=settings.refresh_token_ttl,
        leeway=timedelta(seconds=int(config.get("JWT_LEEWAY_SECONDS", 0))),
        **codec_kwargs,
    )
    return AuthCoordinator(
        codec=codec,
        sessions=build_session_store(
            config, session_factory=session_factory, redis_client=redis_client
        ),
        users=SqlAlchemyUserDirectory(session_factory),
        passwords=WerkzeugPasswordVerifier(),
        limiter=build_rate_limiter(config, settings, redis_client=redis_client),
        settings=settings,
        clock=clock,
    )


def init_app(app: Flask) -> None:
    """Build the coordinator for ``app``; call after :mod:`extensions`."""
    with app.app_context():
        session_factory = sessionmaker(bind=db.engine, expire_on_commit=False)
    app.extensions[EXTENSION_KEY] = build_coordinator(
        app.config,
        session_factory=session_factory,
        redis_client=app.extensions.get("redis_client"),
    )


def get_auth() -> AuthCoordinator:
    """Return the coordinator of the current app."""
    coordinator = current_app.extensions.get(EXTENSION_KEY)
    if coordinator is None:
        raise RuntimeError("Auth core is not initialized. Call authcore.core.auth.init_app().")
    return coordinator
