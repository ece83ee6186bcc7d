"""Pytest fixtures for the auth core.

Service tests run against in-memory doubles and a :class:`FrozenClock`; SQL
adapter tests get a fresh SQLite file per test so each unit of work opens its
own connection exactly as it would against a real server.
"""

from __future__ import annotations

import os
from collections.abc import Callable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from authcore.core.config import TestingConfig
from authcore.core.extensions import db as _db
from authcore.factory import create_app
from authcore.infra.jwt.pyjwt_token_codec import JWTTokenCodec
from authcore.infra.security.werkzeug_password_verifier import WerkzeugPasswordVerifier
from authcore.services import AuthCoordinator, AuthSettings
from authcore.services._shared.dto import Principal
from authcore.services._shared.ports import (
    InMemoryLoginRateLimiter,
    InMemorySessionStore,
    InMemoryUserDirectory,
    LoginThrottlePolicy,
)
from tests.helpers.clock import FrozenClock

PASSWORD = "correct horse battery staple"
# Cheap hashing keeps the suite fast; strength is irrelevant here.
FAST_HASH_METHOD = "pbkdf2:sha256:1000"


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Uses an in-memory SQLite database for speed.
    - Keeps sessions and throttling in memory.
    - Avoids hitting external services.
    """

    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SESSION_BACKEND = "memory"
    RATE_LIMIT_BACKEND = "memory"
    USE_PROXYFIX = True
    REFRESH_COOKIE_SECURE = True


# ------------------------------ Core doubles -------------------------------- #


@pytest.fixture()
def clock() -> FrozenClock:
    """Provide a clock frozen at a fixed Monday morning (UTC)."""
    return FrozenClock()


@pytest.fixture()
def settings() -> AuthSettings:
    """Default policy knobs."""
    return AuthSettings()


@pytest.fixture()
def codec(clock, settings) -> JWTTokenCodec:
    """HS256 codec sharing the frozen clock."""
    return JWTTokenCodec(
        secret="test-access-secret",
        refresh_secret="test-refresh-secret",
        issuer="authcore-tests",
        access_ttl=settings.access_token_ttl,
        refresh_ttl=settings.refresh_token_ttl,
        clock=clock,
    )


@pytest.fixture()
def passwords() -> WerkzeugPasswordVerifier:
    return WerkzeugPasswordVerifier(method=FAST_HASH_METHOD)


@pytest.fixture()
def users(passwords) -> InMemoryUserDirectory:
    """Directory holding one active user (``alice``) and one admin (``root``)."""
    directory = InMemoryUserDirectory()
    directory.add(
        Principal(
            user_id="u-alice",
            email="alice@example.com",
            display_name="Alice",
            password_hash=passwords.hash(PASSWORD),
        )
    )
    directory.add(
        Principal(
            user_id="u-root",
            email="root@example.com",
            role="admin",
            display_name="Root",
            password_hash=passwords.hash(PASSWORD),
        )
    )
    return directory


@pytest.fixture()
def sessions() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture()
def make_coordinator(clock, codec, users, passwords, sessions) -> Callable[..., AuthCoordinator]:
    """
    Build coordinators over the shared doubles.

    Keyword arguments override :class:`AuthSettings` fields; the codec is
    rebuilt when token lifetimes change.
    """

    def _make(**overrides) -> AuthCoordinator:
        settings = AuthSettings(**overrides)
        token_codec = codec
        if "access_token_ttl" in overrides or "refresh_token_ttl" in overrides:
            token_codec = JWTTokenCodec(
                secret=codec.secret,
                refresh_secret=codec.refresh_secret,
                issuer=codec.issuer,
                access_ttl=settings.access_token_ttl,
                refresh_ttl=settings.refresh_token_ttl,
                clock=clock,
            )
        limiter = InMemoryLoginRateLimiter(
            LoginThrottlePolicy(
                max_attempts=settings.max_login_attempts,
                window=settings.attempt_window,
                lockout=settings.lockout,
            )
        )
        return AuthCoordinator(
            codec=token_codec,
            sessions=sessions,
            users=users,
            passwords=passwords,
            limiter=limiter,
            settings=settings,
            clock=clock,
        )

    return _make


@pytest.fixture()
def coordinator(make_coordinator) -> AuthCoordinator:
    """Coordinator with default settings."""
    return make_coordinator()


@pytest.fixture()
def past_min_interval(clock, settings) -> Callable[[], None]:
    """Advance the clock just past the minimum refresh interval."""

    def _advance() -> None:
        clock.advance(settings.refresh_min_interval.total_seconds() + 1)

    return _advance


# --------------------------------- SQL -------------------------------------- #


@pytest.fixture()
def engine(tmp_path):
    """SQLite engine on a per-test file with the full schema created."""
    from authcore import models as _models  # noqa: F401

    eng = create_engine(f"sqlite:///{tmp_path / 'auth.db'}")
    _db.metadata.create_all(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture()
def session_factory(engine):
    """Session factory as the composition root builds it."""
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture()
def user_factory(session_factory):
    """Wire Factory Boy to a session on the per-test database."""
    from tests.factories import SQLAlchemySession
    from tests.factories.user import UserFactory

    session = session_factory()
    SQLAlchemySession.set(session)
    try:
        yield UserFactory
    finally:
        SQLAlchemySession.set(None)
        session.close()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# --------------------------------- Flask ------------------------------------ #


@pytest.fixture()
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied and tables created.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestConfig, instance_relative_config=False)
    app.logger.setLevel("WARNING")
    with app.app_context():
        _db.create_all()
    yield app
    with app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()
