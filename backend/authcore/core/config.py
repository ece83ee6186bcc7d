"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Loads .env in development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: int
        Value returned when the variable is unset or blank.

    Returns
    -------
    int
        Parsed value.

    Raises
    ------
    ValueError
        If the variable is set but is not an integer.
    """
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val.strip())


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    SECRET_KEY: str
        Flask secret. Defaults to a development placeholder.
    JWT_SECRET_KEY: str
        HMAC key for access tokens.
    JWT_REFRESH_SECRET_KEY: str | None
        HMAC key for refresh tokens. Derived from ``JWT_SECRET_KEY`` when
        unset so the two token kinds never share a key.
    JWT_ISSUER: str
        ``iss`` claim written and required on every token.
    JWT_LEEWAY_SECONDS: int
        Clock skew tolerated when checking ``exp``/``nbf``.
    ACCESS_TOKEN_TTL_SECONDS, REFRESH_TOKEN_TTL_SECONDS: int
        Token lifetimes.
    LOGIN_MAX_ATTEMPTS, LOGIN_ATTEMPT_WINDOW_SECONDS, LOGIN_LOCKOUT_SECONDS: int
        Failed-login throttle per identity.
    REFRESH_MIN_INTERVAL_SECONDS: int
        Minimum spacing between two refreshes of one session.
    ROTATION_MAX_AGE_SECONDS, ROTATION_MAX_REFRESH_COUNT: int
        Thresholds after which a refresh also rotates the refresh token.
    ROTATION_ALWAYS: bool
        Rotate on every refresh.
    SINGLE_SESSION_LOGIN: bool
        Revoke the user's other sessions on login.
    REUSE_REVOKE_SCOPE: str
        ``family`` or ``user``; blast radius of a detected token reuse.
    ANOMALY_POLICY: str
        ``flag`` (log and audit) or ``reauthenticate`` (revoke and reject).
    ANOMALY_IPV4_PREFIX, ANOMALY_IPV6_PREFIX: int
        Network prefixes considered "the same place".
    SESSION_BACKEND: str
        ``sql`` | ``redis`` | ``memory``.
    RATE_LIMIT_BACKEND: str
        ``memory`` | ``redis``.
    REDIS_URL: str | None
        Redis connection string; required by the ``redis`` backends.
    REFRESH_COOKIE_*:
        Attributes of the HTTP-only cookie carrying the refresh token.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")
    JWT_REFRESH_SECRET_KEY = os.getenv("JWT_REFRESH_SECRET_KEY") or None
    JWT_ISSUER = os.getenv("JWT_ISSUER", "authcore")
    JWT_LEEWAY_SECONDS = env_int("JWT_LEEWAY_SECONDS", 0)

    # Token lifetimes
    ACCESS_TOKEN_TTL_SECONDS = env_int("ACCESS_TOKEN_TTL_SECONDS", 15 * 60)
    REFRESH_TOKEN_TTL_SECONDS = env_int("REFRESH_TOKEN_TTL_SECONDS", 7 * 24 * 3600)

    # Login throttling
    LOGIN_MAX_ATTEMPTS = env_int("LOGIN_MAX_ATTEMPTS", 5)
    LOGIN_ATTEMPT_WINDOW_SECONDS = env_int("LOGIN_ATTEMPT_WINDOW_SECONDS", 15 * 60)
    LOGIN_LOCKOUT_SECONDS = env_int("LOGIN_LOCKOUT_SECONDS", 15 * 60)

    # Refresh / rotation
    REFRESH_MIN_INTERVAL_SECONDS = env_int("REFRESH_MIN_INTERVAL_SECONDS", 10)
    ROTATION_MAX_AGE_SECONDS = env_int("ROTATION_MAX_AGE_SECONDS", 24 * 3600)
    ROTATION_MAX_REFRESH_COUNT = env_int("ROTATION_MAX_REFRESH_COUNT", 10)
    ROTATION_ALWAYS = env_bool("ROTATION_ALWAYS", False)
    SINGLE_SESSION_LOGIN = env_bool("SINGLE_SESSION_LOGIN", False)
    REUSE_REVOKE_SCOPE = os.getenv("REUSE_REVOKE_SCOPE", "family")

    # Anomaly detection
    ANOMALY_POLICY = os.getenv("ANOMALY_POLICY", "flag")
    ANOMALY_IPV4_PREFIX = env_int("ANOMALY_IPV4_PREFIX", 24)
    ANOMALY_IPV6_PREFIX = env_int("ANOMALY_IPV6_PREFIX", 64)

    # Backends
    SESSION_BACKEND = os.getenv("SESSION_BACKEND", "sql")
    RATE_LIMIT_BACKEND = os.getenv("RATE_LIMIT_BACKEND", "memory")
    REDIS_URL = os.getenv("REDIS_URL") or None
    REDIS_SOCKET_TIMEOUT_SECONDS = env_int("REDIS_SOCKET_TIMEOUT_SECONDS", 2)

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_timeout": env_int("DATABASE_POOL_TIMEOUT_SECONDS", 5),
    }

    # Refresh cookie
    REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "refresh_token")
    REFRESH_COOKIE_PATH = os.getenv("REFRESH_COOKIE_PATH", "/api/v1/auth/refresh")
    REFRESH_COOKIE_SECURE = env_bool("REFRESH_COOKIE_SECURE", True)
    REFRESH_COOKIE_SAMESITE = os.getenv("REFRESH_COOKIE_SAMESITE", "Strict")

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)
    PROXYFIX_HOPS = env_int("PROXYFIX_HOPS", 1)

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and allows the refresh cookie over plain
    HTTP so the dev server works without TLS.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    REFRESH_COOKIE_SECURE = env_bool("REFRESH_COOKIE_SECURE", False)


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Keeps sessions and throttling in memory so no Redis is needed.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    SQLALCHEMY_ENGINE_OPTIONS: dict = {}
    SESSION_BACKEND = "memory"
    RATE_LIMIT_BACKEND = "memory"
    REDIS_URL = None
    JWT_SECRET_KEY = "testing-access-secret"
    JWT_REFRESH_SECRET_KEY = "testing-refresh-secret"
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled and always marks the refresh cookie
    ``Secure``.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False
    REFRESH_COOKIE_SECURE = True


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
