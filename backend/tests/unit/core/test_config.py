"""Tests for environment parsing and config selection."""

from __future__ import annotations

import pytest

from authcore.core.config import (
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    env_bool,
    env_int,
    get_config,
)


@pytest.mark.parametrize("raw", ["1", "true", "YES", " on ", "y"])
def test_env_bool_truthy(monkeypatch, raw):
    monkeypatch.setenv("FLAG", raw)
    assert env_bool("FLAG") is True


def test_env_bool_falsy_and_default(monkeypatch):
    monkeypatch.setenv("FLAG", "off")
    assert env_bool("FLAG", default=True) is False
    monkeypatch.delenv("FLAG")
    assert env_bool("FLAG", default=True) is True


def test_env_int(monkeypatch):
    monkeypatch.setenv("NUM", " 42 ")
    assert env_int("NUM", 7) == 42
    monkeypatch.setenv("NUM", "  ")
    assert env_int("NUM", 7) == 7
    monkeypatch.delenv("NUM")
    assert env_int("NUM", 7) == 7


def test_env_int_rejects_garbage(monkeypatch):
    monkeypatch.setenv("NUM", "ten")
    with pytest.raises(ValueError):
        env_int("NUM", 7)


@pytest.mark.parametrize(
    ("env", "expected"),
    [
        ("production", ProductionConfig),
        ("Testing", TestingConfig),
        ("development", DevelopmentConfig),
        ("staging", DevelopmentConfig),
    ],
)
def test_get_config(monkeypatch, env, expected):
    monkeypatch.setenv("APP_ENV", env)
    assert get_config() is expected


def test_get_config_defaults_to_development(monkeypatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    assert get_config() is DevelopmentConfig


def test_testing_config_uses_distinct_secrets():
    assert TestingConfig.JWT_SECRET_KEY != TestingConfig.JWT_REFRESH_SECRET_KEY
    assert TestingConfig.SESSION_BACKEND == "memory"
    assert ProductionConfig.REFRESH_COOKIE_SECURE is True
