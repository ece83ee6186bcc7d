"""Tests for the JSON log formatter and logging setup."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from authcore.core.logger import JSONFormatter, configure_logging, ensure_request_id


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(**attrs) -> logging.LogRecord:
    base = {"name": "authcore.test", "levelname": "INFO", "msg": "session issued"}
    base.update(attrs)
    return logging.makeLogRecord(base)


def test_security_fields_are_top_level():
    record = _record(event="login_failed", identity="ann@example.com", attempts=3, noise="x")

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "session issued"
    assert payload["event"] == "login_failed"
    assert payload["identity"] == "ann@example.com"
    assert payload["attempts"] == 3
    assert payload["request_id"] is None
    assert "noise" not in payload


def test_exception_is_rendered():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record(levelname="ERROR", exc_info=sys.exc_info())

    payload = json.loads(JSONFormatter().format(record))

    assert payload["level"] == "ERROR"
    assert "RuntimeError: boom" in payload["exc_info"]


def test_configure_logging_sets_level_and_handler(restore_root_logger):
    configure_logging("debug")

    assert restore_root_logger.level == logging.DEBUG
    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)


def test_request_id_outside_request():
    assert len(ensure_request_id()) == 36


def test_request_id_from_correlation_header(app):
    with app.test_request_context("/", headers={"X-Correlation-ID": "corr-1"}):
        assert ensure_request_id() == "corr-1"
        assert ensure_request_id() == "corr-1"
