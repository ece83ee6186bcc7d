"""Unit tests for the Werkzeug-backed password verifier."""

from __future__ import annotations

from tests.conftest import FAST_HASH_METHOD


def test_hash_and_verify(passwords):
    stored = passwords.hash("s3cret!")

    assert stored.startswith("pbkdf2:sha256:1000$")
    assert passwords.verify("s3cret!", stored) is True
    assert passwords.verify("S3cret!", stored) is False


def test_missing_hash_never_verifies(passwords):
    assert passwords.verify("anything", None) is False
    assert passwords.verify("anything", "") is False


def test_unsupported_hash_format_is_a_mismatch(passwords):
    assert passwords.verify("anything", "md5$legacy$deadbeef") is False


def test_method_is_configurable(passwords):
    assert passwords.method == FAST_HASH_METHOD
