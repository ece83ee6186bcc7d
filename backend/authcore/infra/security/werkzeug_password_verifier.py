# authcore/infra/security/werkzeug_password_verifier.py
from __future__ import annotations

import logging
import secrets

from werkzeug.security import check_password_hash, generate_password_hash

from authcore.services._shared.ports import PasswordVerifier

log = logging.getLogger(__name__)


class WerkzeugPasswordVerifier(PasswordVerifier):
    """
    Password verifier backed by :mod:`werkzeug.security`.

    Unknown accounts are checked against a throw-away hash generated once per
    instance, so the response time does not reveal whether an email exists.
    """

    def __init__(self, method: str | None = None) -> None:
        """
        :param method: Werkzeug hashing method for :meth:`hash` (library default when ``None``).
        """
        self.method = method
        self._dummy_hash = self.hash(secrets.token_urlsafe(32))

    def hash(self, plaintext: str) -> str:
        """Hash ``plaintext`` for storage."""
        if self.method:
            return generate_password_hash(plaintext, method=self.method)
        return generate_password_hash(plaintext)

    def verify(self, plaintext: str, stored_hash: str | None) -> bool:
        if not stored_hash:
            check_password_hash(self._dummy_hash, plaintext or "")
            return False
        try:
            # ``check_password_hash`` is untyped; coerce to bool for mypy.
            return bool(check_password_hash(stored_hash, plaintext or ""))
        except ValueError:
            log.warning("unsupported password hash format", extra={"event": "bad_password_hash"})
            return False
