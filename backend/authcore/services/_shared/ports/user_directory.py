from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol

from authcore.services._shared.dto import Principal
from authcore.services._shared.errors import NotFoundError


def normalize_identity(email: str) -> str:
    """Return the canonical login identity (trimmed, lower-cased email)."""
    return (email or "").strip().lower()


class UserLookup(Protocol):
    """Read-only access to the user directory owned by user management."""

    def find_by_email(self, email: str) -> Principal:
        """:raises NotFoundError: If no user has this (normalized) email."""

    def find_by_id(self, user_id: str) -> Principal:
        """:raises NotFoundError: If no user has this id."""


class PasswordVerifier(Protocol):
    """Constant-time password check against a stored hash."""

    def verify(self, plaintext: str, stored_hash: str | None) -> bool:
        """
        Return ``True`` only when ``plaintext`` matches ``stored_hash``.

        Implementations MUST still perform a full hash computation when
        ``stored_hash`` is ``None`` so unknown accounts cost the same time.
        """


class InMemoryUserDirectory(UserLookup):
    """
    Dictionary-backed :class:`UserLookup` for tests and local runs.

    .. note::
       Emails are normalized on insert and on lookup.
    """

    def __init__(self, principals: list[Principal] | None = None) -> None:
        self._by_id: dict[str, Principal] = {}
        self._lock = threading.Lock()
        for principal in principals or []:
            self.add(principal)

    def add(self, principal: Principal) -> Principal:
        stored = replace(principal, email=normalize_identity(principal.email))
        with self._lock:
            self._by_id[stored.user_id] = stored
        return stored

    def set_active(self, user_id: str, active: bool) -> None:
        with self._lock:
            current = self._by_id.get(user_id)
            if current is None:
                raise NotFoundError("User", user_id)
            self._by_id[user_id] = replace(current, is_active=active)

    def remove(self, user_id: str) -> None:
        with self._lock:
            self._by_id.pop(user_id, None)

    def find_by_email(self, email: str) -> Principal:
        key = normalize_identity(email)
        with self._lock:
            for principal in self._by_id.values():
                if principal.email == key:
                    return principal
        raise NotFoundError("User", key)

    def find_by_id(self, user_id: str) -> Principal:
        with self._lock:
            principal = self._by_id.get(user_id)
        if principal is None:
            raise NotFoundError("User", user_id)
        return principal
