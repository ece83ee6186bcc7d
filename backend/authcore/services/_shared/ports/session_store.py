from __future__ import annotations

import hashlib
import threading
from dataclasses import replace
from datetime import datetime
from typing import Protocol

from authcore.services._shared.dto import (
    SessionActivityRecord,
    SessionMetadata,
    SessionRecord,
)
from authcore.services._shared.errors import ConflictError, NotFoundError


def hash_refresh_token(raw_token: str) -> str:
    """
    Return the lookup key of a raw refresh token.

    :param raw_token: Encoded refresh JWT as handed to the client.
    :returns: Lower-case SHA-256 hex digest.
    """
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


class SessionStore(Protocol):
    """
    Durable store of refresh-token sessions.

    Rotation and metadata updates MUST be conditional: they only apply while
    the targeted session is still unrevoked, so two concurrent refreshes with
    the same token can never both succeed.
    """

    def create(self, session: SessionRecord) -> None:
        """
        Persist a new session.

        :raises ConflictError: If the token hash is already registered.
        """

    def get(self, session_id: str) -> SessionRecord:
        """:raises NotFoundError: If no session has this id."""

    def find_by_token_hash(self, token_hash: str) -> SessionRecord:
        """:raises NotFoundError: If no session has this token hash."""

    def revoke(self, session_id: str, now: datetime) -> bool:
        """Revoke one session. :returns: ``True`` if it was active until now."""

    def revoke_all_for_user(self, user_id: str, now: datetime) -> int:
        """Revoke every unrevoked session of a user. :returns: Sessions affected."""

    def revoke_family(self, family_id: str, now: datetime) -> int:
        """Revoke every unrevoked session of a rotation family. :returns: Sessions affected."""

    def update_metadata(
        self, session_id: str, metadata: SessionMetadata, *, expected_refresh_count: int
    ) -> bool:
        """
        Compare-and-set the usage metadata.

        Applies only while the session is unrevoked and its ``refresh_count``
        still equals ``expected_refresh_count``.

        :returns: ``True`` if the update was applied.
        """

    def rotate_atomically(
        self, old_session_id: str, new_session: SessionRecord, now: datetime
    ) -> bool:
        """
        Supersede ``old_session_id`` with ``new_session`` in one atomic unit.

        The old session gets ``revoked_at = rotated_at = now`` and
        ``was_rotated = True``; the new one is inserted. Either both happen or
        neither does.

        :returns: ``False`` if the old session was already revoked or rotated.
        """

    def list_for_user(
        self, user_id: str, *, active_only: bool = True, now: datetime | None = None
    ) -> list[SessionRecord]:
        """List sessions of a user ordered by creation time."""

    def record_activity(self, activity: SessionActivityRecord) -> None:
        """Append an audit entry."""

    def list_activity(self, session_id: str) -> list[SessionActivityRecord]:
        """Return audit entries of a session, oldest first."""


def session_is_listed(record: SessionRecord, active_only: bool, now: datetime | None) -> bool:
    if not active_only:
        return True
    if record.is_revoked:
        return False
    return now is None or not record.is_expired(now)


class InMemorySessionStore(SessionStore):
    """
    In-memory session store with conditional rotation.

    .. note::
       A single threading lock makes every write atomic; used by unit tests and
       the ``memory`` session backend.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, SessionRecord] = {}
        self._by_hash: dict[str, str] = {}
        self._activity: dict[str, list[SessionActivityRecord]] = {}
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    def _insert(self, session: SessionRecord) -> None:
        if session.refresh_token_hash in self._by_hash or session.id in self._by_id:
            raise ConflictError("Session", "refresh token hash already registered")
        self._by_id[session.id] = session
        self._by_hash[session.refresh_token_hash] = session.id

    def _revoke_where(self, predicate, now: datetime) -> int:
        count = 0
        for sid, s in self._by_id.items():
            if s.revoked_at is None and predicate(s):
                self._by_id[sid] = replace(s, revoked_at=now)
                count += 1
        return count

    # -------------------------- API ----------------------------

    def create(self, session: SessionRecord) -> None:
        with self._lock:
            self._insert(session)

    def get(self, session_id: str) -> SessionRecord:
        with self._lock:
            s = self._by_id.get(session_id)
        if s is None:
            raise NotFoundError("Session", session_id)
        return s

    def find_by_token_hash(self, token_hash: str) -> SessionRecord:
        with self._lock:
            sid = self._by_hash.get(token_hash)
            s = self._by_id.get(sid) if sid else None
        if s is None:
            raise NotFoundError("Session", "token")
        return s

    def revoke(self, session_id: str, now: datetime) -> bool:
        with self._lock:
            s = self._by_id.get(session_id)
            if s is None or s.revoked_at is not None:
                return False
            self._by_id[session_id] = replace(s, revoked_at=now)
            return True

    def revoke_all_for_user(self, user_id: str, now: datetime) -> int:
        with self._lock:
            return self._revoke_where(lambda s: s.user_id == user_id, now)

    def revoke_family(self, family_id: str, now: datetime) -> int:
        with self._lock:
            return self._revoke_where(lambda s: s.family_id == family_id, now)

    def update_metadata(
        self, session_id: str, metadata: SessionMetadata, *, expected_refresh_count: int
    ) -> bool:
        with self._lock:
            s = self._by_id.get(session_id)
            if s is None or s.revoked_at is not None:
                return False
            if s.refresh_count != expected_refresh_count:
                return False
            self._by_id[session_id] = replace(
                s,
                last_used_at=metadata.last_used_at,
                last_ip=metadata.last_ip,
                last_user_agent=metadata.last_user_agent,
                refresh_count=metadata.refresh_count,
            )
            return True

    def rotate_atomically(
        self, old_session_id: str, new_session: SessionRecord, now: datetime
    ) -> bool:
        with self._lock:
            old = self._by_id.get(old_session_id)
            if old is None or old.revoked_at is not None:
                return False
            self._insert(new_session)
            self._by_id[old_session_id] = replace(
                old, revoked_at=now, was_rotated=True, rotated_at=now
            )
            return True

    def list_for_user(
        self, user_id: str, *, active_only: bool = True, now: datetime | None = None
    ) -> list[SessionRecord]:
        with self._lock:
            rows = [s for s in self._by_id.values() if s.user_id == user_id]
        rows = [s for s in rows if session_is_listed(s, active_only, now)]
        return sorted(rows, key=lambda s: (s.created_at, s.id))

    def record_activity(self, activity: SessionActivityRecord) -> None:
        with self._lock:
            self._activity.setdefault(activity.session_id, []).append(activity)

    def list_activity(self, session_id: str) -> list[SessionActivityRecord]:
        with self._lock:
            return list(self._activity.get(session_id, []))
