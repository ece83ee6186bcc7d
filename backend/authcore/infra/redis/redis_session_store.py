# comments in English; reST docstrings
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import redis  # type: ignore[import-untyped]

from authcore.services._shared.dto import (
    ActivityAction,
    SessionActivityRecord,
    SessionMetadata,
    SessionRecord,
)
from authcore.services._shared.errors import ConflictError, NotFoundError
from authcore.services._shared.ports import SessionStore
from authcore.services._shared.ports.session_store import session_is_listed

# -------------------- codec helpers --------------------


def _s(value: Any) -> str:
    """Decode a Redis reply (bytes or str) to ``str``."""
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


def _iso(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat()


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _to_hash(s: SessionRecord) -> dict[str, str]:
    mapping = {
        "id": s.id,
        "user_id": s.user_id,
        "refresh_token_hash": s.refresh_token_hash,
        "family_id": s.family_id,
        "created_at": _iso(s.created_at),
        "expires_at": _iso(s.expires_at),
        "refresh_count": str(s.refresh_count),
        "was_rotated": "1" if s.was_rotated else "0",
    }
    optional = {
        "parent_session_id": s.parent_session_id,
        "ip_address": s.ip_address,
        "user_agent": s.user_agent,
        "last_ip": s.last_ip,
        "last_user_agent": s.last_user_agent,
        "last_used_at": _iso(s.last_used_at) if s.last_used_at else None,
        "revoked_at": _iso(s.revoked_at) if s.revoked_at else None,
        "rotated_at": _iso(s.rotated_at) if s.rotated_at else None,
    }
    mapping.update({k: v for k, v in optional.items() if v is not None})
    return mapping


def _decode_hash(raw: dict[Any, Any]) -> dict[str, str]:
    return {_s(k): _s(v) for k, v in raw.items()}


def _from_hash(h: dict[str, str]) -> SessionRecord:
    return SessionRecord(
        id=h["id"],
        user_id=h["user_id"],
        refresh_token_hash=h["refresh_token_hash"],
        family_id=h["family_id"],
        created_at=datetime.fromisoformat(h["created_at"]),
        expires_at=datetime.fromisoformat(h["expires_at"]),
        parent_session_id=h.get("parent_session_id"),
        ip_address=h.get("ip_address"),
        user_agent=h.get("user_agent"),
        last_ip=h.get("last_ip"),
        last_user_agent=h.get("last_user_agent"),
        last_used_at=_dt(h.get("last_used_at")),
        refresh_count=int(h.get("refresh_count", "0")),
        revoked_at=_dt(h.get("revoked_at")),
        was_rotated=h.get("was_rotated", "0") == "1",
        rotated_at=_dt(h.get("rotated_at")),
    )


@dataclass(slots=True)
class RedisSessionStore(SessionStore):
    """
    Redis-backed session store with optimistic-locking rotation.

    Layout (``{ns}`` defaults to ``sess``):

    - ``{ns}:{id}``: hash with the session fields.
    - ``{ns}:h:{token_hash}``: session id by refresh token hash.
    - ``{ns}:u:{user_id}`` / ``{ns}:f:{family_id}``: set of session ids.
    - ``{ns}:a:{id}``: list of JSON activity entries.

    Keys carry no TTL: revoked and expired sessions must stay readable so a
    replayed token is classified as reuse rather than unknown.

    :param r: A Redis client (already connected).
    :param ns: Key namespace.
    """

    r: redis.Redis
    ns: str = "sess"

    # -------------------- helpers --------------------

    def _k(self, session_id: str) -> str:
        return f"{self.ns}:{session_id}"

    def _kh(self, token_hash: str) -> str:
        return f"{self.ns}:h:{token_hash}"

    def _ku(self, user_id: str) -> str:
        return f"{self.ns}:u:{user_id}"

    def _kf(self, family_id: str) -> str:
        return f"{self.ns}:f:{family_id}"

    def _ka(self, session_id: str) -> str:
        return f"{self.ns}:a:{session_id}"

    def _write_new(self, p: Any, s: SessionRecord) -> None:
        p.hset(self._k(s.id), mapping=_to_hash(s))
        p.set(self._kh(s.refresh_token_hash), s.id)
        p.sadd(self._ku(s.user_id), s.id)
        p.sadd(self._kf(s.family_id), s.id)

    def _revoke_members(self, index_key: str, now: datetime) -> int:
        """
        Revoke every session listed under ``index_key``.

        The index is watched: a session added concurrently (``_write_new``
        SADDs to it) aborts the transaction and the retry revokes it too.
        """
        stamp = _iso(now)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(index_key)
                    ids = [_s(m) for m in p.smembers(index_key)]
                    if not ids:
                        p.unwatch()
                        return 0
                    p.multi()
                    for sid in ids:
                        # HSETNX keeps the first revocation instant.
                        p.hsetnx(self._k(sid), "revoked_at", stamp)
                    return sum(1 for changed in p.execute() if changed)
            except redis.WatchError:
                continue

    # -------------------- API ------------------------

    def create(self, session: SessionRecord) -> None:
        k, kh = self._k(session.id), self._kh(session.refresh_token_hash)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k, kh)
                    if p.exists(k) or p.exists(kh):
                        p.unwatch()
                        raise ConflictError("Session", "refresh token hash already registered")
                    p.multi()
                    self._write_new(p, session)
                    p.execute()
                    return
            except redis.WatchError:
                continue

    def get(self, session_id: str) -> SessionRecord:
        raw = self.r.hgetall(self._k(session_id))
        if not raw:
            raise NotFoundError("Session", session_id)
        return _from_hash(_decode_hash(raw))

    def find_by_token_hash(self, token_hash: str) -> SessionRecord:
        sid = self.r.get(self._kh(token_hash))
        if sid is None:
            raise NotFoundError("Session", "token")
        return self.get(_s(sid))

    def revoke(self, session_id: str, now: datetime) -> bool:
        key = self._k(session_id)
        if not self.r.exists(key):
            return False
        return bool(self.r.hsetnx(key, "revoked_at", _iso(now)))

    def revoke_all_for_user(self, user_id: str, now: datetime) -> int:
        return self._revoke_members(self._ku(user_id), now)

    def revoke_family(self, family_id: str, now: datetime) -> int:
        return self._revoke_members(self._kf(family_id), now)

    def update_metadata(
        self, session_id: str, metadata: SessionMetadata, *, expected_refresh_count: int
    ) -> bool:
        """
        Compare-and-set usage metadata with WATCH/MULTI/EXEC.

        A concurrent revoke or refresh touches the watched hash, aborting the
        transaction; the retry then observes the new state and gives up.
        """
        key = self._k(session_id)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    raw = p.hgetall(key)
                    if not raw:
                        p.unwatch()
                        return False
                    current = _decode_hash(raw)
                    if "revoked_at" in current:
                        p.unwatch()
                        return False
                    if int(current.get("refresh_count", "0")) != expected_refresh_count:
                        p.unwatch()
                        return False

                    mapping = {
                        "last_used_at": _iso(metadata.last_used_at),
                        "refresh_count": str(metadata.refresh_count),
                    }
                    if metadata.last_ip:
                        mapping["last_ip"] = metadata.last_ip
                    if metadata.last_user_agent:
                        mapping["last_user_agent"] = metadata.last_user_agent

                    p.multi()
                    p.hset(key, mapping=mapping)
                    p.execute()
                    return True
            except redis.WatchError:
                continue

    def rotate_atomically(
        self, old_session_id: str, new_session: SessionRecord, now: datetime
    ) -> bool:
        """
        Supersede ``old_session_id`` and insert ``new_session`` in one EXEC.

        The old hash is watched; if anything revokes or rotates it first the
        transaction aborts and the retry reports ``False``.
        """
        k_old = self._k(old_session_id)
        k_new = self._k(new_session.id)
        kh_new = self._kh(new_session.refresh_token_hash)
        stamp = _iso(now)

        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_old, k_new, kh_new)
                    raw = p.hgetall(k_old)
                    if not raw or "revoked_at" in _decode_hash(raw):
                        p.unwatch()
                        return False
                    if p.exists(k_new) or p.exists(kh_new):
                        p.unwatch()
                        raise ConflictError("Session", "refresh token hash already registered")

                    p.multi()
                    p.hset(
                        k_old,
                        mapping={"revoked_at": stamp, "rotated_at": stamp, "was_rotated": "1"},
                    )
                    self._write_new(p, new_session)
                    p.execute()
                    return True
            except redis.WatchError:
                # Concurrent modification detected; retry loop
                continue

    def list_for_user(
        self, user_id: str, *, active_only: bool = True, now: datetime | None = None
    ) -> list[SessionRecord]:
        ids = sorted(_s(m) for m in self.r.smembers(self._ku(user_id)))
        if not ids:
            return []
        pipe = self.r.pipeline(transaction=False)
        for sid in ids:
            pipe.hgetall(self._k(sid))
        rows = [_from_hash(_decode_hash(raw)) for raw in pipe.execute() if raw]
        rows = [s for s in rows if session_is_listed(s, active_only, now)]
        return sorted(rows, key=lambda s: (s.created_at, s.id))

    def record_activity(self, activity: SessionActivityRecord) -> None:
        entry = {
            "action": activity.action.value,
            "created_at": _iso(activity.created_at),
            "ip_address": activity.ip_address,
            "user_agent": activity.user_agent,
            "details": activity.details,
        }
        self.r.rpush(self._ka(activity.session_id), json.dumps(entry, default=str))

    def list_activity(self, session_id: str) -> list[SessionActivityRecord]:
        out: list[SessionActivityRecord] = []
        for raw in self.r.lrange(self._ka(session_id), 0, -1):
            entry = json.loads(_s(raw))
            out.append(
                SessionActivityRecord(
                    session_id=session_id,
                    action=ActivityAction(entry["action"]),
                    created_at=datetime.fromisoformat(entry["created_at"]),
                    ip_address=entry.get("ip_address"),
                    user_agent=entry.get("user_agent"),
                    details=entry.get("details") or {},
                )
            )
        return out
