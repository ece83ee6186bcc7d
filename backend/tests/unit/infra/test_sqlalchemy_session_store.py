# tests/unit/infra/test_sqlalchemy_session_store.py
"""
Unit tests for SqlAlchemySessionStore on a per-test SQLite database.

Flows covered:
- create + get / find_by_token_hash, timezone round trip
- duplicate token hash
- guarded revocations (single, user, family)
- update_metadata compare-and-set
- rotate_atomically, including rollback of a failed insert
- list_for_user filters and the activity trail
- storage failures surfacing as STORAGE_UNAVAILABLE
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from authcore.infra.sql.sqlalchemy_session_store import SqlAlchemySessionStore
from authcore.services import AuthError, ErrorKind
from authcore.services._shared.dto import (
    ActivityAction,
    SessionActivityRecord,
    SessionMetadata,
    SessionRecord,
)
from authcore.services._shared.errors import ConflictError, NotFoundError, storage_errors


@pytest.fixture()
def store(session_factory) -> SqlAlchemySessionStore:
    return SqlAlchemySessionStore(session_factory=session_factory)


def _record(clock, i: int, *, user_id="u-1", family_id="f-1", **fields) -> SessionRecord:
    now = clock()
    return SessionRecord(
        id=f"00000000-0000-0000-0000-{i:012d}",
        user_id=user_id,
        refresh_token_hash=f"{i:064x}",
        family_id=family_id,
        created_at=fields.pop("created_at", now),
        expires_at=fields.pop("expires_at", now + timedelta(days=7)),
        **fields,
    )


class TestSqlAlchemySessionStore:
    """Ensure the relational store honours the conditional-write contract."""

    def test_create_and_read_back(self, store, clock):
        record = _record(clock, 1, ip_address="203.0.113.1", user_agent="ua/1")
        store.create(record)

        fetched = store.get(record.id)
        assert fetched == record
        assert fetched.created_at.tzinfo is not None
        assert fetched.created_at.utcoffset() == timedelta(0)
        assert store.find_by_token_hash(record.refresh_token_hash) == record

    def test_missing_rows_raise_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.get("missing")
        with pytest.raises(NotFoundError):
            store.find_by_token_hash("missing")

    def test_duplicate_token_hash_conflicts(self, store, clock):
        store.create(_record(clock, 1))
        clash = _record(clock, 2)
        clash = SessionRecord(
            id=clash.id,
            user_id=clash.user_id,
            refresh_token_hash=_record(clock, 1).refresh_token_hash,
            family_id=clash.family_id,
            created_at=clash.created_at,
            expires_at=clash.expires_at,
        )
        with pytest.raises(ConflictError):
            store.create(clash)

    def test_revoke_is_guarded(self, store, clock):
        record = _record(clock, 1)
        store.create(record)
        first = clock()

        assert store.revoke(record.id, first) is True
        assert store.revoke(record.id, clock.advance(60)) is False
        assert store.get(record.id).revoked_at == first

    def test_revoke_user_and_family(self, store, clock):
        store.create(_record(clock, 1, family_id="f-a"))
        store.create(_record(clock, 2, family_id="f-a"))
        store.create(_record(clock, 3, family_id="f-b"))
        store.create(_record(clock, 4, user_id="u-2", family_id="f-c"))

        assert store.revoke_family("f-a", clock()) == 2
        assert store.revoke_all_for_user("u-1", clock()) == 1
        assert store.revoke_all_for_user("u-1", clock()) == 0
        assert [s.id for s in store.list_for_user("u-2", now=clock())] == [_record(clock, 4).id]

    def test_update_metadata_compare_and_set(self, store, clock):
        record = _record(clock, 1)
        store.create(record)
        meta = SessionMetadata(
            last_used_at=clock.advance(30),
            last_ip="203.0.113.9",
            last_user_agent="ua/2",
            refresh_count=1,
        )

        assert store.update_metadata(record.id, meta, expected_refresh_count=0) is True
        assert store.update_metadata(record.id, meta, expected_refresh_count=0) is False
        current = store.get(record.id)
        assert current.refresh_count == 1
        assert current.last_used_at == clock()
        assert current.last_ip == "203.0.113.9"

        store.revoke(record.id, clock())
        assert store.update_metadata(record.id, meta, expected_refresh_count=1) is False

    def test_rotate_atomically(self, store, clock):
        old = _record(clock, 1)
        store.create(old)
        now = clock.advance(hours=25)
        child = _record(clock, 2, parent_session_id=old.id)

        assert store.rotate_atomically(old.id, child, now) is True
        assert store.rotate_atomically(old.id, _record(clock, 3), now) is False

        superseded = store.get(old.id)
        assert superseded.was_rotated is True
        assert superseded.revoked_at == superseded.rotated_at == now
        assert store.get(child.id).parent_session_id == old.id
        with pytest.raises(NotFoundError):
            store.get(_record(clock, 3).id)

    def test_failed_insert_rolls_back_supersession(self, store, clock):
        old = _record(clock, 1)
        other = _record(clock, 2)
        store.create(old)
        store.create(other)
        clash = SessionRecord(
            id=_record(clock, 3).id,
            user_id=old.user_id,
            refresh_token_hash=other.refresh_token_hash,
            family_id=old.family_id,
            created_at=clock(),
            expires_at=clock() + timedelta(days=7),
        )

        with pytest.raises(ConflictError):
            store.rotate_atomically(old.id, clash, clock())
        assert store.get(old.id).is_revoked is False

    def test_list_for_user(self, store, clock):
        a = _record(clock, 1)
        b = _record(clock, 2, created_at=clock() + timedelta(seconds=1))
        c = _record(clock, 3, expires_at=clock() + timedelta(seconds=5))
        for r in (a, b, c):
            store.create(r)
        store.revoke(b.id, clock())
        later = clock.advance(10)

        assert [s.id for s in store.list_for_user("u-1", now=later)] == [a.id]
        assert [s.id for s in store.list_for_user("u-1", active_only=False)] == [a.id, c.id, b.id]

    def test_activity_trail(self, store, clock):
        record = _record(clock, 1)
        store.create(record)
        store.record_activity(
            SessionActivityRecord(
                session_id=record.id,
                action=ActivityAction.LOGIN,
                created_at=clock(),
                ip_address="203.0.113.1",
            )
        )
        store.record_activity(
            SessionActivityRecord(
                session_id=record.id,
                action=ActivityAction.REUSE_DETECTED,
                created_at=clock.advance(1),
                details={"revoked": 2},
            )
        )

        trail = store.list_activity(record.id)
        assert [e.action for e in trail] == [ActivityAction.LOGIN, ActivityAction.REUSE_DETECTED]
        assert trail[0].details == {}
        assert trail[1].details == {"revoked": 2}


def test_unreachable_database_is_storage_unavailable(tmp_path):
    """Connection failures surface as a transient auth error."""
    missing = tmp_path / "no-such-dir" / "auth.db"
    engine = create_engine(f"sqlite:///{missing}")
    store = SqlAlchemySessionStore(session_factory=sessionmaker(bind=engine))

    with pytest.raises(AuthError) as exc, storage_errors():
        store.get("anything")
    assert exc.value.kind is ErrorKind.STORAGE_UNAVAILABLE
    assert exc.value.transient is True
    engine.dispose()
