# comments in English; reST docstrings
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from authcore.models.session import AuthSession, SessionActivity
from authcore.services._shared.dto import (
    ActivityAction,
    SessionActivityRecord,
    SessionMetadata,
    SessionRecord,
)
from authcore.services._shared.errors import ConflictError, NotFoundError
from authcore.services._shared.ports import SessionStore
from authcore.uow import SessionFactory, SQLAlchemyUnitOfWork

# -------------------- mapping helpers --------------------


def to_record(row: AuthSession) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        user_id=row.user_id,
        refresh_token_hash=row.refresh_token_hash,
        family_id=row.family_id,
        created_at=row.created_at,
        expires_at=row.expires_at,
        parent_session_id=row.parent_session_id,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        last_ip=row.last_ip,
        last_user_agent=row.last_user_agent,
        last_used_at=row.last_used_at,
        refresh_count=row.refresh_count,
        revoked_at=row.revoked_at,
        was_rotated=row.was_rotated,
        rotated_at=row.rotated_at,
    )


def to_row(s: SessionRecord) -> AuthSession:
    return AuthSession(
        id=s.id,
        user_id=s.user_id,
        refresh_token_hash=s.refresh_token_hash,
        family_id=s.family_id,
        parent_session_id=s.parent_session_id,
        ip_address=s.ip_address,
        user_agent=s.user_agent,
        last_ip=s.last_ip,
        last_user_agent=s.last_user_agent,
        last_used_at=s.last_used_at,
        refresh_count=s.refresh_count,
        created_at=s.created_at,
        expires_at=s.expires_at,
        revoked_at=s.revoked_at,
        was_rotated=s.was_rotated,
        rotated_at=s.rotated_at,
    )


@dataclass(slots=True)
class SqlAlchemySessionStore(SessionStore):
    """
    Relational session store.

    Every call runs in its own :class:`SQLAlchemyUnitOfWork`; state changes
    are guarded ``UPDATE ... WHERE revoked_at IS NULL`` statements, so the
    database decides which of two concurrent writers wins.

    :param session_factory: Callable returning a new SQLAlchemy session.
    """

    session_factory: SessionFactory

    def _uow(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(self.session_factory)

    # -------------------- API ------------------------

    def create(self, session: SessionRecord) -> None:
        try:
            with self._uow() as uow:
                uow.sessions.add(to_row(session))
        except IntegrityError as exc:
            raise ConflictError("Session", "refresh token hash already registered") from exc

    def get(self, session_id: str) -> SessionRecord:
        with self._uow() as uow:
            row = uow.sessions.get(session_id)
            if row is None:
                raise NotFoundError("Session", session_id)
            return to_record(row)

    def find_by_token_hash(self, token_hash: str) -> SessionRecord:
        with self._uow() as uow:
            row = uow.sessions.get_by_token_hash(token_hash)
            if row is None:
                raise NotFoundError("Session", "token")
            return to_record(row)

    def revoke(self, session_id: str, now: datetime) -> bool:
        with self._uow() as uow:
            return uow.sessions.revoke(session_id, now)

    def revoke_all_for_user(self, user_id: str, now: datetime) -> int:
        with self._uow() as uow:
            return uow.sessions.revoke_for_user(user_id, now)

    def revoke_family(self, family_id: str, now: datetime) -> int:
        with self._uow() as uow:
            return uow.sessions.revoke_family(family_id, now)

    def update_metadata(
        self, session_id: str, metadata: SessionMetadata, *, expected_refresh_count: int
    ) -> bool:
        values = {
            "last_used_at": metadata.last_used_at,
            "last_ip": metadata.last_ip,
            "last_user_agent": metadata.last_user_agent,
            "refresh_count": metadata.refresh_count,
        }
        with self._uow() as uow:
            return uow.sessions.touch(
                session_id, expected_refresh_count=expected_refresh_count, values=values
            )

    def rotate_atomically(
        self, old_session_id: str, new_session: SessionRecord, now: datetime
    ) -> bool:
        """
        Supersede and insert inside one transaction.

        A failed insert rolls the supersession back with it.
        """
        try:
            with self._uow() as uow:
                if not uow.sessions.supersede(old_session_id, now):
                    return False
                uow.sessions.add(to_row(new_session))
        except IntegrityError as exc:
            raise ConflictError("Session", "refresh token hash already registered") from exc
        return True

    def list_for_user(
        self, user_id: str, *, active_only: bool = True, now: datetime | None = None
    ) -> list[SessionRecord]:
        with self._uow() as uow:
            rows = uow.sessions.list_for_user(user_id, active_only=active_only, now=now)
            return [to_record(r) for r in rows]

    def record_activity(self, activity: SessionActivityRecord) -> None:
        with self._uow() as uow:
            uow.sessions.add_activity(
                SessionActivity(
                    session_id=activity.session_id,
                    action=activity.action.value,
                    ip_address=activity.ip_address,
                    user_agent=activity.user_agent,
                    details=activity.details or None,
                    created_at=activity.created_at,
                )
            )

    def list_activity(self, session_id: str) -> list[SessionActivityRecord]:
        with self._uow() as uow:
            return [
                SessionActivityRecord(
                    session_id=row.session_id,
                    action=ActivityAction(row.action),
                    created_at=row.created_at,
                    ip_address=row.ip_address,
                    user_agent=row.user_agent,
                    details=dict(row.details or {}),
                )
                for row in uow.sessions.list_activity(session_id)
            ]
