"""Session repository with conditional (compare-and-set) writes."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select

from authcore.models.session import AuthSession, SessionActivity
from authcore.repositories.base import BaseRepository


class SessionRepository(BaseRepository[AuthSession]):
    """Persistence-only repository for :class:`AuthSession` and its activity rows.

    Every state transition is a single guarded ``UPDATE`` whose row count tells
    the caller whether it won.
    """

    model = AuthSession

    # ---------------------------- Lookups ----------------------------

    def get_by_token_hash(self, token_hash: str) -> AuthSession | None:
        stmt = select(AuthSession).where(AuthSession.refresh_token_hash == token_hash)
        return self.session.execute(stmt).scalars().first()

    def list_for_user(
        self, user_id: str, *, active_only: bool = True, now: datetime | None = None
    ) -> list[AuthSession]:
        """List a user's sessions, oldest first.

        :param user_id: Owner.
        :param active_only: Skip revoked (and, with ``now``, expired) sessions.
        :param now: Reference instant for the expiry filter.
        """
        stmt = select(AuthSession).where(AuthSession.user_id == user_id)
        if active_only:
            stmt = stmt.where(AuthSession.revoked_at.is_(None))
            if now is not None:
                stmt = stmt.where(AuthSession.expires_at > now)
        stmt = stmt.order_by(AuthSession.created_at.asc(), AuthSession.id.asc())
        return list(self.session.execute(stmt).scalars())

    # ------------------------- Transitions ---------------------------

    def revoke(self, session_id: str, now: datetime) -> bool:
        return (
            self.update_where(
                AuthSession.id == session_id,
                AuthSession.revoked_at.is_(None),
                values={"revoked_at": now},
            )
            == 1
        )

    def revoke_for_user(self, user_id: str, now: datetime) -> int:
        return self.update_where(
            AuthSession.user_id == user_id,
            AuthSession.revoked_at.is_(None),
            values={"revoked_at": now},
        )

    def revoke_family(self, family_id: str, now: datetime) -> int:
        return self.update_where(
            AuthSession.family_id == family_id,
            AuthSession.revoked_at.is_(None),
            values={"revoked_at": now},
        )

    def supersede(self, session_id: str, now: datetime) -> bool:
        """Mark an unrevoked session as rotated. :returns: ``False`` if it was already revoked."""
        return (
            self.update_where(
                AuthSession.id == session_id,
                AuthSession.revoked_at.is_(None),
                values={"revoked_at": now, "rotated_at": now, "was_rotated": True},
            )
            == 1
        )

    def touch(
        self, session_id: str, *, expected_refresh_count: int, values: dict[str, Any]
    ) -> bool:
        """Compare-and-set usage metadata on an unrevoked session."""
        return (
            self.update_where(
                AuthSession.id == session_id,
                AuthSession.revoked_at.is_(None),
                AuthSession.refresh_count == expected_refresh_count,
                values=values,
            )
            == 1
        )

    # --------------------------- Activity ----------------------------

    def add_activity(self, activity: SessionActivity) -> SessionActivity:
        self.session.add(activity)
        self.flush()
        return activity

    def list_activity(self, session_id: str) -> list[SessionActivity]:
        stmt = (
            select(SessionActivity)
            .where(SessionActivity.session_id == session_id)
            .order_by(SessionActivity.created_at.asc(), SessionActivity.id.asc())
        )
        return list(self.session.execute(stmt).scalars())
