# authcore/services/_shared/base.py
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from authcore.services._shared.dto import (
    ActivityAction,
    Fingerprint,
    SessionActivityRecord,
)
from authcore.services._shared.errors import TRANSIENT_STORAGE_ERRORS
from authcore.services._shared.ports.session_store import SessionStore

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return a timezone-aware UTC "now"."""
    return datetime.now(UTC)


class BaseService:
    """
    Base class for auth services.

    Responsibilities
    ----------------
    * Own the injected clock so every time decision is testable.
    * Offer the shared audit helper writing :class:`SessionActivityRecord` rows.

    Notes
    -----
    - Services never touch Flask or a global database session.
    - Stores are passed in explicitly; nothing is looked up from globals.
    """

    def __init__(self, *, sessions: SessionStore, clock: Clock | None = None) -> None:
        """
        Initialize the base service.

        :param sessions: Session store shared by the auth services.
        :type sessions: SessionStore
        :param clock: Callable returning an aware UTC datetime. Defaults to :func:`utcnow`.
        :type clock: Clock | None
        """
        self.sessions = sessions
        self.clock: Clock = clock or utcnow
        self.log = logging.getLogger(type(self).__module__)

    def now(self) -> datetime:
        return self.clock()

    def audit(
        self,
        session_id: str,
        action: ActivityAction,
        *,
        fingerprint: Fingerprint | None = None,
        at: datetime | None = None,
        **details: Any,
    ) -> None:
        """
        Append an activity row for ``session_id``, best effort.

        Audit rows trail state changes that are already committed; a transient
        storage failure here is logged at ERROR and never fails the operation.

        :param session_id: Session the action applies to.
        :param action: Audit action.
        :param fingerprint: Client context, when known.
        :param at: Instant of the action (defaults to :meth:`now`).
        :param details: Extra JSON-serializable details.
        """
        fp = fingerprint or Fingerprint()
        activity = SessionActivityRecord(
            session_id=session_id,
            action=action,
            created_at=at or self.now(),
            ip_address=fp.ip_address,
            user_agent=fp.user_agent,
            details=details,
        )
        try:
            self.sessions.record_activity(activity)
        except TRANSIENT_STORAGE_ERRORS:
            self.log.error(
                "audit row not written",
                extra={"event": "audit_failed", "session_id": session_id, "reason": action.value},
                exc_info=True,
            )
