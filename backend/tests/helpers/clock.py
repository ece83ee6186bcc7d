"""Deterministic clock for time-dependent tests."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

DEFAULT_START = datetime(2025, 1, 6, 9, 0, 0, tzinfo=UTC)


class FrozenClock:
    """Callable clock that only moves when told to.

    Parameters
    ----------
    start: datetime, optional
        Initial aware instant. Defaults to :data:`DEFAULT_START`.
    """

    def __init__(self, start: datetime = DEFAULT_START) -> None:
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, seconds: float = 0, **kwargs: float) -> datetime:
        """Move forward by ``seconds`` plus any :class:`timedelta` keyword."""
        with self._lock:
            self._now += timedelta(seconds=seconds, **kwargs)
            return self._now
