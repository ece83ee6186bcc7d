from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from authcore.services._shared.errors import AuthError, ErrorKind

log = logging.getLogger(__name__)


@dataclass(slots=True)
class AttemptCounter:
    """
    Mutable per-identity counter.

    :ivar failures: Failed attempts in the current window.
    :ivar pending: Attempts admitted by a check and not yet resolved.
    :ivar window_started_at: Epoch seconds when the window opened.
    :ivar locked_until: Epoch seconds until which attempts are rejected.
    """

    window_started_at: float
    failures: int = 0
    pending: int = 0
    locked_until: float | None = None

    def restart(self, now: float) -> None:
        self.failures = 0
        self.pending = 0
        self.locked_until = None
        self.window_started_at = now


@dataclass(frozen=True, slots=True)
class LoginThrottlePolicy:
    """
    Lockout policy shared by every limiter backend.

    :param max_attempts: Failures tolerated inside one window.
    :param window: Length of the counting window.
    :param lockout: How long attempts stay rejected once the threshold is hit.
    """

    max_attempts: int = 5
    window: timedelta = timedelta(minutes=15)
    lockout: timedelta = timedelta(minutes=15)

    def admit(self, counter: AttemptCounter, now: float) -> int | None:
        """
        Reserve an attempt slot on ``counter``.

        :returns: ``None`` when admitted, otherwise seconds to wait.
        """
        if counter.locked_until is not None:
            if now < counter.locked_until:
                return max(1, math.ceil(counter.locked_until - now))
            counter.restart(now)
        elif now - counter.window_started_at >= self.window.total_seconds():
            counter.restart(now)

        if counter.failures + counter.pending >= self.max_attempts:
            # Remaining slots are held by in-flight attempts.
            return 1
        counter.pending += 1
        return None

    def fail(self, counter: AttemptCounter, now: float) -> None:
        """Resolve one admitted attempt as a failure, locking at the threshold."""
        counter.pending = max(0, counter.pending - 1)
        counter.failures += 1
        if counter.failures >= self.max_attempts:
            counter.locked_until = now + self.lockout.total_seconds()

    def release(self, counter: AttemptCounter, now: float) -> None:
        """Give back an admitted slot whose attempt never reached a verdict."""
        counter.pending = max(0, counter.pending - 1)

    @property
    def retention_seconds(self) -> int:
        """How long an untouched counter remains meaningful."""
        return int(self.window.total_seconds() + self.lockout.total_seconds())


def too_many_attempts(identity: str, retry_after: int) -> AuthError:
    log.warning(
        "login attempt rejected",
        extra={"event": "login_throttled", "identity": identity, "retry_after": retry_after},
    )
    return AuthError(ErrorKind.TOO_MANY_ATTEMPTS, retry_after=retry_after)


def log_lockout(identity: str, counter: AttemptCounter) -> None:
    if counter.locked_until is not None:
        log.warning(
            "login identity locked",
            extra={"event": "login_locked", "identity": identity, "attempts": counter.failures},
        )


class LoginRateLimiter(Protocol):
    """
    Failed-login throttle keyed by normalized identity.

    ``check_login_attempt`` and ``record_failed_attempt`` MUST be atomic per
    identity so a concurrent burst cannot exceed the threshold.
    """

    def check_login_attempt(self, identity: str, now: datetime) -> None:
        """:raises AuthError: ``TOO_MANY_ATTEMPTS`` with ``retry_after`` when locked."""

    def record_failed_attempt(self, identity: str, now: datetime) -> int:
        """Count a failure. :returns: Failures in the current window."""

    def reset_attempts(self, identity: str) -> None:
        """Forget the counter after a successful authentication."""

    def release_attempt(self, identity: str, now: datetime) -> None:
        """Free the slot of an admitted attempt that failed for another reason."""


class InMemoryLoginRateLimiter(LoginRateLimiter):
    """
    Process-local limiter.

    .. note::
       A threading lock serializes check/record per process; use the Redis
       backend when several workers share the same identities.
    """

    def __init__(self, policy: LoginThrottlePolicy | None = None) -> None:
        self.policy = policy or LoginThrottlePolicy()
        self._counters: dict[str, AttemptCounter] = {}
        self._lock = threading.Lock()

    def check_login_attempt(self, identity: str, now: datetime) -> None:
        ts = now.timestamp()
        with self._lock:
            counter = self._counters.setdefault(identity, AttemptCounter(window_started_at=ts))
            retry_after = self.policy.admit(counter, ts)
        if retry_after is not None:
            raise too_many_attempts(identity, retry_after)

    def record_failed_attempt(self, identity: str, now: datetime) -> int:
        ts = now.timestamp()
        with self._lock:
            counter = self._counters.setdefault(identity, AttemptCounter(window_started_at=ts))
            self.policy.fail(counter, ts)
            failures = counter.failures
        log_lockout(identity, counter)
        return failures

    def reset_attempts(self, identity: str) -> None:
        with self._lock:
            self._counters.pop(identity, None)

    def release_attempt(self, identity: str, now: datetime) -> None:
        with self._lock:
            counter = self._counters.get(identity)
            if counter is not None:
                self.policy.release(counter, now.timestamp())

    def snapshot(self, identity: str) -> AttemptCounter | None:
        """Return a copy of the counter (test/diagnostic helper)."""
        with self._lock:
            c = self._counters.get(identity)
            if c is None:
                return None
            return AttemptCounter(
                window_started_at=c.window_started_at,
                failures=c.failures,
                pending=c.pending,
                locked_until=c.locked_until,
            )
