# comments in English; reST docstrings
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import redis  # type: ignore[import-untyped]

from authcore.services._shared.ports import (
    AttemptCounter,
    LoginRateLimiter,
    LoginThrottlePolicy,
)
from authcore.services._shared.ports.login_rate_limiter import log_lockout, too_many_attempts


def _s(value: Any) -> str:
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


def _load(raw: dict[Any, Any], now: float) -> AttemptCounter:
    if not raw:
        return AttemptCounter(window_started_at=now)
    h = {_s(k): _s(v) for k, v in raw.items()}
    locked = h.get("locked_until")
    return AttemptCounter(
        window_started_at=float(h.get("window_started_at", now)),
        failures=int(h.get("failures", "0")),
        pending=int(h.get("pending", "0")),
        locked_until=float(locked) if locked else None,
    )


def _dump(counter: AttemptCounter) -> dict[str, str]:
    return {
        "window_started_at": repr(counter.window_started_at),
        "failures": str(counter.failures),
        "pending": str(counter.pending),
        "locked_until": repr(counter.locked_until) if counter.locked_until is not None else "",
    }


@dataclass(slots=True)
class RedisLoginRateLimiter(LoginRateLimiter):
    """
    Failed-login throttle shared across workers through Redis.

    Every read-modify-write runs inside WATCH/MULTI/EXEC, so the check and the
    failure record are atomic per identity even with many concurrent workers.

    :param r: A Redis client (already connected).
    :param policy: Threshold, window and lockout.
    :param ns: Key namespace.
    """

    r: redis.Redis
    policy: LoginThrottlePolicy = field(default_factory=LoginThrottlePolicy)
    ns: str = "login:attempts"

    def _k(self, identity: str) -> str:
        return f"{self.ns}:{identity}"

    def _update(
        self,
        identity: str,
        now: datetime,
        step: Callable[[AttemptCounter, float], Any],
    ) -> tuple[AttemptCounter, Any]:
        """Apply ``step`` to the stored counter in one optimistic transaction."""
        key = self._k(identity)
        ts = now.timestamp()
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    counter = _load(p.hgetall(key), ts)
                    result = step(counter, ts)
                    p.multi()
                    p.hset(key, mapping=_dump(counter))
                    p.expire(key, self.policy.retention_seconds)
                    p.execute()
                    return counter, result
            except redis.WatchError:
                continue

    def check_login_attempt(self, identity: str, now: datetime) -> None:
        _, retry_after = self._update(identity, now, self.policy.admit)
        if retry_after is not None:
            raise too_many_attempts(identity, retry_after)

    def record_failed_attempt(self, identity: str, now: datetime) -> int:
        counter, _ = self._update(identity, now, self.policy.fail)
        log_lockout(identity, counter)
        return counter.failures

    def reset_attempts(self, identity: str) -> None:
        self.r.delete(self._k(identity))

    def release_attempt(self, identity: str, now: datetime) -> None:
        # A slot leaked by a crashed worker is reclaimed when the window restarts.
        self._update(identity, now, self.policy.release)
