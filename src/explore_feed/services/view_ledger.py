"""Per-session bookkeeping that keeps repeated views from being counted twice.

The ledger is not durable. Losing it, on restart or when a client's session
is spread over several instances using the in-memory backend, can count a
view once more per loss; that is accepted rather than coordinated away.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from threading import Lock
from typing import Any, Protocol

import redis

from explore_feed.core.settings import Settings, settings

logger = logging.getLogger(__name__)


class ViewLedger(Protocol):
    """Session-scoped set of posts already counted as viewed."""

    def mark_viewed(self, session_id: str, post_id: str) -> bool:
        """Record the view; return True only if it was not recorded before."""
        ...

    def forget(self, session_id: str, post_id: str) -> None:
        ...

    def end_session(self, session_id: str) -> None:
        ...


class InMemoryViewLedger:
    """Process-local ledger; sessions idle longer than ``ttl_seconds`` are dropped."""

    def __init__(
        self,
        ttl_seconds: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, set[str]] = {}
        self._last_seen: dict[str, float] = {}
        self._lock = Lock()
        self._next_sweep = 0.0

    def _is_stale(self, session_id: str, now: float) -> bool:
        seen = self._last_seen.get(session_id)
        return seen is not None and now - seen > self.ttl_seconds

    def _drop(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)

    def _sweep(self, now: float) -> None:
        # Full scan at most once per TTL; the touched session is checked on every call.
        if now < self._next_sweep:
            return
        self._next_sweep = now + self.ttl_seconds
        for session_id in [sid for sid in self._last_seen if self._is_stale(sid, now)]:
            self._drop(session_id)

    def mark_viewed(self, session_id: str, post_id: str) -> bool:
        now = self._clock()
        with self._lock:
            if self._is_stale(session_id, now):
                self._drop(session_id)
            self._sweep(now)
            viewed = self._sessions.setdefault(session_id, set())
            self._last_seen[session_id] = now
            if post_id in viewed:
                return False
            viewed.add(post_id)
            return True

    def forget(self, session_id: str, post_id: str) -> None:
        with self._lock:
            viewed = self._sessions.get(session_id)
            if viewed is not None:
                viewed.discard(post_id)

    def end_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
            self._last_seen.pop(session_id, None)

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)


class RedisViewLedger:
    """Ledger shared across instances through one Redis set per session.

    Falls back to an in-process ledger while Redis is unreachable.
    """

    def __init__(
        self,
        client: Any,
        ttl_seconds: int,
        *,
        fallback: InMemoryViewLedger | None = None,
    ) -> None:
        self._redis = client
        self.ttl_seconds = ttl_seconds
        self._fallback = fallback or InMemoryViewLedger(ttl_seconds)

    @staticmethod
    def _key(session_id: str) -> str:
        return f"views:{session_id}"

    def mark_viewed(self, session_id: str, post_id: str) -> bool:
        key = self._key(session_id)
        try:
            pipe = self._redis.pipeline()
            pipe.sadd(key, post_id)
            pipe.expire(key, int(self.ttl_seconds))
            added, _ = pipe.execute()
            return bool(added)
        except redis.RedisError as exc:
            logger.warning("View ledger unavailable, using local fallback: %s", exc)
            return self._fallback.mark_viewed(session_id, post_id)

    def forget(self, session_id: str, post_id: str) -> None:
        try:
            self._redis.srem(self._key(session_id), post_id)
        except redis.RedisError as exc:
            logger.warning("View ledger unavailable, using local fallback: %s", exc)
        self._fallback.forget(session_id, post_id)

    def end_session(self, session_id: str) -> None:
        try:
            self._redis.delete(self._key(session_id))
        except redis.RedisError as exc:
            logger.warning("View ledger unavailable, using local fallback: %s", exc)
        self._fallback.end_session(session_id)


_LEDGER: ViewLedger | None = None
_LEDGER_LOCK = Lock()


def build_view_ledger(config: Settings | None = None) -> ViewLedger:
    """Create the ledger selected by ``VIEW_LEDGER_BACKEND``."""
    config = config or settings
    backend = config.view_ledger_backend.lower()
    if backend == "memory":
        return InMemoryViewLedger(config.view_session_ttl_seconds)
    if backend == "redis":
        client = redis.from_url(config.redis_url)  # type: ignore[no-untyped-call]
        return RedisViewLedger(client, config.view_session_ttl_seconds)
    raise ValueError(f"Unknown view ledger backend: {config.view_ledger_backend}")


def get_view_ledger() -> ViewLedger:
    """Return the process-wide view ledger."""
    global _LEDGER
    with _LEDGER_LOCK:
        if _LEDGER is None:
            _LEDGER = build_view_ledger()
        return _LEDGER
