"""
Session registry - One SessionController per client.

The domain controller models the session of a single application
instance. Over HTTP each client device gets its own controller, keyed
by an opaque session id returned from POST /v1/sessions.

Sessions end when the client deletes them or after idle_ttl without a
request. Idle sessions are evicted whenever a new session is created,
and an idle session found by get() is dropped instead of returned.
"""

import logging
import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from src.domain.ports import Clock
from src.domain.session import SessionController

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TTL = timedelta(minutes=30)


@dataclass
class _Entry:
    controller: SessionController
    last_seen: datetime


class SessionRegistry:
    """Thread-safe map of session id -> SessionController with idle expiry."""

    def __init__(
        self,
        factory: Callable[[], SessionController],
        clock: Clock,
        idle_ttl: timedelta = DEFAULT_IDLE_TTL,
    ) -> None:
        self._factory = factory
        self._clock = clock
        self._idle_ttl = idle_ttl
        self._sessions: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def create(self) -> tuple[str, SessionController]:
        session_id = secrets.token_urlsafe(24)
        controller = self._factory()
        now = self._clock.now()
        with self._lock:
            self._evict_idle(now)
            self._sessions[session_id] = _Entry(controller, now)
        return session_id, controller

    def get(self, session_id: str) -> SessionController | None:
        """Return the controller and mark the session active, or None if unknown or idle."""
        now = self._clock.now()
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            if self._is_idle(entry, now):
                del self._sessions[session_id]
                return None
            entry.last_seen = now
            return entry.controller

    def discard(self, session_id: str) -> bool:
        """Remove the session. Returns False if it was not registered."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _is_idle(self, entry: _Entry, now: datetime) -> bool:
        return now - entry.last_seen > self._idle_ttl

    def _evict_idle(self, now: datetime) -> None:
        idle = [session_id for session_id, entry in self._sessions.items() if self._is_idle(entry, now)]
        for session_id in idle:
            del self._sessions[session_id]
        if idle:
            logger.info("Evicted %d idle session(s)", len(idle))
