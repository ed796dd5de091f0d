"""
In-memory registry of live assessment sessions.

Sessions expire after a sliding period of inactivity. The registry only
guards its own index; mutation of a session is serialised by the session's
lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..domain.session import AssessmentSession
from .config import get_settings
from .exceptions import SessionExpiredError, SessionNotFoundError


@dataclass(slots=True)
class _Entry:
    session: AssessmentSession
    expires_at: datetime


class SessionRegistry:
    def __init__(
        self,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ):
        if ttl is None:
            ttl = timedelta(minutes=get_settings().security.session_timeout_minutes)
        self.ttl = ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logger or logging.getLogger(__name__)
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def create(self, session: AssessmentSession) -> str:
        with self._lock:
            if session.session_id in self._entries:
                raise ValueError(f"Session {session.session_id} is already registered")
            self._entries[session.session_id] = _Entry(session, self._clock() + self.ttl)
        self.logger.info("Registered session %s", session.session_id)
        return session.session_id

    def get(self, session_id: str) -> AssessmentSession:
        """
        Look up a live session and extend its lifetime.

        Raises:
            SessionNotFoundError: Unknown id
            SessionExpiredError: The session timed out; it is removed
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                raise SessionNotFoundError(session_id)
            if entry.expires_at <= now:
                del self._entries[session_id]
                expired = True
            else:
                entry.expires_at = now + self.ttl
                expired = False
        if expired:
            self.logger.info("Session %s expired", session_id)
            raise SessionExpiredError(session_id)
        return entry.session

    def delete(self, session_id: str) -> None:
        with self._lock:
            if self._entries.pop(session_id, None) is None:
                raise SessionNotFoundError(session_id)
        self.logger.info("Deleted session %s", session_id)

    def cleanup_expired(self) -> int:
        """Drop every expired session; returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [sid for sid, e in self._entries.items() if e.expires_at <= now]
            for sid in stale:
                del self._entries[sid]
        if stale:
            self.logger.info("Removed %d expired sessions", len(stale))
        return len(stale)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.count

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._entries
