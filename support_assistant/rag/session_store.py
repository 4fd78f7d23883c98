"""
Session Store

In-memory chat sessions keyed by generated id.

Design choices
--------------
- In-memory only (no persistence across process restarts).
- Bounded: at most `max_sessions`, least recently updated evicted first,
  and sessions idle longer than `ttl_seconds` are dropped.
- One asyncio.Lock per session so exchanges on a session run one at a time.
- Copy-on-read: callers get snapshots, never the live message list.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional
import asyncio
import logging
import uuid

from support_assistant.errors import SessionNotFoundError
from support_assistant.models import ChatMessage, ChatSession, utcnow

logger = logging.getLogger(__name__)


class SessionStore:
    """Owns all ChatSessions and their per-session locks."""

    def __init__(self, max_sessions: Optional[int] = 1000,
                 ttl_seconds: Optional[float] = 24 * 3600,
                 clock: Callable[[], datetime] = utcnow) -> None:
        """
        Parameters
        ----------
        max_sessions : Optional[int]
            Capacity bound; None or 0 disables it.
        ttl_seconds : Optional[float]
            Idle lifetime; None or 0 disables expiry.
        clock : Callable
            Source of "now" (tests).
        """
        # Ordered by last update: oldest first
        self._sessions: "OrderedDict[str, ChatSession]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._max_sessions = max_sessions
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else None
        self._clock = clock

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, user_id: Optional[str] = None) -> ChatSession:
        self._evict()
        now = self._clock()
        session = ChatSession(id=str(uuid.uuid4()), user_id=user_id,
                              created_at=now, updated_at=now)
        self._sessions[session.id] = session
        self._enforce_capacity(keep=session.id)
        return session.snapshot()

    def get(self, session_id: str) -> Optional[ChatSession]:
        self._evict()
        session = self._sessions.get(session_id)
        return session.snapshot() if session else None

    def delete(self, session_id: str) -> bool:
        self._locks.pop(session_id, None)
        return self._sessions.pop(session_id, None) is not None

    def user_sessions(self, user_id: str) -> List[ChatSession]:
        self._evict()
        return [s.snapshot() for s in self._sessions.values() if s.user_id == user_id]

    def clear_all(self) -> None:
        self._sessions.clear()
        self._locks.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    # ------------------------------------------------------------------
    # Exchange support
    # ------------------------------------------------------------------

    def lock_for(self, session_id: str) -> asyncio.Lock:
        if session_id not in self._sessions:
            raise SessionNotFoundError(session_id)
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def append_exchange(self, session_id: str, *messages: ChatMessage) -> None:
        """Append messages in order and bump updated_at, all at once."""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.messages.extend(messages)
        session.updated_at = self._clock()
        self._sessions.move_to_end(session_id)

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def _evict(self) -> None:
        if self._ttl is None:
            return
        cutoff = self._clock() - self._ttl
        expired = []
        for session_id, session in self._sessions.items():
            if session.updated_at >= cutoff:
                break
            if self._is_busy(session_id):
                continue
            expired.append(session_id)
        for session_id in expired:
            logger.info("Session %s expired", session_id)
            self.delete(session_id)

    def _enforce_capacity(self, keep: Optional[str] = None) -> None:
        if not self._max_sessions:
            return
        for session_id in list(self._sessions):
            if len(self._sessions) <= self._max_sessions:
                break
            if session_id == keep or self._is_busy(session_id):
                continue
            logger.info("Session %s evicted (capacity %s)", session_id, self._max_sessions)
            self.delete(session_id)

    def _is_busy(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()
