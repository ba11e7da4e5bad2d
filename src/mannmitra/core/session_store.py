"""
In-memory session arena for running activities.

Stores each ActivitySession together with the service driving it, keyed by
an opaque session id. Every entry carries its own lock; `claim()` takes it
without blocking so a second concurrent call on the same session is
rejected instead of interleaving.
"""

from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from ..activities.base import BaseActivityService
from .errors import SessionBusyError, SessionNotFoundError
from .models import ActivitySession


@dataclass
class SessionEntry:
    session: ActivitySession
    service: BaseActivityService
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class SessionStore:
    """
    Manages active activity sessions in memory.

    Sessions are removed explicitly on completion, abandonment or expiry.
    """

    def __init__(self):
        self._entries: Dict[str, SessionEntry] = {}
        self._guard = threading.Lock()

    @staticmethod
    def new_session_id() -> str:
        return f"session_{uuid.uuid4().hex[:12]}"

    def add(self, session: ActivitySession, service: BaseActivityService) -> SessionEntry:
        entry = SessionEntry(session=session, service=service)
        with self._guard:
            self._entries[session.session_id] = entry
        return entry

    def get(self, session_id: str) -> Optional[SessionEntry]:
        with self._guard:
            return self._entries.get(session_id)

    def require(self, session_id: str) -> SessionEntry:
        entry = self.get(session_id)
        if entry is None:
            raise SessionNotFoundError(session_id)
        return entry

    @contextmanager
    def claim(self, session_id: str) -> Iterator[SessionEntry]:
        """Exclusive access to one session for the duration of a call."""
        entry = self.require(session_id)
        if not entry.lock.acquire(blocking=False):
            raise SessionBusyError(session_id)
        try:
            yield entry
        finally:
            entry.lock.release()

    def remove(self, session_id: str) -> Optional[SessionEntry]:
        with self._guard:
            return self._entries.pop(session_id, None)

    def ids(self) -> List[str]:
        with self._guard:
            return list(self._entries.keys())

    def entries(self) -> List[SessionEntry]:
        with self._guard:
            return list(self._entries.values())

    def for_user(self, user_id: str) -> List[SessionEntry]:
        """A user's sessions, oldest first."""
        entries = [e for e in self.entries() if e.session.user_id == user_id]
        return sorted(entries, key=lambda e: e.session.start_time)

    def __contains__(self, session_id: object) -> bool:
        with self._guard:
            return session_id in self._entries

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
