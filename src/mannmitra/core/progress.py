"""
User profile / progress store collaborator.

The engine reads UserContext from the store and writes back completion
records. `InMemoryProgressStore` is the reference implementation used by
the API and tests; a durable store only needs to satisfy `ProgressStore`.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from .models import (
    ActivityResult,
    ActivitySession,
    EngagementMetrics,
    STATUS_ABANDONED,
    STATUS_COMPLETED,
    UserContext,
)
from .utils import mean

logger = logging.getLogger(__name__)

ENGAGEMENT_HISTORY_LIMIT = 50


class ProgressStore(Protocol):
    def get_user_context(self, user_id: str) -> Optional[UserContext]:
        ...

    def record_completion(
        self,
        session: ActivitySession,
        result: ActivityResult,
        samples: Optional[List[EngagementMetrics]] = None,
    ) -> None:
        ...

    def record_abandonment(self, session: ActivitySession) -> None:
        ...


@dataclass
class SessionRecord:
    """A finished session as kept by the store."""
    session_id: str
    activity_type: str
    status: str
    engagement: float
    start_time: datetime
    end_time: Optional[datetime]

    @property
    def duration_minutes(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds() / 60.0


class InMemoryProgressStore:
    """Dict-backed store; unknown users are not created implicitly."""

    def __init__(self):
        self._contexts: Dict[str, UserContext] = {}
        self._records: Dict[str, List[SessionRecord]] = {}
        self._lock = threading.Lock()

    def save_user_context(self, context: UserContext) -> None:
        with self._lock:
            self._contexts[context.user_id] = context

    def get_user_context(self, user_id: str) -> Optional[UserContext]:
        with self._lock:
            return self._contexts.get(user_id)

    def record_completion(
        self,
        session: ActivitySession,
        result: ActivityResult,
        samples: Optional[List[EngagementMetrics]] = None,
    ) -> None:
        with self._lock:
            self._append_record(session, result.completion_status)
            context = self._contexts.get(session.user_id)
            if context is None:
                return
            progress = context.progress
            if result.completion_status == STATUS_COMPLETED:
                progress.completed_activities.append(session.activity_type)
            for skill in result.skills_demonstrated:
                if skill not in progress.skills_learned:
                    progress.skills_learned.append(skill)
            progress.engagement_history.extend(samples or [])
            del progress.engagement_history[:-ENGAGEMENT_HISTORY_LIMIT]
        logger.debug(
            f"[Progress] {session.user_id}: recorded {result.completion_status} "
            f"{session.activity_type}"
        )

    def record_abandonment(self, session: ActivitySession) -> None:
        with self._lock:
            self._append_record(session, STATUS_ABANDONED)

    def records(self, user_id: str) -> List[SessionRecord]:
        with self._lock:
            return list(self._records.get(user_id, []))

    def session_statistics(self, user_id: str) -> Dict[str, Any]:
        records = self.records(user_id)
        completed = [r for r in records if r.status == STATUS_COMPLETED]
        abandoned = [r for r in records if r.status == STATUS_ABANDONED]
        counts = Counter(r.activity_type for r in records)
        return {
            "total_sessions": len(records),
            "completed_sessions": len(completed),
            "abandoned_sessions": len(abandoned),
            "average_engagement": mean([r.engagement for r in records]),
            "average_duration": mean([r.duration_minutes for r in completed]),
            "most_used_activity_types": [
                {"type": t, "count": c} for t, c in counts.most_common(5)
            ],
        }

    def _append_record(self, session: ActivitySession, status: str) -> None:
        self._records.setdefault(session.user_id, []).append(
            SessionRecord(
                session_id=session.session_id,
                activity_type=session.activity_type,
                status=status,
                engagement=session.engagement,
                start_time=session.start_time,
                end_time=session.end_time,
            )
        )
