"""
Activity catalog: a read-only registry of activity metadata.

The catalog is built explicitly and handed to the factory, the
recommendation engine and the difficulty engine, so tests can run against
isolated instances. After startup registration it is only read, and can be
shared across sessions without locking.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import NotRegisteredError
from .models import ActivityMetadata, DIFFICULTY_LEVELS, UserContext
from .utils import mean

logger = logging.getLogger(__name__)


# ── Eligibility ─────────────────────────────────────────────────────────────

def missing_prerequisites(metadata: ActivityMetadata, user: UserContext) -> List[str]:
    """Prerequisite types the user has not completed yet."""
    completed = set(user.progress.completed_activities)
    return [p for p in metadata.prerequisites if p not in completed]


def matched_contraindications(metadata: ActivityMetadata, user: UserContext) -> List[str]:
    """Contraindication tags present in the user's risk factors."""
    risks = set(user.history.risk_factors)
    return [c for c in metadata.contraindications if c in risks]


def is_eligible(metadata: ActivityMetadata, user: UserContext) -> bool:
    return not missing_prerequisites(metadata, user) and not matched_contraindications(metadata, user)


# ── Filtering ───────────────────────────────────────────────────────────────

@dataclass
class ActivityFilter:
    """Optional narrowing criteria; unset fields do not filter."""
    category: Optional[str] = None
    difficulty_level: Optional[str] = None
    min_duration: Optional[int] = None
    max_duration: Optional[int] = None
    min_cultural_relevance: Optional[int] = None
    therapeutic_goals: Optional[Sequence[str]] = None
    exclude_types: Optional[Sequence[str]] = None
    include_only_types: Optional[Sequence[str]] = None

    def matches(self, activity: ActivityMetadata) -> bool:
        if self.category and activity.category != self.category:
            return False
        if self.difficulty_level and not activity.supports(self.difficulty_level):
            return False
        if self.max_duration is not None and not any(
            d <= self.max_duration for d in activity.durations
        ):
            return False
        if self.min_duration is not None and not any(
            d >= self.min_duration for d in activity.durations
        ):
            return False
        if (
            self.min_cultural_relevance is not None
            and activity.cultural_relevance < self.min_cultural_relevance
        ):
            return False
        if self.therapeutic_goals and not any(
            g in activity.therapeutic_goals for g in self.therapeutic_goals
        ):
            return False
        if self.exclude_types and activity.activity_type in self.exclude_types:
            return False
        if self.include_only_types is not None and activity.activity_type not in self.include_only_types:
            return False
        return True


# ── Catalog ─────────────────────────────────────────────────────────────────

class ActivityCatalog:
    """
    Registry of activity metadata keyed by activity type.

    Usage:
        catalog = ActivityCatalog.default()
        meta = catalog.require("breathing_exercise")
        options = catalog.eligible(user, ActivityFilter(max_duration=10))
    """

    def __init__(self, entries: Optional[Iterable[ActivityMetadata]] = None):
        self._entries: Dict[str, ActivityMetadata] = {}
        for entry in entries or ():
            self.register(entry)

    @classmethod
    def default(cls) -> "ActivityCatalog":
        """A catalog preloaded with the bundled activity definitions."""
        from ..content.activities import DEFAULT_ACTIVITIES
        return cls(DEFAULT_ACTIVITIES)

    def register(self, metadata: ActivityMetadata) -> None:
        """Add or replace the entry for `metadata.activity_type`."""
        _validate_metadata(metadata)
        if metadata.activity_type in self._entries:
            logger.debug(f"[Catalog] Replacing entry for {metadata.activity_type}")
        self._entries[metadata.activity_type] = metadata

    def get(self, activity_type: str) -> Optional[ActivityMetadata]:
        return self._entries.get(activity_type)

    def require(self, activity_type: str) -> ActivityMetadata:
        metadata = self._entries.get(activity_type)
        if metadata is None:
            raise NotRegisteredError(activity_type)
        return metadata

    def all(self) -> List[ActivityMetadata]:
        return list(self._entries.values())

    def types(self) -> List[str]:
        return list(self._entries.keys())

    def by_category(self, category: str) -> List[ActivityMetadata]:
        return [a for a in self._entries.values() if a.category == category]

    def filter(self, activity_filter: Optional[ActivityFilter] = None) -> List[ActivityMetadata]:
        if activity_filter is None:
            return self.all()
        return [a for a in self._entries.values() if activity_filter.matches(a)]

    def eligible(
        self,
        user: UserContext,
        activity_filter: Optional[ActivityFilter] = None,
    ) -> List[ActivityMetadata]:
        """Entries whose prerequisites are met and contraindications absent."""
        return [a for a in self.filter(activity_filter) if is_eligible(a, user)]

    def statistics(self) -> Dict[str, object]:
        activities = self.all()
        category_counts = Counter(a.category for a in activities)
        difficulty_distribution = {level: 0 for level in DIFFICULTY_LEVELS}
        for activity in activities:
            for level in activity.difficulty_levels:
                difficulty_distribution[level] += 1
        return {
            "total_activities": len(activities),
            "category_counts": dict(category_counts),
            "difficulty_distribution": difficulty_distribution,
            "average_cultural_relevance": mean([a.cultural_relevance for a in activities]),
        }

    def __contains__(self, activity_type: object) -> bool:
        return activity_type in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _validate_metadata(metadata: ActivityMetadata) -> None:
    if not 1 <= metadata.cultural_relevance <= 10:
        raise ValueError(
            f"cultural_relevance for {metadata.activity_type} must be 1-10, "
            f"got {metadata.cultural_relevance}"
        )
    if not metadata.difficulty_levels:
        raise ValueError(f"{metadata.activity_type} must support at least one difficulty level")
    unknown = [lvl for lvl in metadata.difficulty_levels if lvl not in DIFFICULTY_LEVELS]
    if unknown:
        raise ValueError(f"{metadata.activity_type} has unknown difficulty levels: {unknown}")
    if not metadata.durations or any(d <= 0 for d in metadata.durations):
        raise ValueError(f"{metadata.activity_type} needs positive duration options")
    if metadata.base_steps < 1:
        raise ValueError(f"{metadata.activity_type} needs base_steps >= 1")
