"""
Recommendation engine: score eligible catalog entries for a user and
return a short ranked list.

Scores are additive and clamped to [0, 10]:

    cultural relevance x 0.2
    + 3    preferred type
    + 1.5  per goal shared with the user's stated goals
    + 2    per goal containing one of the user's primary concerns
    + 0-3  emotional-state / category alignment
    + 5    immediate urgency and crisis category
    + 3    high urgency and a <=10 minute option
    + 2    a duration within 5 minutes of the available time
    + 1.5  per targeted skill matching a specific need
    + 2    therapeutic phase matches the category
    - 1    completed within the user's last three activities

Crisis and quick-relief requests have dedicated fast paths that bypass
scoring entirely.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..content.activities import (
    CATEGORY_ASSESSMENT,
    CATEGORY_BEHAVIORAL,
    CATEGORY_CBT,
    CATEGORY_CRISIS,
    CATEGORY_CULTURAL,
    CATEGORY_MINDFULNESS,
)
from ..content.templates import DEFAULT_REASON, STATE_REASONS, URGENCY_REASONS
from .catalog import ActivityCatalog, ActivityFilter
from .config import RecommendationWeights
from .models import (
    ActivityMetadata,
    ActivityRecommendation,
    BEGINNER,
    UserContext,
)
from .utils import clamp

logger = logging.getLogger(__name__)

URGENCY_IMMEDIATE = "immediate"
URGENCY_HIGH = "high"
URGENCY_MEDIUM = "medium"

# Emotional state -> category alignment. Unlisted pairs score 1.
EMOTIONAL_ALIGNMENT: Dict[str, Dict[str, int]] = {
    "stressed": {CATEGORY_MINDFULNESS: 3, CATEGORY_CBT: 2, CATEGORY_CRISIS: 1,
                 CATEGORY_ASSESSMENT: 1, CATEGORY_CULTURAL: 2, CATEGORY_BEHAVIORAL: 2},
    "anxious": {CATEGORY_MINDFULNESS: 3, CATEGORY_CBT: 3, CATEGORY_CRISIS: 2,
                CATEGORY_ASSESSMENT: 1, CATEGORY_CULTURAL: 1, CATEGORY_BEHAVIORAL: 2},
    "depressed": {CATEGORY_CBT: 3, CATEGORY_BEHAVIORAL: 3, CATEGORY_MINDFULNESS: 2,
                  CATEGORY_ASSESSMENT: 2, CATEGORY_CULTURAL: 2, CATEGORY_CRISIS: 1},
    "angry": {CATEGORY_MINDFULNESS: 2, CATEGORY_CBT: 3, CATEGORY_BEHAVIORAL: 2,
              CATEGORY_CRISIS: 1, CATEGORY_ASSESSMENT: 1, CATEGORY_CULTURAL: 2},
    "overwhelmed": {CATEGORY_MINDFULNESS: 3, CATEGORY_CRISIS: 2, CATEGORY_CBT: 2,
                    CATEGORY_ASSESSMENT: 1, CATEGORY_CULTURAL: 1, CATEGORY_BEHAVIORAL: 1},
    "calm": {CATEGORY_MINDFULNESS: 1, CATEGORY_CBT: 2, CATEGORY_ASSESSMENT: 3,
             CATEGORY_BEHAVIORAL: 2, CATEGORY_CULTURAL: 2, CATEGORY_CRISIS: 0},
}

PHASE_CATEGORIES: Dict[str, Sequence[str]] = {
    "assessment": (CATEGORY_ASSESSMENT,),
    "skill_building": (CATEGORY_MINDFULNESS, CATEGORY_CBT),
}


@dataclass
class RecommendationCriteria:
    user_context: UserContext
    current_emotional_state: Optional[str] = None
    urgency_level: str = URGENCY_MEDIUM
    session_time_available: Optional[int] = None      # minutes
    specific_needs: List[str] = field(default_factory=list)
    exclude_types: List[str] = field(default_factory=list)

    @property
    def emotional_state(self) -> Optional[str]:
        state = self.current_emotional_state or self.user_context.current_state.emotional_state
        return state.lower() if state else None


class RecommendationEngine:
    """Weighted multi-criteria ranking over the eligible catalog."""

    def __init__(
        self,
        catalog: ActivityCatalog,
        weights: Optional[RecommendationWeights] = None,
    ):
        self.catalog = catalog
        self.weights = weights or RecommendationWeights()

    # ── General scoring ─────────────────────────────────────────────────

    def recommend(self, criteria: RecommendationCriteria) -> List[ActivityRecommendation]:
        user = criteria.user_context
        activity_filter = ActivityFilter(exclude_types=criteria.exclude_types or None)
        candidates = self.catalog.eligible(user, activity_filter)

        scored = [(a, self.score(a, criteria)) for a in candidates]
        if criteria.urgency_level == URGENCY_IMMEDIATE:
            scored = [
                (a, 10.0 if a.category == CATEGORY_CRISIS else s) for a, s in scored
            ]
        # Stable sort keeps catalog order among ties
        scored.sort(key=lambda pair: pair[1], reverse=True)

        recommendations = [
            ActivityRecommendation(
                activity_type=activity.activity_type,
                score=round(score, 4),
                priority=max(1, math.ceil(round(score, 9))),
                cultural_relevance=activity.cultural_relevance,
                duration=self.select_duration(activity, criteria.session_time_available),
                difficulty_level=self.select_difficulty(activity, user),
                rationale=self.rationale(activity, criteria),
                expected_outcomes=list(activity.therapeutic_goals[:3]),
                urgency=criteria.urgency_level,
            )
            for activity, score in scored[: self.weights.max_recommendations]
        ]
        logger.debug(
            f"[Recommend] {user.user_id}: "
            + ", ".join(f"{r.activity_type}={r.score}" for r in recommendations)
        )
        return recommendations

    def score(self, activity: ActivityMetadata, criteria: RecommendationCriteria) -> float:
        w = self.weights
        user = criteria.user_context
        goals = activity.therapeutic_goals

        score = activity.cultural_relevance * w.cultural_relevance

        if activity.activity_type in user.preferences.preferred_types:
            score += w.preferred_type

        user_goals = user.history.therapeutic_goals
        score += w.goal_alignment * sum(
            1 for g in goals if any(ug in g or g in ug for ug in user_goals)
        )

        concerns = user.history.primary_concerns
        score += w.concern_alignment * sum(
            1 for g in goals if any(c in g for c in concerns)
        )

        state = criteria.emotional_state
        if state:
            score += self.emotional_alignment(state, activity.category)

        if criteria.urgency_level == URGENCY_IMMEDIATE and activity.category == CATEGORY_CRISIS:
            score += w.immediate_crisis
        elif criteria.urgency_level == URGENCY_HIGH and any(
            d <= w.short_duration for d in activity.durations
        ):
            score += w.high_urgency_short

        available = criteria.session_time_available
        if available and any(abs(d - available) <= w.duration_tolerance for d in activity.durations):
            score += w.duration_match

        if criteria.specific_needs:
            score += w.specific_need * sum(
                1 for skill in activity.skills_targeted
                if any(n in skill or skill in n for n in criteria.specific_needs)
            )

        if activity.category in PHASE_CATEGORIES.get(user.progress.current_phase, ()):
            score += w.phase_alignment

        recent = user.progress.completed_activities[-w.recency_window:]
        if activity.activity_type in recent:
            score -= w.recency_penalty

        return clamp(score, 0.0, 10.0)

    @staticmethod
    def emotional_alignment(state: str, category: str) -> int:
        return EMOTIONAL_ALIGNMENT.get(state, {}).get(category, 1)

    # ── Fast paths ──────────────────────────────────────────────────────

    def crisis_recommendations(self, user: UserContext) -> List[ActivityRecommendation]:
        """Crisis-category activities a beginner can start right away."""
        w = self.weights
        candidates = self.catalog.eligible(
            user,
            ActivityFilter(
                category=CATEGORY_CRISIS,
                difficulty_level=BEGINNER,
                max_duration=w.crisis_max_duration,
            ),
        )
        return [
            ActivityRecommendation(
                activity_type=a.activity_type,
                score=10.0,
                priority=10,
                cultural_relevance=a.cultural_relevance,
                duration=a.min_duration,
                difficulty_level=BEGINNER,
                rationale="Immediate crisis support and stabilization",
                expected_outcomes=["crisis_stabilization", "safety_planning"],
                urgency=URGENCY_IMMEDIATE,
            )
            for a in candidates
        ]

    def quick_relief_recommendations(self, user: UserContext) -> List[ActivityRecommendation]:
        """Short, culturally familiar activities for fast relief."""
        w = self.weights
        candidates = [
            a for a in self.catalog.eligible(
                user, ActivityFilter(min_cultural_relevance=w.quick_relief_min_cultural_relevance)
            )
            if self._quick_durations(a)
        ]
        candidates.sort(key=lambda a: a.cultural_relevance, reverse=True)
        return [
            ActivityRecommendation(
                activity_type=a.activity_type,
                score=8.0,
                priority=8,
                cultural_relevance=a.cultural_relevance,
                duration=min(self._quick_durations(a)),
                difficulty_level=BEGINNER if a.supports(BEGINNER) else a.floor_level,
                rationale="Quick relief technique for immediate stress reduction",
                expected_outcomes=list(a.therapeutic_goals[:2]),
                urgency=URGENCY_HIGH,
            )
            for a in candidates
        ]

    def _quick_durations(self, activity: ActivityMetadata) -> List[int]:
        w = self.weights
        return [
            d for d in activity.durations
            if w.quick_relief_min_duration <= d <= w.quick_relief_max_duration
        ]

    # ── Presentation ────────────────────────────────────────────────────

    @staticmethod
    def select_duration(activity: ActivityMetadata, time_available: Optional[int]) -> int:
        durations = list(activity.durations)
        if not time_available:
            return durations[len(durations) // 2]
        # min() keeps the first (smallest) option among equally close ones
        return min(durations, key=lambda d: abs(d - time_available))

    @staticmethod
    def select_difficulty(activity: ActivityMetadata, user: UserContext) -> str:
        preference = user.preferences.difficulty_level
        if activity.supports(preference):
            return preference
        if activity.supports(BEGINNER):
            return BEGINNER
        return activity.floor_level

    @staticmethod
    def rationale(activity: ActivityMetadata, criteria: RecommendationCriteria) -> str:
        user = criteria.user_context
        reasons: List[str] = []

        state = criteria.emotional_state
        if state and state in STATE_REASONS:
            reasons.append(STATE_REASONS[state])

        if criteria.urgency_level in URGENCY_REASONS:
            reasons.append(URGENCY_REASONS[criteria.urgency_level])

        matching_goals = [
            g for g in activity.therapeutic_goals
            if any(g in ug for ug in user.history.therapeutic_goals)
        ]
        if matching_goals:
            reasons.append(f"to work on your goal of {matching_goals[0].replace('_', ' ')}")

        matching_concerns = [
            c for c in user.history.primary_concerns
            if any(c in g for g in activity.therapeutic_goals)
        ]
        if matching_concerns:
            reasons.append(f"to address your {matching_concerns[0]} concerns")

        if not reasons:
            reasons.append(DEFAULT_REASON)
        return "Recommended " + " and ".join(reasons)
