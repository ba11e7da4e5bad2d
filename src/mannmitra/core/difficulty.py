"""
Difficulty adjustment: decide whether a running session should get easier,
harder, or stay put, and describe the parameters of the new level.

The decision is a threshold controller over four signals:

    performance   completion, engagement, adaptation count and consistency
    engagement    mean of recent sample engagement (0-1)
    comprehension response-time factor blended with engagement
    stress        the higher of the live snapshot and the profile value

Decrease conditions are checked first and win over increase. A target
level is always exactly one ordinal step away and inside the catalog's
supported levels for the activity; if clamping leaves the level unchanged
the result is "hold" (None).
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass, replace
from typing import Any, Deque, Dict, List, Optional, Sequence

from .catalog import ActivityCatalog
from .config import DifficultyThresholds
from .models import (
    ActivityMetadata,
    ActivitySession,
    ADVANCED,
    BEGINNER,
    DIFFICULTY_LEVELS,
    EngagementMetrics,
    INTERMEDIATE,
    TRIGGER_COMPREHENSION_ISSUE,
    TRIGGER_EMOTIONAL_DISTRESS,
    TRIGGER_HIGH_PERFORMANCE,
    TRIGGER_LOW_ENGAGEMENT,
    UserContext,
    difficulty_rank,
)
from .utils import clamp, mean, scale_ceil, scale_floor, variation

logger = logging.getLogger(__name__)

INCREASE = "increase"
DECREASE = "decrease"
MAINTAIN = "maintain"

DEFAULT_RESPONSE_TIME_MS = 5000.0


# =============================================================================
# DATA
# =============================================================================

@dataclass
class DifficultyMetrics:
    current_difficulty: str
    performance_score: float        # 0-1
    engagement_score: float         # 0-1
    comprehension_score: float      # 0-1
    stress_level: float             # 1-10
    completion_rate: float          # 0-1
    adaptation_count: int


@dataclass
class DifficultyParameters:
    complexity_level: int           # 1-10
    step_count: int
    interaction_depth: str          # shallow | moderate | deep
    conceptual_demand: str          # low | medium | high
    emotional_intensity: str        # gentle | moderate | intense
    cultural_sensitivity: int       # 1-10
    language_complexity: str        # simple | standard | advanced


@dataclass
class DifficultyAdjustment:
    from_level: str
    to_level: str
    adjustment_type: str            # increase | decrease
    confidence: float
    reasoning: str
    parameters: DifficultyParameters
    metrics: DifficultyMetrics
    trigger: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


BASE_PARAMETERS: Dict[str, DifficultyParameters] = {
    BEGINNER: DifficultyParameters(3, 4, "shallow", "low", "gentle", 8, "simple"),
    INTERMEDIATE: DifficultyParameters(6, 6, "moderate", "medium", "moderate", 7, "standard"),
    ADVANCED: DifficultyParameters(9, 8, "deep", "high", "intense", 6, "advanced"),
}


# =============================================================================
# ENGINE
# =============================================================================

class DifficultyAdjustmentEngine:
    """
    Threshold-based difficulty controller.

    Usage:
        engine = DifficultyAdjustmentEngine(catalog)
        adjustment = engine.assess(session, user, recent_metrics)
        if adjustment:
            engine.apply(session, adjustment)
    """

    def __init__(
        self,
        catalog: ActivityCatalog,
        thresholds: Optional[DifficultyThresholds] = None,
        history_limit: int = 10,
    ):
        self.catalog = catalog
        self.thresholds = thresholds or DifficultyThresholds()
        self.history_limit = history_limit
        self._history: Dict[str, Deque[DifficultyAdjustment]] = {}

    # ── Public API ──────────────────────────────────────────────────────

    def assess(
        self,
        session: ActivitySession,
        user: UserContext,
        recent_metrics: Optional[Sequence[EngagementMetrics]] = None,
    ) -> Optional[DifficultyAdjustment]:
        """Return an adjustment one level up or down, or None to hold."""
        recent = list(recent_metrics or [])
        metrics = self.compute_metrics(session, user, recent)
        decision = self.decide(metrics)
        if decision == MAINTAIN:
            return None

        metadata = self.catalog.require(session.activity_type)
        target = self.target_level(metrics.current_difficulty, decision, metadata)
        if target == metrics.current_difficulty:
            logger.debug(
                f"[Difficulty] {session.session_id}: {decision} blocked at "
                f"{target} for {session.activity_type}"
            )
            return None

        adjustment = DifficultyAdjustment(
            from_level=metrics.current_difficulty,
            to_level=target,
            adjustment_type=decision,
            confidence=self.confidence(metrics, decision),
            reasoning=self.reasoning(metrics, decision, target),
            parameters=self.parameters_for(target, user),
            metrics=metrics,
            trigger=self.trigger_for(metrics, decision),
        )
        self._remember(session.session_id, adjustment)
        logger.info(
            f"[Difficulty] {session.session_id}: {adjustment.from_level} -> "
            f"{adjustment.to_level} (confidence {adjustment.confidence:.2f})"
        )
        return adjustment

    def apply(self, session: ActivitySession, adjustment: DifficultyAdjustment) -> None:
        """
        Install the adjusted configuration and rescale the step counter.

        A decrease shrinks the session (x0.8, floor, min 1) and clamps the
        current step into it. An increase grows it (x1.2, ceil) and scales
        the current step by the same ratio so progress never moves backwards.
        """
        old_total = session.total_steps
        session.configuration = replace(
            session.configuration, difficulty_level=adjustment.to_level
        )
        if adjustment.adjustment_type == DECREASE:
            new_total = scale_floor(old_total, 0.8, minimum=1)
            session.total_steps = new_total
            session.current_step = min(session.current_step, new_total)
        else:
            new_total = scale_ceil(old_total, 1.2, minimum=1)
            session.total_steps = new_total
            if old_total > 0:
                scaled = scale_ceil(session.current_step, new_total / old_total, minimum=0)
                session.current_step = min(new_total, max(session.current_step, scaled))

    def history(self, session_id: str) -> List[DifficultyAdjustment]:
        return list(self._history.get(session_id, ()))

    def forget(self, session_id: str) -> None:
        self._history.pop(session_id, None)

    def recommend_starting_level(self, user: UserContext, metadata: ActivityMetadata) -> str:
        """Pick a starting level from stress, experience and preference."""
        stress = user.current_state.stress_level or 5
        experience = len(user.progress.completed_activities)
        preference = user.preferences.difficulty_level

        if stress > 8 or experience < 3:
            level = BEGINNER
        elif experience > 10 and preference == ADVANCED:
            level = ADVANCED
        else:
            level = preference if preference in DIFFICULTY_LEVELS else BEGINNER
        return self._clamp_level(level, metadata)

    # ── Metrics ─────────────────────────────────────────────────────────

    def compute_metrics(
        self,
        session: ActivitySession,
        user: UserContext,
        recent: Sequence[EngagementMetrics],
    ) -> DifficultyMetrics:
        session_engagement = clamp(session.engagement / 10.0, 0.0, 1.0)
        if recent:
            avg_engagement = mean([m.overall_engagement for m in recent])
            avg_response_time = mean([m.response_time for m in recent])
        else:
            avg_engagement = session_engagement
            avg_response_time = DEFAULT_RESPONSE_TIME_MS

        stress = float(session.metrics.stress_level)
        if user.current_state.stress_level is not None:
            stress = max(stress, float(user.current_state.stress_level))

        return DifficultyMetrics(
            current_difficulty=session.configuration.difficulty_level,
            performance_score=self.performance_score(session, recent),
            engagement_score=avg_engagement,
            comprehension_score=self.comprehension_score(avg_response_time, avg_engagement),
            stress_level=stress,
            completion_rate=session.completion_percentage / 100.0,
            adaptation_count=len(session.adaptations),
        )

    @staticmethod
    def performance_score(session: ActivitySession, recent: Sequence[EngagementMetrics]) -> float:
        score = session.completion_percentage / 100.0 * 0.4
        score += clamp(session.engagement / 10.0, 0.0, 1.0) * 0.3
        # Fewer adaptations means the session is fitting the user
        score += 0.2 - min(0.2, len(session.adaptations) * 0.05)
        # Consistency only counts once there is a spread to measure
        if len(recent) > 1:
            score += (1 - variation([m.overall_engagement for m in recent])) * 0.1
        return clamp(score, 0.0, 1.0)

    @staticmethod
    def comprehension_score(avg_response_time: float, avg_engagement: float) -> float:
        if avg_response_time < 2000:
            time_score = 0.6
        elif avg_response_time > 15000:
            time_score = max(0.2, 1 - (avg_response_time - 15000) / 30000)
        else:
            time_score = 1.0
        return clamp(time_score * 0.6 + avg_engagement * 0.4, 0.0, 1.0)

    # ── Decision ────────────────────────────────────────────────────────

    def decide(self, metrics: DifficultyMetrics) -> str:
        t = self.thresholds
        if (
            metrics.performance_score < t.decrease_performance
            or metrics.engagement_score < t.decrease_engagement
            or metrics.comprehension_score < t.decrease_comprehension
            or metrics.stress_level > t.decrease_max_stress
        ):
            return DECREASE
        if (
            metrics.performance_score > t.increase_performance
            and metrics.engagement_score > t.increase_engagement
            and metrics.comprehension_score > t.increase_comprehension
            and metrics.stress_level <= t.increase_max_stress
            and metrics.current_difficulty != ADVANCED
        ):
            return INCREASE
        return MAINTAIN

    def target_level(self, current: str, decision: str, metadata: ActivityMetadata) -> str:
        step = 1 if decision == INCREASE else -1
        index = difficulty_rank(current) + step
        index = max(0, min(len(DIFFICULTY_LEVELS) - 1, index))
        return self._clamp_level(DIFFICULTY_LEVELS[index], metadata, current)

    @staticmethod
    def _clamp_level(level: str, metadata: ActivityMetadata, current: Optional[str] = None) -> str:
        rank = difficulty_rank(level)
        floor = difficulty_rank(metadata.floor_level)
        ceiling = difficulty_rank(metadata.ceiling_level)
        if rank < floor:
            return metadata.floor_level
        if rank > ceiling:
            return metadata.ceiling_level
        if metadata.supports(level):
            return level
        # Level sits in a gap of the supported set; stay where we are
        return current if current is not None else metadata.floor_level

    def trigger_for(self, metrics: DifficultyMetrics, decision: str) -> str:
        if decision == INCREASE:
            return TRIGGER_HIGH_PERFORMANCE
        t = self.thresholds
        if metrics.stress_level > t.decrease_max_stress:
            return TRIGGER_EMOTIONAL_DISTRESS
        if metrics.engagement_score < t.decrease_engagement:
            return TRIGGER_LOW_ENGAGEMENT
        if metrics.comprehension_score < t.decrease_comprehension:
            return TRIGGER_COMPREHENSION_ISSUE
        return TRIGGER_LOW_ENGAGEMENT

    # ── Parameters, confidence, rationale ───────────────────────────────

    @staticmethod
    def parameters_for(level: str, user: UserContext) -> DifficultyParameters:
        params = replace(BASE_PARAMETERS[level])
        stress = user.current_state.stress_level
        if stress is not None and stress > 7:
            params.emotional_intensity = "gentle"
            params.complexity_level = max(1, params.complexity_level - 1)
        if user.is_indian_background:
            params.cultural_sensitivity = max(8, params.cultural_sensitivity)
        if user.language == "hindi":
            params.language_complexity = "simple"
        elif user.language == "mixed" and params.language_complexity == "advanced":
            params.language_complexity = "standard"
        return params

    @staticmethod
    def confidence(metrics: DifficultyMetrics, decision: str) -> float:
        confidence = 0.5
        if decision == DECREASE:
            if metrics.stress_level > 8:
                confidence += 0.3
            if metrics.engagement_score < 0.3:
                confidence += 0.2
            if metrics.comprehension_score < 0.4:
                confidence += 0.2
        elif decision == INCREASE:
            if metrics.performance_score > 0.8:
                confidence += 0.2
            if metrics.engagement_score > 0.8:
                confidence += 0.2
            if metrics.adaptation_count == 0:
                confidence += 0.1
        # Mixed signals
        if abs(metrics.performance_score - metrics.engagement_score) > 0.3:
            confidence -= 0.1
        return clamp(confidence, 0.3, 1.0)

    def reasoning(self, metrics: DifficultyMetrics, decision: str, target: str) -> str:
        t = self.thresholds
        reasons: List[str] = []
        if decision == DECREASE:
            if metrics.stress_level > t.decrease_max_stress:
                reasons.append("high stress level detected")
            if metrics.engagement_score < t.decrease_engagement:
                reasons.append("low engagement observed")
            if metrics.comprehension_score < t.decrease_comprehension:
                reasons.append("comprehension difficulties noted")
            if metrics.performance_score < t.decrease_performance:
                reasons.append("performance below expectations")
        else:
            if metrics.performance_score > t.increase_performance:
                reasons.append("excellent performance demonstrated")
            if metrics.engagement_score > t.increase_engagement:
                reasons.append("high engagement maintained")
            if metrics.adaptation_count == 0:
                reasons.append("no adaptations needed")

        action = "Increasing" if decision == INCREASE else "Decreasing"
        reason_text = ", ".join(reasons) if reasons else "overall performance metrics"
        return f"{action} difficulty to {target} level due to: {reason_text}"

    def _remember(self, session_id: str, adjustment: DifficultyAdjustment) -> None:
        buf = self._history.setdefault(session_id, deque(maxlen=self.history_limit))
        buf.append(adjustment)
