"""
ActivityFactory: eligibility gating, default configuration, and service
instantiation.

Services are chosen by catalog category, not by activity type, so several
catalog entries can share one capability (breathing and grounding both run
on the mindfulness service).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type

from ..activities.assessment import AssessmentService
from ..activities.base import BaseActivityService
from ..activities.cognitive import CognitiveExerciseService
from ..activities.conversation import ConversationService
from ..activities.crisis import CrisisSupportService
from ..activities.cultural import (
    CulturalAdapter,
    TAG_BILINGUAL,
    TAG_FAMILY,
    TAG_HIERARCHY,
    TAG_HINDI,
    TAG_INDIAN_CONTEXT,
)
from ..activities.mindfulness import MindfulnessService
from ..content.activities import (
    CATEGORY_ASSESSMENT,
    CATEGORY_BEHAVIORAL,
    CATEGORY_CBT,
    CATEGORY_CONVERSATION,
    CATEGORY_CRISIS,
    CATEGORY_CULTURAL,
    CATEGORY_MINDFULNESS,
)
from ..llm.narrator import StepNarrator
from .catalog import ActivityCatalog, matched_contraindications, missing_prerequisites
from .errors import ContraindicatedError, InvalidConfigurationError, PrerequisiteUnmetError
from .models import (
    ADVANCED,
    ActivityConfiguration,
    ActivityMetadata,
    BEGINNER,
    DIFFICULTY_LEVELS,
    UserContext,
    difficulty_rank,
)
from .utils import scale_ceil

logger = logging.getLogger(__name__)

SERVICE_BY_CATEGORY: Dict[str, Type[BaseActivityService]] = {
    CATEGORY_CONVERSATION: ConversationService,
    CATEGORY_BEHAVIORAL: ConversationService,
    CATEGORY_CULTURAL: ConversationService,
    CATEGORY_CBT: CognitiveExerciseService,
    CATEGORY_MINDFULNESS: MindfulnessService,
    CATEGORY_ASSESSMENT: AssessmentService,
    CATEGORY_CRISIS: CrisisSupportService,
}

OVERRIDE_KEYS = ("difficulty_level", "duration", "cultural_adaptations", "personalizations")

HIGH_STRESS = 7
MIN_STEPS = 3


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def override_type_errors(overrides: Mapping[str, Any]) -> List[str]:
    """One message per override whose value has the wrong shape."""
    errors: List[str] = []
    level = overrides.get("difficulty_level")
    if level is not None and not isinstance(level, str):
        errors.append(f"difficulty_level must be a string, got {type(level).__name__}")
    duration = overrides.get("duration")
    # bool is an int subclass
    if duration is not None and (isinstance(duration, bool) or not isinstance(duration, int)):
        errors.append(f"duration must be a whole number of minutes, got {duration!r}")
    for key in ("cultural_adaptations", "personalizations"):
        tags = overrides.get(key)
        if tags is None:
            continue
        if not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags):
            errors.append(f"{key} must be a list of strings, got {tags!r}")
    return errors


class ActivityFactory:
    """
    Builds configurations and services for catalog entries.

    Usage:
        factory = ActivityFactory(ActivityCatalog.default())
        config = factory.create_default_configuration("breathing_exercise", user)
        service = factory.create_activity("breathing_exercise", sid, user.user_id, user)
    """

    def __init__(
        self,
        catalog: ActivityCatalog,
        narrator: Optional[StepNarrator] = None,
        adapter: Optional[CulturalAdapter] = None,
    ):
        self.catalog = catalog
        self.narrator = narrator
        self.adapter = adapter or CulturalAdapter()

    def get_activity_metadata(self, activity_type: str) -> ActivityMetadata:
        return self.catalog.require(activity_type)

    def check_eligibility(self, activity_type: str, user: UserContext) -> ActivityMetadata:
        """Raise if the type is unknown, a prerequisite is missing, or it is contraindicated."""
        metadata = self.catalog.require(activity_type)
        missing = missing_prerequisites(metadata, user)
        if missing:
            raise PrerequisiteUnmetError(activity_type, missing)
        matched = matched_contraindications(metadata, user)
        if matched:
            raise ContraindicatedError(activity_type, matched)
        return metadata

    def create_activity(
        self,
        activity_type: str,
        session_id: str,
        user_id: str,
        user_context: UserContext,
    ) -> BaseActivityService:
        metadata = self.check_eligibility(activity_type, user_context)
        service_cls = self.service_class_for(metadata)
        logger.debug(f"[Factory] {activity_type} -> {service_cls.__name__}")
        return service_cls(
            session_id,
            user_id,
            metadata,
            user_context,
            narrator=self.narrator,
            adapter=self.adapter,
        )

    @staticmethod
    def service_class_for(metadata: ActivityMetadata) -> Type[BaseActivityService]:
        return SERVICE_BY_CATEGORY.get(metadata.category, ConversationService)

    # ── Configuration ───────────────────────────────────────────────────

    def create_default_configuration(
        self,
        activity_type: str,
        user_context: UserContext,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> ActivityConfiguration:
        """
        Derive a configuration from the user's profile, then apply overrides.

        Raises InvalidConfigurationError if an override names an unknown
        field or the result violates the catalog's constraints.
        """
        metadata = self.catalog.require(activity_type)
        overrides = dict(overrides or {})
        unknown = sorted(k for k in overrides if k not in OVERRIDE_KEYS)
        if unknown:
            raise InvalidConfigurationError(
                activity_type, [f"Unknown configuration field '{k}'" for k in unknown]
            )
        type_errors = override_type_errors(overrides)
        if type_errors:
            raise InvalidConfigurationError(activity_type, type_errors)

        difficulty = overrides.get("difficulty_level") or self.nearest_level(
            metadata, user_context.preferences.difficulty_level
        )
        duration = overrides.get("duration")
        if duration is None:
            duration = self.closest_duration(metadata, user_context.preferences.session_duration)

        configuration = ActivityConfiguration(
            activity_type=activity_type,
            difficulty_level=difficulty,
            duration=duration,
            cultural_adaptations=tuple(
                overrides.get("cultural_adaptations") or self.cultural_adaptations(user_context)
            ),
            personalizations=tuple(
                overrides.get("personalizations") or self.personalizations(user_context, metadata)
            ),
            prerequisites=metadata.prerequisites,
            learning_objectives=metadata.therapeutic_goals,
        )

        result = self.validate_configuration(activity_type, configuration)
        if not result.valid:
            raise InvalidConfigurationError(activity_type, result.errors)
        return configuration

    def validate_configuration(
        self, activity_type: str, configuration: ActivityConfiguration
    ) -> ValidationResult:
        metadata = self.catalog.get(activity_type)
        if metadata is None:
            return ValidationResult(False, [f"Activity type '{activity_type}' is not registered"])

        errors: List[str] = []
        if not metadata.supports(configuration.difficulty_level):
            errors.append(
                f"Difficulty level '{configuration.difficulty_level}' not supported for {activity_type}"
            )
        if not metadata.min_duration <= configuration.duration <= metadata.max_duration:
            errors.append(
                f"Duration {configuration.duration} minutes is outside supported range "
                f"({metadata.min_duration}-{metadata.max_duration})"
            )
        return ValidationResult(not errors, errors)

    def estimate_total_steps(
        self, metadata: ActivityMetadata, configuration: ActivityConfiguration
    ) -> int:
        steps = metadata.base_steps
        if configuration.difficulty_level == BEGINNER:
            steps = scale_ceil(steps, 0.8)
        elif configuration.difficulty_level == ADVANCED:
            steps = scale_ceil(steps, 1.3)
        if configuration.duration > 30:
            steps = scale_ceil(steps, 1.5)
        elif configuration.duration < 10:
            steps = scale_ceil(steps, 0.7)
        return max(MIN_STEPS, steps)

    # ── Derivation helpers ──────────────────────────────────────────────

    @staticmethod
    def nearest_level(metadata: ActivityMetadata, preferred: Optional[str]) -> str:
        """The preferred level if supported, else the closest supported (lower on ties)."""
        if preferred in DIFFICULTY_LEVELS and metadata.supports(preferred):
            return preferred
        target = difficulty_rank(preferred) if preferred in DIFFICULTY_LEVELS else 0
        return min(
            metadata.difficulty_levels,
            key=lambda lvl: (abs(difficulty_rank(lvl) - target), difficulty_rank(lvl)),
        )

    @staticmethod
    def closest_duration(metadata: ActivityMetadata, preferred: Optional[int]) -> int:
        durations = sorted(metadata.durations)
        if not preferred:
            return durations[len(durations) // 2]
        return min(durations, key=lambda d: (abs(d - preferred), d))

    @staticmethod
    def cultural_adaptations(user: UserContext) -> List[str]:
        tags: List[str] = []
        if user.is_indian_background:
            tags.append(TAG_INDIAN_CONTEXT)
        if user.language == "hindi":
            tags.append(TAG_HINDI)
        elif user.language == "mixed":
            tags.append(TAG_BILINGUAL)
        if user.is_indian_background:
            tags.extend([TAG_FAMILY, TAG_HIERARCHY])
        return tags

    @staticmethod
    def personalizations(user: UserContext, metadata: ActivityMetadata) -> List[str]:
        tags = [
            f"{concern}_focused"
            for concern in user.history.primary_concerns
            if any(concern in goal for goal in metadata.therapeutic_goals)
        ]
        tags.append(f"{user.preferences.interaction_style}_style")
        if user.current_state.emotional_state:
            tags.append(f"{user.current_state.emotional_state}_state_aware")
        stress = user.current_state.stress_level
        if stress is not None and stress > HIGH_STRESS:
            tags.append("high_stress_adaptation")
        return tags
