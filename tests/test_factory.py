"""Tests for eligibility gating, configuration and service creation."""

import pytest

from mannmitra.activities.assessment import AssessmentService
from mannmitra.activities.cognitive import CognitiveExerciseService
from mannmitra.activities.conversation import ConversationService
from mannmitra.activities.crisis import CrisisSupportService
from mannmitra.activities.cultural import TAG_BILINGUAL, TAG_FAMILY, TAG_INDIAN_CONTEXT
from mannmitra.activities.mindfulness import MindfulnessService
from mannmitra.core.catalog import ActivityCatalog
from mannmitra.core.errors import (
    ContraindicatedError,
    InvalidConfigurationError,
    NotRegisteredError,
    PrerequisiteUnmetError,
)
from mannmitra.core.factory import ActivityFactory
from mannmitra.core.models import (
    ADVANCED,
    ActivityConfiguration,
    ActivityPreferences,
    BEGINNER,
    CurrentState,
    Demographics,
    INTERMEDIATE,
    MentalHealthHistory,
    TherapeuticProgress,
    UserContext,
)


@pytest.fixture
def factory():
    return ActivityFactory(ActivityCatalog.default())


@pytest.fixture
def user():
    return UserContext(user_id="u1")


class TestEligibility:
    def test_unknown_type(self, factory, user):
        with pytest.raises(NotRegisteredError):
            factory.check_eligibility("made_up_activity", user)

    def test_prerequisite_unmet(self, factory, user):
        """No completed activities, thought_challenge requires cbt_exercise."""
        with pytest.raises(PrerequisiteUnmetError) as exc:
            factory.create_activity("thought_challenge", "s1", user.user_id, user)
        assert exc.value.missing == ["cbt_exercise"]

    def test_contraindicated(self, factory):
        user = UserContext(
            user_id="u2",
            history=MentalHealthHistory(risk_factors=["severe_psychosis"]),
        )
        with pytest.raises(ContraindicatedError) as exc:
            factory.create_activity("crisis_intervention", "s1", user.user_id, user)
        assert "severe_psychosis" in exc.value.matched

    def test_prerequisite_checked_before_contraindication(self, factory):
        catalog = factory.catalog
        assert catalog.require("thought_challenge").contraindications == ()
        user = UserContext(
            user_id="u3",
            history=MentalHealthHistory(risk_factors=["severe_psychosis"]),
        )
        with pytest.raises(PrerequisiteUnmetError):
            factory.check_eligibility("thought_challenge", user)


class TestServiceSelection:
    @pytest.mark.parametrize(
        "activity_type,service_cls",
        [
            ("guided_conversation", ConversationService),
            ("journaling_prompt", ConversationService),
            ("cbt_exercise", CognitiveExerciseService),
            ("mindfulness_session", MindfulnessService),
            ("breathing_exercise", MindfulnessService),
            ("grounding_technique", MindfulnessService),
            ("assessment_activity", AssessmentService),
            ("mood_tracking", AssessmentService),
            ("crisis_intervention", CrisisSupportService),
        ],
    )
    def test_category_selects_service(self, factory, user, activity_type, service_cls):
        service = factory.create_activity(activity_type, "s1", user.user_id, user)
        assert isinstance(service, service_cls)
        assert service.session_id == "s1"
        assert service.activity_type == activity_type


class TestConfiguration:
    def test_defaults_from_preferences(self, factory, user):
        config = factory.create_default_configuration("breathing_exercise", user)
        assert config.difficulty_level == BEGINNER
        # preferred 15 minutes, closest option is 10
        assert config.duration == 10
        assert config.learning_objectives == ("stress_reduction", "anxiety_management")

    def test_unsupported_preference_falls_to_nearest_level(self, factory):
        user = UserContext(
            user_id="u4",
            preferences=ActivityPreferences(difficulty_level=BEGINNER),
            progress=TherapeuticProgress(completed_activities=["cbt_exercise"]),
        )
        config = factory.create_default_configuration("thought_challenge", user)
        assert config.difficulty_level == INTERMEDIATE

    def test_overrides_applied(self, factory, user):
        config = factory.create_default_configuration(
            "mindfulness_session", user, {"difficulty_level": ADVANCED, "duration": 30}
        )
        assert config.difficulty_level == ADVANCED
        assert config.duration == 30

    def test_unknown_override_rejected(self, factory, user):
        with pytest.raises(InvalidConfigurationError) as exc:
            factory.create_default_configuration("mindfulness_session", user, {"colour": "blue"})
        assert any("colour" in e for e in exc.value.errors)

    @pytest.mark.parametrize("duration", ["ten", 10.5, True])
    def test_non_integer_duration_rejected(self, factory, user, duration):
        with pytest.raises(InvalidConfigurationError) as exc:
            factory.create_default_configuration("breathing_exercise", user, {"duration": duration})
        assert any("duration" in e for e in exc.value.errors)

    def test_string_tags_rejected(self, factory, user):
        with pytest.raises(InvalidConfigurationError) as exc:
            factory.create_default_configuration(
                "guided_conversation", user, {"cultural_adaptations": TAG_BILINGUAL}
            )
        assert any("cultural_adaptations" in e for e in exc.value.errors)

    def test_tag_list_override_kept(self, factory, user):
        config = factory.create_default_configuration(
            "guided_conversation", user, {"cultural_adaptations": [TAG_BILINGUAL]}
        )
        assert config.cultural_adaptations == (TAG_BILINGUAL,)

    def test_out_of_range_duration_rejected(self, factory, user):
        with pytest.raises(InvalidConfigurationError):
            factory.create_default_configuration("breathing_exercise", user, {"duration": 90})

    def test_unsupported_level_rejected(self, factory, user):
        with pytest.raises(InvalidConfigurationError):
            factory.create_default_configuration(
                "crisis_intervention", user, {"difficulty_level": ADVANCED}
            )

    def test_validate_reports_errors(self, factory):
        config = ActivityConfiguration(
            activity_type="breathing_exercise", difficulty_level=ADVANCED, duration=1
        )
        result = factory.validate_configuration("breathing_exercise", config)
        assert not result.valid
        assert len(result.errors) == 2

    def test_cultural_tags_for_indian_bilingual_user(self, factory):
        user = UserContext(
            user_id="u5",
            demographics=Demographics(language="mixed", cultural_background="Indian"),
        )
        config = factory.create_default_configuration("guided_conversation", user)
        assert TAG_INDIAN_CONTEXT in config.cultural_adaptations
        assert TAG_BILINGUAL in config.cultural_adaptations
        assert TAG_FAMILY in config.cultural_adaptations

    def test_personalizations(self, factory):
        user = UserContext(
            user_id="u6",
            history=MentalHealthHistory(primary_concerns=["stress"]),
            current_state=CurrentState(emotional_state="anxious", stress_level=8),
        )
        config = factory.create_default_configuration("breathing_exercise", user)
        assert "stress_focused" in config.personalizations
        assert "conversational_style" in config.personalizations
        assert "anxious_state_aware" in config.personalizations
        assert "high_stress_adaptation" in config.personalizations


class TestStepEstimate:
    def _steps(self, factory, activity_type, level, duration):
        metadata = factory.catalog.require(activity_type)
        config = ActivityConfiguration(
            activity_type=activity_type, difficulty_level=level, duration=duration
        )
        return factory.estimate_total_steps(metadata, config)

    def test_intermediate_mid_length_keeps_base(self, factory):
        assert self._steps(factory, "mindfulness_session", INTERMEDIATE, 15) == 5

    def test_beginner_shrinks(self, factory):
        assert self._steps(factory, "mindfulness_session", BEGINNER, 15) == 4

    def test_advanced_long_session_grows(self, factory):
        # 5 * 1.3 -> 7, then * 1.5 -> 11
        assert self._steps(factory, "mindfulness_session", ADVANCED, 45) == 11

    def test_never_below_three(self, factory):
        assert self._steps(factory, "breathing_exercise", BEGINNER, 3) == 3
