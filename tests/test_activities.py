"""Tests for the activity services and cultural adaptation."""

from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from mannmitra.activities.assessment import parse_rating
from mannmitra.activities.cognitive import EMPTY_THOUGHT_PROMPT
from mannmitra.activities.cultural import (
    CulturalAdapter,
    TAG_BILINGUAL,
    TAG_FAMILY,
    TAG_HINDI,
)
from mannmitra.content.templates import (
    COMPLETION_MESSAGE,
    CRISIS_SUPPORT_MESSAGE,
    EMPTY_INPUT_MESSAGE,
    FALLBACK_MESSAGES,
    CAPABILITY_MINDFULNESS,
)
from mannmitra.core.catalog import ActivityCatalog
from mannmitra.core.difficulty import DifficultyAdjustmentEngine
from mannmitra.core.factory import ActivityFactory
from mannmitra.core.models import (
    ADAPT_EMERGENCY,
    ADAPT_INTERVENTION,
    ADAPT_PACING,
    ActivitySession,
    CurrentState,
    Demographics,
    RESPONSE_COMPLETION,
    RESPONSE_GUIDANCE,
    RESPONSE_INTERVENTION,
    RESPONSE_QUESTION,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_PARTIALLY_COMPLETED,
    TRIGGER_CRISIS_DETECTED,
    TRIGGER_EMOTIONAL_DISTRESS,
    TRIGGER_LOW_ENGAGEMENT,
    TRIGGER_USER_REQUEST,
    UserContext,
)


def _start(activity_type, user=None, narrator=None):
    """Bind a service to an active session at step 1."""
    user = user or UserContext(user_id="u1")
    factory = ActivityFactory(ActivityCatalog.default(), narrator=narrator)
    service = factory.create_activity(activity_type, "s1", user.user_id, user)
    config = factory.create_default_configuration(activity_type, user)
    session = ActivitySession(
        session_id="s1",
        user_id=user.user_id,
        activity_type=activity_type,
        configuration=config,
        total_steps=factory.estimate_total_steps(service.metadata, config),
    )
    service.initialize_activity(config, session)
    session.status = STATUS_ACTIVE
    session.current_step = 1
    return service, session


class TestStepFlow:
    def test_answer_moves_to_next_step(self):
        service, session = _start("guided_conversation")
        assert session.total_steps == 7
        response = service.process_user_input("Exams have been stressing me out")
        assert response.kind == RESPONSE_GUIDANCE
        assert response.next_step == 2
        assert response.content == (
            "Thank you for sharing how you're feeling. "
            "What's been on your mind lately? What brought you here today?"
        )
        assert response.next_step_preview == "Explore Current Concerns"
        assert service.shared_topics == ["Exams have been stressing me out"]

    def test_blank_answer_does_not_advance(self):
        service, session = _start("guided_conversation")
        response = service.process_user_input("   ")
        assert response.kind == RESPONSE_QUESTION
        assert response.next_step == 1
        assert response.content == EMPTY_INPUT_MESSAGE

    def test_last_step_completes(self):
        service, session = _start("guided_conversation")
        session.current_step = session.total_steps
        response = service.process_user_input("I'll call my sister this week")
        assert response.kind == RESPONSE_COMPLETION
        assert response.next_step == session.total_steps
        assert COMPLETION_MESSAGE in response.content

    def test_low_engagement_mode_uses_shorter_guidance(self):
        service, session = _start("guided_conversation")
        service.adapt(TRIGGER_LOW_ENGAGEMENT)
        response = service.process_user_input("fine")
        assert "Describe what's been weighing on you" in response.content

    def test_generate_next_step_reports_current_step(self):
        service, session = _start("mindfulness_session")
        response = service.generate_next_step()
        assert response.next_step == 1
        assert response.content.startswith("Find a comfortable position")
        assert response.next_step_preview == "Breath Awareness"

    def test_narrator_output_is_used(self):
        narrator = MagicMock()
        narrator.narrate.return_value = "Let's breathe together."
        service, session = _start("breathing_exercise", narrator=narrator)
        response = service.process_user_input("ready")
        assert response.content == "Let's breathe together."
        prompt = narrator.narrate.call_args[0][0]
        assert "Breathing Exercise" in prompt
        assert "ready" in prompt

    def test_fallback_response_stays_on_step(self):
        service, session = _start("mindfulness_session")
        response = service.fallback_response()
        assert response.content == FALLBACK_MESSAGES[CAPABILITY_MINDFULNESS]
        assert response.next_step == session.current_step


class TestVariants:
    def test_mindfulness_blank_input_still_advances(self):
        service, session = _start("mindfulness_session")
        response = service.process_user_input("")
        assert response.next_step == 2

    def test_cognitive_records_thoughts(self):
        service, session = _start("cbt_exercise")
        service.process_user_input("My manager criticised my report")
        assert service.thought_record["Identify the Situation"] == "My manager criticised my report"

    def test_cognitive_blank_input_prompts(self):
        service, session = _start("cbt_exercise")
        response = service.process_user_input("")
        assert response.content == EMPTY_THOUGHT_PROMPT
        assert response.next_step == 1

    def test_assessment_keeps_answers_and_rating(self):
        service, session = _start("assessment_activity")
        response = service.process_user_input("Maybe a 4 today")
        assert response.kind == RESPONSE_QUESTION
        assert service.mood_rating == 4
        assert service.answers["Mood Today"] == "Maybe a 4 today"
        assert any("4/10" in i for i in service.generate_insights())

    def test_parse_rating(self):
        assert parse_rating("I'd say 10") == 10
        assert parse_rating("about 7 or 8") == 7
        assert parse_rating("not great") is None

    def test_crisis_surfaces_helplines(self):
        service, session = _start("crisis_intervention")
        response = service.process_user_input("I just want to die")
        assert response.content.startswith(CRISIS_SUPPORT_MESSAGE)
        assert response.kind == RESPONSE_INTERVENTION
        assert response.follow_up_required
        assert service.risk_mentions == 1

    def test_crisis_next_step_requires_follow_up(self):
        service, session = _start("crisis_intervention")
        response = service.generate_next_step()
        assert response.kind == RESPONSE_INTERVENTION
        assert response.follow_up_required


class TestAdaptation:
    def test_generic_adaptation_recorded(self):
        service, session = _start("guided_conversation")
        adaptation = service.adapt(TRIGGER_USER_REQUEST)
        assert adaptation.adaptation_type == ADAPT_INTERVENTION
        assert session.adaptations == [adaptation]
        assert adaptation.effectiveness is None

    def test_capability_hook_takes_precedence(self):
        service, session = _start("mindfulness_session")
        adaptation = service.adapt(TRIGGER_EMOTIONAL_DISTRESS)
        assert adaptation.adaptation_type == ADAPT_PACING

    def test_crisis_hook(self):
        service, session = _start("crisis_intervention")
        assert service.adapt(TRIGGER_CRISIS_DETECTED).adaptation_type == ADAPT_EMERGENCY

    def test_adjustment_attached_to_record(self):
        user = UserContext(user_id="u1", current_state=CurrentState(stress_level=9))
        service, session = _start("mindfulness_session", user=user)
        difficulty = DifficultyAdjustmentEngine(ActivityCatalog.default())
        session.configuration = replace(session.configuration, difficulty_level="intermediate")
        adjustment = difficulty.assess(session, user, [])
        assert adjustment is not None
        adaptation = service.adapt(adjustment.trigger, {"adjustment": adjustment})
        assert adaptation.details["adjustment"]["to_level"] == "beginner"


class TestCompletion:
    def test_partial_completion(self):
        service, session = _start("guided_conversation")
        session.current_step = 2
        result = service.complete_activity()
        assert result.completion_status == STATUS_PARTIALLY_COMPLETED
        assert result.skills_demonstrated == ["emotional_awareness"]
        assert result.insights

    def test_full_completion(self):
        service, session = _start("guided_conversation")
        session.current_step = session.total_steps
        result = service.complete_activity()
        assert result.completion_status == STATUS_COMPLETED
        assert result.skills_demonstrated == list(service.metadata.skills_targeted)
        assert 0.0 <= result.cultural_effectiveness <= 1.0


class TestCulturalAdapter:
    @pytest.fixture
    def adapter(self):
        return CulturalAdapter()

    def test_hindi_gloss(self, adapter):
        assert adapter.adapt("Hello. Thank you!", [TAG_HINDI]) == "Hello (Namaste). Thank you (Dhanyawad)!"

    def test_gloss_is_idempotent(self, adapter):
        once = adapter.adapt("Hello there", [TAG_BILINGUAL])
        assert adapter.adapt(once, [TAG_BILINGUAL]) == once

    def test_gloss_keeps_case(self, adapter):
        assert adapter.adapt("hello", [TAG_HINDI]) == "hello (Namaste)"

    def test_family_phrasing(self, adapter):
        text = adapter.adapt("You should decide. It is your decision.", [TAG_FAMILY])
        assert text == (
            "You and your family might consider decide. It is your family's decision."
        )

    def test_no_tags_no_change(self, adapter):
        assert adapter.adapt("Hello", []) == "Hello"

    def test_service_applies_tags(self):
        user = UserContext(
            user_id="u1",
            demographics=Demographics(language="hindi", cultural_background="indian"),
        )
        service, session = _start("guided_conversation", user=user)
        response = service.generate_next_step()
        assert response.content.startswith("Hello (Namaste).")
        assert TAG_HINDI in response.cultural_adaptations
