"""Tests for the session controller: lifecycle, turns and adaptation."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from mannmitra.content.templates import CRISIS_SUPPORT_MESSAGE, RESUME_MESSAGE
from mannmitra.core.catalog import ActivityCatalog
from mannmitra.core.config import EngineSettings
from mannmitra.core.difficulty import DECREASE, INCREASE
from mannmitra.core.engine import ActivityEngine
from mannmitra.core.errors import (
    NotRegisteredError,
    PrerequisiteUnmetError,
    SessionBusyError,
    SessionNotFoundError,
    SessionStateError,
)
from mannmitra.core.models import (
    ADAPT_DIFFICULTY,
    BEGINNER,
    CurrentState,
    EngagementMetrics,
    INTERMEDIATE,
    RESPONSE_INTERVENTION,
    STATUS_ABANDONED,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_PARTIALLY_COMPLETED,
    STATUS_PAUSED,
    UserContext,
    utcnow,
)
from mannmitra.core.progress import InMemoryProgressStore


@pytest.fixture
def progress():
    return InMemoryProgressStore()


@pytest.fixture
def engine(progress):
    settings = EngineSettings(adjustment_interval=0)
    return ActivityEngine(ActivityCatalog.default(), progress_store=progress, settings=settings)


@pytest.fixture
def user():
    return UserContext(user_id="u1")


def _start_intermediate(engine, user, activity_type="mindfulness_session"):
    return engine.initialize(activity_type, user.user_id, user, {"difficulty_level": INTERMEDIATE})


def _telemetry(overall, response_time=3000):
    return EngagementMetrics(
        response_time=response_time,
        message_length=80,
        emotional_expression=0.5,
        question_asking=0.0,
        follow_through=0.7,
        overall_engagement=overall,
    )


class TestInitialize:
    def test_new_session_is_active_at_step_one(self, engine, user):
        session = engine.initialize("breathing_exercise", user.user_id, user)
        assert session.status == STATUS_ACTIVE
        assert session.current_step == 1
        assert session.total_steps == 3
        assert session.session_id in engine.active_session_ids()
        assert engine.get_session(session.session_id) is session

    def test_start_returns_first_step(self, engine, user):
        started = engine.start("mindfulness_session", user.user_id, user)
        assert started.first_step.current_step == 1
        assert started.first_step.total_steps == started.session.total_steps
        assert started.first_step.content.startswith("Find a comfortable position")

    def test_unknown_activity(self, engine, user):
        with pytest.raises(NotRegisteredError):
            engine.initialize("made_up_activity", user.user_id, user)
        assert engine.active_session_ids() == []

    def test_prerequisite_unmet(self, engine, user):
        with pytest.raises(PrerequisiteUnmetError):
            engine.initialize("thought_challenge", user.user_id, user)
        assert engine.active_session_ids() == []

    def test_stored_context_used_when_none_given(self, engine, progress):
        progress.save_user_context(
            UserContext(user_id="u9", current_state=CurrentState(emotional_state="anxious", stress_level=8))
        )
        session = engine.initialize("breathing_exercise", "u9")
        assert session.metrics.stress_level == 8
        assert session.metrics.emotional_state == "anxious"
        assert "high_stress_adaptation" in session.configuration.personalizations

    def test_unknown_user_gets_default_context(self, engine):
        session = engine.initialize("breathing_exercise", "stranger")
        assert session.configuration.difficulty_level == BEGINNER

    def test_session_limit_abandons_oldest(self, engine, user, progress):
        sessions = [engine.initialize("breathing_exercise", user.user_id, user) for _ in range(4)]
        ids = engine.active_session_ids()
        assert sessions[0].session_id not in ids
        assert sessions[0].status == STATUS_ABANDONED
        assert all(s.session_id in ids for s in sessions[1:])
        assert progress.records(user.user_id)[0].status == STATUS_ABANDONED


class TestProcessInput:
    def test_input_advances_one_step(self, engine, user):
        """A session at step 3 of 5 moves to step 4 and 80%."""
        session = _start_intermediate(engine, user)
        assert session.total_steps == 5
        session.current_step = 3
        response = engine.process_input(session.session_id, "I noticed my breath slowing down")
        assert session.current_step == 4
        assert response.current_step == 4
        assert response.completion_percentage == pytest.approx(80.0)

    def test_step_never_passes_total(self, engine, user):
        session = engine.initialize("breathing_exercise", user.user_id, user)
        for _ in range(6):
            response = engine.process_input(session.session_id, "breathing slowly now")
            assert session.current_step <= session.total_steps
        assert session.current_step == session.total_steps
        assert response.completion_percentage == pytest.approx(100.0)

    def test_interactions_logged(self, engine, user):
        session = engine.initialize("guided_conversation", user.user_id, user)
        engine.process_input(session.session_id, "I have been feeling low", response_time_ms=3000)
        assert session.turns == 1
        assert session.user_responses[0].metadata["response_time"] == 3000
        assert len(session.ai_responses) == 1
        assert session.interactions[-1].kind == "ai_response"

    def test_unknown_session(self, engine):
        with pytest.raises(SessionNotFoundError):
            engine.process_input("session_missing", "hello")

    def test_concurrent_call_rejected(self, engine, user):
        session = engine.initialize("guided_conversation", user.user_id, user)
        with engine.sessions.claim(session.session_id):
            with pytest.raises(SessionBusyError):
                engine.process_input(session.session_id, "hello")

    def test_crisis_language_outside_crisis_activity(self, engine, user):
        session = engine.initialize("mindfulness_session", user.user_id, user)
        response = engine.process_input(session.session_id, "honestly I want to die")
        assert response.content.startswith(CRISIS_SUPPORT_MESSAGE)
        assert response.kind == RESPONSE_INTERVENTION
        assert response.follow_up_required
        assert response.adaptation_triggered
        assert any(a.trigger == "crisis_detected" for a in session.adaptations)

    def test_distress_triggers_adaptation(self, engine, user):
        session = engine.initialize("guided_conversation", user.user_id, user)
        response = engine.process_input(session.session_id, "Everything is too much, I'm overwhelmed")
        assert response.adaptation_triggered
        assert session.metrics.emotional_state == "distressed"

    def test_content_failure_uses_fallback(self, engine, user):
        session = engine.initialize("guided_conversation", user.user_id, user)
        service = engine.sessions.require(session.session_id).service
        with patch.object(service, "process_user_input", side_effect=RuntimeError("boom")):
            response = engine.process_input(session.session_id, "hello there")
        assert response.content
        assert session.status == STATUS_ACTIVE
        assert session.current_step == 1

    def test_periodic_difficulty_assessment(self, progress):
        engine = ActivityEngine(
            ActivityCatalog.default(),
            progress_store=progress,
            settings=EngineSettings(adjustment_interval=1),
        )
        user = UserContext(user_id="u1", current_state=CurrentState(stress_level=9))
        session = _start_intermediate(engine, user)
        response = engine.process_input(session.session_id, "I am trying to focus on breathing")
        assert session.configuration.difficulty_level == BEGINNER
        assert session.total_steps == 4
        assert response.adaptation_triggered
        adjustment = [a for a in session.adaptations if "adjustment" in a.details]
        assert adjustment[0].details["adjustment"]["to_level"] == BEGINNER
        assert engine.difficulty.history(session.session_id)

    def test_completion_never_moves_backwards_across_adjustments(self, progress):
        telemetry = MagicMock()
        engine = ActivityEngine(
            ActivityCatalog.default(),
            progress_store=progress,
            settings=EngineSettings(adjustment_interval=1),
            telemetry=telemetry,
        )
        user = UserContext(user_id="u1", current_state=CurrentState(stress_level=3))
        session = _start_intermediate(engine, user)
        reflection = (
            "I feel calmer now and I think the slow breathing is settling me, "
            "I believe my shoulders are finally loosening"
        )

        # A disengaged first turn, then steady strong engagement
        telemetry.recent_metrics.return_value = [_telemetry(0.1), _telemetry(0.1)]
        percentages = [session.completion_percentage]
        for turn in range(5):
            response = engine.process_input(session.session_id, reflection, response_time_ms=3000)
            percentages.append(response.completion_percentage)
            assert 0 <= response.completion_percentage <= 100
            if turn == 0:
                assert session.configuration.difficulty_level == BEGINNER
                telemetry.recent_metrics.return_value = [_telemetry(0.95), _telemetry(0.95)]

        assert percentages == sorted(percentages)
        kinds = [a.adjustment_type for a in engine.difficulty.history(session.session_id)]
        assert kinds[0] == DECREASE
        assert INCREASE in kinds
        assert session.current_step <= session.total_steps

    def test_adjustment_interval_zero_disables(self, engine):
        user = UserContext(user_id="u1", current_state=CurrentState(stress_level=9))
        session = _start_intermediate(engine, user)
        for _ in range(3):
            engine.process_input(session.session_id, "breathing in and out")
        assert session.configuration.difficulty_level == INTERMEDIATE

    def test_assessment_failure_maintains_level(self, progress):
        engine = ActivityEngine(
            ActivityCatalog.default(),
            progress_store=progress,
            settings=EngineSettings(adjustment_interval=1),
        )
        user = UserContext(user_id="u1", current_state=CurrentState(stress_level=9))
        session = _start_intermediate(engine, user)
        with patch.object(engine.difficulty, "assess", side_effect=ValueError("bad metrics")):
            response = engine.process_input(session.session_id, "breathing in and out")
        assert session.configuration.difficulty_level == INTERMEDIATE
        assert response.current_step == 2


class TestLifecycle:
    def test_pause_blocks_input(self, engine, user):
        session = engine.initialize("guided_conversation", user.user_id, user)
        engine.pause(session.session_id)
        assert session.status == STATUS_PAUSED
        with pytest.raises(SessionStateError):
            engine.process_input(session.session_id, "hello")
        with pytest.raises(SessionStateError):
            engine.pause(session.session_id)

    def test_resume_returns_current_step(self, engine, user):
        session = engine.initialize("guided_conversation", user.user_id, user)
        engine.process_input(session.session_id, "I have been stressed")
        engine.pause(session.session_id)
        response = engine.resume(session.session_id)
        assert session.status == STATUS_ACTIVE
        assert response.content.startswith(RESUME_MESSAGE)
        assert response.current_step == 2

    def test_resume_requires_paused(self, engine, user):
        session = engine.initialize("guided_conversation", user.user_id, user)
        with pytest.raises(SessionStateError):
            engine.resume(session.session_id)

    def test_complete_partial(self, engine, user, progress):
        session = engine.initialize("guided_conversation", user.user_id, user)
        engine.process_input(session.session_id, "I have been stressed about exams")
        result = engine.complete(session.session_id)
        assert result.completion_status == STATUS_PARTIALLY_COMPLETED
        assert session.status == STATUS_PARTIALLY_COMPLETED
        assert session.end_time is not None
        assert session.session_id not in engine.active_session_ids()
        assert 0 < len(result.recommended_follow_up) <= 3
        assert "guided_conversation" not in {r.activity_type for r in result.recommended_follow_up}
        with pytest.raises(SessionNotFoundError):
            engine.get_session(session.session_id)

    def test_complete_updates_progress(self, engine, progress):
        progress.save_user_context(UserContext(user_id="u2"))
        session = engine.initialize("breathing_exercise", "u2")
        session.current_step = session.total_steps
        result = engine.complete(session.session_id)
        assert result.completion_status == STATUS_COMPLETED
        context = progress.get_user_context("u2")
        assert context.progress.completed_activities == ["breathing_exercise"]
        assert "breathing_techniques" in context.progress.skills_learned
        assert progress.session_statistics("u2")["completed_sessions"] == 1

    def test_complete_twice_fails(self, engine, user):
        session = engine.initialize("breathing_exercise", user.user_id, user)
        engine.complete(session.session_id)
        with pytest.raises(SessionNotFoundError):
            engine.complete(session.session_id)

    def test_abandon(self, engine, user, progress):
        session = engine.initialize("guided_conversation", user.user_id, user)
        engine.pause(session.session_id)
        result = engine.abandon(session.session_id, reason="had to leave")
        assert result.completion_status == STATUS_ABANDONED
        assert session.status == STATUS_ABANDONED
        assert session.session_id not in engine.active_session_ids()
        assert progress.records(user.user_id)[-1].status == STATUS_ABANDONED

    def test_expire_idle_sessions(self, engine, user):
        idle = engine.initialize("breathing_exercise", user.user_id, user)
        fresh = engine.initialize("mindfulness_session", user.user_id, user)
        idle.last_activity_at = utcnow() - timedelta(minutes=45)
        expired = engine.expire_idle_sessions()
        assert expired == [idle.session_id]
        assert idle.status == STATUS_ABANDONED
        assert fresh.session_id in engine.active_session_ids()


class TestExplicitAdjustment:
    def test_telemetry_samples_preferred(self, progress):
        low = EngagementMetrics(
            response_time=4000,
            message_length=5,
            emotional_expression=0.0,
            question_asking=0.0,
            follow_through=0.5,
            overall_engagement=0.1,
        )
        telemetry = MagicMock()
        telemetry.recent_metrics.return_value = [low, low]
        engine = ActivityEngine(
            ActivityCatalog.default(),
            progress_store=progress,
            settings=EngineSettings(adjustment_interval=0),
            telemetry=telemetry,
        )
        user = UserContext(user_id="u1")
        session = _start_intermediate(engine, user)
        adjustment = engine.adjust_difficulty(session.session_id)
        assert adjustment is not None
        assert adjustment.to_level == BEGINNER
        assert adjustment.metrics.engagement_score == pytest.approx(0.1)
        telemetry.recent_metrics.assert_called_with(session.session_id)
        assert session.adaptations[-1].adaptation_type == ADAPT_DIFFICULTY

    def test_hold_returns_none(self, engine, user):
        session = engine.initialize("breathing_exercise", user.user_id, user)
        session.engagement = 6.0
        session.current_step = 2
        assert engine.adjust_difficulty(session.session_id) is None
        assert session.configuration.difficulty_level == BEGINNER
