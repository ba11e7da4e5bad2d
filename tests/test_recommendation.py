"""Tests for recommendation scoring, ranking and the fast paths."""

import pytest

from mannmitra.content.activities import CATEGORY_CRISIS
from mannmitra.core.catalog import ActivityCatalog
from mannmitra.core.config import RecommendationWeights
from mannmitra.core.models import (
    ActivityPreferences,
    BEGINNER,
    CurrentState,
    MentalHealthHistory,
    TherapeuticProgress,
    UserContext,
)
from mannmitra.core.recommendation import RecommendationCriteria, RecommendationEngine


@pytest.fixture
def catalog():
    return ActivityCatalog.default()


@pytest.fixture
def engine(catalog):
    return RecommendationEngine(catalog)


@pytest.fixture
def stressed_user():
    return UserContext(user_id="u1", current_state=CurrentState(emotional_state="stressed"))


class TestRanking:
    def test_crisis_urgency_puts_crisis_first(self, engine, catalog, stressed_user):
        recs = engine.recommend(
            RecommendationCriteria(user_context=stressed_user, urgency_level="immediate")
        )
        crisis = [r for r in recs if catalog.require(r.activity_type).category == CATEGORY_CRISIS]
        assert crisis
        assert crisis[0].priority == 10
        assert crisis[0].urgency == "immediate"
        assert recs[0].activity_type == "crisis_intervention"

    def test_stressed_user_gets_mindfulness(self, engine, stressed_user):
        recs = engine.recommend(RecommendationCriteria(user_context=stressed_user))
        assert recs[0].activity_type == "breathing_exercise"
        assert recs[0].score == pytest.approx(5.0)
        assert recs[0].priority == 5

    def test_sorted_and_capped(self, engine, stressed_user):
        recs = engine.recommend(RecommendationCriteria(user_context=stressed_user))
        assert len(recs) == RecommendationWeights().max_recommendations
        scores = [r.score for r in recs]
        assert scores == sorted(scores, reverse=True)
        assert all(1 <= r.priority <= 10 for r in recs)

    def test_ineligible_entries_never_recommended(self, engine, stressed_user):
        recs = engine.recommend(RecommendationCriteria(user_context=stressed_user))
        assert "thought_challenge" not in {r.activity_type for r in recs}

    def test_exclude_types(self, engine, stressed_user):
        recs = engine.recommend(
            RecommendationCriteria(user_context=stressed_user, exclude_types=["breathing_exercise"])
        )
        assert "breathing_exercise" not in {r.activity_type for r in recs}

    def test_criteria_state_overrides_context(self, engine, stressed_user):
        criteria = RecommendationCriteria(
            user_context=stressed_user, current_emotional_state="Depressed"
        )
        assert criteria.emotional_state == "depressed"
        recs = engine.recommend(criteria)
        assert "to improve your mood" in recs[0].rationale

    def test_expected_outcomes_are_leading_goals(self, engine, catalog, stressed_user):
        recs = engine.recommend(RecommendationCriteria(user_context=stressed_user))
        for rec in recs:
            goals = list(catalog.require(rec.activity_type).therapeutic_goals)
            assert rec.expected_outcomes == goals[:3]


class TestScoring:
    def test_preferred_type_bonus(self, engine, catalog):
        plain = UserContext(user_id="a")
        fan = UserContext(
            user_id="b", preferences=ActivityPreferences(preferred_types=["journaling_prompt"])
        )
        activity = catalog.require("journaling_prompt")
        base = engine.score(activity, RecommendationCriteria(user_context=plain))
        boosted = engine.score(activity, RecommendationCriteria(user_context=fan))
        assert boosted - base == pytest.approx(3.0)

    def test_recent_completion_penalized(self, engine, catalog):
        fresh = UserContext(user_id="a")
        repeat = UserContext(
            user_id="b",
            progress=TherapeuticProgress(completed_activities=["breathing_exercise"]),
        )
        activity = catalog.require("breathing_exercise")
        assert engine.score(activity, RecommendationCriteria(user_context=repeat)) == pytest.approx(
            engine.score(activity, RecommendationCriteria(user_context=fresh)) - 1.0
        )

    def test_concern_and_goal_alignment(self, engine, catalog):
        user = UserContext(
            user_id="a",
            history=MentalHealthHistory(
                primary_concerns=["anxiety"], therapeutic_goals=["stress_reduction"]
            ),
        )
        activity = catalog.require("breathing_exercise")
        # 2.0 relevance + 1.5 goal + 2.0 concern
        score = engine.score(activity, RecommendationCriteria(user_context=user))
        assert score == pytest.approx(5.5)

    def test_score_clamped_to_ten(self, engine, catalog):
        user = UserContext(
            user_id="a",
            current_state=CurrentState(emotional_state="overwhelmed"),
            preferences=ActivityPreferences(preferred_types=["crisis_intervention"]),
        )
        activity = catalog.require("crisis_intervention")
        criteria = RecommendationCriteria(user_context=user, urgency_level="immediate")
        assert engine.score(activity, criteria) == 10.0

    def test_duration_selection(self, engine, catalog):
        activity = catalog.require("mindfulness_session")
        assert engine.select_duration(activity, None) == 15
        assert engine.select_duration(activity, 12) == 10
        assert engine.select_duration(activity, 25) == 20

    def test_difficulty_selection(self, engine, catalog):
        user = UserContext(user_id="a")
        assert engine.select_difficulty(catalog.require("thought_challenge"), user) == "intermediate"
        assert engine.select_difficulty(catalog.require("breathing_exercise"), user) == BEGINNER


class TestFastPaths:
    def test_crisis_recommendations(self, engine):
        recs = engine.crisis_recommendations(UserContext(user_id="a"))
        assert [r.activity_type for r in recs] == ["crisis_intervention"]
        assert recs[0].priority == 10
        assert recs[0].urgency == "immediate"
        assert recs[0].duration == 10

    def test_crisis_respects_contraindications(self, engine):
        user = UserContext(
            user_id="a", history=MentalHealthHistory(risk_factors=["active_substance_use"])
        )
        assert engine.crisis_recommendations(user) == []

    def test_quick_relief(self, engine, catalog):
        recs = engine.quick_relief_recommendations(UserContext(user_id="a"))
        assert recs[0].activity_type == "breathing_exercise"
        assert recs[0].duration == 3
        assert all(r.priority == 8 and r.urgency == "high" for r in recs)
        assert all(catalog.require(r.activity_type).cultural_relevance >= 7 for r in recs)
        assert "guided_conversation" not in {r.activity_type for r in recs}
