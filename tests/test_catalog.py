"""Tests for the activity catalog: lookup, filtering and eligibility."""

from dataclasses import replace

import pytest

from mannmitra.content.activities import (
    CATEGORY_CRISIS,
    CATEGORY_MINDFULNESS,
    DEFAULT_ACTIVITIES,
)
from mannmitra.core.catalog import (
    ActivityCatalog,
    ActivityFilter,
    is_eligible,
    matched_contraindications,
    missing_prerequisites,
)
from mannmitra.core.errors import NotRegisteredError
from mannmitra.core.models import (
    ActivityMetadata,
    BEGINNER,
    INTERMEDIATE,
    MentalHealthHistory,
    TherapeuticProgress,
    UserContext,
)


@pytest.fixture
def catalog():
    return ActivityCatalog.default()


@pytest.fixture
def user():
    return UserContext(user_id="u1")


class TestLookup:
    def test_default_catalog_has_all_entries(self, catalog):
        assert len(catalog) == len(DEFAULT_ACTIVITIES)
        assert "breathing_exercise" in catalog
        assert "made_up_activity" not in catalog

    def test_require_unknown_raises(self, catalog):
        with pytest.raises(NotRegisteredError) as exc:
            catalog.require("made_up_activity")
        assert exc.value.activity_type == "made_up_activity"

    def test_get_unknown_returns_none(self, catalog):
        assert catalog.get("made_up_activity") is None

    def test_by_category(self, catalog):
        types = {a.activity_type for a in catalog.by_category(CATEGORY_MINDFULNESS)}
        assert types == {"mindfulness_session", "breathing_exercise", "grounding_technique"}

    def test_register_same_entry_twice_keeps_one(self, catalog):
        breathing = catalog.require("breathing_exercise")
        before = len(catalog)
        catalog.register(breathing)
        catalog.register(breathing)
        assert len(catalog) == before
        assert catalog.types().count("breathing_exercise") == 1
        assert catalog.require("breathing_exercise") == breathing
        assert catalog.statistics()["category_counts"][CATEGORY_MINDFULNESS] == 3

    def test_register_replaces_by_type(self):
        catalog = ActivityCatalog(DEFAULT_ACTIVITIES)
        original = catalog.require("breathing_exercise")
        updated = replace(original, name="Box Breathing")
        catalog.register(updated)
        assert len(catalog) == len(DEFAULT_ACTIVITIES)
        assert catalog.require("breathing_exercise").name == "Box Breathing"

    def test_register_rejects_empty_levels(self):
        catalog = ActivityCatalog([])
        bad = ActivityMetadata(
            activity_type="broken",
            name="Broken",
            description="",
            category=CATEGORY_MINDFULNESS,
            cultural_relevance=5,
            difficulty_levels=(),
            durations=(5,),
            therapeutic_goals=(),
            skills_targeted=(),
        )
        with pytest.raises(ValueError):
            catalog.register(bad)

    def test_statistics(self, catalog):
        stats = catalog.statistics()
        assert stats["total_activities"] == len(DEFAULT_ACTIVITIES)
        assert stats["category_counts"][CATEGORY_MINDFULNESS] == 3
        assert 0 < stats["average_cultural_relevance"] <= 10


class TestFilter:
    def test_max_duration_keeps_entries_with_a_short_option(self, catalog):
        entries = catalog.filter(ActivityFilter(max_duration=5))
        types = {a.activity_type for a in entries}
        assert "breathing_exercise" in types
        assert "guided_conversation" not in types

    def test_difficulty_filter(self, catalog):
        entries = catalog.filter(ActivityFilter(difficulty_level=INTERMEDIATE))
        assert all(a.supports(INTERMEDIATE) for a in entries)
        assert "crisis_intervention" not in {a.activity_type for a in entries}

    def test_exclude_and_include(self, catalog):
        entries = catalog.filter(
            ActivityFilter(
                include_only_types=["breathing_exercise", "mood_tracking"],
                exclude_types=["mood_tracking"],
            )
        )
        assert [a.activity_type for a in entries] == ["breathing_exercise"]

    def test_no_filter_returns_everything(self, catalog):
        assert len(catalog.filter()) == len(catalog)


class TestEligibility:
    def test_missing_prerequisite(self, catalog, user):
        metadata = catalog.require("thought_challenge")
        assert missing_prerequisites(metadata, user) == ["cbt_exercise"]
        assert not is_eligible(metadata, user)

    def test_prerequisite_met(self, catalog):
        user = UserContext(
            user_id="u2",
            progress=TherapeuticProgress(completed_activities=["cbt_exercise"]),
        )
        assert is_eligible(catalog.require("thought_challenge"), user)

    def test_contraindication(self, catalog):
        user = UserContext(
            user_id="u3",
            history=MentalHealthHistory(risk_factors=["severe_psychosis"]),
        )
        metadata = catalog.require("crisis_intervention")
        assert matched_contraindications(metadata, user) == ["severe_psychosis"]
        assert not is_eligible(metadata, user)

    def test_eligible_excludes_blocked_entries(self, catalog, user):
        types = {a.activity_type for a in catalog.eligible(user)}
        assert "thought_challenge" not in types
        assert "crisis_intervention" in types

    def test_eligible_with_filter(self, catalog, user):
        entries = catalog.eligible(user, ActivityFilter(category=CATEGORY_CRISIS))
        assert [a.activity_type for a in entries] == ["crisis_intervention"]
        assert entries[0].floor_level == BEGINNER
