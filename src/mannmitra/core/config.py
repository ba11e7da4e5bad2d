"""
Tunable thresholds and weights for the activity engine.

Every threshold the recommendation and difficulty engines compare against
lives here, so tests and deployments can override them without touching
the algorithms. Environment variables use the MANNMITRA_ prefix, with a
double underscore into the nested groups:

    MANNMITRA_ADJUSTMENT_INTERVAL=5
    MANNMITRA_DIFFICULTY__DECREASE_MAX_STRESS=7.5
    MANNMITRA_RECOMMENDATION__MAX_RECOMMENDATIONS=3
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DifficultyThresholds(BaseModel):
    """Decision boundaries for raising or lowering difficulty."""
    increase_performance: float = 0.8
    increase_engagement: float = 0.7
    increase_comprehension: float = 0.8
    increase_max_stress: float = 6.0
    decrease_performance: float = 0.4
    decrease_engagement: float = 0.4
    decrease_comprehension: float = 0.5
    decrease_max_stress: float = 8.0


class RecommendationWeights(BaseModel):
    """Additive terms of the recommendation score (clamped to [0, 10])."""
    cultural_relevance: float = 0.2
    preferred_type: float = 3.0
    goal_alignment: float = 1.5
    concern_alignment: float = 2.0
    immediate_crisis: float = 5.0
    high_urgency_short: float = 3.0
    short_duration: int = 10
    duration_match: float = 2.0
    duration_tolerance: int = 5
    specific_need: float = 1.5
    phase_alignment: float = 2.0
    recency_penalty: float = 1.0
    recency_window: int = 3
    max_recommendations: int = Field(default=5, ge=1)
    crisis_max_duration: int = 20
    quick_relief_min_duration: int = 3
    quick_relief_max_duration: int = 10
    quick_relief_min_cultural_relevance: int = 7


class EngineSettings(BaseSettings):
    """Runtime settings for the session controller and its collaborators."""

    difficulty: DifficultyThresholds = Field(default_factory=DifficultyThresholds)
    recommendation: RecommendationWeights = Field(default_factory=RecommendationWeights)

    adjustment_interval: int = Field(
        default=3, ge=0, description="Inputs between automatic assessments; 0 disables"
    )
    adjustment_history_limit: int = Field(default=10, ge=1)
    max_concurrent_sessions: int = Field(default=3, ge=0, description="Per user; 0 disables")
    session_timeout_minutes: float = Field(default=30.0, gt=0)
    expiry_sweep_seconds: float = Field(
        default=60.0, ge=0, description="Idle-session sweep period for the API; 0 disables"
    )
    narration_timeout_seconds: float = Field(default=20.0, gt=0)
    low_engagement_trigger: float = 0.3
    slow_response_ms: float = 20000.0
    engagement_window: int = Field(default=5, ge=1)
    follow_up_count: int = Field(default=3, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="MANNMITRA_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Optional[EngineSettings] = None


def get_settings() -> EngineSettings:
    """Get or create the process-wide settings instance."""
    global _settings
    if _settings is None:
        _settings = EngineSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None


__all__ = [
    "DifficultyThresholds",
    "RecommendationWeights",
    "EngineSettings",
    "get_settings",
    "reset_settings",
]
