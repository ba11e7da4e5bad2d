"""
Pydantic request/response models for the MannMitra activity API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# USER CONTEXT
# =============================================================================

class DemographicsModel(BaseModel):
    age: Optional[int] = Field(None, ge=0, le=130)
    gender: Optional[str] = None
    location: Optional[str] = None
    language: Optional[str] = Field(None, description="english, hindi or mixed")
    cultural_background: Optional[str] = None


class HistoryModel(BaseModel):
    previous_sessions: int = Field(0, ge=0)
    primary_concerns: List[str] = Field(default_factory=list)
    therapeutic_goals: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)
    protective_factors: List[str] = Field(default_factory=list)


class CurrentStateModel(BaseModel):
    emotional_state: Optional[str] = None
    stress_level: Optional[int] = Field(None, ge=1, le=10)
    recent_triggers: List[str] = Field(default_factory=list)
    coping_strategies: List[str] = Field(default_factory=list)


class PreferencesModel(BaseModel):
    preferred_types: List[str] = Field(default_factory=list)
    session_duration: int = Field(15, ge=1, description="Preferred minutes per session")
    difficulty_level: str = "beginner"
    interaction_style: str = "conversational"
    cultural_adaptation_level: int = Field(5, ge=1, le=10)


class ProgressModel(BaseModel):
    completed_activities: List[str] = Field(default_factory=list)
    skills_learned: List[str] = Field(default_factory=list)
    current_phase: str = "assessment"


class UserContextModel(BaseModel):
    """Everything the engine knows about a user at request time."""
    user_id: str
    demographics: DemographicsModel = Field(default_factory=DemographicsModel)
    history: HistoryModel = Field(default_factory=HistoryModel)
    current_state: CurrentStateModel = Field(default_factory=CurrentStateModel)
    preferences: PreferencesModel = Field(default_factory=PreferencesModel)
    progress: ProgressModel = Field(default_factory=ProgressModel)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class RecommendationRequest(BaseModel):
    user_context: UserContextModel
    current_emotional_state: Optional[str] = None
    urgency_level: str = Field("medium", pattern="^(low|medium|high|immediate)$")
    session_time_available: Optional[int] = Field(None, ge=1, description="Minutes")
    specific_needs: List[str] = Field(default_factory=list)
    exclude_types: List[str] = Field(default_factory=list)


class FastPathRequest(BaseModel):
    """Crisis and quick-relief lookups only need the user."""
    user_context: UserContextModel


class StartSessionRequest(BaseModel):
    """Start an activity; without a context the stored profile is used."""
    activity_type: str
    user_id: str
    user_context: Optional[UserContextModel] = None
    overrides: Dict[str, Any] = Field(default_factory=dict)


class InputRequest(BaseModel):
    user_input: str = Field(..., description="User's text response")
    response_time_ms: Optional[float] = Field(None, ge=0)


class AbandonRequest(BaseModel):
    reason: Optional[str] = None


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class ActivityInfo(BaseModel):
    activity_type: str
    name: str
    description: str
    category: str
    cultural_relevance: int
    difficulty_levels: List[str]
    durations: List[int]
    therapeutic_goals: List[str]
    skills_targeted: List[str]
    prerequisites: List[str]
    contraindications: List[str]


class RecommendationData(BaseModel):
    activity_type: str
    score: float
    priority: int
    cultural_relevance: int
    duration: int
    difficulty_level: str
    rationale: str
    expected_outcomes: List[str]
    urgency: str


class StepData(BaseModel):
    """One turn of activity content."""
    content: str
    kind: str
    next_step: Optional[int] = None
    next_step_preview: Optional[str] = None
    adaptation_triggered: bool = False
    intervention_type: Optional[str] = None
    cultural_adaptations: List[str] = Field(default_factory=list)
    therapeutic_techniques: List[str] = Field(default_factory=list)
    follow_up_required: bool = False
    current_step: Optional[int] = None
    total_steps: Optional[int] = None
    completion_percentage: Optional[float] = None


class SessionData(BaseModel):
    session_id: str
    user_id: str
    activity_type: str
    configuration: Dict[str, Any]
    status: str
    current_step: int
    total_steps: int
    completion_percentage: float
    engagement: float
    start_time: str
    end_time: Optional[str] = None
    metrics: Dict[str, Any]
    adaptations: List[Dict[str, Any]] = Field(default_factory=list)
    interaction_count: int = 0


class StartSessionResponse(BaseModel):
    session: SessionData
    first_step: StepData


class AdjustmentData(BaseModel):
    adjusted: bool
    from_level: Optional[str] = None
    to_level: Optional[str] = None
    confidence: Optional[float] = None
    reasoning: Optional[str] = None
    trigger: Optional[str] = None
    session: SessionData


class ResultData(BaseModel):
    session_id: str
    activity_type: str
    completion_status: str
    engagement_score: float
    comprehension_score: float
    skills_demonstrated: List[str]
    insights: List[str]
    therapeutic_goals_addressed: List[str]
    recommended_follow_up: List[RecommendationData] = Field(default_factory=list)
    adaptations_count: int = 0
    duration_minutes: float = 0.0
    cultural_effectiveness: float = 0.0


class StatusResponse(BaseModel):
    llm_available: bool
    activities: int
    active_sessions: int
