"""
Data model for the activity engine.

Catalog entries, configurations, engagement samples and adaptations are
frozen: a change produces a new object. Sessions are mutable, but their
adaptation and interaction logs are only ever appended to.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

# ── Difficulty ──────────────────────────────────────────────────────────────
BEGINNER = "beginner"
INTERMEDIATE = "intermediate"
ADVANCED = "advanced"
DIFFICULTY_LEVELS: Tuple[str, ...] = (BEGINNER, INTERMEDIATE, ADVANCED)

# ── Session lifecycle ───────────────────────────────────────────────────────
STATUS_NOT_STARTED = "not_started"
STATUS_ACTIVE = "active"
STATUS_PAUSED = "paused"
STATUS_COMPLETED = "completed"
STATUS_PARTIALLY_COMPLETED = "partially_completed"
STATUS_ABANDONED = "abandoned"
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_PARTIALLY_COMPLETED, STATUS_ABANDONED})

# ── Adaptation triggers ─────────────────────────────────────────────────────
TRIGGER_LOW_ENGAGEMENT = "low_engagement"
TRIGGER_EMOTIONAL_DISTRESS = "emotional_distress"
TRIGGER_COMPREHENSION_ISSUE = "comprehension_issue"
TRIGGER_CULTURAL_MISMATCH = "cultural_mismatch"
TRIGGER_CRISIS_DETECTED = "crisis_detected"
TRIGGER_TIME_CONSTRAINT = "time_constraint"
TRIGGER_USER_REQUEST = "user_request"
TRIGGER_HIGH_PERFORMANCE = "high_performance"
ADAPTATION_TRIGGERS: Tuple[str, ...] = (
    TRIGGER_LOW_ENGAGEMENT,
    TRIGGER_EMOTIONAL_DISTRESS,
    TRIGGER_COMPREHENSION_ISSUE,
    TRIGGER_CULTURAL_MISMATCH,
    TRIGGER_CRISIS_DETECTED,
    TRIGGER_TIME_CONSTRAINT,
    TRIGGER_USER_REQUEST,
    TRIGGER_HIGH_PERFORMANCE,
)

# ── Adaptation kinds ────────────────────────────────────────────────────────
ADAPT_DIFFICULTY = "difficulty_adjustment"
ADAPT_CULTURAL = "cultural_modification"
ADAPT_INTERVENTION = "intervention_change"
ADAPT_EMERGENCY = "emergency_protocol"
ADAPT_PACING = "pacing_change"
ADAPT_LANGUAGE = "language_switch"

# ── Urgency / response kinds ────────────────────────────────────────────────
URGENCY_LEVELS: Tuple[str, ...] = ("low", "medium", "high", "immediate")

RESPONSE_GUIDANCE = "guidance"
RESPONSE_QUESTION = "question"
RESPONSE_FEEDBACK = "feedback"
RESPONSE_INTERVENTION = "intervention"
RESPONSE_COMPLETION = "completion"

# ── Interaction kinds ───────────────────────────────────────────────────────
INTERACTION_USER_INPUT = "user_input"
INTERACTION_AI_RESPONSE = "ai_response"
INTERACTION_SYSTEM_EVENT = "system_event"
INTERACTION_ADAPTATION = "adaptation"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def difficulty_rank(level: str) -> int:
    """Ordinal position of a difficulty level (beginner=0)."""
    return DIFFICULTY_LEVELS.index(level)


# =============================================================================
# CATALOG
# =============================================================================

@dataclass(frozen=True)
class ActivityMetadata:
    """A catalog entry describing one activity type."""
    activity_type: str
    name: str
    description: str
    category: str
    cultural_relevance: int                 # 1-10
    difficulty_levels: Tuple[str, ...]      # ordered beginner < intermediate < advanced
    durations: Tuple[int, ...]              # minutes
    therapeutic_goals: Tuple[str, ...]
    skills_targeted: Tuple[str, ...]
    prerequisites: Tuple[str, ...] = ()
    contraindications: Tuple[str, ...] = ()
    base_steps: int = 6

    @property
    def min_duration(self) -> int:
        return min(self.durations)

    @property
    def max_duration(self) -> int:
        return max(self.durations)

    @property
    def floor_level(self) -> str:
        return min(self.difficulty_levels, key=difficulty_rank)

    @property
    def ceiling_level(self) -> str:
        return max(self.difficulty_levels, key=difficulty_rank)

    def supports(self, level: str) -> bool:
        return level in self.difficulty_levels

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activity_type": self.activity_type,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "cultural_relevance": self.cultural_relevance,
            "difficulty_levels": list(self.difficulty_levels),
            "durations": list(self.durations),
            "therapeutic_goals": list(self.therapeutic_goals),
            "skills_targeted": list(self.skills_targeted),
            "prerequisites": list(self.prerequisites),
            "contraindications": list(self.contraindications),
        }


# =============================================================================
# USER CONTEXT (consumed, not owned)
# =============================================================================

@dataclass
class Demographics:
    age: Optional[int] = None
    gender: Optional[str] = None
    location: Optional[str] = None
    language: Optional[str] = None              # "english" | "hindi" | "mixed"
    cultural_background: Optional[str] = None


@dataclass
class MentalHealthHistory:
    previous_sessions: int = 0
    primary_concerns: List[str] = field(default_factory=list)
    therapeutic_goals: List[str] = field(default_factory=list)
    risk_factors: List[str] = field(default_factory=list)
    protective_factors: List[str] = field(default_factory=list)


@dataclass
class CurrentState:
    emotional_state: Optional[str] = None
    stress_level: Optional[int] = None          # 1-10
    recent_triggers: List[str] = field(default_factory=list)
    coping_strategies: List[str] = field(default_factory=list)


@dataclass
class ActivityPreferences:
    preferred_types: List[str] = field(default_factory=list)
    session_duration: int = 15                  # minutes
    difficulty_level: str = BEGINNER
    interaction_style: str = "conversational"   # conversational | structured | guided
    cultural_adaptation_level: int = 5          # 1-10


@dataclass
class TherapeuticProgress:
    completed_activities: List[str] = field(default_factory=list)
    skills_learned: List[str] = field(default_factory=list)
    current_phase: str = "assessment"           # assessment | skill_building | practice | maintenance
    engagement_history: List["EngagementMetrics"] = field(default_factory=list)


@dataclass
class UserContext:
    """Everything the engine reads about a user."""
    user_id: str
    demographics: Demographics = field(default_factory=Demographics)
    history: MentalHealthHistory = field(default_factory=MentalHealthHistory)
    current_state: CurrentState = field(default_factory=CurrentState)
    preferences: ActivityPreferences = field(default_factory=ActivityPreferences)
    progress: TherapeuticProgress = field(default_factory=TherapeuticProgress)

    @property
    def is_indian_background(self) -> bool:
        background = (self.demographics.cultural_background or "").lower()
        return "indian" in background

    @property
    def language(self) -> str:
        return (self.demographics.language or "").lower()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserContext":
        """Build a context from a plain mapping (e.g. an API payload)."""
        progress = dict(data.get("progress") or {})
        history = progress.pop("engagement_history", None) or []
        return cls(
            user_id=data["user_id"],
            demographics=Demographics(**(data.get("demographics") or {})),
            history=MentalHealthHistory(**(data.get("history") or {})),
            current_state=CurrentState(**(data.get("current_state") or {})),
            preferences=ActivityPreferences(**(data.get("preferences") or {})),
            progress=TherapeuticProgress(
                **progress,
                engagement_history=[
                    m if isinstance(m, EngagementMetrics) else EngagementMetrics(**m)
                    for m in history
                ],
            ),
        )


# =============================================================================
# SESSION STATE
# =============================================================================

@dataclass(frozen=True)
class ActivityConfiguration:
    """Configuration chosen for one session. Replaced, never mutated."""
    activity_type: str
    difficulty_level: str
    duration: int
    cultural_adaptations: Tuple[str, ...] = ()
    personalizations: Tuple[str, ...] = ()
    prerequisites: Tuple[str, ...] = ()
    learning_objectives: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activity_type": self.activity_type,
            "difficulty_level": self.difficulty_level,
            "duration": self.duration,
            "cultural_adaptations": list(self.cultural_adaptations),
            "personalizations": list(self.personalizations),
            "prerequisites": list(self.prerequisites),
            "learning_objectives": list(self.learning_objectives),
        }


@dataclass(frozen=True)
class EngagementMetrics:
    """One engagement sample. Components are 0-1 except response time (ms)."""
    response_time: float
    message_length: int
    emotional_expression: float
    question_asking: float
    follow_through: float
    overall_engagement: float
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        return d


@dataclass(frozen=True)
class ActivityAdaptation:
    """An audit record of an in-session change."""
    trigger: str
    adaptation_type: str
    original_content: str
    adapted_content: str
    reasoning: str
    timestamp: datetime = field(default_factory=utcnow)
    effectiveness: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trigger": self.trigger,
            "adaptation_type": self.adaptation_type,
            "original_content": self.original_content,
            "adapted_content": self.adapted_content,
            "reasoning": self.reasoning,
            "timestamp": self.timestamp.isoformat(),
            "effectiveness": self.effectiveness,
            "details": self.details,
        }


@dataclass
class InteractionRecord:
    kind: str
    content: str
    timestamp: datetime = field(default_factory=utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RealTimeMetrics:
    emotional_state: str = "neutral"
    stress_level: float = 5.0
    response_time: float = 0.0         # ms, last sample
    comprehension: float = 0.0         # 0-1
    participation_level: float = 0.0   # 0-1


@dataclass
class ActivitySession:
    """
    In-progress state of one activity.

    `adaptations`, `interactions`, `user_responses` and `ai_responses` are
    append-only; use the log_* / record_* helpers rather than editing them.
    """
    session_id: str
    user_id: str
    activity_type: str
    configuration: ActivityConfiguration
    total_steps: int
    status: str = STATUS_NOT_STARTED
    current_step: int = 0
    engagement: float = 5.0            # running score, 1-10
    start_time: datetime = field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    last_activity_at: datetime = field(default_factory=utcnow)
    metrics: RealTimeMetrics = field(default_factory=RealTimeMetrics)
    adaptations: List[ActivityAdaptation] = field(default_factory=list)
    interactions: List[InteractionRecord] = field(default_factory=list)
    user_responses: List[InteractionRecord] = field(default_factory=list)
    ai_responses: List[InteractionRecord] = field(default_factory=list)
    turns: int = 0

    @property
    def completion_percentage(self) -> float:
        if self.total_steps <= 0:
            return 0.0
        return max(0.0, min(100.0, self.current_step / self.total_steps * 100.0))

    @property
    def steps_remaining(self) -> int:
        return max(0, self.total_steps - self.current_step)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def log_interaction(self, kind: str, content: str, **metadata: Any) -> InteractionRecord:
        record = InteractionRecord(kind=kind, content=content, metadata=metadata)
        self.interactions.append(record)
        return record

    def record_adaptation(self, adaptation: ActivityAdaptation) -> None:
        self.adaptations.append(adaptation)
        self.log_interaction(
            INTERACTION_ADAPTATION,
            f"Adaptation applied: {adaptation.adaptation_type}",
            trigger=adaptation.trigger,
        )

    def advance(self) -> None:
        """Move one step forward, never past the last step."""
        self.current_step = min(self.current_step + 1, self.total_steps)

    def touch(self) -> None:
        self.last_activity_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "activity_type": self.activity_type,
            "configuration": self.configuration.to_dict(),
            "status": self.status,
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "completion_percentage": round(self.completion_percentage, 2),
            "engagement": round(self.engagement, 2),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "metrics": asdict(self.metrics),
            "adaptations": [a.to_dict() for a in self.adaptations],
            "interaction_count": len(self.interactions),
        }


# =============================================================================
# ENGINE OUTPUTS
# =============================================================================

@dataclass
class ActivityRecommendation:
    activity_type: str
    score: float
    priority: int                      # 1-10
    cultural_relevance: int
    duration: int
    difficulty_level: str
    rationale: str
    expected_outcomes: List[str] = field(default_factory=list)
    urgency: str = "medium"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ActivityResponse:
    """What the user sees after one turn."""
    content: str
    kind: str = RESPONSE_GUIDANCE
    next_step: Optional[int] = None
    next_step_preview: Optional[str] = None
    adaptation_triggered: bool = False
    intervention_type: Optional[str] = None
    cultural_adaptations: List[str] = field(default_factory=list)
    therapeutic_techniques: List[str] = field(default_factory=list)
    follow_up_required: bool = False
    current_step: Optional[int] = None
    total_steps: Optional[int] = None
    completion_percentage: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ActivityResult:
    session_id: str
    activity_type: str
    completion_status: str
    engagement_score: float            # 1-10
    comprehension_score: float         # 0-1
    skills_demonstrated: List[str] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    therapeutic_goals_addressed: List[str] = field(default_factory=list)
    recommended_follow_up: List[ActivityRecommendation] = field(default_factory=list)
    adaptations_count: int = 0
    duration_minutes: float = 0.0
    cultural_effectiveness: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
