"""
BaseActivityService: the contract every activity capability implements.

A service is created per session by the factory and bound to that session
by `initialize_activity`. It produces step content from its capability's
script, narrates it through the optional StepNarrator, rewrites it through
the shared CulturalAdapter, and records adaptations on the session.

The session controller owns the step counter and lifecycle; a service only
reports which step it moved to (`ActivityResponse.next_step`).
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, List, Optional, Set, Tuple

from ..content.templates import (
    COMPLETION_MESSAGE,
    EMPTY_INPUT_MESSAGE,
    FALLBACK_MESSAGES,
    GENERIC_FALLBACK,
    NARRATION_PROMPT,
    STEP_SCRIPTS,
    StepScript,
)
from ..core.models import (
    ADAPT_CULTURAL,
    ADAPT_DIFFICULTY,
    ADAPT_EMERGENCY,
    ADAPT_INTERVENTION,
    ADAPT_PACING,
    ActivityAdaptation,
    ActivityConfiguration,
    ActivityMetadata,
    ActivityResponse,
    ActivityResult,
    ActivitySession,
    INTERACTION_SYSTEM_EVENT,
    RESPONSE_COMPLETION,
    RESPONSE_GUIDANCE,
    RESPONSE_QUESTION,
    STATUS_COMPLETED,
    STATUS_PARTIALLY_COMPLETED,
    TRIGGER_COMPREHENSION_ISSUE,
    TRIGGER_CRISIS_DETECTED,
    TRIGGER_CULTURAL_MISMATCH,
    TRIGGER_EMOTIONAL_DISTRESS,
    TRIGGER_HIGH_PERFORMANCE,
    TRIGGER_LOW_ENGAGEMENT,
    TRIGGER_TIME_CONSTRAINT,
    TRIGGER_USER_REQUEST,
    UserContext,
    utcnow,
)
from ..core.utils import clamp, mean
from ..llm.narrator import StepNarrator
from .cultural import CulturalAdapter

logger = logging.getLogger(__name__)

# trigger -> (adaptation kind, before, after, reasoning)
GENERIC_ADAPTATIONS: Dict[str, Tuple[str, str, str, str]] = {
    TRIGGER_LOW_ENGAGEMENT: (
        ADAPT_INTERVENTION,
        "Standard activity flow",
        "Simplified, more interactive approach with shorter responses",
        "User engagement below threshold, switching to more engaging format",
    ),
    TRIGGER_EMOTIONAL_DISTRESS: (
        ADAPT_INTERVENTION,
        "Current activity focus",
        "Emotional regulation and grounding techniques",
        "Detected emotional distress, prioritizing emotional stabilization",
    ),
    TRIGGER_CRISIS_DETECTED: (
        ADAPT_EMERGENCY,
        "Regular therapeutic activity",
        "Crisis intervention protocol activated",
        "Crisis indicators detected, switching to emergency support",
    ),
    TRIGGER_COMPREHENSION_ISSUE: (
        ADAPT_DIFFICULTY,
        "Current difficulty level",
        "Simplified language and concepts",
        "Slow response time indicates comprehension difficulty",
    ),
    TRIGGER_CULTURAL_MISMATCH: (
        ADAPT_CULTURAL,
        "Default cultural framing",
        "Content reframed with family and community context",
        "User signalled that the framing did not fit their context",
    ),
    TRIGGER_TIME_CONSTRAINT: (
        ADAPT_PACING,
        "Standard pacing",
        "Condensed steps with shorter prompts",
        "User has limited time available",
    ),
    TRIGGER_USER_REQUEST: (
        ADAPT_INTERVENTION,
        "Current activity approach",
        "Approach adjusted to the user's request",
        "User explicitly asked for a change",
    ),
    TRIGGER_HIGH_PERFORMANCE: (
        ADAPT_DIFFICULTY,
        "Current difficulty level",
        "Deeper prompts and more reflection",
        "User is progressing comfortably",
    ),
}


def adaptation_from_adjustment(trigger: str, adjustment: Any) -> ActivityAdaptation:
    """Audit record for a difficulty change; the adjustment rides along in details."""
    return ActivityAdaptation(
        trigger=trigger,
        adaptation_type=ADAPT_DIFFICULTY,
        original_content=f"Difficulty level: {adjustment.from_level}",
        adapted_content=f"Difficulty level: {adjustment.to_level}",
        reasoning=adjustment.reasoning,
        details={"adjustment": adjustment.to_dict()},
    )


def generic_adaptation(trigger: str) -> ActivityAdaptation:
    kind, before, after, reasoning = GENERIC_ADAPTATIONS.get(
        trigger, GENERIC_ADAPTATIONS[TRIGGER_USER_REQUEST]
    )
    return ActivityAdaptation(
        trigger=trigger,
        adaptation_type=kind,
        original_content=before,
        adapted_content=after,
        reasoning=reasoning,
    )


class BaseActivityService(ABC):
    """Abstract activity service; one subclass per capability."""

    capability: str = ""
    intervention_type: str = "guidance"
    techniques: Tuple[str, ...] = ()

    def __init__(
        self,
        session_id: str,
        user_id: str,
        metadata: ActivityMetadata,
        user_context: UserContext,
        narrator: Optional[StepNarrator] = None,
        adapter: Optional[CulturalAdapter] = None,
    ):
        self.session_id = session_id
        self.user_id = user_id
        self.metadata = metadata
        self.user_context = user_context
        self.narrator = narrator
        self.adapter = adapter or CulturalAdapter()
        self.session: Optional[ActivitySession] = None
        self.configuration: Optional[ActivityConfiguration] = None
        # Adaptation flags that change how content is produced
        self.modes: Set[str] = set()

    @property
    def activity_type(self) -> str:
        return self.metadata.activity_type

    @property
    def script(self) -> Tuple[StepScript, ...]:
        return STEP_SCRIPTS[self.capability]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize_activity(
        self, configuration: ActivityConfiguration, session: ActivitySession
    ) -> ActivitySession:
        self.configuration = configuration
        self.session = session
        session.log_interaction(
            INTERACTION_SYSTEM_EVENT,
            f"Activity {self.activity_type} started",
            difficulty=configuration.difficulty_level,
            duration=configuration.duration,
        )
        return session

    @abstractmethod
    def process_user_input(self, user_input: str) -> ActivityResponse:
        """Respond to the user's answer to the current step."""

    def generate_next_step(self) -> ActivityResponse:
        """Content for the step the session currently sits on."""
        session = self._require_session()
        step = max(1, session.current_step)
        script = self.step_script(step)
        content = self._narrate(script, step, user_input="", fallback=script.instruction)
        return self._response(
            content,
            kind=RESPONSE_GUIDANCE,
            next_step=session.current_step,
            preview=self._preview(step),
        )

    def complete_activity(self) -> ActivityResult:
        session = self._require_session()
        status = STATUS_COMPLETED if session.steps_remaining == 0 else STATUS_PARTIALLY_COMPLETED
        fraction = session.completion_percentage / 100.0
        end = session.end_time or utcnow()
        return ActivityResult(
            session_id=session.session_id,
            activity_type=self.activity_type,
            completion_status=status,
            engagement_score=round(session.engagement, 2),
            comprehension_score=self.comprehension_score(),
            skills_demonstrated=_leading_share(self.metadata.skills_targeted, fraction),
            insights=self.generate_insights(),
            therapeutic_goals_addressed=_leading_share(
                self._configuration().learning_objectives, fraction
            ),
            adaptations_count=len(session.adaptations),
            duration_minutes=round((end - session.start_time).total_seconds() / 60.0, 2),
            cultural_effectiveness=self.cultural_effectiveness(),
        )

    @abstractmethod
    def generate_insights(self) -> List[str]:
        ...

    # =========================================================================
    # Adaptation
    # =========================================================================

    def adapt(self, trigger: str, context: Optional[Dict[str, Any]] = None) -> ActivityAdaptation:
        """
        Build, record and return an adaptation for `trigger`.

        The capability hook gets the first chance; when it declines, a
        difficulty adaptation is built if the context carries an adjustment,
        otherwise the generic entry for the trigger.
        """
        session = self._require_session()
        context = context or {}
        adjustment = context.get("adjustment")
        adaptation = self.handle_activity_specific_adaptation(trigger, context)
        if adaptation is None:
            if adjustment is not None:
                adaptation = adaptation_from_adjustment(trigger, adjustment)
            else:
                adaptation = generic_adaptation(trigger)
        elif adjustment is not None and "adjustment" not in adaptation.details:
            adaptation = replace(
                adaptation, details={**adaptation.details, "adjustment": adjustment.to_dict()}
            )
        self.modes.add(trigger)
        session.record_adaptation(adaptation)
        return adaptation

    @abstractmethod
    def handle_activity_specific_adaptation(
        self, trigger: str, context: Dict[str, Any]
    ) -> Optional[ActivityAdaptation]:
        """Capability-specific response to a trigger, or None for the default."""

    # =========================================================================
    # Content helpers
    # =========================================================================

    def step_script(self, step: int) -> StepScript:
        """Map step `step` of the session proportionally onto the script."""
        session = self._require_session()
        script = self.script
        total = max(1, session.total_steps)
        step = int(clamp(step, 1, total))
        if total == 1 or len(script) == 1:
            return script[0]
        index = round((step - 1) * (len(script) - 1) / (total - 1))
        return script[index]

    def fallback_response(self) -> ActivityResponse:
        text = FALLBACK_MESSAGES.get(self.capability, GENERIC_FALLBACK)
        session = self.session
        return self._response(
            self._render(text),
            kind=RESPONSE_GUIDANCE,
            next_step=session.current_step if session else None,
        )

    def advance_with(self, user_input: str, acknowledgement: Optional[str] = None) -> ActivityResponse:
        """
        Standard turn: acknowledge the current step and introduce the next.

        Blank input re-asks without moving on. On the last step the response
        is a completion message.
        """
        session = self._require_session()
        if not user_input or not user_input.strip():
            return self._response(
                self._render(EMPTY_INPUT_MESSAGE),
                kind=RESPONSE_QUESTION,
                next_step=session.current_step,
                preview=self.step_script(max(1, session.current_step)).title,
            )

        current = self.step_script(max(1, session.current_step))
        ack = acknowledgement or current.acknowledgement
        if session.current_step >= session.total_steps:
            return self._response(
                self._render(f"{ack} {COMPLETION_MESSAGE}"),
                kind=RESPONSE_COMPLETION,
                next_step=session.total_steps,
                preview="Complete",
            )

        next_number = session.current_step + 1
        upcoming = self.step_script(next_number)
        instruction = upcoming.instruction
        if TRIGGER_LOW_ENGAGEMENT in self.modes or TRIGGER_COMPREHENSION_ISSUE in self.modes:
            instruction = upcoming.guidance
        content = self._narrate(
            upcoming, next_number, user_input, fallback=f"{ack} {instruction}"
        )
        return self._response(
            content,
            kind=RESPONSE_GUIDANCE,
            next_step=next_number,
            preview=upcoming.title,
        )

    def _narrate(self, step: StepScript, number: int, user_input: str, fallback: str) -> str:
        tags = self._configuration().cultural_adaptations
        if self.narrator is None:
            text = fallback
        else:
            prompt = NARRATION_PROMPT.format(
                activity_name=self.metadata.name,
                step=number,
                total_steps=self._require_session().total_steps,
                title=step.title,
                difficulty=self._configuration().difficulty_level,
                cultural_notes=self.adapter.prompt_notes(tags),
                user_input=user_input.strip()[:500],
                instruction=step.instruction,
            )
            text = self.narrator.narrate(prompt, fallback=fallback)
        return self.adapter.adapt(text, tags)

    def _render(self, text: str) -> str:
        return self.adapter.adapt(text, self._configuration().cultural_adaptations)

    def _preview(self, step: int) -> str:
        session = self._require_session()
        if step >= session.total_steps:
            return "Complete"
        return self.step_script(step + 1).title

    def _response(
        self,
        content: str,
        kind: str,
        next_step: Optional[int],
        preview: Optional[str] = None,
        follow_up: bool = False,
    ) -> ActivityResponse:
        return ActivityResponse(
            content=content,
            kind=kind,
            next_step=next_step,
            next_step_preview=preview,
            intervention_type=self.intervention_type,
            cultural_adaptations=self.adapter.applied_tags(
                self._configuration().cultural_adaptations
            ),
            therapeutic_techniques=list(self.techniques),
            follow_up_required=follow_up,
        )

    # =========================================================================
    # Scores
    # =========================================================================

    def comprehension_score(self) -> float:
        """Coarse comprehension estimate from how quickly the user replies."""
        session = self._require_session()
        times = [
            r.metadata["response_time"]
            for r in session.user_responses
            if r.metadata.get("response_time") is not None
        ]
        if not times:
            return round(session.metrics.comprehension, 2)
        avg = mean(times)
        if avg < 2000:
            return 0.6
        if avg < 5000:
            return 0.9
        if avg < 10000:
            return 0.7
        return 0.4

    def cultural_effectiveness(self) -> float:
        session = self._require_session()
        adaptation_bonus = min(0.2, len(session.adaptations) * 0.05)
        engagement_bonus = clamp(session.engagement / 10.0, 0.0, 1.0) * 0.1
        return round(min(1.0, 0.7 + adaptation_bonus + engagement_bonus), 2)

    def _normalized_engagement(self) -> float:
        return clamp(self._require_session().engagement / 10.0, 0.0, 1.0)

    def _require_session(self) -> ActivitySession:
        if self.session is None:
            raise RuntimeError(f"{type(self).__name__} used before initialize_activity")
        return self.session

    def _configuration(self) -> ActivityConfiguration:
        session = self._require_session()
        return session.configuration


def _leading_share(items, fraction: float) -> List[str]:
    """The first ceil(fraction * len) items; at least one once any progress exists."""
    items = list(items)
    if not items or fraction <= 0:
        return []
    count = min(len(items), max(1, math.ceil(round(fraction * len(items), 9))))
    return items[:count]
