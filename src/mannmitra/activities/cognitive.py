"""
Cognitive exercise (CBT thought record): situation, thoughts, emotions,
evidence, alternatives, balanced thought, action plan.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..content.templates import CAPABILITY_COGNITIVE
from ..core.models import (
    ADAPT_DIFFICULTY,
    ADAPT_INTERVENTION,
    ActivityAdaptation,
    ActivityResponse,
    TRIGGER_COMPREHENSION_ISSUE,
    TRIGGER_EMOTIONAL_DISTRESS,
)
from .base import BaseActivityService
from .cultural import TAG_INDIAN_CONTEXT

EMPTY_THOUGHT_PROMPT = "Please share your thoughts so we can work through this together."


class CognitiveExerciseService(BaseActivityService):
    capability = CAPABILITY_COGNITIVE
    intervention_type = "cognitive_restructuring"
    techniques = ("thought_record", "evidence_examination", "socratic_questioning")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Script title -> what the user wrote for it
        self.thought_record: Dict[str, str] = {}

    def process_user_input(self, user_input: str) -> ActivityResponse:
        session = self._require_session()
        if not user_input or not user_input.strip():
            response = self.advance_with(user_input)
            response.content = self._render(EMPTY_THOUGHT_PROMPT)
            return response
        title = self.step_script(max(1, session.current_step)).title
        self.thought_record[title] = user_input.strip()
        return self.advance_with(user_input)

    def generate_insights(self) -> List[str]:
        insights = [
            "You practiced identifying and challenging negative thought patterns",
            "Examining evidence helps create more balanced thinking",
        ]
        if "Develop Balanced Thoughts" in self.thought_record:
            insights.append("You wrote a balanced alternative thought you can return to")
        insights.append("Regular practice of these skills can improve emotional wellbeing")
        if TAG_INDIAN_CONTEXT in self._configuration().cultural_adaptations:
            insights.append("We adapted the exercise to fit your cultural context")
        return insights

    def handle_activity_specific_adaptation(
        self, trigger: str, context: Dict[str, Any]
    ) -> Optional[ActivityAdaptation]:
        if trigger == TRIGGER_COMPREHENSION_ISSUE and "adjustment" not in context:
            return ActivityAdaptation(
                trigger=trigger,
                adaptation_type=ADAPT_DIFFICULTY,
                original_content="Open-ended thought record prompts",
                adapted_content="Worked examples (exams, family expectations) for each step",
                reasoning="User is taking long to respond, adding concrete examples",
            )
        if trigger == TRIGGER_EMOTIONAL_DISTRESS:
            return ActivityAdaptation(
                trigger=trigger,
                adaptation_type=ADAPT_INTERVENTION,
                original_content="Challenging thoughts",
                adapted_content="Pausing restructuring for validation and a short breathing break",
                reasoning="Challenging thoughts while distressed can feel invalidating",
            )
        return None
