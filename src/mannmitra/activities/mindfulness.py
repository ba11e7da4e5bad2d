"""
Mindfulness, breathing and grounding practices.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..content.templates import CAPABILITY_MINDFULNESS
from ..core.models import (
    ADAPT_PACING,
    ActivityAdaptation,
    ActivityResponse,
    TRIGGER_EMOTIONAL_DISTRESS,
    TRIGGER_TIME_CONSTRAINT,
)
from .base import BaseActivityService
from .cultural import TAG_INDIAN_CONTEXT

READY = "ready"


class MindfulnessService(BaseActivityService):
    """
    Guided practice where silence is a valid answer: blank input means the
    user is following along, so the session still moves forward.
    """

    capability = CAPABILITY_MINDFULNESS
    intervention_type = "mindfulness"
    techniques = ("breath_awareness", "body_scan", "grounding")

    def process_user_input(self, user_input: str) -> ActivityResponse:
        return self.advance_with(user_input if user_input and user_input.strip() else READY)

    def generate_insights(self) -> List[str]:
        insights = [
            "You practiced present-moment awareness and acceptance",
            "Regular mindfulness practice can reduce stress and improve emotional regulation",
            "Your breath is always available as an anchor to the present",
        ]
        if TAG_INDIAN_CONTEXT in self._configuration().cultural_adaptations:
            insights.append("Mindfulness connects to the dhyana and pranayama traditions of India")
        return insights

    def handle_activity_specific_adaptation(
        self, trigger: str, context: Dict[str, Any]
    ) -> Optional[ActivityAdaptation]:
        if trigger == TRIGGER_EMOTIONAL_DISTRESS:
            return ActivityAdaptation(
                trigger=trigger,
                adaptation_type=ADAPT_PACING,
                original_content="Open awareness practice",
                adapted_content="Slow counted breathing (in 4, out 6) with grounding through the feet",
                reasoning="Open awareness can amplify distress; anchoring on the breath first",
            )
        if trigger == TRIGGER_TIME_CONSTRAINT:
            return ActivityAdaptation(
                trigger=trigger,
                adaptation_type=ADAPT_PACING,
                original_content="Full practice",
                adapted_content="Three-breath short practice",
                reasoning="User has limited time; a short practice still helps",
            )
        return None
