"""
Guided conversation: check-in, concerns, validation, coping, next steps.

Also backs journaling and cultural activities, which follow the same
open-ended reflective flow.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..content.templates import CAPABILITY_CONVERSATION
from ..core.models import (
    ADAPT_CULTURAL,
    ADAPT_INTERVENTION,
    ActivityAdaptation,
    ActivityResponse,
    TRIGGER_CULTURAL_MISMATCH,
    TRIGGER_EMOTIONAL_DISTRESS,
)
from .base import BaseActivityService
from .cultural import TAG_FAMILY


class ConversationService(BaseActivityService):
    capability = CAPABILITY_CONVERSATION
    intervention_type = "supportive_conversation"
    techniques = ("active_listening", "emotional_validation", "motivational_interviewing")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.shared_topics: List[str] = []

    def process_user_input(self, user_input: str) -> ActivityResponse:
        if user_input and user_input.strip():
            self.shared_topics.append(user_input.strip()[:200])
        return self.advance_with(user_input)

    def generate_insights(self) -> List[str]:
        insights: List[str] = []
        if self._normalized_engagement() > 0.7:
            insights.append("You showed great openness in sharing your experiences")
        if self._require_session().adaptations:
            insights.append("We adapted our conversation to better meet your needs")
        if len(self.shared_topics) >= 3:
            insights.append("Putting your feelings into words is already a step towards clarity")
        insights.append("Continuing regular check-ins can help maintain emotional awareness")
        return insights

    def handle_activity_specific_adaptation(
        self, trigger: str, context: Dict[str, Any]
    ) -> Optional[ActivityAdaptation]:
        if trigger == TRIGGER_CULTURAL_MISMATCH:
            tags = self._configuration().cultural_adaptations
            framing = "family-aware" if TAG_FAMILY in tags else "individual"
            return ActivityAdaptation(
                trigger=trigger,
                adaptation_type=ADAPT_CULTURAL,
                original_content=f"{framing.capitalize()} conversational framing",
                adapted_content="Framing that follows the user's own words for family and community",
                reasoning="Conversation framing did not match how the user describes their context",
            )
        if trigger == TRIGGER_EMOTIONAL_DISTRESS:
            return ActivityAdaptation(
                trigger=trigger,
                adaptation_type=ADAPT_INTERVENTION,
                original_content="Exploring concerns",
                adapted_content="Slowing down to validate feelings before moving on",
                reasoning="Distress expressed mid-conversation, prioritizing validation",
            )
        return None
