"""
Structured check-ins: wellbeing assessment and mood tracking.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from ..content.templates import CAPABILITY_ASSESSMENT
from ..core.models import (
    ADAPT_PACING,
    ActivityAdaptation,
    ActivityResponse,
    RESPONSE_COMPLETION,
    RESPONSE_QUESTION,
    TRIGGER_LOW_ENGAGEMENT,
)
from .base import BaseActivityService

_RATING = re.compile(r"\b(10|[1-9])\b")


def parse_rating(text: str) -> Optional[int]:
    """First 1-10 rating in the text, if any."""
    match = _RATING.search(text or "")
    return int(match.group(1)) if match else None


class AssessmentService(BaseActivityService):
    capability = CAPABILITY_ASSESSMENT
    intervention_type = "assessment"
    techniques = ("structured_check_in", "self_monitoring")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.answers: Dict[str, str] = {}
        self.mood_rating: Optional[int] = None

    def process_user_input(self, user_input: str) -> ActivityResponse:
        session = self._require_session()
        if user_input and user_input.strip():
            title = self.step_script(max(1, session.current_step)).title
            self.answers[title] = user_input.strip()
            if self.mood_rating is None:
                self.mood_rating = parse_rating(user_input)
        response = self.advance_with(user_input)
        if response.kind != RESPONSE_COMPLETION:
            response.kind = RESPONSE_QUESTION
        return response

    def generate_insights(self) -> List[str]:
        insights: List[str] = []
        if self.mood_rating is not None:
            if self.mood_rating <= 4:
                insights.append(
                    f"You rated your mood {self.mood_rating}/10; gentle support activities may help this week"
                )
            else:
                insights.append(f"You rated your mood {self.mood_rating}/10 today")
        if "Support System" in self.answers:
            insights.append("Knowing who you can turn to is an important protective factor")
        insights.append(f"You answered {len(self.answers)} check-in questions")
        insights.append("Regular check-ins make it easier to notice patterns over time")
        return insights

    def handle_activity_specific_adaptation(
        self, trigger: str, context: Dict[str, Any]
    ) -> Optional[ActivityAdaptation]:
        if trigger == TRIGGER_LOW_ENGAGEMENT:
            return ActivityAdaptation(
                trigger=trigger,
                adaptation_type=ADAPT_PACING,
                original_content="Open check-in questions",
                adapted_content="Short questions with 1-10 answers",
                reasoning="Short replies suggest the open questions feel like too much",
            )
        return None
