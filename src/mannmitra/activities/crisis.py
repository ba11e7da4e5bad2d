"""
Crisis support: safety check, grounding, reaching out, safety plan.

Every response from this service requires follow-up, and helpline details
are included whenever the user signals risk.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..content.templates import CAPABILITY_CRISIS, CRISIS_SUPPORT_MESSAGE, HELPLINES
from ..core.engagement import detect_crisis_indicators
from ..core.models import (
    ADAPT_EMERGENCY,
    ActivityAdaptation,
    ActivityResponse,
    RESPONSE_COMPLETION,
    RESPONSE_INTERVENTION,
    TRIGGER_CRISIS_DETECTED,
)
from .base import BaseActivityService


class CrisisSupportService(BaseActivityService):
    capability = CAPABILITY_CRISIS
    intervention_type = "crisis_support"
    techniques = ("safety_planning", "grounding", "help_seeking")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.risk_mentions = 0

    def process_user_input(self, user_input: str) -> ActivityResponse:
        response = self.advance_with(user_input)
        if detect_crisis_indicators(user_input):
            self.risk_mentions += 1
            response.content = f"{self._render(CRISIS_SUPPORT_MESSAGE)} {response.content}"
        if response.kind != RESPONSE_COMPLETION:
            response.kind = RESPONSE_INTERVENTION
        response.follow_up_required = True
        return response

    def generate_next_step(self) -> ActivityResponse:
        response = super().generate_next_step()
        response.kind = RESPONSE_INTERVENTION
        response.follow_up_required = True
        return response

    def generate_insights(self) -> List[str]:
        insights = [
            "Reaching out when things feel unbearable takes real courage",
            "Grounding and slow breathing can help in the hardest moments",
        ]
        insights.append(
            "Support is always available: "
            + ", ".join(f"{h['name']} ({h['phone']})" for h in HELPLINES)
        )
        if self.risk_mentions:
            insights.append("Please connect with a counsellor or someone you trust today")
        return insights

    def handle_activity_specific_adaptation(
        self, trigger: str, context: Dict[str, Any]
    ) -> Optional[ActivityAdaptation]:
        if trigger == TRIGGER_CRISIS_DETECTED:
            return ActivityAdaptation(
                trigger=trigger,
                adaptation_type=ADAPT_EMERGENCY,
                original_content="Crisis support flow",
                adapted_content="Helpline details surfaced and safety check repeated",
                reasoning="Risk language during crisis support, keeping safety in front",
            )
        return None
