"""
Engagement sampling and risk-phrase detection for user input.

Every user turn produces one EngagementMetrics sample. The tracker keeps a
short per-session window of samples for the difficulty engine, and the
TelemetrySource protocol lets an external sensor supply samples instead.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from typing import Deque, Dict, List, Optional, Protocol, Sequence

from .models import EngagementMetrics
from .utils import clamp

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_TIME_MS = 5000.0
DEFAULT_FOLLOW_THROUGH = 0.7

EMOTIONAL_WORDS = (
    "feel", "think", "believe", "worried", "happy", "sad", "angry", "excited",
    "scared", "lonely", "tired",
    "महसूस", "लगता", "चिंता", "खुश", "उदास", "गुस्सा",
)

QUESTION_WORDS = frozenset({
    "what", "how", "why", "when", "where", "can", "should", "would",
    "क्या", "कैसे", "क्यों",
})

DISTRESS_PHRASES = (
    "overwhelmed", "can't handle", "cannot handle", "too much", "breaking down",
    "falling apart",
    "परेशान", "बहुत ज्यादा", "सह नहीं सकता", "टूट रहा",
)

CRISIS_PHRASES = (
    "suicide", "kill myself", "end it all", "no point", "give up", "want to die",
    "आत्महत्या", "मरना चाहता", "जिंदगी से तंग", "हार मान",
)


# ── Scoring ─────────────────────────────────────────────────────────────────

def emotional_expression_score(text: str) -> float:
    words = text.lower().split()
    hits = sum(1 for w in words if any(e in w for e in EMOTIONAL_WORDS))
    return min(1.0, hits / 3)


def question_score(text: str) -> float:
    words = text.lower().split()
    marks = text.count("?")
    question_words = sum(1 for w in words if w.strip("?,.!") in QUESTION_WORDS)
    return min(1.0, (marks + question_words) / 5)


def overall_engagement(
    response_time: float,
    message_length: int,
    emotional_expression: float,
    question_asking: float,
    follow_through: float,
) -> float:
    """Weighted blend of the sample components, in [0, 1]."""
    # Replies under a second are likely reflexive
    if response_time < 1000:
        time_score = 0.5
    else:
        time_score = max(0.0, 1 - (response_time - 1000) / 30000)
    length_score = min(1.0, message_length / 100)
    score = (
        time_score * 0.25
        + length_score * 0.25
        + emotional_expression * 0.2
        + question_asking * 0.15
        + follow_through * 0.15
    )
    return clamp(score, 0.0, 1.0)


def assess_engagement(
    user_input: str,
    response_time_ms: Optional[float] = None,
    follow_through: float = DEFAULT_FOLLOW_THROUGH,
) -> EngagementMetrics:
    """Build an engagement sample from one user message."""
    text = user_input or ""
    response_time = DEFAULT_RESPONSE_TIME_MS if response_time_ms is None else float(response_time_ms)
    emotional = emotional_expression_score(text)
    questions = question_score(text)
    return EngagementMetrics(
        response_time=response_time,
        message_length=len(text),
        emotional_expression=emotional,
        question_asking=questions,
        follow_through=follow_through,
        overall_engagement=overall_engagement(
            response_time, len(text), emotional, questions, follow_through
        ),
    )


# ── Risk phrases ────────────────────────────────────────────────────────────

def _contains_any(text: str, phrases: Sequence[str]) -> bool:
    lowered = (text or "").lower()
    return any(p in lowered for p in phrases)


def detect_emotional_distress(text: str) -> bool:
    return _contains_any(text, DISTRESS_PHRASES)


def detect_crisis_indicators(text: str) -> bool:
    """True if the text contains a self-harm or hopelessness phrase."""
    lowered = re.sub(r"\s+", " ", (text or "").lower())
    return any(p in lowered for p in CRISIS_PHRASES)


# ── Telemetry ───────────────────────────────────────────────────────────────

class TelemetrySource(Protocol):
    """External supplier of engagement samples keyed by session id."""

    def recent_metrics(self, session_id: str) -> Sequence[EngagementMetrics]:
        ...


class EngagementTracker:
    """Sliding window of the most recent samples per session."""

    def __init__(self, window: int = 5):
        self.window = window
        self._samples: Dict[str, Deque[EngagementMetrics]] = {}

    def record(self, session_id: str, sample: EngagementMetrics) -> None:
        buf = self._samples.setdefault(session_id, deque(maxlen=self.window))
        buf.append(sample)

    def recent_metrics(self, session_id: str) -> List[EngagementMetrics]:
        return list(self._samples.get(session_id, ()))

    def forget(self, session_id: str) -> None:
        self._samples.pop(session_id, None)
