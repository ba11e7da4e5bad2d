"""
ActivityEngine: the session controller.

Owns the lifecycle of running activities:

    not_started -> active -> paused <-> active
                         -> completed | partially_completed | abandoned

Each user turn is sampled for engagement, checked for distress and crisis
language, handed to the activity service, and used to advance the step
counter. Every `adjustment_interval` turns the difficulty engine is asked
whether the session should get easier or harder.

All collaborators are injected; nothing here reaches for global state.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..content.activities import CATEGORY_CRISIS
from ..content.templates import CRISIS_SUPPORT_MESSAGE, GENERIC_FALLBACK, RESUME_MESSAGE
from ..llm.narrator import StepNarrator
from .catalog import ActivityCatalog
from .config import EngineSettings
from .difficulty import DifficultyAdjustment, DifficultyAdjustmentEngine
from .engagement import (
    EngagementTracker,
    TelemetrySource,
    assess_engagement,
    detect_crisis_indicators,
    detect_emotional_distress,
)
from .errors import SessionBusyError, SessionStateError
from .factory import ActivityFactory
from .models import (
    ActivityRecommendation,
    ActivityResponse,
    ActivityResult,
    ActivitySession,
    EngagementMetrics,
    INTERACTION_AI_RESPONSE,
    INTERACTION_SYSTEM_EVENT,
    INTERACTION_USER_INPUT,
    InteractionRecord,
    RealTimeMetrics,
    RESPONSE_GUIDANCE,
    RESPONSE_INTERVENTION,
    STATUS_ABANDONED,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_NOT_STARTED,
    STATUS_PARTIALLY_COMPLETED,
    STATUS_PAUSED,
    TRIGGER_COMPREHENSION_ISSUE,
    TRIGGER_CRISIS_DETECTED,
    TRIGGER_EMOTIONAL_DISTRESS,
    TRIGGER_LOW_ENGAGEMENT,
    UserContext,
    utcnow,
)
from .progress import InMemoryProgressStore, ProgressStore
from .recommendation import RecommendationCriteria, RecommendationEngine
from .session_store import SessionEntry, SessionStore
from .utils import clamp

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[str, frozenset] = {
    STATUS_NOT_STARTED: frozenset({STATUS_ACTIVE, STATUS_ABANDONED}),
    STATUS_ACTIVE: frozenset({
        STATUS_PAUSED, STATUS_COMPLETED, STATUS_PARTIALLY_COMPLETED, STATUS_ABANDONED,
    }),
    STATUS_PAUSED: frozenset({
        STATUS_ACTIVE, STATUS_COMPLETED, STATUS_PARTIALLY_COMPLETED, STATUS_ABANDONED,
    }),
}

# Weight of the newest sample in the running 1-10 engagement score
ENGAGEMENT_SMOOTHING = 0.4


@dataclass
class StartedSession:
    session: ActivitySession
    first_step: ActivityResponse


class ActivityEngine:
    """
    Session controller over the catalog, factory, recommender and
    difficulty engine.

    Usage:
        engine = ActivityEngine(ActivityCatalog.default())
        session = engine.initialize("breathing_exercise", "user-1", user_context)
        response = engine.process_input(session.session_id, "I feel tense")
        result = engine.complete(session.session_id)
    """

    def __init__(
        self,
        catalog: Optional[ActivityCatalog] = None,
        progress_store: Optional[ProgressStore] = None,
        settings: Optional[EngineSettings] = None,
        narrator: Optional[StepNarrator] = None,
        telemetry: Optional[TelemetrySource] = None,
    ):
        self.settings = settings or EngineSettings()
        self.catalog = catalog or ActivityCatalog.default()
        self.progress = progress_store if progress_store is not None else InMemoryProgressStore()
        self.narrator = narrator
        self.telemetry = telemetry

        self.factory = ActivityFactory(self.catalog, narrator=narrator)
        self.recommender = RecommendationEngine(self.catalog, self.settings.recommendation)
        self.difficulty = DifficultyAdjustmentEngine(
            self.catalog,
            self.settings.difficulty,
            history_limit=self.settings.adjustment_history_limit,
        )
        self.sessions = SessionStore()
        self.tracker = EngagementTracker(window=self.settings.engagement_window)
        # Serializes the per-user session limit check with session creation
        self._start_lock = threading.Lock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize(
        self,
        activity_type: str,
        user_id: str,
        user_context: Optional[UserContext] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> ActivitySession:
        """Create an active session at step 1 for an eligible activity."""
        context = user_context or self.user_context(user_id)
        session_id = self.sessions.new_session_id()

        service = self.factory.create_activity(activity_type, session_id, user_id, context)
        configuration = self.factory.create_default_configuration(activity_type, context, overrides)
        total_steps = self.factory.estimate_total_steps(service.metadata, configuration)

        session = ActivitySession(
            session_id=session_id,
            user_id=user_id,
            activity_type=activity_type,
            configuration=configuration,
            total_steps=total_steps,
            metrics=RealTimeMetrics(
                emotional_state=context.current_state.emotional_state or "neutral",
                stress_level=float(context.current_state.stress_level or 5),
            ),
        )
        service.initialize_activity(configuration, session)

        with self._start_lock:
            self._enforce_session_limit(user_id)
            self._transition(session, STATUS_ACTIVE, "start")
            session.current_step = 1
            session.start_time = utcnow()
            session.touch()
            self.sessions.add(session, service)

        logger.info(
            f"[Engine] Started {activity_type} session {session_id} for {user_id} "
            f"({configuration.difficulty_level}, {configuration.duration} min, {total_steps} steps)"
        )
        return session

    def start(
        self,
        activity_type: str,
        user_id: str,
        user_context: Optional[UserContext] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> StartedSession:
        """initialize() plus the content of the first step."""
        session = self.initialize(activity_type, user_id, user_context, overrides)
        return StartedSession(session=session, first_step=self.next_step(session.session_id))

    def process_input(
        self,
        session_id: str,
        user_input: str,
        response_time_ms: Optional[float] = None,
    ) -> ActivityResponse:
        with self.sessions.claim(session_id) as entry:
            session, service = entry.session, entry.service
            if session.status != STATUS_ACTIVE:
                raise SessionStateError(session_id, session.status, "process input for")

            sample = assess_engagement(user_input, response_time_ms)
            self.tracker.record(session_id, sample)
            self._update_snapshot(session, sample, user_input)
            session.turns += 1
            session.user_responses.append(InteractionRecord(
                kind=INTERACTION_USER_INPUT,
                content=user_input,
                metadata={
                    "response_time": sample.response_time,
                    "engagement": sample.overall_engagement,
                },
            ))
            session.log_interaction(INTERACTION_USER_INPUT, user_input, step=session.current_step)

            triggers = self.detect_triggers(user_input, sample)
            adapted = False
            for trigger in triggers:
                try:
                    service.adapt(trigger, {"engagement": sample, "input": user_input})
                    adapted = True
                except Exception as e:
                    logger.warning(f"[Engine] Adaptation for {trigger} failed in {session_id}: {e}")

            try:
                response = service.process_user_input(user_input)
            except Exception as e:
                logger.warning(
                    f"[Engine] Step content failed for {session_id} "
                    f"({type(e).__name__}: {e}), using fallback"
                )
                response = self._fallback(entry)

            if TRIGGER_CRISIS_DETECTED in triggers and service.metadata.category != CATEGORY_CRISIS:
                support = service.adapter.adapt(
                    CRISIS_SUPPORT_MESSAGE, session.configuration.cultural_adaptations
                )
                response.content = f"{support} {response.content}"
                response.kind = RESPONSE_INTERVENTION
                response.follow_up_required = True
                logger.warning(f"[Engine] Crisis language detected in session {session_id}")

            self._advance(session, response)

            interval = self.settings.adjustment_interval
            if interval > 0 and session.turns % interval == 0:
                if self._assess_and_apply(entry) is not None:
                    adapted = True

            response.adaptation_triggered = response.adaptation_triggered or adapted
            self._stamp(session, response)
            self._log_response(session, response)
            session.touch()
            return response

    def next_step(self, session_id: str) -> ActivityResponse:
        """Content of the step the session currently sits on."""
        with self.sessions.claim(session_id) as entry:
            session = entry.session
            if session.status != STATUS_ACTIVE:
                raise SessionStateError(session_id, session.status, "get next step for")
            response = self._generate_step(entry)
            self._stamp(session, response)
            self._log_response(session, response)
            return response

    def pause(self, session_id: str) -> ActivitySession:
        with self.sessions.claim(session_id) as entry:
            session = entry.session
            if session.status != STATUS_ACTIVE:
                raise SessionStateError(session_id, session.status, "pause")
            self._transition(session, STATUS_PAUSED, "pause")
            session.log_interaction(
                INTERACTION_SYSTEM_EVENT, "Activity paused", current_step=session.current_step
            )
            session.touch()
            logger.info(f"[Engine] Paused session {session_id} at step {session.current_step}")
            return session

    def resume(self, session_id: str) -> ActivityResponse:
        """Reactivate a paused session and return its current step."""
        with self.sessions.claim(session_id) as entry:
            session = entry.session
            if session.status != STATUS_PAUSED:
                raise SessionStateError(session_id, session.status, "resume")
            self._transition(session, STATUS_ACTIVE, "resume")
            session.log_interaction(
                INTERACTION_SYSTEM_EVENT, "Activity resumed", current_step=session.current_step
            )
            session.touch()
            response = self._generate_step(entry)
            resume_text = entry.service.adapter.adapt(
                RESUME_MESSAGE, session.configuration.cultural_adaptations
            )
            response.content = f"{resume_text} {response.content}"
            self._stamp(session, response)
            self._log_response(session, response)
            logger.info(f"[Engine] Resumed session {session_id}")
            return response

    def adjust_difficulty(self, session_id: str) -> Optional[DifficultyAdjustment]:
        """Run a difficulty assessment now; None means hold."""
        with self.sessions.claim(session_id) as entry:
            if entry.session.status not in (STATUS_ACTIVE, STATUS_PAUSED):
                raise SessionStateError(session_id, entry.session.status, "adjust difficulty for")
            return self._assess_and_apply(entry)

    def complete(self, session_id: str) -> ActivityResult:
        """
        Finish a session: completed if every step was reached, otherwise
        partially_completed. The session leaves the arena and follow-up
        recommendations are attached to the result.
        """
        with self.sessions.claim(session_id) as entry:
            session, service = entry.session, entry.service
            if session.status not in (STATUS_ACTIVE, STATUS_PAUSED):
                raise SessionStateError(session_id, session.status, "complete")

            session.end_time = utcnow()
            result = service.complete_activity()
            self._transition(session, result.completion_status, "complete")
            session.log_interaction(
                INTERACTION_SYSTEM_EVENT,
                f"Activity {result.completion_status}",
                completion_percentage=round(session.completion_percentage, 2),
            )
            samples = self.tracker.recent_metrics(session_id)
            self._release(session_id)

        self.progress.record_completion(session, result, samples)
        context = self.progress.get_user_context(session.user_id) or service.user_context
        result.recommended_follow_up = self.follow_up_recommendations(context, session.activity_type)
        logger.info(
            f"[Engine] Session {session_id} {result.completion_status} "
            f"({session.current_step}/{session.total_steps} steps, "
            f"{result.adaptations_count} adaptations)"
        )
        return result

    def abandon(self, session_id: str, reason: Optional[str] = None) -> ActivityResult:
        with self.sessions.claim(session_id) as entry:
            session, service = entry.session, entry.service
            self._transition(session, STATUS_ABANDONED, "abandon")
            session.end_time = utcnow()
            session.log_interaction(
                INTERACTION_SYSTEM_EVENT,
                f"Activity abandoned: {reason or 'No reason provided'}",
                completion_percentage=round(session.completion_percentage, 2),
            )
            result = service.complete_activity()
            result.completion_status = STATUS_ABANDONED
            self._release(session_id)

        self.progress.record_abandonment(session)
        logger.info(f"[Engine] Abandoned session {session_id}: {reason or 'no reason'}")
        return result

    def expire_idle_sessions(self, now: Optional[datetime] = None) -> List[str]:
        """Abandon sessions idle for longer than the configured timeout."""
        now = now or utcnow()
        cutoff = now - timedelta(minutes=self.settings.session_timeout_minutes)
        expired: List[str] = []
        for entry in self.sessions.entries():
            if entry.session.last_activity_at >= cutoff:
                continue
            try:
                self.abandon(entry.session.session_id, reason="Session timeout")
            except SessionBusyError:
                # In use right now, so not idle
                continue
            expired.append(entry.session.session_id)
        if expired:
            logger.info(f"[Engine] Expired {len(expired)} idle session(s)")
        return expired

    # =========================================================================
    # Queries
    # =========================================================================

    def get_session(self, session_id: str) -> ActivitySession:
        return self.sessions.require(session_id).session

    def active_session_ids(self) -> List[str]:
        return self.sessions.ids()

    def user_context(self, user_id: str) -> UserContext:
        """The stored profile, or a blank one for an unknown user."""
        context = self.progress.get_user_context(user_id)
        if context is None:
            logger.debug(f"[Engine] No stored context for {user_id}, using defaults")
            context = UserContext(user_id=user_id)
        return context

    def recommend(self, criteria: RecommendationCriteria) -> List[ActivityRecommendation]:
        return self.recommender.recommend(criteria)

    def follow_up_recommendations(
        self, context: UserContext, completed_type: str
    ) -> List[ActivityRecommendation]:
        recommendations = self.recommender.recommend(
            RecommendationCriteria(user_context=context, exclude_types=[completed_type])
        )
        return recommendations[: self.settings.follow_up_count]

    def detect_triggers(self, user_input: str, sample: EngagementMetrics) -> List[str]:
        triggers: List[str] = []
        if sample.overall_engagement < self.settings.low_engagement_trigger:
            triggers.append(TRIGGER_LOW_ENGAGEMENT)
        if sample.response_time > self.settings.slow_response_ms:
            triggers.append(TRIGGER_COMPREHENSION_ISSUE)
        if detect_emotional_distress(user_input):
            triggers.append(TRIGGER_EMOTIONAL_DISTRESS)
        if detect_crisis_indicators(user_input):
            triggers.append(TRIGGER_CRISIS_DETECTED)
        return triggers

    # =========================================================================
    # Internals
    # =========================================================================

    def _transition(self, session: ActivitySession, target: str, action: str) -> None:
        if target not in ALLOWED_TRANSITIONS.get(session.status, frozenset()):
            raise SessionStateError(session.session_id, session.status, action)
        logger.debug(f"[Engine] {session.session_id}: {session.status} -> {target}")
        session.status = target

    def _enforce_session_limit(self, user_id: str) -> None:
        limit = self.settings.max_concurrent_sessions
        running = [
            e for e in self.sessions.for_user(user_id)
            if e.session.status in (STATUS_ACTIVE, STATUS_PAUSED)
        ]
        while limit > 0 and len(running) >= limit:
            oldest = running.pop(0)
            try:
                self.abandon(
                    oldest.session.session_id, reason="Exceeded maximum concurrent sessions"
                )
            except SessionBusyError:
                logger.warning(
                    f"[Engine] Could not abandon busy session {oldest.session.session_id} "
                    f"while enforcing the limit for {user_id}"
                )

    def _assess_and_apply(self, entry: SessionEntry) -> Optional[DifficultyAdjustment]:
        session = entry.session
        try:
            adjustment = self.difficulty.assess(
                session, entry.service.user_context, self._recent_metrics(session.session_id)
            )
        except Exception as e:
            logger.warning(
                f"[Engine] Difficulty assessment failed for {session.session_id} "
                f"({type(e).__name__}: {e}), maintaining current level"
            )
            return None
        if adjustment is None:
            return None
        self.difficulty.apply(session, adjustment)
        entry.service.adapt(adjustment.trigger, {"adjustment": adjustment})
        return adjustment

    def _recent_metrics(self, session_id: str) -> Sequence[EngagementMetrics]:
        if self.telemetry is not None:
            try:
                samples = list(self.telemetry.recent_metrics(session_id))
            except Exception as e:
                logger.warning(f"[Engine] Telemetry unavailable for {session_id}: {e}")
                samples = []
            if samples:
                return samples
        return self.tracker.recent_metrics(session_id)

    def _update_snapshot(
        self, session: ActivitySession, sample: EngagementMetrics, user_input: str
    ) -> None:
        scaled = 1.0 + 9.0 * sample.overall_engagement
        session.engagement = clamp(
            (1 - ENGAGEMENT_SMOOTHING) * session.engagement + ENGAGEMENT_SMOOTHING * scaled,
            1.0,
            10.0,
        )
        session.metrics.response_time = sample.response_time
        session.metrics.participation_level = sample.overall_engagement
        session.metrics.comprehension = self.difficulty.comprehension_score(
            sample.response_time, sample.overall_engagement
        )
        if detect_emotional_distress(user_input):
            session.metrics.emotional_state = "distressed"
            session.metrics.stress_level = min(10.0, session.metrics.stress_level + 1)

    def _generate_step(self, entry: SessionEntry) -> ActivityResponse:
        try:
            return entry.service.generate_next_step()
        except Exception as e:
            logger.warning(
                f"[Engine] Step content failed for {entry.session.session_id} "
                f"({type(e).__name__}: {e}), using fallback"
            )
            return self._fallback(entry)

    @staticmethod
    def _fallback(entry: SessionEntry) -> ActivityResponse:
        try:
            return entry.service.fallback_response()
        except Exception as e:
            logger.warning(f"[Engine] Fallback failed for {entry.session.session_id}: {e}")
            return ActivityResponse(
                content=GENERIC_FALLBACK,
                kind=RESPONSE_GUIDANCE,
                next_step=entry.session.current_step,
            )

    @staticmethod
    def _advance(session: ActivitySession, response: ActivityResponse) -> None:
        target = response.next_step if response.next_step is not None else session.current_step + 1
        session.current_step = int(min(session.total_steps, max(session.current_step, target)))

    @staticmethod
    def _stamp(session: ActivitySession, response: ActivityResponse) -> None:
        response.current_step = session.current_step
        response.total_steps = session.total_steps
        response.completion_percentage = round(session.completion_percentage, 2)

    @staticmethod
    def _log_response(session: ActivitySession, response: ActivityResponse) -> None:
        record = InteractionRecord(
            kind=INTERACTION_AI_RESPONSE,
            content=response.content,
            metadata={
                "kind": response.kind,
                "intervention_type": response.intervention_type,
                "step": session.current_step,
            },
        )
        session.ai_responses.append(record)
        session.interactions.append(record)

    def _release(self, session_id: str) -> None:
        self.sessions.remove(session_id)
        self.tracker.forget(session_id)
        self.difficulty.forget(session_id)

    def shutdown(self) -> None:
        if self.narrator is not None:
            self.narrator.shutdown()
