"""
REST API routes for the MannMitra activity engine.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Type

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..core.catalog import ActivityFilter
from ..core.config import EngineSettings, get_settings
from ..core.engine import ActivityEngine
from ..core.errors import (
    ActivityEngineError,
    ContraindicatedError,
    InvalidConfigurationError,
    NotRegisteredError,
    PrerequisiteUnmetError,
    SessionBusyError,
    SessionNotFoundError,
    SessionStateError,
)
from ..core.models import ActivityRecommendation, ActivityResponse, ActivitySession, UserContext
from ..core.recommendation import RecommendationCriteria
from ..llm.narrator import StepNarrator
from .schemas import (
    AbandonRequest,
    ActivityInfo,
    AdjustmentData,
    FastPathRequest,
    InputRequest,
    RecommendationData,
    RecommendationRequest,
    ResultData,
    SessionData,
    StartSessionRequest,
    StartSessionResponse,
    StatusResponse,
    StepData,
    UserContextModel,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Global engine (built lazily on first request)
engine: Optional[ActivityEngine] = None

ERROR_STATUS: Dict[Type[ActivityEngineError], int] = {
    NotRegisteredError: 404,
    SessionNotFoundError: 404,
    PrerequisiteUnmetError: 422,
    ContraindicatedError: 422,
    InvalidConfigurationError: 422,
    SessionStateError: 409,
    SessionBusyError: 409,
}


def build_narrator(settings: EngineSettings) -> Optional[StepNarrator]:
    """LLM narration when an API key is configured, template text otherwise."""
    try:
        from ..llm.client import LLMClient
        client = LLMClient()
    except Exception as e:
        logger.info(f"[API] LLM narration disabled ({e}), using template mode")
        return None
    return StepNarrator(client, timeout_seconds=settings.narration_timeout_seconds)


def get_engine() -> ActivityEngine:
    global engine
    if engine is None:
        settings = get_settings()
        engine = ActivityEngine(settings=settings, narrator=build_narrator(settings))
    return engine


def sweep_idle_sessions() -> List[str]:
    """Abandon sessions that have been idle past the configured timeout."""
    return get_engine().expire_idle_sessions()


async def expiry_loop(interval_seconds: float) -> None:
    """Run the idle-session sweep every `interval_seconds` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(sweep_idle_sessions)
        except Exception as e:
            logger.warning(f"[API] Idle-session sweep failed: {e}")


async def engine_error_handler(request: Request, exc: ActivityEngineError) -> JSONResponse:
    status_code = 400
    for error_cls, code in ERROR_STATUS.items():
        if isinstance(exc, error_cls):
            status_code = code
            break
    logger.info(f"[API] {request.method} {request.url.path} -> {status_code}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


# ── Converters ──────────────────────────────────────────────────────────────

def _context(model: UserContextModel) -> UserContext:
    return UserContext.from_dict(model.model_dump())


def _session_data(session: ActivitySession) -> SessionData:
    return SessionData(**session.to_dict())


def _step_data(response: ActivityResponse) -> StepData:
    return StepData(**response.to_dict())


def _recommendations(items: List[ActivityRecommendation]) -> List[RecommendationData]:
    return [RecommendationData(**r.to_dict()) for r in items]


# ── Status & catalog ────────────────────────────────────────────────────────

@router.get("/status", response_model=StatusResponse)
async def status():
    """Check system status including LLM availability."""
    eng = get_engine()
    return StatusResponse(
        llm_available=eng.narrator is not None and eng.narrator.is_available,
        activities=len(eng.catalog),
        active_sessions=len(eng.active_session_ids()),
    )


@router.get("/activities", response_model=List[ActivityInfo])
async def list_activities(category: Optional[str] = None, max_duration: Optional[int] = None):
    eng = get_engine()
    entries = eng.catalog.filter(ActivityFilter(category=category, max_duration=max_duration))
    return [ActivityInfo(**a.to_dict()) for a in entries]


@router.get("/activities/{activity_type}", response_model=ActivityInfo)
async def get_activity(activity_type: str):
    return ActivityInfo(**get_engine().catalog.require(activity_type).to_dict())


# ── Recommendations ─────────────────────────────────────────────────────────

@router.post("/recommendations", response_model=List[RecommendationData])
async def recommend(request: RecommendationRequest):
    criteria = RecommendationCriteria(
        user_context=_context(request.user_context),
        current_emotional_state=request.current_emotional_state,
        urgency_level=request.urgency_level,
        session_time_available=request.session_time_available,
        specific_needs=request.specific_needs,
        exclude_types=request.exclude_types,
    )
    return _recommendations(get_engine().recommend(criteria))


@router.post("/recommendations/crisis", response_model=List[RecommendationData])
async def crisis_recommendations(request: FastPathRequest):
    eng = get_engine()
    return _recommendations(eng.recommender.crisis_recommendations(_context(request.user_context)))


@router.post("/recommendations/quick-relief", response_model=List[RecommendationData])
async def quick_relief_recommendations(request: FastPathRequest):
    eng = get_engine()
    return _recommendations(
        eng.recommender.quick_relief_recommendations(_context(request.user_context))
    )


# ── Sessions ────────────────────────────────────────────────────────────────
# Plain `def` handlers: narration blocks, so these run in the threadpool.

@router.post("/sessions", response_model=StartSessionResponse)
def start_session(request: StartSessionRequest):
    """Start an activity session and return its first step."""
    eng = get_engine()
    # New sessions count against the per-user limit, so clear stale ones first
    sweep_idle_sessions()
    context = _context(request.user_context) if request.user_context else None
    started = eng.start(request.activity_type, request.user_id, context, request.overrides)
    return StartSessionResponse(
        session=_session_data(started.session),
        first_step=_step_data(started.first_step),
    )


@router.get("/sessions/{session_id}", response_model=SessionData)
def get_session(session_id: str):
    return _session_data(get_engine().get_session(session_id))


@router.post("/sessions/{session_id}/input", response_model=StepData)
def send_input(session_id: str, request: InputRequest):
    response = get_engine().process_input(session_id, request.user_input, request.response_time_ms)
    return _step_data(response)


@router.post("/sessions/{session_id}/pause", response_model=SessionData)
def pause_session(session_id: str):
    return _session_data(get_engine().pause(session_id))


@router.post("/sessions/{session_id}/resume", response_model=StepData)
def resume_session(session_id: str):
    return _step_data(get_engine().resume(session_id))


@router.post("/sessions/{session_id}/adjust", response_model=AdjustmentData)
def adjust_difficulty(session_id: str):
    eng = get_engine()
    adjustment = eng.adjust_difficulty(session_id)
    session = _session_data(eng.get_session(session_id))
    if adjustment is None:
        return AdjustmentData(adjusted=False, session=session)
    return AdjustmentData(
        adjusted=True,
        from_level=adjustment.from_level,
        to_level=adjustment.to_level,
        confidence=adjustment.confidence,
        reasoning=adjustment.reasoning,
        trigger=adjustment.trigger,
        session=session,
    )


@router.post("/sessions/{session_id}/complete", response_model=ResultData)
def complete_session(session_id: str):
    return ResultData(**get_engine().complete(session_id).to_dict())


@router.post("/sessions/{session_id}/abandon", response_model=ResultData)
def abandon_session(session_id: str, request: AbandonRequest = AbandonRequest()):
    return ResultData(**get_engine().abandon(session_id, request.reason).to_dict())
