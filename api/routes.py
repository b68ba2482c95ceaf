"""FastAPI routes for interview turns and reports."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from api.schemas import (
    AggregateScores,
    ReportResp,
    SessionRef,
    SessionView,
    StartSessionReq,
    TranscriptLine,
    TurnReq,
    TurnResp,
)
from config import EVALUATOR_KEY, bind_model, get_model, is_bound, load_route
from config.settings import settings
from interview_flow import (
    ConcurrencyConflict,
    InterviewFlowError,
    InterviewReport,
    InvalidSessionState,
    PersistenceFailure,
    ResumeContext,
    Session,
    SessionNotFound,
    SessionOwnershipError,
    end_interview,
    finalize_report,
    get_session,
    list_sessions,
    request_next_turn,
    start_session,
)
from interview_flow.agents import Evaluator, LlmEvaluator
from llm_gateway import LlmGatewayError
from storage.sessions import SessionStore


logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_ERROR = (
    (SessionOwnershipError, 401),
    (SessionNotFound, 404),
    (ConcurrencyConflict, 409),
    (InvalidSessionState, 409),
    (PersistenceFailure, 503),
)


def current_owner(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Owner identity as asserted by the upstream identity provider."""
    owner = (x_user_id or "").strip()
    if not owner:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return owner


def get_store() -> SessionStore:
    return SessionStore()


def get_evaluator() -> Evaluator:
    if is_bound(EVALUATOR_KEY):
        return get_model(EVALUATOR_KEY)
    try:
        route = load_route(Path(settings.APP_CONFIG_PATH), EVALUATOR_KEY)
    except (OSError, KeyError, ValueError) as exc:
        logger.exception("Evaluator route could not be loaded from %s", settings.APP_CONFIG_PATH)
        raise HTTPException(status_code=500, detail="Evaluator is not configured") from exc
    evaluator = LlmEvaluator(route, resume_chars=settings.RESUME_EXCERPT_CHARS)
    bind_model(EVALUATOR_KEY, evaluator)
    return evaluator


def _http_error(exc: InterviewFlowError) -> HTTPException:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            headers = {"Retry-After": "1"} if exc.retryable else None
            return HTTPException(status_code=status, detail=str(exc), headers=headers)
    return HTTPException(status_code=500, detail=str(exc))


def _report_resp(report: InterviewReport) -> ReportResp:
    return ReportResp(
        overallScore=report.overall_score,
        dimensions=dict(report.dimensions),
        recommendation=report.recommendation,
        summary=report.summary,
        strengths=list(report.strengths),
        improvements=list(report.improvements),
        source=report.source,
    )


def _session_view(session: Session) -> SessionView:
    return SessionView(
        sessionId=session.session_id,
        status=session.status,
        turnsCompleted=session.turns_completed,
        maxTurns=settings.MAX_TURNS,
        endRequested=session.end_requested,
        aggregate=AggregateScores(**session.aggregate.means()),
        transcript=[TranscriptLine(role=entry.role, text=entry.text) for entry in session.transcript],
        report=_report_resp(session.report) if session.report else None,
        createdAt=session.created_at,
        updatedAt=session.updated_at,
    )


@router.post("/interview-sessions", response_model=SessionView, status_code=201)
def create_session(
    payload: StartSessionReq,
    owner_id: str = Depends(current_owner),
    store: SessionStore = Depends(get_store),
) -> SessionView:
    resume = None
    if payload.resumeContext is not None:
        resume = ResumeContext(
            target_role=payload.resumeContext.targetRole,
            experience_level=payload.resumeContext.experienceLevel,
            resume_text=payload.resumeContext.resumeText,
        )
    try:
        session = start_session(owner_id, store=store, resume_context=resume)
    except InterviewFlowError as exc:
        raise _http_error(exc) from exc
    return _session_view(session)


@router.get("/interview-sessions", response_model=List[SessionView])
def list_owner_sessions(
    owner_id: str = Depends(current_owner),
    store: SessionStore = Depends(get_store),
) -> List[SessionView]:
    try:
        sessions = list_sessions(owner_id, store=store)
    except InterviewFlowError as exc:
        raise _http_error(exc) from exc
    return [_session_view(session) for session in sessions]


@router.get("/interview-sessions/{session_id}", response_model=SessionView)
def fetch_session(
    session_id: str,
    owner_id: str = Depends(current_owner),
    store: SessionStore = Depends(get_store),
) -> SessionView:
    try:
        session = get_session(session_id, owner_id, store=store)
    except InterviewFlowError as exc:
        raise _http_error(exc) from exc
    return _session_view(session)


@router.post("/interview-turn", response_model=TurnResp)
def interview_turn(
    payload: TurnReq,
    owner_id: str = Depends(current_owner),
    store: SessionStore = Depends(get_store),
    evaluator: Evaluator = Depends(get_evaluator),
) -> TurnResp:
    try:
        result = request_next_turn(
            payload.sessionId,
            owner_id,
            payload.priorAnswerText,
            store=store,
            evaluator=evaluator,
            settings=settings.flow(),
        )
    except InterviewFlowError as exc:
        raise _http_error(exc) from exc
    except LlmGatewayError as exc:  # Registry-bound evaluators other than LlmEvaluator may raise instead of degrading
        logger.exception("Evaluator failed outside degraded mode")
        raise HTTPException(status_code=502, detail="Evaluator unavailable") from exc
    return TurnResp(
        nextQuestion=result.next_question,
        isFinal=result.is_final,
        turnsCompleted=result.session.turns_completed,
        aggregate=AggregateScores(**result.aggregate),
    )


@router.post("/interview-end", response_model=SessionView)
def interview_end(
    payload: SessionRef,
    owner_id: str = Depends(current_owner),
    store: SessionStore = Depends(get_store),
) -> SessionView:
    try:
        session = end_interview(payload.sessionId, owner_id, store=store)
    except InterviewFlowError as exc:
        raise _http_error(exc) from exc
    return _session_view(session)


@router.post("/interview-report", response_model=ReportResp)
def interview_report(
    payload: SessionRef,
    owner_id: str = Depends(current_owner),
    store: SessionStore = Depends(get_store),
    evaluator: Evaluator = Depends(get_evaluator),
) -> ReportResp:
    try:
        result = finalize_report(
            payload.sessionId,
            owner_id,
            store=store,
            evaluator=evaluator,
            settings=settings.flow(),
        )
    except InterviewFlowError as exc:
        raise _http_error(exc) from exc
    except LlmGatewayError as exc:  # Registry-bound evaluators other than LlmEvaluator may raise instead of degrading
        logger.exception("Evaluator failed outside degraded mode")
        raise HTTPException(status_code=502, detail="Evaluator unavailable") from exc
    return _report_resp(result.report)
