from __future__ import annotations  # Interview turn orchestration with running score aggregation

from .errors import (
    ConcurrencyConflict,
    InterviewFlowError,
    InvalidSessionState,
    PersistenceFailure,
    SessionNotFound,
    SessionOwnershipError,
)
from .models import (
    DIMENSIONS,
    InterviewReport,
    ReportResult,
    ResumeContext,
    ScoreAggregate,
    Session,
    TranscriptEntry,
    TurnEvaluation,
    TurnResult,
    TurnScores,
)
from .orchestrator import (
    FALLBACK_QUESTIONS,
    SessionRepository,
    end_interview,
    fallback_question,
    get_session,
    list_sessions,
    plan_turn,
    request_next_turn,
    start_session,
)
from .report import build_fallback_report, compose_report, finalize_report, is_report_eligible

__all__ = [
    "ConcurrencyConflict",
    "DIMENSIONS",
    "FALLBACK_QUESTIONS",
    "InterviewFlowError",
    "InterviewReport",
    "InvalidSessionState",
    "PersistenceFailure",
    "ReportResult",
    "ResumeContext",
    "ScoreAggregate",
    "Session",
    "SessionNotFound",
    "SessionOwnershipError",
    "SessionRepository",
    "TranscriptEntry",
    "TurnEvaluation",
    "TurnResult",
    "TurnScores",
    "build_fallback_report",
    "compose_report",
    "end_interview",
    "fallback_question",
    "finalize_report",
    "get_session",
    "is_report_eligible",
    "list_sessions",
    "plan_turn",
    "request_next_turn",
    "start_session",
]
