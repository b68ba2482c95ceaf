"""Final report composition.

The summarize call is the least reliable request of the interview, so a
report can always be built from the running aggregate alone. Scores in the
report come from the aggregate in both paths; the evaluator only supplies
the narrative and recommendation.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from config import FlowSettings
from observability import log_event, span
from .agents import EvaluationFailure, Evaluator, SummaryRequest
from .aggregate import overall_score
from .errors import InvalidSessionState
from .models import DIMENSIONS, InterviewReport, Recommendation, ReportResult, ScoreAggregate, Session
from .orchestrator import SessionRepository


logger = logging.getLogger(__name__)

STRENGTH_NOTES: Dict[str, str] = {
    "communication": "Communicates ideas clearly and keeps answers on topic.",
    "confidence": "Answers with composure and conviction.",
    "technical": "Shows solid technical knowledge for the target role.",
    "grammar": "Uses clear and grammatically correct language.",
}

IMPROVEMENT_NOTES: Dict[str, str] = {
    "communication": "Structure answers more clearly, for example situation, task, action, result.",
    "confidence": "Speak with more conviction and avoid hedging on what you know.",
    "technical": "Back technical claims with concrete examples and trade-offs.",
    "grammar": "Review grammar and sentence structure in longer answers.",
}

STRONG_MEAN = 7


def recommendation_for(overall: int, scored_turns: int) -> Recommendation:
    if scored_turns == 0:
        return "No"
    if overall >= 8:
        return "Strong Yes"
    if overall >= 7:
        return "Yes"
    if overall >= 5:
        return "Maybe"
    return "No"


def is_report_eligible(session: Session, settings: FlowSettings) -> bool:
    return session.status == "completed" or session.turns_completed >= settings.max_turns or session.end_requested


def build_fallback_report(aggregate: ScoreAggregate) -> InterviewReport:
    """Deterministic report derived purely from the running aggregate."""

    means = aggregate.means()
    scored = aggregate.scored_turns()
    overall = overall_score(means)
    if scored == 0:
        return InterviewReport(
            overall_score=0,
            dimensions=means,
            recommendation=recommendation_for(overall, scored),
            summary="The interview ended before any answers could be scored.",
            strengths=[],
            improvements=["Answer more interview questions to receive detailed feedback."],
            source="fallback",
        )
    ranked = sorted(DIMENSIONS, key=lambda name: (-means[name], DIMENSIONS.index(name)))
    strengths = [STRENGTH_NOTES[name] for name in ranked if means[name] >= STRONG_MEAN] or [STRENGTH_NOTES[ranked[0]]]
    weakest_first = list(reversed(ranked))
    improvements = [IMPROVEMENT_NOTES[name] for name in weakest_first if means[name] < STRONG_MEAN]
    if not improvements:
        improvements = ["Keep practising with harder questions to stretch further."]
    summary = (
        f"Overall score {overall}/10 across {scored} scored answer{'s' if scored != 1 else ''}. "
        f"Strongest area: {ranked[0]} ({means[ranked[0]]}/10); "
        f"weakest area: {ranked[-1]} ({means[ranked[-1]]}/10)."
    )
    return InterviewReport(
        overall_score=overall,
        dimensions=means,
        recommendation=recommendation_for(overall, scored),
        summary=summary,
        strengths=strengths,
        improvements=improvements,
        source="fallback",
    )


def compose_report(
    session: Session,
    *,
    evaluator: Evaluator,
    events: Optional[List[Dict[str, Any]]] = None,
) -> InterviewReport:
    """Ask the evaluator for a narrative, falling back to the aggregate-only report."""

    events = events if events is not None else []
    means = session.aggregate.means()
    request = SummaryRequest(
        transcript=session.transcript,
        means=means,
        scored_turns=session.aggregate.scored_turns(),
        resume_context=session.resume_context,
    )
    with span(events, "evaluator.summarize"):
        outcome = evaluator.summarize(request)
    if isinstance(outcome, EvaluationFailure):
        log_event(
            "report.fallback",
            session.session_id,
            level=logging.WARNING,
            reason=outcome.reason,
            detail=outcome.detail,
        )
        return build_fallback_report(session.aggregate)
    return InterviewReport(
        overall_score=overall_score(means),
        dimensions=means,
        recommendation=outcome.recommendation,
        summary=outcome.summary,
        strengths=outcome.strengths,
        improvements=outcome.improvements,
        source="evaluator",
    )


def finalize_report(
    session_id: str,
    owner_id: str,
    *,
    store: SessionRepository,
    evaluator: Evaluator,
    settings: FlowSettings,
) -> ReportResult:
    """Build, persist and return the final report, completing the session."""

    session = store.load(session_id, owner_id)
    if session.status == "completed" and session.report is not None:
        return ReportResult(session=session, report=session.report)
    if not is_report_eligible(session, settings):
        raise InvalidSessionState(
            f"Interview is not finished ({session.turns_completed}/{settings.max_turns} turns); end it first"
        )
    events: List[Dict[str, Any]] = []
    report = compose_report(session, evaluator=evaluator, events=events)
    completed = session.model_copy(update={"status": "completed", "report": report})
    saved = store.save(completed, expected_version=session.version)
    log_event(
        "report.completed",
        saved.session_id,
        turn=saved.turns_completed,
        source=report.source,
        version=saved.version,
        ms=sum(event["ms"] for event in events),
    )
    return ReportResult(session=saved, report=report)


__all__ = [
    "IMPROVEMENT_NOTES",
    "STRENGTH_NOTES",
    "build_fallback_report",
    "compose_report",
    "finalize_report",
    "is_report_eligible",
    "recommendation_for",
]
