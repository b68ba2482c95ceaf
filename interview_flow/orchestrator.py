from __future__ import annotations  # Turn-by-turn interview orchestration

import logging
from typing import Any, Dict, List, Optional, Protocol

from config import FlowSettings
from observability import log_event, span
from .agents import EvaluationFailure, Evaluator, TurnRequest
from .aggregate import apply_scores
from .errors import InvalidSessionState
from .models import ResumeContext, Session, TranscriptEntry, TurnResult


logger = logging.getLogger(__name__)

FALLBACK_QUESTIONS: tuple[str, ...] = (
    "Could you walk me through a recent project you are proud of and your role in it?",
    "Tell me about a challenge you faced at work and how you handled it.",
    "How do you approach learning a new technology or skill?",
    "Describe a time you disagreed with a teammate and how you resolved it.",
    "What are you looking for in your next role, and why?",
)


class SessionRepository(Protocol):  # Persistence contract used by the flow
    def create(self, owner_id: str, *, resume_context: ResumeContext | None = None) -> Session: ...

    def load(self, session_id: str, owner_id: str) -> Session: ...

    def list_for_owner(self, owner_id: str, *, limit: int = 50) -> List[Session]: ...

    def save(self, session: Session, *, expected_version: int) -> Session: ...


def fallback_question(turn_index: int) -> str:  # Deterministic stand-in when the evaluator fails
    return FALLBACK_QUESTIONS[turn_index % len(FALLBACK_QUESTIONS)]


def ensure_turn_allowed(session: Session, settings: FlowSettings) -> None:
    if session.status == "completed":
        raise InvalidSessionState("Interview is already completed")
    if session.end_requested:
        raise InvalidSessionState("Interview was ended; request the report instead")
    if session.turns_completed >= settings.max_turns:
        raise InvalidSessionState("Interview reached its turn limit; request the report instead")


def plan_turn(
    session: Session,
    prior_answer_text: Optional[str],
    *,
    evaluator: Evaluator,
    settings: FlowSettings,
    events: Optional[List[Dict[str, Any]]] = None,
) -> TurnResult:
    """Compute the next turn for ``session`` without persisting it.

    The returned session carries the appended transcript, the folded
    aggregate and the incremented turn counter; its version is untouched.
    """

    ensure_turn_allowed(session, settings)
    events = events if events is not None else []

    if not session.transcript:
        return _opening_turn(session, prior_answer_text, settings)

    answer = prior_answer_text or ""
    request = TurnRequest(
        history=session.transcript[-settings.history_window :],
        question=_latest_question(session.transcript),
        answer=answer,
        turn_number=session.turns_completed,
        max_turns=settings.max_turns,
        resume_context=session.resume_context,
    )
    with span(events, "evaluator.turn"):
        outcome = evaluator.evaluate_turn(request)

    turns_completed = session.turns_completed + 1
    is_final = turns_completed >= settings.max_turns
    if isinstance(outcome, EvaluationFailure):
        aggregate = session.aggregate
        scored = False
        next_question = fallback_question(turns_completed)
        log_event(
            "turn.degraded",
            session.session_id,
            level=logging.WARNING,
            turn=turns_completed,
            reason=outcome.reason,
            detail=outcome.detail,
        )
    else:
        aggregate = apply_scores(session.aggregate, outcome.scores)
        scored = True
        next_question = outcome.next_question
        if not next_question and not is_final:
            logger.warning("Evaluator returned scores without a question session=%s", session.session_id)
            next_question = fallback_question(turns_completed)

    transcript = [*session.transcript, TranscriptEntry(role="candidate", text=answer)]
    if is_final:
        next_question = ""
    else:
        transcript.append(TranscriptEntry(role="interviewer", text=next_question))

    updated = session.model_copy(
        update={"transcript": transcript, "aggregate": aggregate, "turns_completed": turns_completed}
    )
    return TurnResult(
        session=updated,
        next_question=next_question,
        is_final=is_final,
        scored=scored,
        aggregate=aggregate.means(),
    )


def request_next_turn(
    session_id: str,
    owner_id: str,
    prior_answer_text: Optional[str] = None,
    *,
    store: SessionRepository,
    evaluator: Evaluator,
    settings: FlowSettings,
) -> TurnResult:
    """Load, advance and persist one interview turn.

    The write is conditioned on the version read here; on conflict nothing
    from this attempt is kept and the caller must resubmit the whole turn.
    """

    session = store.load(session_id, owner_id)
    events: List[Dict[str, Any]] = []
    result = plan_turn(session, prior_answer_text, evaluator=evaluator, settings=settings, events=events)
    saved = store.save(result.session, expected_version=session.version)
    log_event(
        "turn.completed",
        saved.session_id,
        turn=saved.turns_completed,
        scored=result.scored,
        is_final=result.is_final,
        version=saved.version,
        ms=sum(event["ms"] for event in events),
    )
    return result.model_copy(update={"session": saved})


def start_session(
    owner_id: str,
    *,
    store: SessionRepository,
    resume_context: ResumeContext | None = None,
) -> Session:  # Create a new in-progress interview
    session = store.create(owner_id, resume_context=resume_context)
    log_event("session.started", session.session_id, version=session.version)
    return session


def get_session(session_id: str, owner_id: str, *, store: SessionRepository) -> Session:
    return store.load(session_id, owner_id)


def list_sessions(owner_id: str, *, store: SessionRepository, limit: int = 50) -> List[Session]:
    return store.list_for_owner(owner_id, limit=limit)


def end_interview(session_id: str, owner_id: str, *, store: SessionRepository) -> Session:
    """Record that the candidate ended early so the report becomes available."""

    session = store.load(session_id, owner_id)
    if session.status == "completed":
        raise InvalidSessionState("Interview is already completed")
    if session.end_requested:
        return session
    saved = store.save(session.model_copy(update={"end_requested": True}), expected_version=session.version)
    log_event("session.ended", saved.session_id, turn=saved.turns_completed, version=saved.version)
    return saved


def _opening_turn(session: Session, prior_answer_text: Optional[str], settings: FlowSettings) -> TurnResult:  # Fixed intro, no evaluator call
    if prior_answer_text and prior_answer_text.strip():
        logger.info("Ignoring answer sent before the first question session=%s", session.session_id)
    turns_completed = session.turns_completed + 1
    is_final = turns_completed >= settings.max_turns
    next_question = "" if is_final else settings.intro_question
    transcript = list(session.transcript)
    if next_question:
        transcript.append(TranscriptEntry(role="interviewer", text=next_question))
    updated = session.model_copy(update={"transcript": transcript, "turns_completed": turns_completed})
    return TurnResult(
        session=updated,
        next_question=next_question,
        is_final=is_final,
        scored=False,
        aggregate=session.aggregate.means(),
    )


def _latest_question(transcript: List[TranscriptEntry]) -> str:
    for entry in reversed(transcript):
        if entry.role == "interviewer":
            return entry.text
    return ""


__all__ = [
    "FALLBACK_QUESTIONS",
    "SessionRepository",
    "end_interview",
    "ensure_turn_allowed",
    "fallback_question",
    "get_session",
    "list_sessions",
    "plan_turn",
    "request_next_turn",
    "start_session",
]
