from __future__ import annotations  # Evaluator agent scoring answers and writing the final narrative

import logging
import time
from textwrap import dedent
from typing import Any, Callable, Dict, List, Literal, Optional, Protocol, Tuple, Union

from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from pydantic import BaseModel, Field

from config import LlmRoute
from llm_gateway import HttpClient, LlmGatewayError, LlmTimeoutError
from llm_gateway import runnable as llm_runnable
from ..models import DIMENSIONS, ReportNarrative, ResumeContext, TranscriptEntry, TurnEvaluation
from .parsing import ParseFailure, parse_report_narrative, parse_turn_evaluation
from .toolkit import clamp_text, transcript_messages, transcript_text


logger = logging.getLogger(__name__)

INTERVIEWER_GUIDANCE = dedent(  # Framing for turn-by-turn questioning and scoring
    """
    You are an expert interviewer conducting a professional job interview.
    Ask thoughtful, relevant questions based on the candidate's resume and target role.
    Follow up on answers with probing questions and keep each question concise.
    Ask exactly one question at a time, professionally but warmly.
    Score the candidate's latest answer from 1 (poor) to 10 (excellent) on
    communication, confidence, technical knowledge and grammar.
    Reply with a single JSON object and nothing else, shaped like:
    {"nextQuestion": "...", "communicationScore": 7, "confidenceScore": 6,
     "technicalScore": 8, "grammarScore": 9, "notes": "one sentence of evidence"}
    """
).strip()

SUMMARY_GUIDANCE = dedent(  # Framing for the end-of-interview narrative
    """
    You are an expert interview evaluator writing the final report for a mock interview.
    Running scores on a 1-10 scale are provided; do not invent new numbers.
    Write an honest overall narrative, list concrete strengths and areas for improvement,
    and give a hiring recommendation of exactly one of: Strong Yes, Yes, Maybe, No.
    Reply with a single JSON object and nothing else, shaped like:
    {"summary": "...", "recommendation": "Maybe", "strengths": ["..."], "improvements": ["..."]}
    """
).strip()

MIN_ATTEMPT_S = 0.5  # Smallest slice of the deadline worth another attempt


class TurnRequest(BaseModel):  # Evaluator input for one candidate answer
    history: List[TranscriptEntry] = Field(default_factory=list)
    question: str
    answer: str
    turn_number: int = Field(ge=1)
    max_turns: int = Field(ge=1)
    resume_context: ResumeContext | None = None


class SummaryRequest(BaseModel):  # Evaluator input for the final report
    transcript: List[TranscriptEntry] = Field(default_factory=list)
    means: Dict[str, int]
    scored_turns: int = Field(ge=0)
    resume_context: ResumeContext | None = None


class EvaluationFailure(BaseModel):  # Tagged failure returned instead of raising
    reason: Literal["unavailable", "timeout", "malformed"]
    detail: str = ""


TurnOutcome = Union[TurnEvaluation, EvaluationFailure]
SummaryOutcome = Union[ReportNarrative, EvaluationFailure]


class Evaluator(Protocol):  # Contract the orchestrator relies on
    def evaluate_turn(self, request: TurnRequest) -> TurnOutcome: ...

    def summarize(self, request: SummaryRequest) -> SummaryOutcome: ...


class LlmEvaluator:  # Evaluator backed by a chat-completions route
    def __init__(
        self,
        route: LlmRoute,
        *,
        client: Optional[HttpClient] = None,
        resume_chars: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._route = route
        self._clock = clock
        self._resume_chars = max(0, resume_chars)
        llm = llm_runnable(route, client=client, options={"temperature": 0.2})
        self._turn_prompt = ChatPromptTemplate.from_messages(
            [
                ("system", "{instructions}"),
                ("system", "{resume}"),
                MessagesPlaceholder("history"),
                (
                    "human",
                    (
                        "Question {turn_number} of {max_turns}: {question}\n"
                        "Candidate Answer: {answer}\n\n"
                        "Score this answer and ask the next question."
                    ),
                ),
                MessagesPlaceholder("corrections", optional=True),
            ]
        )
        self._summary_prompt = ChatPromptTemplate.from_messages(
            [
                ("system", "{instructions}"),
                ("system", "{resume}"),
                (
                    "human",
                    (
                        "Scored answers: {scored_turns}\n"
                        "Running scores (1-10):\n{scores}\n\n"
                        "Interview Transcript:\n{transcript}\n\n"
                        "Write the final evaluation."
                    ),
                ),
                MessagesPlaceholder("corrections", optional=True),
            ]
        )
        self._turn_chain = self._turn_prompt | llm
        self._summary_chain = self._summary_prompt | llm

    def evaluate_turn(self, request: TurnRequest) -> TurnOutcome:  # Score the latest answer and propose the next question
        inputs = {
            "instructions": INTERVIEWER_GUIDANCE,
            "resume": self._format_resume(request.resume_context),
            "history": transcript_messages(_prior_history(request.history, request.question)),
            "turn_number": request.turn_number,
            "max_turns": request.max_turns,
            "question": request.question.strip() or "(no question recorded)",
            "answer": request.answer.strip() or "(no answer given)",
        }
        return self._run(self._turn_chain, inputs, parse_turn_evaluation, mode="turn")

    def summarize(self, request: SummaryRequest) -> SummaryOutcome:  # Produce the narrative part of the final report
        inputs = {
            "instructions": SUMMARY_GUIDANCE,
            "resume": self._format_resume(request.resume_context),
            "scored_turns": request.scored_turns,
            "scores": _format_means(request.means),
            "transcript": transcript_text(request.transcript),
        }
        return self._run(self._summary_chain, inputs, parse_report_narrative, mode="summarize")

    def _run(
        self,
        chain: Any,
        inputs: Dict[str, Any],
        parser: Callable[[str], Any],
        *,
        mode: str,
    ) -> Any:  # Invoke chain, re-prompting on malformed output within one route deadline
        attempts = self._route.max_retries + 1
        deadline = self._clock() + self._route.timeout_s
        corrections: List[Tuple[str, str]] = []
        failure: ParseFailure | None = None
        for attempt in range(attempts):
            remaining = deadline - self._clock()
            if attempt > 0 and remaining < MIN_ATTEMPT_S:
                logger.warning("Evaluator %s skipped retry, %.2fs left of deadline", mode, max(remaining, 0.0))
                break
            try:
                content = chain.invoke(
                    {**inputs, "corrections": list(corrections)},
                    config={"configurable": {"timeout_s": remaining}},
                )
            except LlmTimeoutError as exc:
                logger.warning("Evaluator %s timed out: %s", mode, exc)
                return EvaluationFailure(reason="timeout", detail=str(exc))
            except LlmGatewayError as exc:
                logger.warning("Evaluator %s unavailable: %s", mode, exc)
                return EvaluationFailure(reason="unavailable", detail=str(exc))
            parsed = parser(content)
            if not isinstance(parsed, ParseFailure):
                return parsed
            failure = parsed
            logger.warning(
                "Evaluator %s reply malformed attempt=%d/%d reason=%s",
                mode,
                attempt + 1,
                attempts,
                parsed.reason,
            )
            corrections = [("system", _retry_hint(parsed.reason))]
        return EvaluationFailure(reason="malformed", detail=failure.reason if failure else "")

    def _format_resume(self, context: ResumeContext | None) -> str:  # Resume framing block
        if context is None:
            return "No resume context was provided."
        excerpt = clamp_text(context.resume_text, limit=self._resume_chars) if self._resume_chars else ""
        return (
            "Resume Context:\n"
            f"Target Role: {context.target_role or '(not specified)'}\n"
            f"Experience Level: {context.experience_level or '(not specified)'}\n"
            f"Resume Content: {excerpt or '(not provided)'}"
        )


def _prior_history(history: List[TranscriptEntry], question: str) -> List[TranscriptEntry]:  # Drop the trailing question already quoted in the prompt
    if history and history[-1].role == "interviewer" and history[-1].text.strip() == question.strip():
        return history[:-1]
    return history


def _format_means(means: Dict[str, int]) -> str:
    return "\n".join(f"- {name}: {means.get(name, 0)}" for name in DIMENSIONS)


def _retry_hint(error_text: str) -> str:  # Compose retry instructions including last error
    base = "The previous reply failed validation."
    if error_text:
        truncated = error_text.splitlines()[0].strip()
        if len(truncated) > 200:
            truncated = truncated[:197] + "..."
        base += f" Reason: {truncated}."
    return base + " Return a single JSON object that matches the requested shape."


__all__ = [
    "EvaluationFailure",
    "Evaluator",
    "INTERVIEWER_GUIDANCE",
    "LlmEvaluator",
    "SUMMARY_GUIDANCE",
    "SummaryOutcome",
    "SummaryRequest",
    "TurnOutcome",
    "TurnRequest",
]
