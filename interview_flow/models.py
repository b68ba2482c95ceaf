from __future__ import annotations  # Interview session state models

from datetime import datetime, timezone
from typing import Dict, List, Literal

from pydantic import BaseModel, Field

DIMENSIONS: tuple[str, ...] = ("communication", "confidence", "technical", "grammar")
SCORE_MIN = 1
SCORE_MAX = 10

Role = Literal["candidate", "interviewer"]
SessionStatus = Literal["in_progress", "completed"]
Recommendation = Literal["Strong Yes", "Yes", "Maybe", "No"]


def round_half_up(numerator: int, denominator: int) -> int:  # Nearest int of numerator/denominator, halves going up
    if denominator <= 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class TranscriptEntry(BaseModel):  # Single utterance in the interview transcript
    role: Role
    text: str


class DimensionTally(BaseModel):  # Count and sum of scores for one dimension
    count: int = Field(default=0, ge=0)
    sum: int = Field(default=0, ge=0)

    @property
    def mean(self) -> int:  # Half-up rounded running mean, 0 before any score
        return round_half_up(self.sum, self.count)


def _empty_tallies() -> Dict[str, DimensionTally]:
    return {name: DimensionTally() for name in DIMENSIONS}


class ScoreAggregate(BaseModel):  # Running per-dimension score state
    dimensions: Dict[str, DimensionTally] = Field(default_factory=_empty_tallies)

    def means(self) -> Dict[str, int]:
        return {name: self.dimensions.get(name, DimensionTally()).mean for name in DIMENSIONS}

    def scored_turns(self) -> int:
        return min((self.dimensions.get(name, DimensionTally()).count for name in DIMENSIONS), default=0)


class TurnScores(BaseModel):  # Per-turn score tuple on the 1-10 scale
    communication: int
    confidence: int
    technical: int
    grammar: int

    def as_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in DIMENSIONS}


class TurnEvaluation(BaseModel):  # Parsed evaluator reply for one answer
    next_question: str = ""
    scores: TurnScores
    notes: str = ""


class ReportNarrative(BaseModel):  # Parsed evaluator reply in summarize mode
    summary: str
    recommendation: Recommendation
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)


class ResumeContext(BaseModel):  # Resume details forwarded to the evaluator framing
    target_role: str = ""
    experience_level: str = ""
    resume_text: str = ""


class InterviewReport(BaseModel):  # Final scored report
    overall_score: int
    dimensions: Dict[str, int]
    recommendation: Recommendation
    summary: str
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    source: Literal["evaluator", "fallback"] = "evaluator"


class Session(BaseModel):  # One interview attempt as persisted in the session store
    session_id: str
    owner_id: str
    transcript: List[TranscriptEntry] = Field(default_factory=list)
    aggregate: ScoreAggregate = Field(default_factory=ScoreAggregate)
    turns_completed: int = Field(default=0, ge=0)
    status: SessionStatus = "in_progress"
    version: int = Field(default=1, ge=1)
    end_requested: bool = False
    resume_context: ResumeContext | None = None
    report: InterviewReport | None = None
    created_at: str = Field(default_factory=_utc_now)
    updated_at: str = Field(default_factory=_utc_now)


class TurnResult(BaseModel):  # Orchestrator output for one turn
    session: Session
    next_question: str
    is_final: bool
    scored: bool
    aggregate: Dict[str, int]


class ReportResult(BaseModel):  # Finalizer output
    session: Session
    report: InterviewReport


__all__ = [
    "DIMENSIONS",
    "SCORE_MAX",
    "SCORE_MIN",
    "DimensionTally",
    "InterviewReport",
    "Recommendation",
    "ReportNarrative",
    "ReportResult",
    "ResumeContext",
    "Role",
    "ScoreAggregate",
    "Session",
    "SessionStatus",
    "TranscriptEntry",
    "TurnEvaluation",
    "TurnResult",
    "TurnScores",
    "round_half_up",
]
