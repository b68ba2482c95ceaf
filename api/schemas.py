"""Pydantic schemas for the interview turn API."""
from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ResumeContextPayload(BaseModel):
    targetRole: str = ""
    experienceLevel: str = ""
    resumeText: str = ""


class StartSessionReq(BaseModel):
    resumeContext: Optional[ResumeContextPayload] = None


class TurnReq(BaseModel):
    sessionId: str = Field(min_length=1)
    priorAnswerText: Optional[str] = None


class SessionRef(BaseModel):
    sessionId: str = Field(min_length=1)


class AggregateScores(BaseModel):
    communication: int
    confidence: int
    technical: int
    grammar: int


class TurnResp(BaseModel):
    nextQuestion: str
    isFinal: bool
    turnsCompleted: int
    aggregate: AggregateScores


class ReportResp(BaseModel):
    overallScore: int
    dimensions: Dict[str, int]
    recommendation: Literal["Strong Yes", "Yes", "Maybe", "No"]
    summary: str
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    source: Literal["evaluator", "fallback"]


class TranscriptLine(BaseModel):
    role: Literal["candidate", "interviewer"]
    text: str


class SessionView(BaseModel):
    sessionId: str
    status: Literal["in_progress", "completed"]
    turnsCompleted: int
    maxTurns: int
    endRequested: bool
    aggregate: AggregateScores
    transcript: List[TranscriptLine] = Field(default_factory=list)
    report: Optional[ReportResp] = None
    createdAt: str
    updatedAt: str
