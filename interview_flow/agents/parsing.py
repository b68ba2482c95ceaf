"""Parsing of evaluator replies into tagged results.

The model is asked for JSON but routinely wraps it in markdown fences, adds
prose around it, or drops fields. Parsers here never raise for bad content;
they return either the parsed value or a :class:`ParseFailure` so callers
branch to their fallback explicitly.
"""
from __future__ import annotations

import json
import math
import re
from typing import Any, Dict, List, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..models import DIMENSIONS, ReportNarrative, TurnEvaluation, TurnScores

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

_RECOMMENDATIONS = {
    "strong yes": "Strong Yes",
    "strong hire": "Strong Yes",
    "yes": "Yes",
    "hire": "Yes",
    "maybe": "Maybe",
    "no": "No",
    "no hire": "No",
    "strong no": "No",
}


class ParseFailure(BaseModel):  # Tagged failure for unparseable evaluator output
    reason: str
    raw: str = ""


TurnParse = Union[TurnEvaluation, ParseFailure]
NarrativeParse = Union[ReportNarrative, ParseFailure]


class _RawTurnPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    next_question: str = Field(default="", validation_alias=AliasChoices("nextQuestion", "next_question", "question"))
    communication: float = Field(validation_alias=AliasChoices("communicationScore", "communication"))
    confidence: float = Field(validation_alias=AliasChoices("confidenceScore", "confidence"))
    technical: float = Field(validation_alias=AliasChoices("technicalScore", "technical"))
    grammar: float = Field(validation_alias=AliasChoices("grammarScore", "grammar"))
    notes: str = Field(default="", validation_alias=AliasChoices("notes", "feedback"))

    @field_validator("next_question", "notes", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("communication", "confidence", "technical", "grammar", mode="before")
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("score must be numeric")
        return value


class _RawNarrative(BaseModel):
    model_config = ConfigDict(extra="ignore")

    summary: str = Field(validation_alias=AliasChoices("summary", "overallFeedback", "feedback"))
    recommendation: str = Field(validation_alias=AliasChoices("recommendation", "hiringRecommendation"))
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("improvements", "areasForImprovement", "weaknesses"),
    )

    @field_validator("strengths", "improvements", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


def extract_json_object(content: str) -> Dict[str, Any] | ParseFailure:
    """Pull the first JSON object out of a model reply."""

    text = (content or "").strip()
    if not text:
        return ParseFailure(reason="empty reply", raw=content or "")
    match = _FENCED_JSON.search(text)
    if match:
        text = match.group(1).strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            return ParseFailure(reason="no JSON object found", raw=content)
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError as exc:
            return ParseFailure(reason=f"invalid JSON: {exc.msg}", raw=content)
    if not isinstance(data, dict):
        return ParseFailure(reason="JSON reply is not an object", raw=content)
    return data


def parse_turn_evaluation(content: str) -> TurnParse:
    """Parse a turn-mode reply; scores are rounded but not yet clamped."""

    data = extract_json_object(content)
    if isinstance(data, ParseFailure):
        return data
    nested = data.get("reportUpdate")
    if isinstance(nested, dict):
        data = {**nested, **{key: value for key, value in data.items() if key != "reportUpdate"}}
    try:
        raw = _RawTurnPayload.model_validate(data)
    except ValidationError as exc:
        return ParseFailure(reason=_first_error(exc), raw=content)
    values: Dict[str, int] = {}
    for name in DIMENSIONS:
        value = getattr(raw, name)
        if not math.isfinite(value):
            return ParseFailure(reason=f"{name} score is not finite", raw=content)
        values[name] = int(math.floor(value + 0.5))
    return TurnEvaluation(
        next_question=raw.next_question.strip(),
        scores=TurnScores(**values),
        notes=" ".join(raw.notes.split()),
    )


def parse_report_narrative(content: str) -> NarrativeParse:
    """Parse a summarize-mode reply into the narrative part of the report."""

    data = extract_json_object(content)
    if isinstance(data, ParseFailure):
        return data
    try:
        raw = _RawNarrative.model_validate(data)
    except ValidationError as exc:
        return ParseFailure(reason=_first_error(exc), raw=content)
    summary = " ".join(raw.summary.split())
    if not summary:
        return ParseFailure(reason="summary is empty", raw=content)
    recommendation = _RECOMMENDATIONS.get(" ".join(raw.recommendation.lower().split()))
    if recommendation is None:
        return ParseFailure(reason=f"unknown recommendation '{raw.recommendation}'", raw=content)
    return ReportNarrative(
        summary=summary,
        recommendation=recommendation,
        strengths=_clean_items(raw.strengths),
        improvements=_clean_items(raw.improvements),
    )


def _clean_items(items: List[str]) -> List[str]:
    cleaned = [" ".join(str(item).split()) for item in items]
    return [item for item in cleaned if item]


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "schema validation failed"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"{location}: {first.get('msg', 'invalid')}"


__all__ = [
    "NarrativeParse",
    "ParseFailure",
    "TurnParse",
    "extract_json_object",
    "parse_report_narrative",
    "parse_turn_evaluation",
]
