from __future__ import annotations  # Agent exports for the interview flow

from .evaluator import (
    INTERVIEWER_GUIDANCE,
    SUMMARY_GUIDANCE,
    EvaluationFailure,
    Evaluator,
    LlmEvaluator,
    SummaryOutcome,
    SummaryRequest,
    TurnOutcome,
    TurnRequest,
)
from .parsing import ParseFailure, parse_report_narrative, parse_turn_evaluation

__all__ = [
    "EvaluationFailure",
    "Evaluator",
    "INTERVIEWER_GUIDANCE",
    "LlmEvaluator",
    "ParseFailure",
    "SUMMARY_GUIDANCE",
    "SummaryOutcome",
    "SummaryRequest",
    "TurnOutcome",
    "TurnRequest",
    "parse_report_narrative",
    "parse_turn_evaluation",
]
