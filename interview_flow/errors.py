"""Errors raised by the interview flow and its session store."""
from __future__ import annotations


class InterviewFlowError(RuntimeError):
    """Base class for failures surfaced to callers."""

    retryable = False


class SessionNotFound(InterviewFlowError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class SessionOwnershipError(InterviewFlowError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' does not belong to the caller")
        self.session_id = session_id


class InvalidSessionState(InterviewFlowError):
    pass


class ConcurrencyConflict(InterviewFlowError):
    """The session changed since it was read; re-fetch and resubmit the turn."""

    retryable = True

    def __init__(self, session_id: str, expected_version: int) -> None:
        super().__init__(f"Session '{session_id}' was modified concurrently (expected version {expected_version})")
        self.session_id = session_id
        self.expected_version = expected_version


class PersistenceFailure(InterviewFlowError):
    retryable = True


__all__ = [
    "ConcurrencyConflict",
    "InterviewFlowError",
    "InvalidSessionState",
    "PersistenceFailure",
    "SessionNotFound",
    "SessionOwnershipError",
]
