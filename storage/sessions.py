"""Persistence for interview sessions with version-conditioned updates."""
from __future__ import annotations

import json
import logging
import sqlite3
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional, TypeVar

from config.settings import settings
from interview_flow.errors import (
    ConcurrencyConflict,
    PersistenceFailure,
    SessionNotFound,
    SessionOwnershipError,
)
from interview_flow.models import InterviewReport, ResumeContext, ScoreAggregate, Session, TranscriptEntry

from .sqlite import get_conn

logger = logging.getLogger(__name__)

T = TypeVar("T")

_COLUMNS = (
    "session_id, owner_id, transcript_json, aggregate_json, turns_completed, status, "
    "version, end_requested, resume_json, report_json, created_at, updated_at"
)


class SessionStore:
    """SQLite-backed session store.

    Reads are scoped by owner and writes are compare-and-swap on ``version``:
    a save only lands when the stored version still equals the version the
    caller loaded, so two concurrent turns on one session cannot both persist.
    """

    def __init__(self, db_path: Optional[str] = None, *, retries: Optional[int] = None) -> None:
        self._db_path = db_path
        self._retries = settings.PERSIST_RETRIES if retries is None else max(0, retries)

    def create(self, owner_id: str, *, resume_context: ResumeContext | None = None) -> Session:
        """Insert a fresh in-progress session for ``owner_id``."""

        session = Session(session_id=str(uuid.uuid4()), owner_id=owner_id, resume_context=resume_context)

        def _insert() -> None:
            with get_conn(self._db_path) as conn:
                conn.execute(
                    f"INSERT INTO interview_sessions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    _row_values(session),
                )

        self._with_retries(_insert, "create")
        return session

    def load(self, session_id: str, owner_id: str) -> Session:
        """Load a session, enforcing that ``owner_id`` owns it."""

        def _select() -> Optional[sqlite3.Row]:
            with get_conn(self._db_path) as conn:
                return conn.execute(
                    f"SELECT {_COLUMNS} FROM interview_sessions WHERE session_id = ?",
                    (session_id,),
                ).fetchone()

        row = self._with_retries(_select, "load")
        if row is None:
            raise SessionNotFound(session_id)
        if row["owner_id"] != owner_id:
            raise SessionOwnershipError(session_id)
        return _session_from_row(row)

    def list_for_owner(self, owner_id: str, *, limit: int = 50) -> List[Session]:
        def _select() -> List[sqlite3.Row]:
            with get_conn(self._db_path) as conn:
                return conn.execute(
                    f"""SELECT {_COLUMNS} FROM interview_sessions
                        WHERE owner_id = ?
                        ORDER BY created_at DESC, rowid DESC
                        LIMIT ?""",
                    (owner_id, limit),
                ).fetchall()

        return [_session_from_row(row) for row in self._with_retries(_select, "list")]

    def save(self, session: Session, *, expected_version: int) -> Session:
        """Persist ``session`` if the stored version is still ``expected_version``.

        Returns the stored snapshot with its bumped version.

        Raises:
            ConcurrencyConflict: The stored version moved on since it was read.
            SessionNotFound: The session no longer exists for this owner.
            PersistenceFailure: The database stayed unavailable after retries.
        """

        stored = session.model_copy(update={"version": expected_version + 1, "updated_at": _utc_now()})

        def _update() -> int:
            with get_conn(self._db_path) as conn:
                cur = conn.execute(
                    """UPDATE interview_sessions
                       SET transcript_json = ?, aggregate_json = ?, turns_completed = ?, status = ?,
                           version = ?, end_requested = ?, resume_json = ?, report_json = ?, updated_at = ?
                       WHERE session_id = ? AND owner_id = ? AND version = ?""",
                    (
                        _dump_transcript(stored.transcript),
                        stored.aggregate.model_dump_json(),
                        stored.turns_completed,
                        stored.status,
                        stored.version,
                        int(stored.end_requested),
                        _dump_optional(stored.resume_context),
                        _dump_optional(stored.report),
                        stored.updated_at,
                        stored.session_id,
                        stored.owner_id,
                        expected_version,
                    ),
                )
                if cur.rowcount == 1:
                    return 1
                exists = conn.execute(
                    "SELECT 1 FROM interview_sessions WHERE session_id = ? AND owner_id = ?",
                    (stored.session_id, stored.owner_id),
                ).fetchone()
                return 0 if exists else -1

        outcome = self._with_retries(_update, "save")
        if outcome == -1:
            raise SessionNotFound(stored.session_id)
        if outcome == 0:
            logger.warning(
                "Version conflict session=%s expected_version=%d", stored.session_id, expected_version
            )
            raise ConcurrencyConflict(stored.session_id, expected_version)
        return stored

    def _with_retries(self, operation: Callable[[], T], label: str) -> T:
        attempts = self._retries + 1
        last_error: Exception | None = None
        for attempt in range(attempts):
            try:
                return operation()
            except sqlite3.OperationalError as exc:
                last_error = exc
                logger.warning("Session store %s failed attempt=%d/%d: %s", label, attempt + 1, attempts, exc)
                if attempt + 1 < attempts:
                    time.sleep(0.05 * (attempt + 1))
            except sqlite3.DatabaseError as exc:
                logger.error("Session store %s failed: %s", label, exc)
                raise PersistenceFailure(f"Session store {label} failed") from exc
        raise PersistenceFailure(f"Session store {label} failed after {attempts} attempts") from last_error


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _dump_transcript(entries: List[TranscriptEntry]) -> str:
    return json.dumps([entry.model_dump() for entry in entries], ensure_ascii=False)


def _dump_optional(model: Optional[ResumeContext | InterviewReport]) -> Optional[str]:
    return model.model_dump_json() if model is not None else None


def _row_values(session: Session) -> tuple:
    return (
        session.session_id,
        session.owner_id,
        _dump_transcript(session.transcript),
        session.aggregate.model_dump_json(),
        session.turns_completed,
        session.status,
        session.version,
        int(session.end_requested),
        _dump_optional(session.resume_context),
        _dump_optional(session.report),
        session.created_at,
        session.updated_at,
    )


def _session_from_row(row: sqlite3.Row) -> Session:
    return Session(
        session_id=row["session_id"],
        owner_id=row["owner_id"],
        transcript=[TranscriptEntry.model_validate(item) for item in json.loads(row["transcript_json"])],
        aggregate=ScoreAggregate.model_validate_json(row["aggregate_json"]),
        turns_completed=row["turns_completed"],
        status=row["status"],
        version=row["version"],
        end_requested=bool(row["end_requested"]),
        resume_context=ResumeContext.model_validate_json(row["resume_json"]) if row["resume_json"] else None,
        report=InterviewReport.model_validate_json(row["report_json"]) if row["report_json"] else None,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


__all__ = ["SessionStore"]
