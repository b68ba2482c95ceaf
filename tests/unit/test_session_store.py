"""Tests for the SQLite session store and the admin tail helper."""
from __future__ import annotations

import pytest

from interview_flow import (
    PersistenceFailure,
    ResumeContext,
    SessionNotFound,
    SessionOwnershipError,
    TranscriptEntry,
)
from interview_flow.aggregate import apply_scores
from interview_flow.models import TurnScores
from observability import log_event
from observability.admin_cli import tail_sessions
from storage.sessions import SessionStore


def test_create_and_load_round_trip():
    store = SessionStore()
    context = ResumeContext(target_role="Data Engineer", resume_text="Spark, Airflow")
    created = store.create("owner-1", resume_context=context)

    loaded = store.load(created.session_id, "owner-1")

    assert loaded == created
    assert loaded.status == "in_progress"
    assert loaded.version == 1
    assert loaded.turns_completed == 0
    assert loaded.resume_context == context
    assert loaded.report is None


def test_unknown_session_raises_not_found():
    with pytest.raises(SessionNotFound):
        SessionStore().load("missing", "owner-1")


def test_foreign_owner_is_rejected():
    store = SessionStore()
    created = store.create("owner-1")
    with pytest.raises(SessionOwnershipError):
        store.load(created.session_id, "owner-2")


def test_save_bumps_version_and_persists_state():
    store = SessionStore()
    created = store.create("owner-1")
    aggregate = apply_scores(created.aggregate, TurnScores(communication=8, confidence=7, technical=6, grammar=9))
    changed = created.model_copy(
        update={
            "transcript": [TranscriptEntry(role="interviewer", text="Hi"), TranscriptEntry(role="candidate", text="Hello")],
            "aggregate": aggregate,
            "turns_completed": 2,
        }
    )

    saved = store.save(changed, expected_version=created.version)
    loaded = store.load(created.session_id, "owner-1")

    assert saved.version == 2
    assert loaded.version == 2
    assert loaded.turns_completed == 2
    assert loaded.aggregate.means() == {"communication": 8, "confidence": 7, "technical": 6, "grammar": 9}
    assert [entry.text for entry in loaded.transcript] == ["Hi", "Hello"]


def test_save_for_deleted_session_raises_not_found():
    store = SessionStore()
    ghost = store.create("owner-1").model_copy(update={"session_id": "ghost"})
    with pytest.raises(SessionNotFound):
        store.save(ghost, expected_version=1)


def test_list_for_owner_is_scoped_and_newest_first():
    store = SessionStore()
    first = store.create("owner-1")
    store.create("owner-2")
    second = store.create("owner-1")

    sessions = store.list_for_owner("owner-1")

    assert [s.session_id for s in sessions] == [second.session_id, first.session_id]
    assert store.list_for_owner("owner-3") == []


def test_unavailable_database_raises_persistence_failure(tmp_path):
    store = SessionStore(str(tmp_path / "unmigrated.db"), retries=1)
    with pytest.raises(PersistenceFailure) as excinfo:
        store.create("owner-1")
    assert excinfo.value.retryable is True


def test_tail_sessions_lists_recent_rows(capsys):
    store = SessionStore()
    created = store.create("owner-1")
    store.create("owner-2")

    lines = tail_sessions(limit=5, owner_id="owner-1")

    assert len(lines) == 1
    assert created.session_id in lines[0]
    assert "status=in_progress" in lines[0]
    assert created.session_id in capsys.readouterr().out


def test_log_event_returns_payload():
    payload = log_event("turn.completed", "s-1", turn=3, scored=True)
    assert payload["kind"] == "turn.completed"
    assert payload["session_id"] == "s-1"
    assert payload["turn"] == 3
