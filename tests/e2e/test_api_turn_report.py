import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.routes import get_store, router
from config.registry import EVALUATOR_KEY, bind_model
from config.settings import settings
from interview_flow import ConcurrencyConflict, PersistenceFailure, TurnEvaluation, TurnScores
from interview_flow.agents import EvaluationFailure
from interview_flow.models import ReportNarrative
from llm_gateway import LlmGatewayError
from storage.sessions import SessionStore


app = FastAPI()
app.include_router(router)
client = TestClient(app)

OWNER = {"X-User-Id": "user-1"}


def _evaluation(c, conf, t, g, question):
    return TurnEvaluation(
        next_question=question,
        scores=TurnScores(communication=c, confidence=conf, technical=t, grammar=g),
    )


@pytest.fixture(autouse=True)
def short_interview(monkeypatch):
    monkeypatch.setattr(settings, "MAX_TURNS", 3, raising=False)


def _start(headers=OWNER, **body):
    resp = client.post("/interview-sessions", json=body, headers=headers)
    assert resp.status_code == 201
    return resp.json()["sessionId"]


def test_full_interview_flow(scripted_evaluator):
    evaluator = scripted_evaluator(
        turns=[_evaluation(8, 7, 6, 9, "What did you learn?"), _evaluation(6, 7, 6, 9, "")],
        summaries=[ReportNarrative(summary="Well rounded.", recommendation="Yes", strengths=["Clarity"])],
    )
    bind_model(EVALUATOR_KEY, evaluator)
    session_id = _start(resumeContext={"targetRole": "SRE", "experienceLevel": "Mid", "resumeText": "On-call lead"})

    intro = client.post("/interview-turn", json={"sessionId": session_id}, headers=OWNER)
    assert intro.status_code == 200
    assert intro.json()["turnsCompleted"] == 1
    assert intro.json()["aggregate"] == {"communication": 0, "confidence": 0, "technical": 0, "grammar": 0}

    second = client.post(
        "/interview-turn", json={"sessionId": session_id, "priorAnswerText": "I run on-call."}, headers=OWNER
    )
    assert second.json()["nextQuestion"] == "What did you learn?"
    assert second.json()["aggregate"]["communication"] == 8

    final = client.post(
        "/interview-turn", json={"sessionId": session_id, "priorAnswerText": "Blameless reviews."}, headers=OWNER
    )
    body = final.json()
    assert body["isFinal"] is True
    assert body["nextQuestion"] == ""
    assert body["aggregate"] == {"communication": 7, "confidence": 7, "technical": 6, "grammar": 9}
    assert evaluator.turn_requests[0].resume_context.target_role == "SRE"

    extra = client.post("/interview-turn", json={"sessionId": session_id, "priorAnswerText": "more"}, headers=OWNER)
    assert extra.status_code == 409

    report = client.post("/interview-report", json={"sessionId": session_id}, headers=OWNER)
    assert report.status_code == 200
    assert report.json()["overallScore"] == 7
    assert report.json()["recommendation"] == "Yes"
    assert report.json()["source"] == "evaluator"

    view = client.get(f"/interview-sessions/{session_id}", headers=OWNER).json()
    assert view["status"] == "completed"
    assert view["maxTurns"] == 3
    assert view["report"]["summary"] == "Well rounded."
    assert [line["role"] for line in view["transcript"]] == ["interviewer", "candidate", "interviewer", "candidate"]


def test_degraded_turn_and_early_end(scripted_evaluator):
    bind_model(EVALUATOR_KEY, scripted_evaluator(turns=[EvaluationFailure(reason="timeout")]))
    session_id = _start()
    client.post("/interview-turn", json={"sessionId": session_id}, headers=OWNER)

    degraded = client.post(
        "/interview-turn", json={"sessionId": session_id, "priorAnswerText": "answer"}, headers=OWNER
    )
    assert degraded.status_code == 200
    assert degraded.json()["nextQuestion"]
    assert degraded.json()["aggregate"]["technical"] == 0

    early = client.post("/interview-report", json={"sessionId": session_id}, headers=OWNER)
    assert early.status_code == 409

    ended = client.post("/interview-end", json={"sessionId": session_id}, headers=OWNER)
    assert ended.json()["endRequested"] is True

    report = client.post("/interview-report", json={"sessionId": session_id}, headers=OWNER)
    assert report.status_code == 200
    assert report.json()["source"] == "fallback"
    assert report.json()["recommendation"] == "No"


def test_owner_header_and_scoping(scripted_evaluator):
    bind_model(EVALUATOR_KEY, scripted_evaluator())
    session_id = _start()

    missing = client.post("/interview-turn", json={"sessionId": session_id})
    assert missing.status_code == 401

    foreign = client.post("/interview-turn", json={"sessionId": session_id}, headers={"X-User-Id": "user-2"})
    assert foreign.status_code == 401

    unknown = client.post("/interview-turn", json={"sessionId": "nope"}, headers=OWNER)
    assert unknown.status_code == 404

    assert client.get("/interview-sessions", headers={"X-User-Id": "user-2"}).json() == []
    listed = client.get("/interview-sessions", headers=OWNER).json()
    assert [item["sessionId"] for item in listed] == [session_id]


def test_blank_session_id_is_rejected(scripted_evaluator):
    bind_model(EVALUATOR_KEY, scripted_evaluator())
    resp = client.post("/interview-turn", json={"sessionId": ""}, headers=OWNER)
    assert resp.status_code == 422


class FailingSaveStore(SessionStore):
    def __init__(self, error):
        super().__init__()
        self.error = error

    def save(self, session, *, expected_version):
        raise self.error


class RaisingEvaluator:
    def evaluate_turn(self, request):
        raise LlmGatewayError("LLM transport failed")

    def summarize(self, request):
        raise LlmGatewayError("LLM transport failed")


@pytest.fixture
def failing_store():
    def _install(error):
        app.dependency_overrides[get_store] = lambda: FailingSaveStore(error)

    yield _install
    app.dependency_overrides.pop(get_store, None)


@pytest.mark.parametrize(
    "error, status",
    [
        (ConcurrencyConflict("s-1", 1), 409),
        (PersistenceFailure("Session store save failed after 3 attempts"), 503),
    ],
)
def test_turn_save_errors_map_to_retryable_statuses(scripted_evaluator, failing_store, error, status):
    bind_model(EVALUATOR_KEY, scripted_evaluator())
    session_id = _start()
    failing_store(error)

    resp = client.post("/interview-turn", json={"sessionId": session_id}, headers=OWNER)

    assert resp.status_code == status
    assert resp.headers["retry-after"] == "1"
    assert resp.json()["detail"] == str(error)
    assert SessionStore().load(session_id, "user-1").turns_completed == 0


@pytest.mark.parametrize(
    "error, status",
    [
        (ConcurrencyConflict("s-1", 2), 409),
        (PersistenceFailure("Session store save failed after 3 attempts"), 503),
    ],
)
def test_report_save_errors_map_to_retryable_statuses(scripted_evaluator, failing_store, error, status):
    bind_model(EVALUATOR_KEY, scripted_evaluator())
    session_id = _start()
    client.post("/interview-end", json={"sessionId": session_id}, headers=OWNER)
    failing_store(error)

    resp = client.post("/interview-report", json={"sessionId": session_id}, headers=OWNER)

    assert resp.status_code == status
    assert resp.headers["retry-after"] == "1"
    assert SessionStore().load(session_id, "user-1").status == "in_progress"


def test_invalid_state_has_no_retry_hint(scripted_evaluator):
    bind_model(EVALUATOR_KEY, scripted_evaluator())
    session_id = _start()

    resp = client.post("/interview-report", json={"sessionId": session_id}, headers=OWNER)

    assert resp.status_code == 409
    assert "retry-after" not in resp.headers


def test_raising_evaluator_maps_to_bad_gateway():
    bind_model(EVALUATOR_KEY, RaisingEvaluator())
    session_id = _start()
    client.post("/interview-turn", json={"sessionId": session_id}, headers=OWNER)

    resp = client.post("/interview-turn", json={"sessionId": session_id, "priorAnswerText": "hi"}, headers=OWNER)

    assert resp.status_code == 502
    assert SessionStore().load(session_id, "user-1").turns_completed == 1
