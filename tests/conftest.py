import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.registry import EVALUATOR_KEY, unbind_model
from config.routes import LlmRoute
from config.settings import settings
from interview_flow.agents import EvaluationFailure
from storage.migrate import migrate


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        unbind_model(EVALUATOR_KEY)
        td.cleanup()


class ScriptedEvaluator:
    """Evaluator double returning queued outcomes and recording requests."""

    def __init__(self, turns=None, summaries=None):
        self.turns = list(turns or [])
        self.summaries = list(summaries or [])
        self.turn_requests = []
        self.summary_requests = []

    def evaluate_turn(self, request):
        self.turn_requests.append(request)
        if not self.turns:
            return EvaluationFailure(reason="unavailable", detail="script exhausted")
        return self.turns.pop(0)

    def summarize(self, request):
        self.summary_requests.append(request)
        if not self.summaries:
            return EvaluationFailure(reason="unavailable", detail="script exhausted")
        return self.summaries.pop(0)


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    @property
    def text(self):
        return str(self._payload)


class FakeHttpClient:
    """Replays queued responses (or raises queued exceptions) for each POST."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def post(self, url, *, json, headers, timeout):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def chat_reply(content, status_code=200):
    return FakeResponse({"choices": [{"message": {"role": "assistant", "content": content}}]}, status_code)


@pytest.fixture
def scripted_evaluator():
    return ScriptedEvaluator


@pytest.fixture
def fake_http():
    return FakeHttpClient


@pytest.fixture
def reply():
    return chat_reply


@pytest.fixture
def raw_response():
    return FakeResponse


@pytest.fixture
def route():
    return LlmRoute(
        name="stub-route",
        base_url="http://llm.test",
        endpoint="/v1/chat/completions",
        model="stub-model",
        timeout_s=2.0,
        max_retries=1,
    )
