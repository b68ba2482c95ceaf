import threading
import time

import httpx
import pytest
from langchain_core.prompts import ChatPromptTemplate

from llm_gateway import LlmGatewayError, LlmTimeoutError, complete, runnable


def test_complete_posts_payload_and_returns_content(route, fake_http, reply, monkeypatch):
    monkeypatch.setenv("STUB_KEY", "secret")
    keyed = route.model_copy(update={"api_key_env": "STUB_KEY", "response_format": "json_object"})
    client = fake_http([reply('{"ok": true}')])

    content = complete([{"role": "user", "content": "hello"}], cfg=keyed, client=client, options={"temperature": 0})

    assert content == '{"ok": true}'
    call = client.calls[0]
    assert call["url"] == "http://llm.test/v1/chat/completions"
    assert call["timeout"] == 2.0
    assert call["headers"]["Authorization"] == "Bearer secret"
    assert call["json"]["model"] == "stub-model"
    assert call["json"]["temperature"] == 0
    assert call["json"]["response_format"] == {"type": "json_object"}
    assert call["json"]["messages"] == [{"role": "user", "content": "hello"}]


def test_timeout_raises_timeout_error(route, fake_http):
    client = fake_http([httpx.ReadTimeout("too slow")])
    with pytest.raises(LlmTimeoutError):
        complete([{"role": "user", "content": "hi"}], cfg=route, client=client)


def test_transport_failure_raises_gateway_error(route, fake_http):
    client = fake_http([httpx.ConnectError("refused")])
    with pytest.raises(LlmGatewayError) as excinfo:
        complete([{"role": "user", "content": "hi"}], cfg=route, client=client)
    assert not isinstance(excinfo.value, LlmTimeoutError)


def test_error_status_raises_gateway_error(route, fake_http, reply):
    client = fake_http([reply("rate limited", status_code=429)])
    with pytest.raises(LlmGatewayError, match="429"):
        complete([{"role": "user", "content": "hi"}], cfg=route, client=client)


def test_missing_content_raises_gateway_error(route, fake_http, raw_response):
    client = fake_http([raw_response({"choices": []})])
    with pytest.raises(LlmGatewayError, match="missing content"):
        complete([{"role": "user", "content": "hi"}], cfg=route, client=client)


def test_non_json_body_raises_gateway_error(route, fake_http, raw_response):
    client = fake_http([raw_response(ValueError("not json"))])
    with pytest.raises(LlmGatewayError, match="not JSON"):
        complete([{"role": "user", "content": "hi"}], cfg=route, client=client)


def test_message_without_role_is_rejected(route, fake_http):
    with pytest.raises(ValueError):
        complete([{"content": "orphan"}], cfg=route, client=fake_http([]))


def test_runnable_maps_langchain_roles(route, fake_http, reply):
    client = fake_http([reply("done")])
    prompt = ChatPromptTemplate.from_messages(
        [("system", "Be brief."), ("ai", "{question}"), ("human", "{answer}")]
    )
    chain = prompt | runnable(route, client=client)

    assert chain.invoke({"question": "Why this role?", "answer": "Growth."}) == "done"
    assert client.calls[0]["json"]["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "assistant", "content": "Why this role?"},
        {"role": "user", "content": "Growth."},
    ]


def test_sequential_route_still_completes(route, fake_http, reply):
    client = fake_http([reply("first"), reply("second")])
    serial = route.model_copy(update={"sequential": True})
    assert complete([{"role": "user", "content": "a"}], cfg=serial, client=client) == "first"
    assert complete([{"role": "user", "content": "b"}], cfg=serial, client=client) == "second"


def test_timeout_override_only_shrinks_route_timeout(route, fake_http, reply):
    client = fake_http([reply("a"), reply("b")])
    complete([{"role": "user", "content": "a"}], cfg=route, client=client, timeout=0.5)
    complete([{"role": "user", "content": "b"}], cfg=route, client=client, timeout=30.0)
    assert [call["timeout"] for call in client.calls] == [0.5, 2.0]


def test_spent_budget_fails_without_posting(route, fake_http):
    client = fake_http([])
    with pytest.raises(LlmTimeoutError):
        complete([{"role": "user", "content": "hi"}], cfg=route, client=client, timeout=0.0)
    assert client.calls == []


def test_runnable_reads_timeout_from_run_config(route, fake_http, reply):
    client = fake_http([reply("ok")])
    chain = ChatPromptTemplate.from_messages([("human", "{q}")]) | runnable(route, client=client)

    assert chain.invoke({"q": "hi"}, config={"configurable": {"timeout_s": 1.25}}) == "ok"
    assert client.calls[0]["timeout"] == 1.25


class StalledClient:
    """Holds every POST until released, like a reply trickling in past the deadline."""

    def __init__(self):
        self.release = threading.Event()

    def post(self, url, *, json, headers, timeout):
        self.release.wait(5.0)
        raise httpx.ReadTimeout("released")


def test_caller_stops_waiting_at_the_deadline(route):
    client = StalledClient()
    started = time.monotonic()
    try:
        with pytest.raises(LlmTimeoutError):
            complete([{"role": "user", "content": "hi"}], cfg=route, client=client, timeout=0.2)
        assert time.monotonic() - started < 1.5
    finally:
        client.release.set()
