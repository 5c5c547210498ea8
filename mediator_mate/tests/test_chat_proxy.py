"""
Chat Proxy Tests
================

The completion API is replaced by `httpx.MockTransport`; every request the
proxy makes is recorded so tests can inspect the composed payload.
"""

import json
from datetime import date
from pathlib import Path

import httpx
import pytest

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from mediator_mate.chat_proxy import ChatProxy, build_system_prompt, parse_chat_request
from mediator_mate.config import Settings
from mediator_mate.errors import ChatConfigurationError, ChatRequestError, UpstreamChatError
from mediator_mate.llm.completion_client import CompletionClient


class RecordingTransport:
    """MockTransport handler that records requests and replays one response"""

    def __init__(self, response: httpx.Response = None, error: Exception = None):
        self.requests = []
        self.response = response
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response

    @property
    def payloads(self):
        return [json.loads(r.content) for r in self.requests]


def _answer(content):
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def _proxy(handler, api_key="sk-test", **settings_overrides):
    settings = Settings(openai_api_key=api_key, _env_file=None, **settings_overrides)
    client = CompletionClient(
        api_key=api_key,
        model=settings.chat_model,
        base_url=settings.openai_base_url,
        transport=httpx.MockTransport(handler),
    )
    return ChatProxy(settings, client)


QUESTION = {"messages": [{"role": "user", "content": "What is the status of CF-000123?"}]}
CONTEXT = {"caseFiles": [{"caseFileNumber": "CF-000123", "title": "Smith v. Johnson", "status": "Open"}]}


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_context_reaches_system_message_and_answer_relayed(self):
        transport = RecordingTransport(_answer("It is open."))
        proxy = _proxy(transport)

        response = await proxy.handle({**QUESTION, "context": CONTEXT})

        assert response.content == "It is open."
        assert len(transport.requests) == 1
        request = transport.requests[0]
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"

        payload = transport.payloads[0]
        assert payload["model"] == "gpt-3.5-turbo"
        assert payload["temperature"] == 0.7
        system, user = payload["messages"]
        assert system["role"] == "system"
        assert "CF-000123" in system["content"]
        assert "Open" in system["content"]
        assert user == QUESTION["messages"][0]

    @pytest.mark.asyncio
    async def test_conversation_order_preserved(self):
        transport = RecordingTransport(_answer("ok"))
        messages = [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": "Any tasks?"},
        ]
        await _proxy(transport).handle({"messages": messages})

        sent = transport.payloads[0]["messages"]
        assert sent[1:] == messages
        assert "No tasks data provided." in sent[0]["content"]

    @pytest.mark.asyncio
    async def test_configured_model_and_base_url(self):
        transport = RecordingTransport(_answer("ok"))
        proxy = _proxy(transport, chat_model="gpt-4o-mini", openai_base_url="https://llm.local/v1/",
                       chat_temperature=0.2)

        await proxy.handle(QUESTION)

        assert str(transport.requests[0].url) == "https://llm.local/v1/chat/completions"
        assert transport.payloads[0]["model"] == "gpt-4o-mini"
        assert transport.payloads[0]["temperature"] == 0.2


class TestValidation:
    @pytest.mark.parametrize("payload", [
        None,
        [],
        {},
        {"messages": []},
        {"messages": "hello"},
        {"messages": [{"role": "user"}]},
        {"messages": [{"role": "wizard", "content": "hi"}]},
    ])
    def test_malformed_requests(self, payload):
        with pytest.raises(ChatRequestError) as exc:
            parse_chat_request(payload)
        assert exc.value.status_code == 400
        assert exc.value.message == "Missing or invalid messages in request body"

    def test_bad_context(self):
        with pytest.raises(ChatRequestError) as exc:
            parse_chat_request({**QUESTION, "context": {"notes": "not a list"}})
        assert exc.value.message == "Invalid context in request body"

    @pytest.mark.asyncio
    async def test_validation_happens_before_any_call(self):
        transport = RecordingTransport(_answer("ok"))
        with pytest.raises(ChatRequestError):
            await _proxy(transport).handle({"messages": []})
        assert transport.requests == []


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_missing_key_fails_without_outbound_call(self):
        transport = RecordingTransport(_answer("should not be used"))
        proxy = _proxy(transport, api_key=None)

        with pytest.raises(ChatConfigurationError) as exc:
            await proxy.handle(QUESTION)

        assert exc.value.status_code == 500
        assert exc.value.message
        assert transport.requests == []


class TestUpstreamFailures:
    @pytest.mark.asyncio
    async def test_non_success_status(self, caplog):
        transport = RecordingTransport(httpx.Response(429, text="rate limited: secret diagnostics"))

        with pytest.raises(UpstreamChatError) as exc:
            await _proxy(transport).handle(QUESTION)

        assert exc.value.status_code == 500
        assert "secret diagnostics" not in exc.value.message
        assert "secret diagnostics" in caplog.text
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {},
        {"choices": []},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": ""}}]},
        {"choices": [{"message": {"content": None}}]},
    ])
    async def test_missing_content(self, body):
        transport = RecordingTransport(httpx.Response(200, json=body))
        with pytest.raises(UpstreamChatError) as exc:
            await _proxy(transport).handle(QUESTION)
        assert exc.value.message == "Failed to extract content from completion response"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        transport = RecordingTransport(error=httpx.ConnectError("connection refused"))
        with pytest.raises(UpstreamChatError):
            await _proxy(transport).handle(QUESTION)

    @pytest.mark.asyncio
    async def test_no_retry(self):
        transport = RecordingTransport(httpx.Response(503, text="unavailable"))
        with pytest.raises(UpstreamChatError):
            await _proxy(transport).handle(QUESTION)
        assert len(transport.requests) == 1


class TestSystemPrompt:
    def test_layout(self):
        prompt = build_system_prompt(None, today=date(2024, 6, 5))

        assert prompt.startswith(
            "You are a helpful assistant for a mediation dashboard. "
            "Answer questions based ONLY on the provided context.\n"
            "Current Date: 6/5/2024\n\nAVAILABLE CONTEXT:\n--- START CONTACTS ---"
        )
        assert prompt.endswith("Answer the user's question based ONLY on the provided context above.")

    @pytest.mark.asyncio
    async def test_context_cap_from_settings(self):
        transport = RecordingTransport(_answer("ok"))
        proxy = _proxy(transport, chat_context_max_chars=50)

        await proxy.handle({**QUESTION, "context": {"notes": [{"content": "y" * 400}]}})

        system = transport.payloads[0]["messages"][0]["content"]
        assert "...[truncated" in system
        assert "y" * 400 not in system
