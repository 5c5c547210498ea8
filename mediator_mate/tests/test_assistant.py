"""
Assistant Session Tests
=======================
"""

import json
import os
from pathlib import Path

import httpx
import pytest

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from mediator_mate.assistant import AssistantSession, CONTEXT_UNAVAILABLE
from mediator_mate.chat_proxy import ChatProxy
from mediator_mate.config import Settings
from mediator_mate.errors import StorageError
from mediator_mate.llm.completion_client import CompletionClient
from mediator_mate.notices import NoticeLevel, NoticeLog
from mediator_mate.services import EntityServices
from mediator_mate.store import RecordStore


@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from mediator_mate.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "assistant.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


@pytest.fixture
def services(sqlalchemy_db):
    services = EntityServices(RecordStore())
    services.notes.add({"caseFileNumber": "CF-000123", "content": "Second session booked for Friday."})
    return services


def _session(services, handler, api_key="sk-test"):
    settings = Settings(openai_api_key=api_key, _env_file=None)
    client = CompletionClient(api_key=api_key, model=settings.chat_model, transport=httpx.MockTransport(handler))
    notices = NoticeLog()
    return AssistantSession(services, ChatProxy(settings, client), notices), notices


class TestAssistantSession:
    @pytest.mark.asyncio
    async def test_reply_uses_stored_context(self, services):
        sent = []

        def handler(request):
            sent.append(json.loads(request.content))
            return httpx.Response(200, json={"choices": [{"message": {"content": "On Friday."}}]})

        session, notices = _session(services, handler)
        reply = await session.send("When is the next session?")

        assert reply.content == "On Friday."
        assert [m.role for m in session.messages] == ["user", "assistant"]
        assert "Second session booked for Friday." in sent[0]["messages"][0]["content"]
        assert notices.notices == []

    @pytest.mark.asyncio
    async def test_blank_input_ignored(self, services):
        def handler(request):
            raise AssertionError("no request expected")

        session, _ = _session(services, handler)
        assert await session.send("   ") is None
        assert session.messages == []

    @pytest.mark.asyncio
    async def test_upstream_error_becomes_assistant_message(self, services):
        def handler(request):
            return httpx.Response(500, text="boom")

        session, _ = _session(services, handler)
        reply = await session.send("Hello?")

        assert reply.role == "assistant"
        assert reply.content.startswith("Error: ")
        assert session.is_loading is False

    @pytest.mark.asyncio
    async def test_missing_key_becomes_assistant_message(self, services):
        def handler(request):
            raise AssertionError("no request expected")

        session, _ = _session(services, handler, api_key=None)
        reply = await session.send("Hello?")
        assert reply.content == "Error: OpenAI API key not configured"

    @pytest.mark.asyncio
    async def test_context_failure_notifies_and_still_answers(self, services, monkeypatch):
        def fail():
            raise StorageError("contacts", "read")

        monkeypatch.setattr(services.contacts, "get_all", fail)

        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": {"content": "Partial answer."}}]})

        session, notices = _session(services, handler)
        reply = await session.send("Who are my clients?")

        assert reply.content == "Partial answer."
        assert notices.notices[-1].level == NoticeLevel.ERROR
        assert notices.notices[-1].title == CONTEXT_UNAVAILABLE
