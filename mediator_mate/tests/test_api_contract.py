"""
API Contract Tests
==================

HTTP status codes and `{error}` bodies for the chat endpoints, plus the
record, form, task and backup routes over a temporary SQLite database.
"""

import json
import os
from pathlib import Path

import httpx
import pytest

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from mediator_mate.api import app, get_chat_proxy, get_services
from mediator_mate.chat_proxy import ChatProxy
from mediator_mate.config import Settings
from mediator_mate.errors import StorageError
from mediator_mate.llm.completion_client import CompletionClient
from mediator_mate.services import EntityServices
from mediator_mate.store import RecordStore


@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from mediator_mate.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "api.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


class Upstream:
    """Fake completion API: records requests, answers with `content`"""

    def __init__(self, content="It is open.", status_code=200):
        self.content = content
        self.status_code = status_code
        self.requests = []

    def __call__(self, request):
        self.requests.append(json.loads(request.content))
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="upstream says no")
        return httpx.Response(200, json={"choices": [{"message": {"content": self.content}}]})


@pytest.fixture
def services(sqlalchemy_db):
    return EntityServices(RecordStore())


@pytest.fixture
def upstream():
    return Upstream()


def _install(services, upstream, api_key="sk-test"):
    settings = Settings(openai_api_key=api_key, _env_file=None)
    client = CompletionClient(api_key=api_key, model=settings.chat_model, transport=httpx.MockTransport(upstream))
    proxy = ChatProxy(settings, client)
    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_chat_proxy] = lambda: proxy


@pytest.fixture
def client(services, upstream):
    _install(services, upstream)
    yield TestClient(app)
    app.dependency_overrides.clear()


CHAT_BODY = {
    "messages": [{"role": "user", "content": "What is the status of CF-000123?"}],
    "context": {"caseFiles": [{"caseFileNumber": "CF-000123", "status": "Open"}]},
}


# =============================================================================
# Chat
# =============================================================================

class TestChatEndpoint:
    def test_success(self, client, upstream):
        response = client.post("/api/chat", json=CHAT_BODY)

        assert response.status_code == 200
        assert response.json() == {"content": "It is open."}
        system = upstream.requests[0]["messages"][0]["content"]
        assert "CF-000123" in system and "Open" in system

    @pytest.mark.parametrize("body", [{}, {"messages": []}, {"messages": "hi"}, {"messages": [{"role": "x"}]}])
    def test_malformed_is_400(self, client, upstream, body):
        response = client.post("/api/chat", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing or invalid messages in request body"}
        assert upstream.requests == []

    def test_invalid_json_is_400(self, client):
        response = client.post("/api/chat", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json()["error"]

    def test_missing_key_is_500_without_outbound_call(self, services, upstream):
        _install(services, upstream, api_key=None)
        try:
            response = TestClient(app).post("/api/chat", json=CHAT_BODY)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["error"]
        assert upstream.requests == []

    def test_upstream_failure_is_500(self, services):
        upstream = Upstream(status_code=502)
        _install(services, upstream)
        try:
            response = TestClient(app).post("/api/chat", json=CHAT_BODY)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert "upstream says no" not in response.json()["error"]

    @pytest.mark.asyncio
    async def test_async_client(self, services, upstream):
        _install(services, upstream)
        try:
            async with AsyncClient(
                transport=ASGITransport(app=app),
                base_url="http://test"
            ) as ac:
                response = await ac.post("/api/chat", json=CHAT_BODY)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        assert response.json()["content"] == "It is open."


class TestAssistantEndpoint:
    def test_context_from_store(self, client, services, upstream):
        services.matters.add({"caseFileNumber": "CF-000777", "title": "Brown Employment Dispute", "status": "Pending"})
        services.tasks.add({"title": "Contact witnesses", "caseTitle": "Brown Employment Dispute"})

        response = client.post("/api/assistant", json={"messages": [{"role": "user", "content": "Open tasks?"}]})

        assert response.status_code == 200
        assert response.json() == {"content": "It is open.", "warnings": []}
        assert "Contact witnesses" in upstream.requests[0]["messages"][0]["content"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# =============================================================================
# Records
# =============================================================================

class TestRecordRoutes:
    def test_crud(self, client):
        created = client.post("/api/stores/matters", json={"caseFileNumber": "CF-000123", "title": "Smith"})
        assert created.status_code == 201
        matter_id = created.json()["id"]

        assert client.get(f"/api/stores/matters/{matter_id}").json()["title"] == "Smith"

        patched = client.patch(f"/api/stores/matters/{matter_id}", json={"status": "Closed"})
        assert patched.status_code == 200
        assert patched.json()["status"] == "Closed"

        put = client.put(f"/api/stores/matters/{matter_id}", json={"caseFileNumber": "CF-000123", "title": "Smith v. Johnson"})
        assert put.json()["title"] == "Smith v. Johnson"

        assert client.delete(f"/api/stores/matters/{matter_id}").status_code == 200
        assert client.get(f"/api/stores/matters/{matter_id}").status_code == 404
        assert client.delete(f"/api/stores/matters/{matter_id}").status_code == 404

    def test_index_query(self, client):
        client.post("/api/stores/tasks", json={"title": "A", "status": "Done"})
        client.post("/api/stores/tasks", json={"title": "B", "status": "Todo"})

        response = client.get("/api/stores/tasks", params={"index": "by-status", "value": "Done"})
        assert [t["title"] for t in response.json()] == ["A"]

    def test_compound_index_query(self, client):
        root = client.post("/api/stores/caseFiles", json={"caseId": "m1", "itemType": "folder", "name": "Forms"}).json()
        client.post("/api/stores/caseFiles", json={"caseId": "m1", "parentId": root["id"], "itemType": "file", "name": "a.pdf"})

        roots = client.get("/api/stores/caseFiles", params=[("index", "by-parent"), ("value", "m1"), ("value", "")])
        children = client.get("/api/stores/caseFiles", params=[("index", "by-parent"), ("value", "m1"), ("value", root["id"])])

        assert [r["name"] for r in roots.json()] == ["Forms"]
        assert [c["name"] for c in children.json()] == ["a.pdf"]

    def test_compound_index_needs_every_part(self, client):
        client.post("/api/stores/caseFiles", json={"caseId": "c", "parentId": "1", "itemType": "file", "name": "x"})

        response = client.get("/api/stores/caseFiles", params={"index": "by-parent", "value": "c1"})
        assert response.status_code == 400

    def test_invalid_date_lookup_is_422(self, client):
        response = client.get("/api/stores/tasks", params={"index": "by-dueDate", "value": "tomorrow"})

        assert response.status_code == 422
        assert "by-dueDate" in response.json()["fieldErrors"]

    def test_errors(self, client):
        assert client.get("/api/stores/invoices").status_code == 404
        assert client.get("/api/stores/tasks", params={"index": "by-colour", "value": "x"}).status_code == 400
        invalid = client.post("/api/stores/tasks", json={"title": "x", "status": "Completed"})
        assert invalid.status_code == 422
        assert "status" in invalid.json()["fieldErrors"]

        client.post("/api/stores/tasks", json={"id": "dup", "title": "x"})
        assert client.post("/api/stores/tasks", json={"id": "dup", "title": "y"}).status_code == 409

    def test_storage_failure_is_503(self, client, services, monkeypatch):
        def fail(store):
            raise StorageError(store, "read")

        monkeypatch.setattr(services.store, "get_all", fail)
        response = client.get("/api/stores/notes")

        assert response.status_code == 503
        assert response.json() == {"error": "Storage unavailable: could not read notes"}


# =============================================================================
# Forms and tasks
# =============================================================================

class TestFormRoutes:
    def test_matter_form(self, client, services):
        response = client.post("/api/forms/matter", json={
            "title": "Smith v. Johnson", "type": "Divorce Mediation", "clientName": "Anna Smith",
            "caseFileNumber": "CF-000123", "caseFileName": "Smith Johnson",
        })

        assert response.status_code == 201
        assert response.json()["record"]["caseFileNumber"] == "CF-000123"
        assert response.json()["notices"][0]["level"] == "success"
        assert len(services.matters.get_all()) == 1

    def test_invalid_case_file_number(self, client, services):
        response = client.post("/api/forms/matter", json={
            "title": "Smith v. Johnson", "type": "Divorce Mediation", "clientName": "Anna Smith",
            "caseFileNumber": "CF-123", "caseFileName": "Smith Johnson",
        })

        assert response.status_code == 422
        assert "caseFileNumber" in response.json()["fieldErrors"]
        assert services.matters.get_all() == []

    def test_unknown_form(self, client):
        assert client.post("/api/forms/invoice", json={}).status_code == 404


class TestTaskRoutes:
    def _seed(self, services):
        for i in range(4):
            services.tasks.add({"id": f"t{i}", "title": f"Task number {i}"})

    def test_toggle(self, client, services):
        self._seed(services)
        response = client.post("/api/tasks/t1/toggle")

        assert response.status_code == 200
        assert response.json()["task"]["status"] == "Done"
        assert services.tasks.get_by_id("t1").status == "Done"
        assert client.post("/api/tasks/missing/toggle").status_code == 404

    def test_bulk_delete(self, client, services):
        self._seed(services)
        response = client.post("/api/tasks/bulk-delete", json={"ids": ["t0", "t2"]})

        assert response.status_code == 200
        assert response.json()["deleted"] == 2
        assert sorted(t.id for t in services.tasks.get_all()) == ["t1", "t3"]

    def test_download(self, client, services):
        self._seed(services)
        response = client.get("/api/tasks/t3/download")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert 'filename="Task_number_3_task.json"' in response.headers["content-disposition"]
        assert response.json()["title"] == "Task number 3"


class TestBackupRoutes:
    def test_export_then_import(self, client, services):
        services.contacts.add({"id": "c1", "name": "Anna", "email": "anna@example.com"})
        exported = client.get("/api/export").json()

        services.contacts.delete("c1")
        response = client.post("/api/import", json=exported)

        assert response.status_code == 200
        assert response.json()["imported"]["contacts"] == 1
        assert services.contacts.get_by_id("c1").name == "Anna"
