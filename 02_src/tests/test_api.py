"""Tests for the HTTP API."""

import httpx
import pytest
import pytest_asyncio

from orchestration.api import create_fastapi_app
from orchestration.app import Application
from orchestration.models import Workflow, WorkflowStep


@pytest_asyncio.fixture
async def application(config_store, registry):
    """Started Application with the stub roster."""
    app = Application(config_store, db_path=":memory:", registry=registry)
    await app.start()
    yield app
    await app.stop()


@pytest_asyncio.fixture
async def client(application):
    """HTTP client bound to the FastAPI app (lifespan is driven by the fixture above)."""
    fastapi_app = create_fastapi_app(application)
    transport = httpx.ASGITransport(app=fastapi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestAgentsRoutes:
    """Tests for /api/agents."""

    @pytest.mark.asyncio
    async def test_list_agents(self, client):
        response = await client.get("/api/agents")

        assert response.status_code == 200
        agents = {a["id"]: a for a in response.json()}
        assert set(agents) == {"A", "B"}
        assert agents["B"]["capabilities"] == ["echo", "review"]
        assert agents["A"]["status"]["healthy"] is True

    @pytest.mark.asyncio
    async def test_status_unknown_agent(self, client):
        response = await client.get("/api/agents/nobody/status")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_execute(self, client):
        response = await client.post(
            "/api/agents/A/execute",
            json={"operation": "echo", "data": {"x": 1}, "correlation_id": "http-1"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["data"] == {"x": 1}
        assert body["correlation_id"] == "http-1"

    @pytest.mark.asyncio
    async def test_execute_error_response(self, client):
        response = await client.post("/api/agents/A/execute", json={"operation": "fail"})

        assert response.status_code == 200
        assert response.json()["status"] == "error"

    @pytest.mark.asyncio
    async def test_execute_unknown_agent(self, client):
        response = await client.post("/api/agents/nobody/execute", json={"operation": "echo"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_execute_requires_operation(self, client):
        response = await client.post("/api/agents/A/execute", json={"operation": ""})
        assert response.status_code == 422


class TestObservabilityRoutes:
    """Tests for /api/events and /api/messages."""

    @pytest.mark.asyncio
    async def test_events(self, client):
        response = await client.get("/api/events", params={"type": "info", "source": "agent-manager"})

        assert response.status_code == 200
        messages = [e["message"] for e in response.json()]
        assert "Agent Manager initialized" in messages

    @pytest.mark.asyncio
    async def test_invalid_event_type(self, client):
        response = await client.get("/api/events", params={"type": "loud"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_messages_for_agent(self, client):
        await client.post("/api/agents/A/execute", json={"operation": "echo"})

        response = await client.get("/api/messages", params={"agent_id": "A", "limit": 10})

        assert response.status_code == 200
        types = [m["type"] for m in response.json()]
        assert "query" in types


class TestControlRoutes:
    """Tests for /api/control."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        await client.post("/api/agents/A/execute", json={"operation": "echo"})

        response = await client.post("/api/control/health-check")

        assert response.status_code == 200
        statuses = {s["id"]: s for s in response.json()["agents"]}
        assert statuses["A"]["metrics"]["requests_processed"] == 1

    @pytest.mark.asyncio
    async def test_performance_check(self, client):
        response = await client.post("/api/control/performance-check")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_health_report(self, client):
        response = await client.get("/api/control/health")

        assert response.status_code == 200
        body = response.json()
        assert body["system_status"] == "healthy"
        assert {a["id"] for a in body["agents"]} == {"A", "B"}

    @pytest.mark.asyncio
    async def test_reset(self, client, application):
        response = await client.post("/api/control/reset")

        assert response.status_code == 200
        assert {a.id for a in application.broker.get_all_agents()} == {"A", "B"}


class TestWorkflowRoutes:
    """Tests for /api/workflows."""

    @pytest.fixture
    def workflow(self, application):
        workflow = Workflow(
            id="greet",
            name="Greet",
            steps=(
                WorkflowStep(
                    id="echo",
                    agent_id="A",
                    operation="echo",
                    output_mapping={"output.greeting": "data.greeting"},
                ),
            ),
        )
        application.broker.register_workflow(workflow)
        return workflow

    @pytest.mark.asyncio
    async def test_list_workflows(self, client, workflow):
        response = await client.get("/api/workflows")

        assert response.status_code == 200
        assert response.json() == [
            {"id": "greet", "name": "Greet", "description": "", "enabled": True, "steps": ["echo"]}
        ]

    @pytest.mark.asyncio
    async def test_execute_and_fetch(self, client, workflow):
        response = await client.post("/api/workflows/greet/execute", json={"input": {"greeting": "hello"}})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["output"] == {"greeting": "hello"}

        execution = await client.get(f"/api/workflows/executions/{body['execution_id']}")
        assert execution.status_code == 200
        assert execution.json()["workflow_id"] == "greet"

        history = await client.get("/api/workflows/executions", params={"limit": 5})
        assert [r["execution_id"] for r in history.json()] == [body["execution_id"]]

    @pytest.mark.asyncio
    async def test_unknown_workflow(self, client):
        response = await client.post("/api/workflows/nothing/execute", json={})
        assert response.status_code == 404

        response = await client.get("/api/workflows/executions/wf_missing")
        assert response.status_code == 404
