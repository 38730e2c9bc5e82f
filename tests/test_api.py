"""
Tests for the FastAPI endpoints.
"""

from contextlib import asynccontextmanager
import asyncio

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport

from reachflow.main import build_job_store, create_app
from reachflow.queue import InMemoryJobStore, RedisJobStore
from reachflow.storage import Lead, Workflow
from reachflow.storage.models import ExecutionStatus, new_id


async def seed_workflow(storage, node_type: str = "email"):
    """Store a one-node workflow and a lead; return their ids."""
    lead = await storage.save_lead(Lead(id=new_id(), name="Jane Doe", email="jane@acme.test"))
    workflow = await storage.save_workflow(Workflow(id=new_id(), name="Outreach"))
    await storage.add_node(workflow.id, node_type, label="First touch", config={"subject": "Hi"})
    return workflow.id, lead.id


@asynccontextmanager
async def api_client(app, start_scheduler: bool = True):
    """
    Async client against the app.
    
    ASGITransport does not run the lifespan, so the scheduler is started
    here when the test needs jobs to execute.
    """
    scheduler = app.state.scheduler
    if start_scheduler:
        await scheduler.start()
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        await scheduler.close()


async def poll_status(client, execution_id: str, state: str, timeout: float = 2.0):
    async def _poll():
        while True:
            response = await client.get(f"/workflows/executions/{execution_id}/status")
            data = response.json()
            if data.get("state") == state:
                return data
            await asyncio.sleep(0.01)
    return await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def app(storage, dispatcher, generator, settings):
    return create_app(storage=storage, dispatcher=dispatcher, generator=generator, settings=settings)


# ============================================================
# Sync Test Client (for simple tests)
# ============================================================

class TestRootEndpoints:
    """Tests for root endpoints."""
    
    def test_root(self, app):
        """Test root endpoint."""
        with TestClient(app) as client:
            response = client.get("/")
        assert response.status_code == 200
        
        data = response.json()
        assert data["name"] == "ReachFlow"
        assert "version" in data
        assert "execute" in data["endpoints"]
    
    def test_health(self, app):
        """Test health endpoint."""
        with TestClient(app) as client:
            response = client.get("/health")
        assert response.status_code == 200
        
        data = response.json()
        assert data["status"] == "healthy"
        assert data["scheduler_running"] is True
        assert data["executions_count"] == 0
        assert data["available_channels"] == ["email", "sms"]
        assert data["job_store"] == "InMemoryJobStore"
    
    def test_job_store_selection(self, settings):
        """Test that JOB_STORE picks the job store."""
        assert isinstance(build_job_store(settings), InMemoryJobStore)
        
        redis_store = build_job_store(settings.model_copy(update={"JOB_STORE": "redis", "JOB_STORE_PREFIX": "acme:jobs"}))
        assert isinstance(redis_store, RedisJobStore)
        assert redis_store.prefix == "acme:jobs"
        
        with pytest.raises(ValueError, match="Unknown job store"):
            build_job_store(settings.model_copy(update={"JOB_STORE": "sqlite"}))


# ============================================================
# Async Tests
# ============================================================

class TestExecutionEndpoints:
    """Tests for run-control endpoints."""
    
    @pytest.mark.asyncio
    async def test_execute_workflow(self, app, storage, email_adapter):
        """Test starting a run and following it to completion."""
        workflow_id, lead_id = await seed_workflow(storage)
        
        async with api_client(app) as client:
            response = await client.post(f"/workflows/{workflow_id}/execute", json={"lead_id": lead_id})
            assert response.status_code == 200
            data = response.json()
            assert data["workflow_id"] == workflow_id
            assert data["lead_id"] == lead_id
            assert data["status"] == "pending"
            
            status = await poll_status(client, data["id"], "completed")
            assert status["source"] == "queue"
            assert status["attempts_made"] == 1
            
            response = await client.get(f"/workflows/executions/{data['id']}")
            assert response.status_code == 200
            assert response.json()["status"] == "completed"
        
        assert len(email_adapter.sent) == 1
    
    @pytest.mark.asyncio
    async def test_execute_requires_lead(self, app, storage):
        """Test that a run needs a lead."""
        workflow_id, _ = await seed_workflow(storage)
        
        async with api_client(app, start_scheduler=False) as client:
            response = await client.post(f"/workflows/{workflow_id}/execute", json={})
        
        assert response.status_code == 400
        assert response.json()["detail"] == "Lead ID is required"
    
    @pytest.mark.asyncio
    async def test_execute_unknown_workflow(self, app):
        """Test starting a run of a missing workflow."""
        async with api_client(app, start_scheduler=False) as client:
            response = await client.post("/workflows/missing/execute", json={"lead_id": "lead-1"})
        
        assert response.status_code == 404
        assert response.json()["detail"] == "Workflow not found"
    
    @pytest.mark.asyncio
    async def test_pause_and_resume(self, app, storage):
        """Test pausing a queued run and resuming it."""
        workflow_id, lead_id = await seed_workflow(storage, node_type="wait")
        
        async with api_client(app, start_scheduler=False) as client:
            response = await client.post(f"/workflows/{workflow_id}/execute", json={"lead_id": lead_id})
            execution_id = response.json()["id"]
            
            response = await client.post(f"/workflows/executions/{execution_id}/pause")
            assert response.status_code == 200
            assert response.json() == {"success": True, "message": "Workflow paused"}
            
            status = (await client.get(f"/workflows/executions/{execution_id}/status")).json()
            assert status["state"] == "delayed"
            assert (await storage.get_execution(execution_id)).status == ExecutionStatus.PAUSED
            
            await app.state.scheduler.start()
            response = await client.post(f"/workflows/executions/{execution_id}/resume")
            assert response.status_code == 200
            assert response.json()["message"] == "Workflow resumed"
            
            await poll_status(client, execution_id, "completed")
        
        assert (await storage.get_execution(execution_id)).status == ExecutionStatus.COMPLETED
    
    @pytest.mark.asyncio
    async def test_unknown_execution(self, app):
        """Test run-control endpoints with an unknown id."""
        async with api_client(app, start_scheduler=False) as client:
            for action in ("pause", "resume"):
                response = await client.post(f"/workflows/executions/missing/{action}")
                assert response.status_code == 404
                assert response.json()["detail"] == "Workflow execution not found"
            
            assert (await client.get("/workflows/executions/missing/status")).status_code == 404
            assert (await client.get("/workflows/executions/missing")).status_code == 404
    
    @pytest.mark.asyncio
    async def test_status_falls_back_to_storage(self, app, storage):
        """Test the status of a run the queue no longer knows."""
        workflow_id, lead_id = await seed_workflow(storage)
        execution = await storage.create_execution(workflow_id, lead_id)
        
        async with api_client(app, start_scheduler=False) as client:
            response = await client.get(f"/workflows/executions/{execution.id}/status")
        
        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "storage"
        assert data["status"] == "pending"
        assert data["state"] is None
    
    @pytest.mark.asyncio
    async def test_list_executions(self, app, storage):
        """Test the run history of a workflow."""
        workflow_id, lead_id = await seed_workflow(storage)
        other_id, _ = await seed_workflow(storage)
        await storage.create_execution(workflow_id, lead_id)
        await storage.create_execution(workflow_id, lead_id)
        await storage.create_execution(other_id, lead_id)
        
        async with api_client(app, start_scheduler=False) as client:
            response = await client.get(f"/workflows/{workflow_id}/executions")
        
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert {e["workflow_id"] for e in data["executions"]} == {workflow_id}
