"""
Unit Tests for sandbox management endpoints
"""
import pytest

from sandboxforge.core.exceptions import WorkerSpawnError

from tests.mocks.workers import ScriptedWorker, lines


class TestDeleteSandbox:
    """Tests for POST /api/v1/sandboxes/delete"""

    @pytest.mark.asyncio
    async def test_delete_success(self, client, worker_factory):
        """Test a clean removal exit reports success"""
        worker_factory.worker = ScriptedWorker(stdout=lines("Removing sandbox sb-1", "Done"))

        response = await client.post("/api/v1/sandboxes/delete", json={"sandboxId": "sb-1", "userId": "user-7"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Sandbox deleted successfully",
            "details": {"sandboxId": "sb-1"},
        }
        invocation = worker_factory.invocations[0]
        assert invocation.script.name == "remove-sandbox.ts"
        assert invocation.argv[-1] == "sb-1"
        assert worker_factory.worker.started

    @pytest.mark.asyncio
    async def test_delete_nonzero_exit(self, client, worker_factory):
        """Test a failing removal is a 500"""
        worker_factory.worker = ScriptedWorker(stderr=lines("Error: sandbox not found"), exit_code=1)

        response = await client.post("/api/v1/sandboxes/delete", json={"sandboxId": "sb-1", "userId": "user-7"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to delete sandbox"

    @pytest.mark.asyncio
    async def test_delete_spawn_failure(self, client, worker_factory):
        """Test a removal worker that cannot start is a 500"""
        worker_factory.worker = ScriptedWorker(start_error=WorkerSpawnError("npx not found"))

        response = await client.post("/api/v1/sandboxes/delete", json={"sandboxId": "sb-1", "userId": "user-7"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to delete sandbox"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"userId": "user-7"},
        {"sandboxId": "sb-1"},
        {"sandboxId": "", "userId": "user-7"},
    ])
    async def test_delete_requires_ids(self, client, worker_factory, body):
        """Test both identifiers are required"""
        response = await client.post("/api/v1/sandboxes/delete", json=body)
        assert response.status_code == 422
        assert worker_factory.invocations == []
