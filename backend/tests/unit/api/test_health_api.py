"""
Unit Tests for health and root endpoints
"""
import pytest

from sandboxforge.modules.generation.session import GenerationSession


@pytest.mark.asyncio
async def test_root(client):
    """Test the root endpoint"""
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["health"] == "/health"


@pytest.mark.asyncio
async def test_liveness(client):
    """Test the plain health check"""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "x-request-id" in response.headers


@pytest.mark.asyncio
async def test_diagnostics(client, controller, prompt):
    """Test credential flags and active session count"""
    controller.register(GenerationSession(prompt=prompt))

    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "sandboxforge-backend"
    assert data["transport"] == "local"
    assert data["credentials"] == {
        "daytona": True,
        "anthropic": True,
        "openai": True,
        "lovable": False,
    }
    assert data["active_sessions"] == 1
    assert "test-daytona-key" not in response.text
