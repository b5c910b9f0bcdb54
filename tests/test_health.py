"""
Health endpoint tests.
"""

import pytest
from fastapi.testclient import TestClient

from teleconsult.app import create_app


@pytest.fixture
def client(settings, container):
    """Create a test client for the FastAPI app."""
    with TestClient(create_app(settings, container=container)) as test_client:
        yield test_client


def test_health_endpoint(client):
    """Test that the /health endpoint returns 200 OK."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert "data" in data
    assert data["data"]["status"] == "healthy"
    assert "timestamp" in data["data"]
    assert "version" in data["data"]
    assert data["data"]["service"] == "Teleconsult"


def test_health_ready_endpoint(client):
    """Test that the /health/ready endpoint reports the storage backend."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "ready"
    assert data["checks"]["services"] == "ok"
    assert data["checks"]["database"] == "memory"
    assert data["checks"]["notifications"] == "log"


def test_health_live_endpoint(client):
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "alive"


def test_health_endpoints_need_no_identity(client):
    for path in ("/health", "/health/ready", "/health/live", "/"):
        assert client.get(path).status_code == 200


def test_root_endpoint(client):
    """Test that the root endpoint returns API information."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "service" in data
    assert "version" in data
    assert "status" in data
    assert data["status"] == "running"
    assert data["environment"] == "testing"
    assert data["endpoints"]["create_request"] == "POST /requests"
