"""
Health endpoint tests.
"""

import pytest
from fastapi.testclient import TestClient

from clinicrecords.app import app


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    with TestClient(app) as test_client:
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
    assert data["data"]["service"] == "Clinic Records Core"


def test_health_ready_endpoint(client):
    """Test that the /health/ready endpoint checks the document store."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["data"]["ready"] is True
    assert "document_store" in data["data"]["checks"]


def test_root_endpoint(client):
    """Test that the root endpoint returns API information."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "service" in data
    assert "version" in data
    assert "status" in data
    assert data["status"] == "running"
    assert data["endpoints"]["prescriptions"] == "/clinics/{clinic_id}/prescriptions"
