"""Tests for health endpoints."""

from fastapi.testclient import TestClient


def test_liveness(client: TestClient) -> None:
    """Test the liveness endpoint."""
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_readiness(client: TestClient) -> None:
    """Readiness reports environment and backing stores."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["environment"] == "testing"
    assert data["cassandra"] is False
    assert data["redis"] is False


def test_health(client: TestClient) -> None:
    """Test the general health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app_name"] == "pepyatka"
    assert "version" in data


def test_root(client: TestClient) -> None:
    """Test the root endpoint."""
    data = client.get("/").json()
    assert data["message"] == "pepyatka API"


def test_request_id_echoed(client: TestClient) -> None:
    """The middleware returns the caller's request id."""
    response = client.get("/health/live", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_error_body(client: TestClient) -> None:
    """Errors use the standard JSON body."""
    response = client.get("/v1/users/nobody", headers={"X-Request-ID": "req-1"})
    assert response.status_code == 404
    assert response.json() == {
        "error": True,
        "message": "User not found",
        "status_code": 404,
        "request_id": "req-1",
    }
