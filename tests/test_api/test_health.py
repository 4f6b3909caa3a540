"""
Tests for the health check endpoints.
"""
from fastapi.testclient import TestClient

from textchain.core.config import settings


class TestHealthEndpoint:
    """Test cases for the basic health endpoint."""

    def test_health_check_success(self, client: TestClient, api_prefix: str):
        response = client.get(f"{api_prefix}/health")

        assert response.status_code == 200
        data = response.json()

        assert data["status"] == "healthy"
        assert data["version"] == settings.service_version
        assert data["service_name"] == settings.service_name
        assert "timestamp" in data
        assert isinstance(data["uptime_seconds"], float)
        assert data["uptime_seconds"] >= 0

    def test_health_check_with_correlation_id(
        self, client: TestClient, api_prefix: str, sample_headers: dict
    ):
        """Test health endpoint with correlation ID header."""
        response = client.get(f"{api_prefix}/health", headers=sample_headers)

        assert response.status_code == 200
        assert response.headers["X-Correlation-ID"] == sample_headers["X-Correlation-ID"]

    def test_generated_correlation_id(self, client: TestClient, api_prefix: str):
        response = client.get(f"{api_prefix}/health")
        assert response.headers["X-Correlation-ID"]


class TestDependenciesHealthEndpoint:
    """Test cases for the dependencies health endpoint."""

    def test_dependencies_structure(self, client: TestClient, api_prefix: str):
        response = client.get(f"{api_prefix}/health/dependencies")

        assert response.status_code == 200
        data = response.json()

        assert data["settlement_backend"]["service"] == "Settlement Backend"
        assert data["cashout_service"]["service"] == "Cashout Service"
        assert data["settlement_backend"]["state"] == "closed"
        assert data["storage_backend"] == settings.storage_backend
        assert data["persistence_configured"] == settings.persistence_configured
        assert data["pending_detached_calls"] == 0
        assert data["overall_status"] in ("healthy", "degraded")

    def test_unconfigured_persistence_is_degraded(self, client: TestClient, api_prefix: str, monkeypatch):
        monkeypatch.setattr(settings, "storage_backend", "none")

        data = client.get(f"{api_prefix}/health/dependencies").json()

        assert data["persistence_configured"] is False
        assert data["overall_status"] == "degraded"
        assert data["message"] == "Persistence not configured; account commands reply offline"
