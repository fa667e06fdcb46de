"""Tests for health and root API endpoints."""

import pytest
from httpx import AsyncClient

from app.main import app, prewarm_all_services


class TestHealthEndpoint:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_returns_200(self, client: AsyncClient) -> None:
        """Test health endpoint returns 200 OK."""
        response = await client.get("/health")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_health_returns_service_info(self, client: AsyncClient) -> None:
        """Test health endpoint returns status, name and version."""
        response = await client.get("/health")
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "em-level-service"
        assert data["version"] == "0.1.0"

    @pytest.mark.asyncio
    async def test_health_returns_timestamp(self, client: AsyncClient) -> None:
        """Test health endpoint returns timestamp."""
        response = await client.get("/health")
        data = response.json()
        assert "timestamp" in data
        # Should be ISO format
        assert "T" in data["timestamp"]

    @pytest.mark.asyncio
    async def test_health_is_public(self, client: AsyncClient, monkeypatch) -> None:
        """Test health does not require an API key."""
        from app.core.config import settings

        monkeypatch.setattr(settings, "auth_enabled", True)
        response = await client.get("/health")
        assert response.status_code == 200


class TestReadyEndpoint:
    """Test readiness endpoint."""

    @pytest.mark.asyncio
    async def test_ready_reports_ai_availability(self, client: AsyncClient, monkeypatch) -> None:
        """Test readiness reports whether AI inference is configured."""
        from app.core.config import settings

        monkeypatch.setattr(settings, "anthropic_api_key", None)
        response = await client.get("/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["ai_inference_available"] is False


class TestRootEndpoint:
    """Test root endpoint."""

    @pytest.mark.asyncio
    async def test_root_returns_links(self, client: AsyncClient) -> None:
        """Test root endpoint returns service info and links."""
        response = await client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert "E/M" in data["service"]
        assert data["docs"] == "/docs"
        assert data["health"] == "/health"


class TestPrewarm:
    """Test service pre-warming."""

    def test_prewarm_loads_services(self) -> None:
        """Test both services are pre-warmed."""
        stats = prewarm_all_services()
        assert stats["services_loaded"] == 2
        assert stats["services"]["em_classifier"]["total_levels"] == 5
        assert "em_inference" in stats["services"]


class TestAPIMetadata:
    """Test API metadata and configuration."""

    def test_app_title(self) -> None:
        """Test app has correct title."""
        assert app.title == "E/M Level Service"

    def test_app_version(self) -> None:
        """Test app has correct version."""
        assert app.version == "0.1.0"

    def test_em_routes_registered(self) -> None:
        """Test E/M routes are mounted."""
        paths = app.openapi()["paths"]
        assert "/em/calculate" in paths
        assert "/em/levels/{code}" in paths
