"""Tests for health check endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from storefront.infrastructure.config import settings
from storefront.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)


def test_health_check(client: TestClient) -> None:
    """Test health endpoint returns healthy status."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "storefront-api"
    assert "version" in data


def test_readiness_check(client: TestClient) -> None:
    """Test readiness endpoint returns ready status."""
    response = client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["database"] == "skipped"


def test_readiness_reports_unreachable_database(client: TestClient) -> None:
    """Readiness fails when the database probe fails."""
    with (
        patch.object(settings, "database_check_enabled", True),
        patch("storefront.api.health.ping_database", AsyncMock(return_value=False)),
    ):
        response = client.get("/ready")
    assert response.status_code == 503
    assert response.json()["database"] == "unavailable"
