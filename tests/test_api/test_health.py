"""Tests for the health endpoint."""

from unittest.mock import AsyncMock, patch

from tests.test_api.conftest import make_client, make_service


class TestHealth:
    def test_healthy_memory_backend(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["storage_backend"] == "memory"
        assert data["components"]["feed_store"]["status"] == "healthy"
        assert data["components"]["engagement_store"]["status"] == "healthy"
        assert "redis" not in data["components"]
        assert data["connectors"] == {"twitter_connector": True, "reddit_connector": True}

    def test_no_user_identity_needed(self, client):
        assert client.get("/health").status_code == 200

    def test_unreachable_connectors_degrade(self):
        service = make_service()
        for connector in service.connectors:
            connector.health_check = AsyncMock(return_value=False)

        with make_client(service) as client:
            data = client.get("/health").json()

        assert data["status"] == "degraded"

    def test_store_failure_is_unhealthy(self):
        service = make_service()

        with patch.object(
            type(service.feed_store),
            "health_check",
            AsyncMock(side_effect=Exception("Connection refused")),
        ):
            with make_client(service) as client:
                data = client.get("/health").json()

        assert data["status"] == "unhealthy"
        assert data["components"]["feed_store"]["details"]["error"] == "Connection refused"

    def test_root(self, client):
        assert client.get("/").json()["service"] == "Creator Feed API"
