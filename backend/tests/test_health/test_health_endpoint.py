"""Tests for the health check endpoint."""

import pytest
from unittest.mock import AsyncMock, patch
from pymongo.errors import ServerSelectionTimeoutError

from pokertracker.config import settings


@pytest.mark.asyncio
class TestHealthEndpoint:
    """Test the /health endpoint behavior."""

    async def test_health_endpoint_returns_200_when_db_is_healthy(self, client):
        """Health check returns 200 OK when database is connected."""
        with patch('pokertracker.routes.health.get_database') as mock_get_db:
            mock_db = AsyncMock()
            mock_db.command = AsyncMock(return_value={"ok": 1})
            mock_db.games.count_documents = AsyncMock(return_value=0)
            mock_get_db.return_value = mock_db

            response = await client.get("/health")

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "healthy"
            assert data["version"] == settings.APP_VERSION
            assert data["checks"]["database"] == "ok"

    async def test_health_endpoint_returns_200_when_db_is_down(self, client):
        """Health check returns 200 OK even when database is not initialized."""
        with patch('pokertracker.routes.health.get_database') as mock_get_db:
            mock_get_db.side_effect = RuntimeError("Database not initialized")

            response = await client.get("/health")

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "degraded"
            assert data["checks"]["database"] == "down"

    async def test_health_endpoint_returns_200_when_db_ping_fails(self, client):
        """Health check returns 200 OK when database ping fails."""
        with patch('pokertracker.routes.health.get_database') as mock_get_db:
            mock_db = AsyncMock()
            mock_db.command = AsyncMock(side_effect=ServerSelectionTimeoutError("Connection timeout"))
            mock_get_db.return_value = mock_db

            response = await client.get("/health")

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "degraded"
            assert data["checks"]["database"] == "down"

    async def test_health_endpoint_at_api_prefix(self, client):
        """Health check is also available at /api/health."""
        with patch('pokertracker.routes.health.get_database') as mock_get_db:
            mock_db = AsyncMock()
            mock_db.command = AsyncMock(return_value={"ok": 1})
            mock_db.games.count_documents = AsyncMock(return_value=0)
            mock_get_db.return_value = mock_db

            response = await client.get("/api/health")

            assert response.status_code == 200
            data = response.json()
            assert "status" in data
            assert "version" in data

    async def test_health_reports_settlement_backlog(self, client, mock_db):
        """Completed games still waiting for settlements are counted."""
        await mock_db.games.insert_many([
            {"group_id": "group-1", "is_completed": True, "settlement_status": "PENDING"},
            {"group_id": "group-1", "is_completed": True, "settlement_status": "GENERATED"},
            {"group_id": "group-1", "is_completed": False, "settlement_status": "NONE"},
        ])
        db = AsyncMock()
        db.command = AsyncMock(return_value={"ok": 1})
        db.games = mock_db.games
        with patch('pokertracker.routes.health.get_database', return_value=db):
            response = await client.get("/health")

        data = response.json()
        assert data["checks"]["database"] == "ok"
        assert data["checks"]["pending_settlements"] == 1
