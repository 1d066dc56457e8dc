"""
Pytest configuration and fixtures for PokerTracker tests.

This module provides shared fixtures for testing async FastAPI endpoints
and MongoDB interactions using mongomock-motor (no real MongoDB required).
"""

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from pokertracker.dal.games_dal import GameDAL
from pokertracker.dal.groups_dal import GroupDAL
from pokertracker.dal.payments_dal import PaymentDAL
from pokertracker.dal.settlements_dal import SettlementDAL
from pokertracker.dal.stats_dal import StatsDAL
from pokertracker.models.common import SettlementStrategy
from pokertracker.services.game_service import GameService
from pokertracker.services.settlement_service import SettlementService

GROUP_ID = "group-1"
MEMBERS = ["alice", "bob", "carol", "dave"]


@pytest.fixture
def anyio_backend():
    """Specify anyio backend for async tests."""
    return "asyncio"


@pytest_asyncio.fixture
async def mock_db():
    """In-memory MongoDB mock database for unit tests.

    The database is ephemeral -- it disappears after each test. A single
    group with four members is seeded so membership checks pass.

    Yields:
        An AsyncIOMotorDatabase-compatible mock database instance.
    """
    client = AsyncMongoMockClient()
    db = client["pokertracker_test"]
    await db.groups.insert_one({"_id": GROUP_ID, "name": "Friday Game", "members": MEMBERS})
    yield db
    client.close()


@pytest_asyncio.fixture
async def game_dal(mock_db) -> GameDAL:
    return GameDAL(mock_db)


@pytest_asyncio.fixture
async def settlement_dal(mock_db) -> SettlementDAL:
    return SettlementDAL(mock_db)


@pytest_asyncio.fixture
async def payment_dal(mock_db) -> PaymentDAL:
    return PaymentDAL(mock_db)


@pytest_asyncio.fixture
async def settlement_service(game_dal, settlement_dal) -> SettlementService:
    return SettlementService(
        game_dal, settlement_dal, strategy=SettlementStrategy.PROPORTIONAL
    )


@pytest_asyncio.fixture
async def game_service(mock_db, game_dal, settlement_service) -> GameService:
    return GameService(
        game_dal,
        settlement_service,
        group_dal=GroupDAL(mock_db),
        stats_dal=StatsDAL(mock_db),
    )


@pytest_asyncio.fixture
async def client():
    """Async HTTP client for testing FastAPI endpoints.

    Yields:
        AsyncClient: HTTPX async client with the FastAPI app.
    """
    from httpx import ASGITransport, AsyncClient
    from pokertracker.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
