"""MongoDB database connection management using Motor async driver.

Includes connection lifecycle and index management for all collections.
"""

import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from pokertracker.config import settings

logger = logging.getLogger("pokertracker.dal.database")

# Global database client and database instances
_client: AsyncIOMotorClient | None = None
_database: AsyncIOMotorDatabase | None = None


async def connect_to_mongo() -> None:
    """Establish connection to MongoDB.

    Called during FastAPI application startup.
    """
    global _client, _database

    _client = AsyncIOMotorClient(
        settings.MONGO_URL,
        serverSelectionTimeoutMS=5000,
        tz_aware=True,
    )
    _database = _client[settings.DATABASE_NAME]

    # Verify connection by pinging the database
    await _client.admin.command("ping")
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)


async def close_mongo_connection() -> None:
    """Close MongoDB connection.

    Called during FastAPI application shutdown.
    """
    global _client, _database

    if _client:
        _client.close()
        logger.info("Closed MongoDB connection")
    _client = None
    _database = None


def get_database() -> AsyncIOMotorDatabase:
    """Get the MongoDB database instance.

    Returns:
        AsyncIOMotorDatabase: The database instance.

    Raises:
        RuntimeError: If database is not initialized.
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() first."
        )
    return _database


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create all indexes used by the DAL classes.

    Idempotent -- MongoDB silently ignores indexes that already exist.

    Args:
        db: The Motor database instance to create indexes on.
    """
    logger.info("Ensuring indexes for all collections...")

    # --- games indexes ---
    games = db.games

    # Group history listing.
    await games.create_index(
        [("group_id", ASCENDING), ("date", DESCENDING)],
        name="idx_group_date",
    )

    # Balance aggregation: completed games a player took part in.
    await games.create_index(
        [("players.player_id", ASCENDING), ("is_completed", ASCENDING)],
        name="idx_player_completed",
    )

    # Recovery task: completed games still waiting for settlements.
    await games.create_index(
        [("settlement_status", ASCENDING)],
        partialFilterExpression={"is_completed": True},
        name="idx_settlement_status_completed",
    )

    # --- settlements indexes ---
    settlements = db.settlements

    # One debt per ordered pair per game; makes double generation fail loudly.
    await settlements.create_index(
        [("game_id", ASCENDING), ("from_player_id", ASCENDING), ("to_player_id", ASCENDING)],
        unique=True,
        name="uq_game_from_to",
    )
    await settlements.create_index(
        [("from_player_id", ASCENDING), ("is_paid", ASCENDING)],
        name="idx_from_paid",
    )
    await settlements.create_index(
        [("to_player_id", ASCENDING), ("is_paid", ASCENDING)],
        name="idx_to_paid",
    )

    # --- player_payments indexes ---
    await db.player_payments.create_index(
        [("game_id", ASCENDING), ("player_id", ASCENDING)],
        unique=True,
        name="uq_game_player_payment",
    )

    # --- game_player_stats indexes ---
    await db.game_player_stats.create_index(
        [("game_id", ASCENDING), ("player_id", ASCENDING)],
        unique=True,
        name="uq_game_player_stats",
    )

    logger.info("All indexes ensured successfully.")
