"""Analytics extension records -- the game_player_stats collection."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from pokertracker.models.stats import GamePlayerStats

logger = logging.getLogger("pokertracker.dal.stats")

COLLECTION = "game_player_stats"


class StatsDAL:
    """Data access layer for free-form per-player game statistics."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[COLLECTION]

    async def get(self, game_id: str, player_id: str) -> Optional[GamePlayerStats]:
        doc = await self._collection.find_one(
            {"game_id": game_id, "player_id": player_id}
        )
        if doc is None:
            return None
        doc["_id"] = str(doc["_id"])
        return GamePlayerStats(**doc)

    async def upsert(
        self, game_id: str, player_id: str, fields: dict[str, Any]
    ) -> GamePlayerStats:
        """Merge ``fields`` into the record, creating it if needed."""
        update: dict[str, Any] = {f"data.{k}": v for k, v in fields.items()}
        update["updated_at"] = datetime.now(timezone.utc)
        await self._collection.update_one(
            {"game_id": game_id, "player_id": player_id},
            {"$set": update},
            upsert=True,
        )
        stats = await self.get(game_id, player_id)
        logger.info(
            "Updated stats game=%s player=%s keys=%s",
            game_id,
            player_id,
            sorted(fields),
        )
        return stats
