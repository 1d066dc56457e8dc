"""Settlement Data Access Layer -- MongoDB operations for the settlements collection.

Settlement parties and amounts are written once; the only updates this
DAL performs touch ``is_paid`` and ``paid_at``.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from pokertracker.models.settlement import Settlement

logger = logging.getLogger("pokertracker.dal.settlements")

COLLECTION = "settlements"

# A toggle re-reads and retries when another writer flipped the flag first.
_MAX_TOGGLE_ATTEMPTS = 5


class SettlementDAL:
    """Data access layer for the settlements collection."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[COLLECTION]

    @staticmethod
    def _to_model(doc: dict) -> Settlement:
        doc["_id"] = str(doc["_id"])
        return Settlement(**doc)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_many(self, settlements: list[Settlement]) -> list[Settlement]:
        """Insert a batch of settlements and populate their ids.

        Args:
            settlements: Settlement models without ids.

        Returns:
            The same models with ``id`` set.
        """
        if not settlements:
            return []
        docs = [s.to_mongo_dict() for s in settlements]
        result = await self._collection.insert_many(docs)
        for settlement, inserted_id in zip(settlements, result.inserted_ids):
            settlement.id = str(inserted_id)
        logger.info(
            "Created %d settlements for game %s",
            len(settlements),
            settlements[0].game_id,
        )
        return settlements

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_id(self, settlement_id: str) -> Optional[Settlement]:
        if not ObjectId.is_valid(settlement_id):
            return None
        doc = await self._collection.find_one({"_id": ObjectId(settlement_id)})
        if doc is None:
            return None
        return self._to_model(doc)

    async def list_by_game(self, game_id: str) -> list[Settlement]:
        """All settlements of one game in creation order."""
        cursor = self._collection.find({"game_id": game_id}).sort(
            [("created_at", 1), ("_id", 1)]
        )
        settlements: list[Settlement] = []
        async for doc in cursor:
            settlements.append(self._to_model(doc))
        return settlements

    async def count_by_game(self, game_id: str) -> int:
        return await self._collection.count_documents({"game_id": game_id})

    async def list_by_player(
        self,
        player_id: str,
        unpaid_only: bool = False,
    ) -> list[Settlement]:
        """Settlements where the player is either debtor or creditor."""
        query: dict[str, Any] = {
            "$or": [
                {"from_player_id": player_id},
                {"to_player_id": player_id},
            ]
        }
        if unpaid_only:
            query["is_paid"] = False
        cursor = self._collection.find(query).sort("created_at", -1)
        settlements: list[Settlement] = []
        async for doc in cursor:
            settlements.append(self._to_model(doc))
        return settlements

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def mark_paid(self, settlement_id: str) -> Optional[Settlement]:
        """One-way transition to paid. Already-paid settlements keep paid_at.

        Returns:
            The settlement after the update, or None if it does not exist.
        """
        if not ObjectId.is_valid(settlement_id):
            return None
        await self._collection.update_one(
            {"_id": ObjectId(settlement_id), "is_paid": False},
            {"$set": {"is_paid": True, "paid_at": datetime.now(timezone.utc)}},
        )
        return await self.get_by_id(settlement_id)

    async def toggle_paid(self, settlement_id: str) -> Optional[Settlement]:
        """Flip ``is_paid`` and set or clear ``paid_at`` accordingly.

        The flip is conditional on the value just read, so two concurrent
        toggles land as two flips rather than one lost update.

        Returns:
            The settlement after the flip, or None if it does not exist.
        """
        for _ in range(_MAX_TOGGLE_ATTEMPTS):
            current = await self.get_by_id(settlement_id)
            if current is None:
                return None
            new_paid = not current.is_paid
            result = await self._collection.update_one(
                {"_id": ObjectId(settlement_id), "is_paid": current.is_paid},
                {
                    "$set": {
                        "is_paid": new_paid,
                        "paid_at": datetime.now(timezone.utc) if new_paid else None,
                    }
                },
            )
            if result.modified_count > 0:
                logger.info(
                    "Settlement %s marked %s",
                    settlement_id,
                    "paid" if new_paid else "unpaid",
                )
                return await self.get_by_id(settlement_id)
        logger.warning("Gave up toggling settlement %s after contention", settlement_id)
        return await self.get_by_id(settlement_id)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_by_game(self, game_id: str) -> int:
        """Delete every settlement of a game (rollback of a failed batch)."""
        result = await self._collection.delete_many({"game_id": game_id})
        if result.deleted_count > 0:
            logger.info(
                "Deleted %d settlements for game %s", result.deleted_count, game_id
            )
        return result.deleted_count
