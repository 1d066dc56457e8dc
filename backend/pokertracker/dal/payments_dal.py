"""PlayerPayment Data Access Layer -- the player_payments collection.

One document per (game_id, player_id), created on the first toggle.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from pokertracker.models.payment import PlayerPayment

logger = logging.getLogger("pokertracker.dal.payments")

COLLECTION = "player_payments"

_MAX_TOGGLE_ATTEMPTS = 5


class PaymentDAL:
    """Data access layer for the player_payments collection."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[COLLECTION]

    @staticmethod
    def _to_model(doc: dict) -> PlayerPayment:
        doc["_id"] = str(doc["_id"])
        return PlayerPayment(**doc)

    async def get(self, game_id: str, player_id: str) -> Optional[PlayerPayment]:
        doc = await self._collection.find_one(
            {"game_id": game_id, "player_id": player_id}
        )
        if doc is None:
            return None
        return self._to_model(doc)

    async def list_by_game(self, game_id: str) -> list[PlayerPayment]:
        payments: list[PlayerPayment] = []
        async for doc in self._collection.find({"game_id": game_id}):
            payments.append(self._to_model(doc))
        return payments

    async def toggle(self, game_id: str, player_id: str) -> PlayerPayment:
        """Create the record as paid, or flip an existing one.

        Returns:
            The record after the toggle.
        """
        for _ in range(_MAX_TOGGLE_ATTEMPTS):
            now = datetime.now(timezone.utc)
            current = await self.get(game_id, player_id)
            if current is None:
                payment = PlayerPayment(
                    game_id=game_id, player_id=player_id, is_paid=True, paid_at=now
                )
                doc = payment.model_dump(by_alias=True, mode="python")
                doc.pop("_id", None)
                try:
                    result = await self._collection.insert_one(doc)
                except DuplicateKeyError:
                    # Another toggle created it first; flip that one instead.
                    continue
                payment.id = str(result.inserted_id)
                logger.info(
                    "Created payment record game=%s player=%s (paid)",
                    game_id,
                    player_id,
                )
                return payment

            new_paid = not current.is_paid
            result = await self._collection.update_one(
                {"game_id": game_id, "player_id": player_id, "is_paid": current.is_paid},
                {"$set": {"is_paid": new_paid, "paid_at": now if new_paid else None}},
            )
            if result.modified_count > 0:
                current.is_paid = new_paid
                current.paid_at = now if new_paid else None
                return current

        logger.warning(
            "Gave up toggling payment game=%s player=%s after contention",
            game_id,
            player_id,
        )
        latest = await self.get(game_id, player_id)
        if latest is None:
            raise RuntimeError("Payment record vanished during toggle")
        return latest
