"""Game Data Access Layer -- MongoDB operations for the games collection.

Game documents embed their GamePlayer list. Mutations go through
:meth:`GameDAL.save_if_version`, a compare-and-set on the ``version``
counter, so concurrent writers to the same game cannot both win.
All ObjectId handling is transparent: callers pass/receive strings.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from pokertracker.models.common import SettlementStatus
from pokertracker.models.game import Game

logger = logging.getLogger("pokertracker.dal.games")

COLLECTION = "games"

# Fields rewritten by a versioned save.
_MUTABLE_FIELDS = (
    "stakes",
    "default_buy_in",
    "bank_person_id",
    "is_completed",
    "start_time",
    "end_time",
    "duration",
    "settlement_status",
    "updated_at",
)


def _claimable_filter(now: float) -> dict[str, Any]:
    """Settlement states a new writer may take over at epoch time ``now``."""
    return {
        "$or": [
            {
                "settlement_status": {
                    "$in": [str(SettlementStatus.NONE), str(SettlementStatus.PENDING)]
                }
            },
            {
                "settlement_status": str(SettlementStatus.GENERATING),
                "settlement_lease_until": {"$lt": now},
            },
        ]
    }


class GameDAL:
    """Data access layer for the games collection."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[COLLECTION]

    @staticmethod
    def _to_model(doc: dict) -> Game:
        doc["_id"] = str(doc["_id"])
        return Game(**doc)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, game: Game) -> Game:
        """Insert a new game document and return it with its generated id."""
        doc = game.to_mongo_dict()
        result = await self._collection.insert_one(doc)
        game.id = str(result.inserted_id)
        logger.info("Created game %s in group %s", game.id, game.group_id)
        return game

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_id(self, game_id: str) -> Optional[Game]:
        """Find a game by its MongoDB ``_id``.

        Returns:
            A Game instance, or None if not found or the id is malformed.
        """
        if not ObjectId.is_valid(game_id):
            return None
        doc = await self._collection.find_one({"_id": ObjectId(game_id)})
        if doc is None:
            return None
        return self._to_model(doc)

    async def list_by_group(
        self,
        group_id: str,
        completed: Optional[bool] = None,
        limit: int = 50,
        skip: int = 0,
    ) -> list[Game]:
        """List a group's games, newest first.

        Args:
            group_id: The owning group.
            completed: Filter on ``is_completed`` when not None.
            limit: Maximum number of results (default 50).
            skip: Number of documents to skip (for pagination).
        """
        query: dict[str, Any] = {"group_id": group_id}
        if completed is not None:
            query["is_completed"] = completed
        cursor = (
            self._collection.find(query)
            .sort("date", -1)
            .skip(skip)
            .limit(limit)
        )
        games: list[Game] = []
        async for doc in cursor:
            games.append(self._to_model(doc))
        return games

    async def list_completed_for_player(
        self,
        player_id: str,
        group_id: Optional[str] = None,
    ) -> list[Game]:
        """All completed games in which ``player_id`` has a GamePlayer entry.

        Uses the ``idx_player_completed`` index.
        """
        query: dict[str, Any] = {
            "is_completed": True,
            "players.player_id": player_id,
        }
        if group_id is not None:
            query["group_id"] = group_id
        games: list[Game] = []
        async for doc in self._collection.find(query):
            games.append(self._to_model(doc))
        return games

    async def find_pending_settlements(self, limit: int = 100) -> list[Game]:
        """Completed games whose settlements still need writing.

        Covers PENDING games and GENERATING games whose claim lease has run
        out, i.e. a writer that crashed or lost the database mid-batch.
        """
        cursor = self._collection.find(
            {"is_completed": True, **_claimable_filter(time.time())}
        ).limit(limit)
        games: list[Game] = []
        async for doc in cursor:
            games.append(self._to_model(doc))
        return games

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def save_if_version(self, game: Game) -> bool:
        """Persist ``game`` only if nobody saved it since it was read.

        On success the in-memory ``game.version`` is advanced to match the
        stored document.

        Returns:
            True if the write won, False on a version conflict.
        """
        if game.id is None or not ObjectId.is_valid(game.id):
            return False

        data = game.model_dump(mode="python")
        fields = {name: data[name] for name in _MUTABLE_FIELDS}
        fields["players"] = game.players_to_mongo()
        fields["version"] = game.version + 1

        result = await self._collection.update_one(
            {"_id": ObjectId(game.id), "version": game.version},
            {"$set": fields},
        )
        if result.modified_count == 0:
            logger.warning(
                "Version conflict saving game %s (expected version %d)",
                game.id,
                game.version,
            )
            return False
        game.version += 1
        return True

    async def claim_settlement_generation(
        self, game_id: str, lease_seconds: float
    ) -> Optional[str]:
        """Atomically take the right to write a completed game's settlements.

        A game is claimable while its settlements are NONE or PENDING, or
        GENERATING under an expired lease. Only one caller can win, which
        keeps settlement generation to a single run per game.

        Returns:
            A claim token to pass to :meth:`release_settlement_claim`, or
            None if someone else holds the claim or the game is settled.
        """
        if not ObjectId.is_valid(game_id):
            return None
        now = time.time()
        token = uuid.uuid4().hex
        result = await self._collection.update_one(
            {
                "_id": ObjectId(game_id),
                "is_completed": True,
                **_claimable_filter(now),
            },
            {
                "$set": {
                    "settlement_status": str(SettlementStatus.GENERATING),
                    "settlement_claim_id": token,
                    "settlement_lease_until": now + lease_seconds,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )
        if result.modified_count == 0:
            return None
        logger.info("Claimed settlement generation for game %s", game_id)
        return token

    async def release_settlement_claim(
        self, game_id: str, token: str, new_status: SettlementStatus
    ) -> bool:
        """End a claim with GENERATED (success) or PENDING (retry later).

        Does nothing if the claim was taken over after its lease expired.
        """
        if not ObjectId.is_valid(game_id):
            return False
        result = await self._collection.update_one(
            {
                "_id": ObjectId(game_id),
                "settlement_status": str(SettlementStatus.GENERATING),
                "settlement_claim_id": token,
            },
            {
                "$set": {
                    "settlement_status": str(new_status),
                    "settlement_claim_id": None,
                    "settlement_lease_until": None,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )
        if result.modified_count == 0:
            logger.warning(
                "Settlement claim on game %s was lost before release", game_id
            )
            return False
        logger.info("Game %s settlement status -> %s", game_id, new_status)
        return True
