"""Settlement business logic service.

Generates the debts of a completed game (at most once per game) and
maintains their paid/unpaid state. Sits between GameService / route
handlers and the Game and Settlement DALs.
"""

import logging
from typing import Optional

from pymongo.errors import PyMongoError

from pokertracker.config import settings
from pokertracker.dal.games_dal import GameDAL
from pokertracker.dal.settlements_dal import SettlementDAL
from pokertracker.models.common import SettlementStatus, SettlementStrategy
from pokertracker.models.game import Game
from pokertracker.models.settlement import Settlement
from pokertracker.services.exceptions import (
    InvalidStateError,
    NotFoundError,
    SettlementPersistenceError,
)
from pokertracker.services.settlement_math import compute_settlements

logger = logging.getLogger("pokertracker.services.settlement")


def _same_debts(stored: list[Settlement], built: list[Settlement]) -> bool:
    def key(s: Settlement) -> tuple[str, str, float]:
        return (s.from_player_id, s.to_player_id, round(s.amount, 2))

    return sorted(map(key, stored)) == sorted(map(key, built))


class SettlementService:
    """Service layer for settlement generation and the settlement ledger."""

    def __init__(
        self,
        game_dal: GameDAL,
        settlement_dal: SettlementDAL,
        strategy: Optional[SettlementStrategy] = None,
    ) -> None:
        self._game_dal = game_dal
        self._settlement_dal = settlement_dal
        self._strategy = strategy or SettlementStrategy(settings.SETTLEMENT_STRATEGY)
        self._lease_seconds = settings.SETTLEMENT_CLAIM_LEASE_SECONDS

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_game_or_404(self, game_id: str) -> Game:
        game = await self._game_dal.get_by_id(game_id)
        if game is None:
            raise NotFoundError("Game not found")
        return game

    def _build_settlements(self, game: Game) -> list[Settlement]:
        profits = [(p.player_id, p.profit) for p in game.players]
        debts = compute_settlements(profits, self._strategy)
        return [
            Settlement(
                game_id=str(game.id),
                group_id=game.group_id,
                from_player_id=debt["from_player_id"],
                to_player_id=debt["to_player_id"],
                amount=debt["amount"],
            )
            for debt in debts
        ]

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_settlements(self, game_id: str) -> list[Settlement]:
        """Create the settlements of a completed game, or return existing ones.

        Only the caller that wins the settlement claim writes anything;
        everyone else reads what is stored. A claim whose writer died is
        taken over once its lease expires.

        Raises:
            NotFoundError: Game not found.
            InvalidStateError: Game is still active.
            SettlementPersistenceError: Storage failed; the game stays
                completed and its settlements are retried by recovery.
        """
        game = await self._get_game_or_404(game_id)
        if not game.is_completed:
            raise InvalidStateError(
                "Settlements can only be generated for a completed game"
            )

        if game.settlement_status == SettlementStatus.GENERATED:
            return await self._settlement_dal.list_by_game(game_id)

        try:
            token = await self._game_dal.claim_settlement_generation(
                game_id, self._lease_seconds
            )
        except PyMongoError as e:
            raise SettlementPersistenceError(
                "Could not claim settlement generation; it will be retried"
            ) from e
        if token is None:
            logger.info(
                "Settlement generation for game %s already claimed; returning stored settlements",
                game_id,
            )
            return await self._settlement_dal.list_by_game(game_id)

        settlements = self._build_settlements(game)
        try:
            stored = await self._settlement_dal.list_by_game(game_id)
            if stored and _same_debts(stored, settlements):
                # An earlier writer stored the batch but never recorded it.
                settlements = stored
            else:
                if stored:
                    await self._settlement_dal.delete_by_game(game_id)
                await self._settlement_dal.create_many(settlements)
            await self._game_dal.release_settlement_claim(
                game_id, token, SettlementStatus.GENERATED
            )
        except PyMongoError as e:
            logger.error(
                "Failed to store settlements for game %s: %s", game_id, str(e)
            )
            await self._abandon_claim(game_id, token)
            raise SettlementPersistenceError(
                "Game is completed but its settlements could not be saved; "
                "they will be generated on retry"
            ) from e

        logger.info(
            "Generated %d settlements for game %s (strategy=%s, total=%.2f)",
            len(settlements),
            game_id,
            self._strategy,
            sum(s.amount for s in settlements),
        )
        return settlements

    async def _abandon_claim(self, game_id: str, token: str) -> None:
        """Roll back a failed batch and hand the game back to recovery.

        Each step is attempted even if the one before it fails. Whatever
        cannot be undone here is picked up after the claim lease expires.
        """
        try:
            await self._settlement_dal.delete_by_game(game_id)
        except PyMongoError as e:
            logger.error(
                "Could not roll back settlements of game %s: %s", game_id, str(e)
            )
        try:
            await self._game_dal.release_settlement_claim(
                game_id, token, SettlementStatus.PENDING
            )
        except PyMongoError as e:
            logger.error(
                "Could not return game %s to PENDING; it is reclaimed after "
                "%ds: %s",
                game_id,
                self._lease_seconds,
                str(e),
            )

    async def retry_pending(self) -> int:
        """Generate settlements for every completed game still PENDING.

        Returns:
            Number of games whose settlements were generated.
        """
        generated = 0
        for game in await self._game_dal.find_pending_settlements():
            game_id = str(game.id)
            try:
                await self.generate_settlements(game_id)
                generated += 1
            except SettlementPersistenceError:
                logger.warning("Settlements for game %s still pending", game_id)
        return generated

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_settlements_for_game(self, game_id: str) -> list[Settlement]:
        await self._get_game_or_404(game_id)
        return await self._settlement_dal.list_by_game(game_id)

    async def get_settlements_for_player(
        self, player_id: str, unpaid_only: bool = False
    ) -> list[Settlement]:
        return await self._settlement_dal.list_by_player(player_id, unpaid_only)

    # ------------------------------------------------------------------
    # Paid state
    # ------------------------------------------------------------------

    async def toggle_payment(self, settlement_id: str) -> Settlement:
        """Flip a settlement between paid and unpaid.

        Raises:
            NotFoundError: Settlement not found.
        """
        settlement = await self._settlement_dal.toggle_paid(settlement_id)
        if settlement is None:
            raise NotFoundError("Settlement not found")
        return settlement

    async def mark_paid(self, settlement_id: str) -> Settlement:
        """Mark a settlement paid. Never un-pays.

        Raises:
            NotFoundError: Settlement not found.
        """
        settlement = await self._settlement_dal.mark_paid(settlement_id)
        if settlement is None:
            raise NotFoundError("Settlement not found")
        return settlement
