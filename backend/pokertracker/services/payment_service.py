"""Payment acknowledgement service.

A per-(game, player) "are we square" flag. It is intentionally not
reconciled against the game's settlements: a player may be marked paid
here while settlements naming them are still open, and vice versa.
"""

import logging

from pokertracker.dal.games_dal import GameDAL
from pokertracker.dal.payments_dal import PaymentDAL
from pokertracker.models.payment import PlayerPayment
from pokertracker.services.exceptions import NotFoundError

logger = logging.getLogger("pokertracker.services.payment")


class PaymentService:
    """Service layer for the payment acknowledgement ledger."""

    def __init__(self, payment_dal: PaymentDAL, game_dal: GameDAL) -> None:
        self._payment_dal = payment_dal
        self._game_dal = game_dal

    async def get_status(self, game_id: str, player_id: str) -> bool:
        """Paid flag for the pair; False when nothing was recorded yet."""
        payment = await self._payment_dal.get(game_id, player_id)
        return payment.is_paid if payment is not None else False

    async def get_payment(self, game_id: str, player_id: str) -> PlayerPayment:
        """The stored record, or an unpaid placeholder that is not persisted."""
        payment = await self._payment_dal.get(game_id, player_id)
        if payment is None:
            return PlayerPayment(game_id=game_id, player_id=player_id)
        return payment

    async def toggle(self, game_id: str, player_id: str) -> PlayerPayment:
        """Create the record as paid on first use, flip it afterwards.

        Raises:
            NotFoundError: Game not found.
        """
        if await self._game_dal.get_by_id(game_id) is None:
            raise NotFoundError("Game not found")
        payment = await self._payment_dal.toggle(game_id, player_id)
        logger.info(
            "Payment acknowledgement game=%s player=%s -> %s",
            game_id,
            player_id,
            "paid" if payment.is_paid else "unpaid",
        )
        return payment

    async def list_for_game(self, game_id: str) -> list[PlayerPayment]:
        return await self._payment_dal.list_by_game(game_id)
