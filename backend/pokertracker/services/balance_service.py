"""Balance aggregation across a player's completed games.

Read-only and recomputed on every call; nothing here is cached or stored.
"""

import logging
from typing import Optional

from pokertracker.dal.games_dal import GameDAL
from pokertracker.dal.settlements_dal import SettlementDAL
from pokertracker.models.summary import PlayerBalance
from pokertracker.services.ledger_math import round_currency

logger = logging.getLogger("pokertracker.services.balance")


class BalanceService:
    """Service layer computing PlayerBalance read models."""

    def __init__(self, game_dal: GameDAL, settlement_dal: SettlementDAL) -> None:
        self._game_dal = game_dal
        self._settlement_dal = settlement_dal

    async def get_player_balance(
        self, player_id: str, group_id: Optional[str] = None
    ) -> PlayerBalance:
        """Cumulative profit and open debts for a player.

        ``net_balance`` is the cumulative game profit alone. Unpaid
        settlement totals are reported next to it but not added in.

        Args:
            player_id: The player to aggregate.
            group_id: Restrict to one group's games and settlements.
        """
        games = await self._game_dal.list_completed_for_player(player_id, group_id)

        total_profit = 0.0
        games_played = 0
        for game in games:
            entry = game.find_player(player_id)
            if entry is None:
                continue
            total_profit += entry.profit
            games_played += 1

        owed_by_others = 0.0
        owes_to_others = 0.0
        for s in await self._settlement_dal.list_by_player(player_id, unpaid_only=True):
            if group_id is not None and s.group_id != group_id:
                continue
            if s.to_player_id == player_id:
                owed_by_others += s.amount
            elif s.from_player_id == player_id:
                owes_to_others += s.amount

        total_profit = round_currency(total_profit)
        balance = PlayerBalance(
            player_id=player_id,
            group_id=group_id,
            total_profit=total_profit,
            total_loss=abs(min(0.0, total_profit)),
            owed_by_others=round_currency(owed_by_others),
            owes_to_others=round_currency(owes_to_others),
            net_balance=total_profit,
            games_played=games_played,
        )
        logger.debug(
            "Balance for %s: profit=%.2f owed=%.2f owes=%.2f games=%d",
            player_id,
            balance.total_profit,
            balance.owed_by_others,
            balance.owes_to_others,
            balance.games_played,
        )
        return balance
