"""Derived (non-persisted) read models: game summaries and player balances."""

from typing import Optional

from pydantic import BaseModel, Field

from pokertracker.models.common import CompletionOutcome, CompletionWarning
from pokertracker.models.settlement import Settlement


class PlayerResult(BaseModel):
    player_id: str
    buy_in: float
    rebuy_amount: float
    cash_out: float
    profit: float


class ResultHighlight(BaseModel):
    player_id: str
    amount: float


class GameSummary(BaseModel):
    """Totals, balance check and per-player results for one game."""

    game_id: str
    total_buy_in: float
    total_cash_out: float
    is_balanced: bool
    difference: float
    biggest_winner: Optional[ResultHighlight] = None
    biggest_loser: Optional[ResultHighlight] = None
    player_results: list[PlayerResult] = Field(default_factory=list)


class PlayerBalance(BaseModel):
    """Cumulative standing of a player across completed games.

    ``net_balance`` mirrors ``total_profit``; the owed/owing figures are
    reported separately and are not folded in.
    """

    player_id: str
    group_id: Optional[str] = None
    total_profit: float = 0
    total_loss: float = 0
    owed_by_others: float = 0
    owes_to_others: float = 0
    net_balance: float = 0
    games_played: int = 0


class CompletionResult(BaseModel):
    """Outcome of completing a game, tagged so callers can pick strictness."""

    game_id: str
    outcome: CompletionOutcome
    warnings: list[CompletionWarning] = Field(default_factory=list)
    settlements: list[Settlement] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome == CompletionOutcome.OK
