"""Pydantic models for PokerTracker."""

from pokertracker.models.common import (
    CompletionOutcome,
    CompletionWarning,
    GameStatus,
    PlayerGameStatus,
    PyObjectId,
    SettlementStatus,
    SettlementStrategy,
)
from pokertracker.models.game import Game, GamePlayer, GamePlayerResponse, GameResponse
from pokertracker.models.settlement import Settlement, SettlementResponse
from pokertracker.models.payment import PlayerPayment, PlayerPaymentResponse
from pokertracker.models.summary import (
    CompletionResult,
    GameSummary,
    PlayerBalance,
    PlayerResult,
    ResultHighlight,
)
from pokertracker.models.stats import GamePlayerStats

__all__ = [
    # Enums and types
    "CompletionOutcome",
    "CompletionWarning",
    "GameStatus",
    "PlayerGameStatus",
    "PyObjectId",
    "SettlementStatus",
    "SettlementStrategy",
    # Game models
    "Game",
    "GamePlayer",
    "GamePlayerResponse",
    "GameResponse",
    # Settlement models
    "Settlement",
    "SettlementResponse",
    # Payment models
    "PlayerPayment",
    "PlayerPaymentResponse",
    # Derived read models
    "CompletionResult",
    "GameSummary",
    "PlayerBalance",
    "PlayerResult",
    "ResultHighlight",
    # Analytics extension
    "GamePlayerStats",
]
