"""Game route handlers.

Endpoints:
    POST   /api/games                                         -- Create a game.
    GET    /api/games/{game_id}                               -- Get game details.
    POST   /api/games/{game_id}/players                       -- Opt a player in.
    POST   /api/games/{game_id}/players/{player_id}/rebuys    -- Add a rebuy.
    DELETE /api/games/{game_id}/players/{player_id}           -- Remove a player.
    POST   /api/games/{game_id}/players/{player_id}/cash-out  -- Cash a player out.
    POST   /api/games/{game_id}/can-complete                  -- Pre-completion check.
    POST   /api/games/{game_id}/complete                      -- Complete a game.
    GET    /api/games/{game_id}/summary                       -- Totals and results.
    GET    /api/games/{game_id}/players/{player_id}/stats     -- Analytics record.
    PUT    /api/games/{game_id}/players/{player_id}/stats     -- Merge analytics fields.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Path, status
from pydantic import BaseModel, Field

from pokertracker.auth.dependencies import get_current_player_id
from pokertracker.dal.database import get_database
from pokertracker.dal.games_dal import GameDAL
from pokertracker.dal.groups_dal import GroupDAL
from pokertracker.dal.settlements_dal import SettlementDAL
from pokertracker.dal.stats_dal import StatsDAL
from pokertracker.models.common import CompletionOutcome, CompletionWarning
from pokertracker.models.game import GameResponse
from pokertracker.models.settlement import SettlementResponse
from pokertracker.models.summary import CompletionResult, GameSummary
from pokertracker.services.game_service import GameService
from pokertracker.services.settlement_service import SettlementService

logger = logging.getLogger("pokertracker.routes.games")

router = APIRouter(prefix="/games", tags=["Games"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_service() -> GameService:
    """Build a GameService wired to the current database."""
    db = get_database()
    game_dal = GameDAL(db)
    return GameService(
        game_dal,
        SettlementService(game_dal, SettlementDAL(db)),
        group_dal=GroupDAL(db),
        stats_dal=StatsDAL(db),
    )


# ---------------------------------------------------------------------------
# Pydantic request / response schemas
# ---------------------------------------------------------------------------

class CreateGameRequest(BaseModel):
    """Request body for POST /api/games."""
    group_id: str = Field(..., min_length=1)
    stakes: str = Field(
        ..., min_length=1, max_length=50,
        description="Free-text stakes label, e.g. '0.25/0.50'.",
    )
    default_buy_in: float = Field(
        ..., gt=0, description="Suggested buy-in (must be > 0)."
    )
    bank_person_id: str = Field(..., min_length=1)
    date: Optional[datetime] = None


class OptInRequest(BaseModel):
    """Request body for POST /api/games/{game_id}/players.

    ``player_id`` defaults to the caller, so hosts can add others.
    """
    player_id: Optional[str] = None
    buy_in: float = Field(..., gt=0, description="Buy-in amount (must be > 0).")


class AmountRequest(BaseModel):
    """Request body for rebuys (amount > 0)."""
    amount: float = Field(..., gt=0)


class CashOutRequest(BaseModel):
    """Request body for cash-out (amount >= 0)."""
    amount: float = Field(..., ge=0)


class CanCompleteRequest(BaseModel):
    """Request body for POST /api/games/{game_id}/can-complete."""
    cash_outs: dict[str, float] = Field(
        default_factory=dict,
        description="Proposed cash-outs keyed by player_id.",
    )


class CanCompleteResponse(BaseModel):
    game_id: str
    can_complete: bool
    is_balanced: bool
    total_invested: float
    total_cash_out: float
    difference: float
    missing_cash_outs: list[str]


class CompletionResponse(BaseModel):
    """Response for completion, manual or automatic."""
    game_id: str
    outcome: CompletionOutcome
    warnings: list[CompletionWarning]
    settlements: list[SettlementResponse]

    @classmethod
    def from_result(cls, result: CompletionResult) -> "CompletionResponse":
        return cls(
            game_id=result.game_id,
            outcome=result.outcome,
            warnings=result.warnings,
            settlements=[
                SettlementResponse.from_settlement(s) for s in result.settlements
            ],
        )


class CashOutResponse(BaseModel):
    """Response for POST .../cash-out."""
    game: GameResponse
    auto_completed: bool
    completion: Optional[CompletionResponse] = None


class PlayerStatsRequest(BaseModel):
    data: dict[str, Any] = Field(..., min_length=1)


class PlayerStatsResponse(BaseModel):
    game_id: str
    player_id: str
    data: dict[str, Any]


# ---------------------------------------------------------------------------
# POST /api/games -- Create game
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=GameResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new game",
)
async def create_game(
    body: CreateGameRequest,
    player_id: str = Depends(get_current_player_id),
) -> GameResponse:
    """Create an active game with no players. The bank person must be a
    member of the group."""
    service = _get_service()
    game = await service.create_game(
        group_id=body.group_id,
        stakes=body.stakes,
        default_buy_in=body.default_buy_in,
        bank_person_id=body.bank_person_id,
        date=body.date,
    )
    logger.info("Game %s created by %s", game.id, player_id)
    return GameResponse.from_game(game)


# ---------------------------------------------------------------------------
# GET /api/games/{game_id}
# ---------------------------------------------------------------------------

@router.get(
    "/{game_id}",
    response_model=GameResponse,
    summary="Get game details",
)
async def get_game(game_id: str = Path(...)) -> GameResponse:
    service = _get_service()
    game = await service.get_game(game_id)
    return GameResponse.from_game(game)


# ---------------------------------------------------------------------------
# Player participation
# ---------------------------------------------------------------------------

@router.post(
    "/{game_id}/players",
    response_model=GameResponse,
    status_code=status.HTTP_200_OK,
    summary="Opt a player into the game",
)
async def opt_in(
    body: OptInRequest,
    game_id: str = Path(...),
    current_player_id: str = Depends(get_current_player_id),
) -> GameResponse:
    """Idempotent: opting in again replaces the buy-in."""
    service = _get_service()
    game = await service.opt_in(
        game_id, body.player_id or current_player_id, body.buy_in
    )
    return GameResponse.from_game(game)


@router.post(
    "/{game_id}/players/{player_id}/rebuys",
    response_model=GameResponse,
    summary="Add a rebuy for a player",
)
async def add_rebuy(
    body: AmountRequest,
    game_id: str = Path(...),
    player_id: str = Path(...),
    current_player_id: str = Depends(get_current_player_id),
) -> GameResponse:
    service = _get_service()
    game = await service.add_rebuy(game_id, player_id, body.amount)
    return GameResponse.from_game(game)


@router.delete(
    "/{game_id}/players/{player_id}",
    response_model=GameResponse,
    summary="Remove a player from an active game",
)
async def remove_player(
    game_id: str = Path(...),
    player_id: str = Path(...),
    current_player_id: str = Depends(get_current_player_id),
) -> GameResponse:
    service = _get_service()
    game = await service.remove_player(game_id, player_id)
    return GameResponse.from_game(game)


@router.post(
    "/{game_id}/players/{player_id}/cash-out",
    response_model=CashOutResponse,
    summary="Cash a player out",
)
async def cash_out(
    body: CashOutRequest,
    game_id: str = Path(...),
    player_id: str = Path(...),
    current_player_id: str = Depends(get_current_player_id),
) -> CashOutResponse:
    """Record a cash-out. The last cash-out completes the game and the
    response then carries the generated settlements."""
    service = _get_service()
    result = await service.cash_out(game_id, player_id, body.amount)
    completion = result["completion"]
    return CashOutResponse(
        game=GameResponse.from_game(result["game"]),
        auto_completed=completion is not None,
        completion=(
            CompletionResponse.from_result(completion) if completion else None
        ),
    )


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------

@router.post(
    "/{game_id}/can-complete",
    response_model=CanCompleteResponse,
    summary="Check whether a game is ready to complete",
)
async def can_complete(
    body: CanCompleteRequest,
    game_id: str = Path(...),
) -> CanCompleteResponse:
    service = _get_service()
    result = await service.can_complete(game_id, body.cash_outs)
    return CanCompleteResponse(**result)


@router.post(
    "/{game_id}/complete",
    response_model=CompletionResponse,
    summary="Complete a game and generate settlements",
)
async def complete_game(
    game_id: str = Path(...),
    current_player_id: str = Depends(get_current_player_id),
) -> CompletionResponse:
    """Force-complete a game. Unbalanced games complete with a warning;
    repeat calls report ALREADY_COMPLETED."""
    service = _get_service()
    result = await service.complete_game(game_id)
    logger.info(
        "Completion requested by %s for game %s: %s",
        current_player_id, game_id, result.outcome,
    )
    return CompletionResponse.from_result(result)


@router.get(
    "/{game_id}/summary",
    response_model=GameSummary,
    summary="Game totals, balance flag and per-player results",
)
async def get_game_summary(game_id: str = Path(...)) -> GameSummary:
    service = _get_service()
    return await service.get_game_summary(game_id)


# ---------------------------------------------------------------------------
# Analytics extension
# ---------------------------------------------------------------------------

@router.get(
    "/{game_id}/players/{player_id}/stats",
    response_model=PlayerStatsResponse,
    summary="Get a player's free-form game statistics",
)
async def get_player_stats(
    game_id: str = Path(...),
    player_id: str = Path(...),
) -> PlayerStatsResponse:
    service = _get_service()
    stats = await service.get_player_stats(game_id, player_id)
    return PlayerStatsResponse(
        game_id=game_id,
        player_id=player_id,
        data=stats.data if stats else {},
    )


@router.put(
    "/{game_id}/players/{player_id}/stats",
    response_model=PlayerStatsResponse,
    summary="Merge free-form game statistics for a player",
)
async def update_player_stats(
    body: PlayerStatsRequest,
    game_id: str = Path(...),
    player_id: str = Path(...),
    current_player_id: str = Depends(get_current_player_id),
) -> PlayerStatsResponse:
    service = _get_service()
    stats = await service.update_player_stats(game_id, player_id, body.data)
    return PlayerStatsResponse(
        game_id=game_id, player_id=player_id, data=stats.data
    )
