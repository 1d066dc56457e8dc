"""Settlement route handlers.

Endpoints:
    GET  /api/games/{game_id}/settlements              -- List a game's settlements.
    POST /api/games/{game_id}/settlements/generate     -- (Re-)derive settlements.
    POST /api/settlements/{settlement_id}/toggle       -- Flip paid/unpaid.
    POST /api/settlements/{settlement_id}/mark-paid    -- One-way mark as paid.
    GET  /api/players/{player_id}/settlements          -- A player's settlements.
"""

import logging

from fastapi import APIRouter, Depends, Path, Query

from pokertracker.auth.dependencies import get_current_player_id
from pokertracker.dal.database import get_database
from pokertracker.dal.games_dal import GameDAL
from pokertracker.dal.settlements_dal import SettlementDAL
from pokertracker.models.settlement import SettlementResponse
from pokertracker.services.settlement_service import SettlementService

logger = logging.getLogger("pokertracker.routes.settlements")

router = APIRouter(tags=["Settlements"])


def _get_service() -> SettlementService:
    """Build a SettlementService wired to the current database."""
    db = get_database()
    return SettlementService(GameDAL(db), SettlementDAL(db))


@router.get(
    "/games/{game_id}/settlements",
    response_model=list[SettlementResponse],
    summary="List settlements of a game",
)
async def list_game_settlements(
    game_id: str = Path(...),
) -> list[SettlementResponse]:
    service = _get_service()
    settlements = await service.get_settlements_for_game(game_id)
    return [SettlementResponse.from_settlement(s) for s in settlements]


@router.post(
    "/games/{game_id}/settlements/generate",
    response_model=list[SettlementResponse],
    summary="Generate settlements for a completed game",
)
async def generate_settlements(
    game_id: str = Path(...),
    current_player_id: str = Depends(get_current_player_id),
) -> list[SettlementResponse]:
    """Runs generation at most once per game; later calls return the
    stored settlements."""
    service = _get_service()
    settlements = await service.generate_settlements(game_id)
    return [SettlementResponse.from_settlement(s) for s in settlements]


@router.post(
    "/settlements/{settlement_id}/toggle",
    response_model=SettlementResponse,
    summary="Toggle a settlement between paid and unpaid",
)
async def toggle_settlement_payment(
    settlement_id: str = Path(...),
    current_player_id: str = Depends(get_current_player_id),
) -> SettlementResponse:
    service = _get_service()
    settlement = await service.toggle_payment(settlement_id)
    logger.info(
        "Settlement %s toggled by %s (is_paid=%s)",
        settlement_id, current_player_id, settlement.is_paid,
    )
    return SettlementResponse.from_settlement(settlement)


@router.post(
    "/settlements/{settlement_id}/mark-paid",
    response_model=SettlementResponse,
    summary="Mark a settlement as paid",
)
async def mark_settlement_paid(
    settlement_id: str = Path(...),
    current_player_id: str = Depends(get_current_player_id),
) -> SettlementResponse:
    service = _get_service()
    settlement = await service.mark_paid(settlement_id)
    return SettlementResponse.from_settlement(settlement)


@router.get(
    "/players/{player_id}/settlements",
    response_model=list[SettlementResponse],
    summary="List settlements involving a player",
)
async def list_player_settlements(
    player_id: str = Path(...),
    unpaid_only: bool = Query(False),
) -> list[SettlementResponse]:
    service = _get_service()
    settlements = await service.get_settlements_for_player(player_id, unpaid_only)
    return [SettlementResponse.from_settlement(s) for s in settlements]
