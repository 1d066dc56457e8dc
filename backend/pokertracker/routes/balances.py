"""Balance and group history route handlers.

Endpoints:
    GET /api/players/{player_id}/balance   -- Cumulative balance of a player.
    GET /api/groups/{group_id}/games       -- A group's games, newest first.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Path, Query

from pokertracker.dal.database import get_database
from pokertracker.dal.games_dal import GameDAL
from pokertracker.dal.settlements_dal import SettlementDAL
from pokertracker.models.game import GameResponse
from pokertracker.models.summary import PlayerBalance
from pokertracker.services.balance_service import BalanceService
from pokertracker.services.game_service import GameService
from pokertracker.services.settlement_service import SettlementService

logger = logging.getLogger("pokertracker.routes.balances")

router = APIRouter(tags=["Balances"])


@router.get(
    "/players/{player_id}/balance",
    response_model=PlayerBalance,
    summary="Get a player's cumulative balance",
)
async def get_player_balance(
    player_id: str = Path(...),
    group_id: Optional[str] = Query(None),
) -> PlayerBalance:
    db = get_database()
    service = BalanceService(GameDAL(db), SettlementDAL(db))
    return await service.get_player_balance(player_id, group_id)


@router.get(
    "/groups/{group_id}/games",
    response_model=list[GameResponse],
    summary="List a group's games",
)
async def list_group_games(
    group_id: str = Path(...),
    completed: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    skip: int = Query(0, ge=0),
) -> list[GameResponse]:
    db = get_database()
    game_dal = GameDAL(db)
    service = GameService(game_dal, SettlementService(game_dal, SettlementDAL(db)))
    games = await service.list_games(group_id, completed=completed, limit=limit, skip=skip)
    return [GameResponse.from_game(g) for g in games]
