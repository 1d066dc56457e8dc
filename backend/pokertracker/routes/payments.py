"""Payment acknowledgement route handlers.

Endpoints:
    GET  /api/games/{game_id}/payments                       -- All records of a game.
    GET  /api/games/{game_id}/payments/{player_id}           -- One player's flag.
    POST /api/games/{game_id}/payments/{player_id}/toggle    -- Flip the flag.
"""

import logging

from fastapi import APIRouter, Depends, Path

from pokertracker.auth.dependencies import get_current_player_id
from pokertracker.dal.database import get_database
from pokertracker.dal.games_dal import GameDAL
from pokertracker.dal.payments_dal import PaymentDAL
from pokertracker.models.common import isoformat_or_none
from pokertracker.models.payment import PlayerPayment, PlayerPaymentResponse
from pokertracker.services.payment_service import PaymentService

logger = logging.getLogger("pokertracker.routes.payments")

router = APIRouter(prefix="/games/{game_id}/payments", tags=["Payments"])


def _get_service() -> PaymentService:
    """Build a PaymentService wired to the current database."""
    db = get_database()
    return PaymentService(PaymentDAL(db), GameDAL(db))


def _to_response(payment: PlayerPayment) -> PlayerPaymentResponse:
    return PlayerPaymentResponse(
        game_id=payment.game_id,
        player_id=payment.player_id,
        is_paid=payment.is_paid,
        paid_at=isoformat_or_none(payment.paid_at),
    )


@router.get(
    "",
    response_model=list[PlayerPaymentResponse],
    summary="List payment acknowledgements for a game",
)
async def list_payments(game_id: str = Path(...)) -> list[PlayerPaymentResponse]:
    service = _get_service()
    return [_to_response(p) for p in await service.list_for_game(game_id)]


@router.get(
    "/{player_id}",
    response_model=PlayerPaymentResponse,
    summary="Get a player's payment acknowledgement",
)
async def get_payment_status(
    game_id: str = Path(...),
    player_id: str = Path(...),
) -> PlayerPaymentResponse:
    """Unknown pairs report unpaid."""
    service = _get_service()
    return _to_response(await service.get_payment(game_id, player_id))


@router.post(
    "/{player_id}/toggle",
    response_model=PlayerPaymentResponse,
    summary="Toggle a player's payment acknowledgement",
)
async def toggle_payment_status(
    game_id: str = Path(...),
    player_id: str = Path(...),
    current_player_id: str = Depends(get_current_player_id),
) -> PlayerPaymentResponse:
    service = _get_service()
    payment = await service.toggle(game_id, player_id)
    return _to_response(payment)
