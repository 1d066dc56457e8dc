"""PlayerPayment model: informal per-game "we're square" acknowledgement."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from pokertracker.models.common import PyObjectId, isoformat_or_none


class PlayerPayment(BaseModel):
    """Paid flag keyed by (game_id, player_id).

    Independent of the computed settlements for the same game.
    """

    model_config = {"populate_by_name": True, "arbitrary_types_allowed": True}

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    game_id: str
    player_id: str
    is_paid: bool = False
    paid_at: Optional[datetime] = None

    @field_serializer("paid_at", when_used="json")
    def serialize_datetime(
        self, value: Optional[datetime], _info
    ) -> Optional[str]:
        return isoformat_or_none(value)


class PlayerPaymentResponse(BaseModel):
    """Response model for a payment acknowledgement."""

    game_id: str
    player_id: str
    is_paid: bool
    paid_at: Optional[str] = None
