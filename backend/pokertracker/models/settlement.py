"""Settlement domain model.

A settlement is a directed debt between two players of a completed game.
Parties and amount never change after creation; only the paid flag does.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from pokertracker.models.common import PyObjectId, isoformat_or_none


class Settlement(BaseModel):
    """Represents a debt owed by ``from_player_id`` to ``to_player_id``."""

    model_config = {"populate_by_name": True, "arbitrary_types_allowed": True}

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    game_id: str
    group_id: Optional[str] = None
    from_player_id: str
    to_player_id: str
    amount: float = Field(..., gt=0)
    is_paid: bool = False
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    paid_at: Optional[datetime] = None

    @field_serializer("id")
    def serialize_id(self, value: Optional[str], _info) -> Optional[str]:
        if value is not None:
            return str(value)
        return value

    @field_serializer("created_at", "paid_at", when_used="json")
    def serialize_datetime(
        self, value: Optional[datetime], _info
    ) -> Optional[str]:
        return isoformat_or_none(value)

    def to_mongo_dict(self) -> dict:
        """Convert model to a MongoDB-insertable dict, excluding None id."""
        data = self.model_dump(by_alias=True, mode="python")
        if data.get("_id") is None:
            data.pop("_id", None)
        return data


class SettlementResponse(BaseModel):
    """Response model for Settlement data returned via API."""

    settlement_id: str
    game_id: str
    from_player_id: str
    to_player_id: str
    amount: float
    is_paid: bool
    created_at: str
    paid_at: Optional[str] = None

    @classmethod
    def from_settlement(cls, settlement: Settlement) -> "SettlementResponse":
        return cls(
            settlement_id=str(settlement.id),
            game_id=settlement.game_id,
            from_player_id=settlement.from_player_id,
            to_player_id=settlement.to_player_id,
            amount=settlement.amount,
            is_paid=settlement.is_paid,
            created_at=settlement.created_at.isoformat(),
            paid_at=isoformat_or_none(settlement.paid_at),
        )
