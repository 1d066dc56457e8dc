"""Loosely-typed analytics record attached to a player's game participation.

Fields such as mood, tilt or vpip are free-form and never read by the
ledger logic, so they are kept out of GamePlayer.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from pokertracker.models.common import PyObjectId


class GamePlayerStats(BaseModel):
    model_config = {"populate_by_name": True, "arbitrary_types_allowed": True}

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    game_id: str
    player_id: str
    data: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
