"""Common enums, shared types, and utilities for PokerTracker models."""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Optional

from bson import ObjectId
from pydantic import BeforeValidator, PlainSerializer


def _validate_object_id(value: Any) -> str:
    """Validate and convert ObjectId or string to string representation."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, str):
        return value
    raise ValueError(f"Invalid ObjectId value: {value}")


# Annotated type for MongoDB ObjectId fields.
# Accepts ObjectId or string on input, always serializes as string.
PyObjectId = Annotated[
    str,
    BeforeValidator(_validate_object_id),
    PlainSerializer(lambda v: str(v), return_type=str),
]


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    """Serialize an optional datetime as ISO-8601."""
    if value is None:
        return None
    return value.isoformat()


class GameStatus(StrEnum):
    """Game lifecycle states."""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class PlayerGameStatus(StrEnum):
    """Per-player participation states within a game."""
    NOT_JOINED = "NOT_JOINED"
    OPTED_IN = "OPTED_IN"
    CASHED_OUT = "CASHED_OUT"


class SettlementStatus(StrEnum):
    """Settlement generation state stored on a game."""
    NONE = "NONE"
    PENDING = "PENDING"
    GENERATING = "GENERATING"
    GENERATED = "GENERATED"


class SettlementStrategy(StrEnum):
    """Debt allocation rule used by the settlement generator."""
    PROPORTIONAL = "proportional"
    GREEDY = "greedy"


class CompletionOutcome(StrEnum):
    """Tagged result of a complete-game request."""
    OK = "OK"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    SETTLEMENTS_PENDING = "SETTLEMENTS_PENDING"


class CompletionWarning(StrEnum):
    """Non-fatal conditions reported alongside a completion."""
    UNBALANCED = "UNBALANCED"
