"""Game and GamePlayer domain models.

A game document embeds its ordered list of GamePlayer sub-documents.
Players are unique by ``player_id`` inside a game.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from pokertracker.services.ledger_math import compute_profit
from pokertracker.models.common import (
    GameStatus,
    PlayerGameStatus,
    PyObjectId,
    SettlementStatus,
    isoformat_or_none,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GamePlayer(BaseModel):
    """A player's participation record within a single game.

    ``profit`` is always derived from ``cash_out``, ``buy_in`` and
    ``rebuy_amount``; call :meth:`recompute_profit` after any change.
    """

    player_id: str
    buy_in: float
    rebuy_amount: float = 0
    rebuys: int = 0
    cash_out: float = 0
    profit: float = 0
    has_opted_in: bool = True
    has_cashed_out: bool = False
    opted_in_at: Optional[datetime] = None
    cashed_out_at: Optional[datetime] = None
    last_rebuy_at: Optional[datetime] = None

    @property
    def total_invested(self) -> float:
        return self.buy_in + self.rebuy_amount

    @property
    def status(self) -> PlayerGameStatus:
        if self.has_cashed_out:
            return PlayerGameStatus.CASHED_OUT
        if self.has_opted_in:
            return PlayerGameStatus.OPTED_IN
        return PlayerGameStatus.NOT_JOINED

    def recompute_profit(self) -> float:
        self.profit = compute_profit(self.buy_in, self.rebuy_amount, self.cash_out)
        return self.profit

    @field_serializer(
        "opted_in_at", "cashed_out_at", "last_rebuy_at", when_used="json"
    )
    def serialize_datetime(
        self, value: Optional[datetime], _info
    ) -> Optional[str]:
        return isoformat_or_none(value)


class Game(BaseModel):
    """A poker session stored in the games collection."""

    model_config = {"populate_by_name": True, "arbitrary_types_allowed": True}

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    group_id: str
    date: datetime = Field(default_factory=_utcnow)
    stakes: str
    default_buy_in: float
    bank_person_id: str
    is_completed: bool = False
    players: list[GamePlayer] = Field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    settlement_status: SettlementStatus = SettlementStatus.NONE
    # Set while a writer holds the settlement claim; the lease is epoch seconds.
    settlement_claim_id: Optional[str] = None
    settlement_lease_until: Optional[float] = None
    version: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def status(self) -> GameStatus:
        return GameStatus.COMPLETED if self.is_completed else GameStatus.ACTIVE

    def find_player(self, player_id: str) -> Optional[GamePlayer]:
        for player in self.players:
            if player.player_id == player_id:
                return player
        return None

    @field_serializer("id")
    def serialize_id(self, value: Optional[str], _info) -> Optional[str]:
        if value is not None:
            return str(value)
        return value

    @field_serializer("settlement_status")
    def serialize_settlement_status(self, value: SettlementStatus, _info) -> str:
        return str(value)

    @field_serializer(
        "date", "start_time", "end_time", "created_at", "updated_at",
        when_used="json",
    )
    def serialize_datetime(
        self, value: Optional[datetime], _info
    ) -> Optional[str]:
        return isoformat_or_none(value)

    def to_mongo_dict(self) -> dict:
        """Convert model to a MongoDB-insertable dict, excluding None id."""
        data = self.model_dump(by_alias=True, mode="python", round_trip=True)
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    def players_to_mongo(self) -> list[dict]:
        return [p.model_dump(mode="python", round_trip=True) for p in self.players]


class GamePlayerResponse(BaseModel):
    """Response model for a GamePlayer returned via API."""

    player_id: str
    buy_in: float
    rebuy_amount: float
    rebuys: int
    cash_out: float
    profit: float
    has_opted_in: bool
    has_cashed_out: bool
    status: PlayerGameStatus
    opted_in_at: Optional[str] = None
    cashed_out_at: Optional[str] = None

    @classmethod
    def from_player(cls, player: GamePlayer) -> "GamePlayerResponse":
        return cls(
            player_id=player.player_id,
            buy_in=player.buy_in,
            rebuy_amount=player.rebuy_amount,
            rebuys=player.rebuys,
            cash_out=player.cash_out,
            profit=player.profit,
            has_opted_in=player.has_opted_in,
            has_cashed_out=player.has_cashed_out,
            status=player.status,
            opted_in_at=isoformat_or_none(player.opted_in_at),
            cashed_out_at=isoformat_or_none(player.cashed_out_at),
        )


class GameResponse(BaseModel):
    """Response model for Game data returned via API."""

    game_id: str
    group_id: str
    date: str
    stakes: str
    default_buy_in: float
    bank_person_id: str
    status: GameStatus
    is_completed: bool
    settlement_status: SettlementStatus
    players: list[GamePlayerResponse]
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[int] = None

    @classmethod
    def from_game(cls, game: Game) -> "GameResponse":
        return cls(
            game_id=str(game.id),
            group_id=game.group_id,
            date=game.date.isoformat(),
            stakes=game.stakes,
            default_buy_in=game.default_buy_in,
            bank_person_id=game.bank_person_id,
            status=game.status,
            is_completed=game.is_completed,
            settlement_status=game.settlement_status,
            players=[GamePlayerResponse.from_player(p) for p in game.players],
            start_time=isoformat_or_none(game.start_time),
            end_time=isoformat_or_none(game.end_time),
            duration=game.duration,
        )
