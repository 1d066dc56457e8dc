"""Game lifecycle state machine.

Pure transitions applied to an in-memory Game. Persistence, retries and
settlement generation live in GameService; everything here is synchronous
and side-effect free apart from mutating the Game passed in.

Game states:    ACTIVE -> COMPLETED (terminal)
Player states:  NOT_JOINED -> OPTED_IN -> CASHED_OUT
"""

import math
from datetime import datetime, timezone
from typing import Optional

from pokertracker.models.common import SettlementStatus
from pokertracker.models.game import Game, GamePlayer
from pokertracker.services.exceptions import InvalidStateError, NotFoundError


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def _require_active(game: Game, action: str) -> None:
    if game.is_completed:
        raise InvalidStateError(f"Cannot {action}: game is completed")


def _require_player(game: Game, player_id: str) -> GamePlayer:
    player = game.find_player(player_id)
    if player is None:
        raise NotFoundError("Player not found in this game")
    return player


def _require_amount(amount: float, name: str, allow_zero: bool = False) -> None:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount):
        raise InvalidStateError(f"{name} must be a number")
    if allow_zero and amount < 0:
        raise InvalidStateError(f"{name} cannot be negative")
    if not allow_zero and amount <= 0:
        raise InvalidStateError(f"{name} must be greater than 0")


def all_cashed_out(game: Game) -> bool:
    """True when the game has players and none is still opted in un-cashed."""
    if not game.players:
        return False
    return not any(p.has_opted_in and not p.has_cashed_out for p in game.players)


def opt_in(
    game: Game,
    player_id: str,
    buy_in: float,
    now: Optional[datetime] = None,
) -> GamePlayer:
    """Join a player or re-join with a fresh buy-in.

    Re-joining replaces the buy-in (it never adds to the old one) and
    puts a cashed-out player back into play; chips already taken off the
    table no longer count as cash-out.
    """
    _require_active(game, "opt in")
    _require_amount(buy_in, "Buy-in")
    ts = _now(now)

    player = game.find_player(player_id)
    if player is None:
        player = GamePlayer(
            player_id=player_id,
            buy_in=buy_in,
            has_opted_in=True,
            opted_in_at=ts,
        )
        game.players.append(player)
    else:
        player.buy_in = buy_in
        player.has_opted_in = True
        player.opted_in_at = ts
        player.has_cashed_out = False
        player.cashed_out_at = None
        player.cash_out = 0

    player.recompute_profit()
    game.updated_at = ts
    return player


def add_rebuy(
    game: Game,
    player_id: str,
    amount: float,
    now: Optional[datetime] = None,
) -> GamePlayer:
    """Add a rebuy; profit is recomputed against the current cash-out."""
    _require_active(game, "add a rebuy")
    _require_amount(amount, "Rebuy amount")
    player = _require_player(game, player_id)
    ts = _now(now)

    player.rebuys += 1
    player.rebuy_amount += amount
    player.last_rebuy_at = ts
    player.recompute_profit()
    game.updated_at = ts
    return player


def remove_player(
    game: Game,
    player_id: str,
    now: Optional[datetime] = None,
) -> GamePlayer:
    """Opt a player out entirely. Not a post-game correction tool."""
    _require_active(game, "remove a player")
    player = _require_player(game, player_id)
    game.players = [p for p in game.players if p.player_id != player_id]
    game.updated_at = _now(now)
    return player


def cash_out(
    game: Game,
    player_id: str,
    amount: float,
    now: Optional[datetime] = None,
) -> bool:
    """Record a player's cash-out.

    Returns:
        True if this cash-out completed the game (nobody left un-cashed).
    """
    _require_active(game, "cash out")
    _require_amount(amount, "Cash-out amount", allow_zero=True)
    player = _require_player(game, player_id)
    ts = _now(now)

    player.cash_out = amount
    player.has_cashed_out = True
    player.cashed_out_at = ts
    player.recompute_profit()
    game.updated_at = ts

    if all_cashed_out(game):
        mark_completed(game, now=ts)
        return True
    return False


def mark_completed(game: Game, now: Optional[datetime] = None) -> bool:
    """Flip the game to completed and queue settlement generation.

    Returns:
        False if the game was already completed (nothing changed).
    """
    if game.is_completed:
        return False
    ts = _now(now)

    game.is_completed = True
    game.end_time = ts
    if game.start_time is not None:
        start = game.start_time
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        game.duration = max(0, int((ts - start).total_seconds() // 60))
    game.settlement_status = SettlementStatus.PENDING
    game.updated_at = ts
    return True
