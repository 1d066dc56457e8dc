"""Game business logic service.

Drives the game state machine against storage: every mutation reads the
game, applies a pure transition from ``game_state`` and writes it back
with a version check, retrying on conflict. Completion (manual or
automatic on the last cash-out) hands over to SettlementService.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar

from pokertracker.config import settings
from pokertracker.dal.games_dal import GameDAL
from pokertracker.dal.groups_dal import GroupDAL
from pokertracker.dal.stats_dal import StatsDAL
from pokertracker.models.common import CompletionOutcome, CompletionWarning
from pokertracker.models.game import Game
from pokertracker.models.stats import GamePlayerStats
from pokertracker.models.summary import (
    CompletionResult,
    GameSummary,
    PlayerResult,
    ResultHighlight,
)
from pokertracker.services import game_state
from pokertracker.services.exceptions import (
    ConcurrentModificationError,
    InvalidStateError,
    NotFoundError,
    SettlementPersistenceError,
)
from pokertracker.services.ledger_math import (
    can_complete,
    compute_game_totals,
    is_balanced,
    round_currency,
)
from pokertracker.services.settlement_service import SettlementService

logger = logging.getLogger("pokertracker.services.game")

T = TypeVar("T")


def _check_stats_keys(fields: dict[str, Any]) -> None:
    """Stats keys become Mongo field paths, so they must be plain names."""
    for key, value in fields.items():
        if not key or "." in key or key.startswith("$"):
            raise InvalidStateError(f"Invalid statistics field name: {key!r}")
        if isinstance(value, dict):
            _check_stats_keys(value)


class GameService:
    """Service layer for game lifecycle operations."""

    def __init__(
        self,
        game_dal: GameDAL,
        settlement_service: SettlementService,
        group_dal: Optional[GroupDAL] = None,
        stats_dal: Optional[StatsDAL] = None,
        max_retries: Optional[int] = None,
        tolerance: Optional[float] = None,
    ) -> None:
        self._game_dal = game_dal
        self._settlement_service = settlement_service
        self._group_dal = group_dal
        self._stats_dal = stats_dal
        self._max_retries = max_retries or settings.MAX_WRITE_RETRIES
        self._tolerance = (
            tolerance if tolerance is not None else settings.BALANCE_TOLERANCE
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_members(self, group_id: str) -> Optional[set[str]]:
        """Members of a group, or None when membership is not checked."""
        if self._group_dal is None:
            return None
        return await self._group_dal.get_members(group_id)

    async def _mutate(
        self, game_id: str, apply: Callable[[Game], T]
    ) -> tuple[Game, T]:
        """Read-apply-write a game with optimistic concurrency.

        ``apply`` runs against a fresh snapshot on every attempt, so a
        transition that depends on the other players (auto-complete) is
        always decided on the state that actually gets written.

        Raises:
            ConcurrentModificationError: Still conflicting after retries.
        """
        for attempt in range(self._max_retries):
            game = await self.get_game(game_id)
            result = apply(game)
            if await self._game_dal.save_if_version(game):
                return game, result
            logger.warning(
                "Retrying write to game %s (attempt %d/%d)",
                game_id,
                attempt + 1,
                self._max_retries,
            )

        logger.error(
            "Giving up on game %s after %d conflicting writes",
            game_id,
            self._max_retries,
        )
        raise ConcurrentModificationError(
            "Game was modified concurrently. Please try again."
        )

    def _completion_warnings(self, game: Game) -> list[CompletionWarning]:
        totals = compute_game_totals(game.players)
        if is_balanced(totals["total_invested"], totals["total_cash_out"], self._tolerance):
            return []
        logger.warning(
            "Game %s completed unbalanced (in=%.2f, out=%.2f)",
            game.id,
            totals["total_invested"],
            totals["total_cash_out"],
        )
        return [CompletionWarning.UNBALANCED]

    async def _settle(
        self, game: Game, outcome: CompletionOutcome
    ) -> CompletionResult:
        """Generate settlements for a freshly or previously completed game."""
        game_id = str(game.id)
        warnings = self._completion_warnings(game)
        try:
            settlements = await self._settlement_service.generate_settlements(game_id)
        except SettlementPersistenceError:
            return CompletionResult(
                game_id=game_id,
                outcome=CompletionOutcome.SETTLEMENTS_PENDING,
                warnings=warnings,
            )
        return CompletionResult(
            game_id=game_id,
            outcome=outcome,
            warnings=warnings,
            settlements=settlements,
        )

    # ------------------------------------------------------------------
    # Create game
    # ------------------------------------------------------------------

    async def create_game(
        self,
        group_id: str,
        stakes: str,
        default_buy_in: float,
        bank_person_id: str,
        date: Optional[datetime] = None,
    ) -> Game:
        """Create a new, already active game with no players.

        Raises:
            InvalidStateError: Non-positive default buy-in, or the bank
                person is not a member of the group.
            NotFoundError: Group not found.
        """
        if default_buy_in <= 0:
            raise InvalidStateError("Default buy-in must be greater than 0")

        if self._group_dal is not None:
            members = await self._get_members(group_id)
            if members is None:
                raise NotFoundError("Group not found")
            if bank_person_id not in members:
                raise InvalidStateError("Bank person must be a member of the group")

        now = datetime.now(timezone.utc)
        game = Game(
            group_id=group_id,
            date=date or now,
            stakes=stakes,
            default_buy_in=default_buy_in,
            bank_person_id=bank_person_id,
            start_time=now,
            created_at=now,
            updated_at=now,
        )
        game = await self._game_dal.create(game)
        logger.info(
            "Game created: id=%s group=%s stakes=%s default_buy_in=%.2f",
            game.id, group_id, stakes, default_buy_in,
        )
        return game

    # ------------------------------------------------------------------
    # Get game
    # ------------------------------------------------------------------

    async def get_game(self, game_id: str) -> Game:
        """Get a game by its MongoDB ID.

        Raises:
            NotFoundError: Game not found.
        """
        game = await self._game_dal.get_by_id(game_id)
        if game is None:
            raise NotFoundError("Game not found")
        return game

    async def list_games(
        self,
        group_id: str,
        completed: Optional[bool] = None,
        limit: int = 50,
        skip: int = 0,
    ) -> list[Game]:
        return await self._game_dal.list_by_group(
            group_id, completed=completed, limit=limit, skip=skip
        )

    # ------------------------------------------------------------------
    # Player participation
    # ------------------------------------------------------------------

    async def opt_in(self, game_id: str, player_id: str, buy_in: float) -> Game:
        """Join a player to an active game, or re-join with a new buy-in.

        Raises:
            NotFoundError: Game not found.
            InvalidStateError: Game completed, buy-in not positive, or the
                player is not a member of the game's group.
        """
        game = await self.get_game(game_id)
        members = await self._get_members(game.group_id)
        if members is not None and player_id not in members:
            raise InvalidStateError("Player is not a member of this game's group")

        game, player = await self._mutate(
            game_id, lambda g: game_state.opt_in(g, player_id, buy_in)
        )
        logger.info(
            "Player opted in: game_id=%s player=%s buy_in=%.2f",
            game_id, player_id, player.buy_in,
        )
        return game

    async def add_rebuy(self, game_id: str, player_id: str, amount: float) -> Game:
        """Record a rebuy for a player in an active game.

        Raises:
            NotFoundError: Game or player not found.
            InvalidStateError: Game completed or amount not positive.
        """
        game, player = await self._mutate(
            game_id, lambda g: game_state.add_rebuy(g, player_id, amount)
        )
        logger.info(
            "Rebuy: game_id=%s player=%s amount=%.2f (rebuys=%d, total=%.2f)",
            game_id, player_id, amount, player.rebuys, player.rebuy_amount,
        )
        return game

    async def remove_player(self, game_id: str, player_id: str) -> Game:
        """Remove (opt out) a player from an active game.

        Raises:
            NotFoundError: Game or player not found.
            InvalidStateError: Game completed.
        """
        game, _ = await self._mutate(
            game_id, lambda g: game_state.remove_player(g, player_id)
        )
        logger.info("Player removed: game_id=%s player=%s", game_id, player_id)
        return game

    async def cash_out(
        self, game_id: str, player_id: str, amount: float
    ) -> dict[str, Any]:
        """Record a player's cash-out; completes the game if they were last.

        Returns:
            A dict with ``game`` and ``completion`` (a CompletionResult when
            this cash-out completed the game, otherwise None).

        Raises:
            NotFoundError: Game or player not found.
            InvalidStateError: Game completed or amount negative.
        """
        game, completed = await self._mutate(
            game_id, lambda g: game_state.cash_out(g, player_id, amount)
        )
        logger.info(
            "Player cashed out: game_id=%s player=%s amount=%.2f",
            game_id, player_id, amount,
        )

        completion = None
        if completed:
            logger.info("Game %s auto-completed: all players cashed out", game_id)
            completion = await self._settle(game, CompletionOutcome.OK)
            game = await self.get_game(game_id)

        return {"game": game, "completion": completion}

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def complete_game(self, game_id: str) -> CompletionResult:
        """Manually complete a game and generate its settlements.

        Repeat calls are no-ops reported as ALREADY_COMPLETED; imbalance is
        reported as a warning, never refused.

        Raises:
            NotFoundError: Game not found.
            ConcurrentModificationError: Still conflicting after retries.
        """
        for attempt in range(self._max_retries):
            game = await self.get_game(game_id)
            if game.is_completed:
                logger.info("complete_game on already completed game %s", game_id)
                return await self._settle(game, CompletionOutcome.ALREADY_COMPLETED)

            game_state.mark_completed(game)
            if await self._game_dal.save_if_version(game):
                logger.info(
                    "Game %s completed manually (players=%d, duration=%s min)",
                    game_id, len(game.players), game.duration,
                )
                return await self._settle(game, CompletionOutcome.OK)

            logger.warning(
                "Retrying completion of game %s (attempt %d/%d)",
                game_id, attempt + 1, self._max_retries,
            )

        raise ConcurrentModificationError(
            "Game was modified concurrently. Please try again."
        )

    async def can_complete(
        self,
        game_id: str,
        proposed_cash_outs: Optional[dict[str, float]] = None,
    ) -> dict[str, Any]:
        """Evaluate the pre-completion gate for a game.

        Returns:
            A dict with can_complete, is_balanced, total_invested,
            total_cash_out, difference and missing_cash_outs.
        """
        game = await self.get_game(game_id)
        proposed = proposed_cash_outs or {}

        missing = [
            p.player_id
            for p in game.players
            if p.player_id not in proposed and not p.has_cashed_out
        ]
        total_invested = sum(p.total_invested for p in game.players)
        total_cash_out = sum(
            proposed.get(p.player_id, p.cash_out) for p in game.players
        )
        balanced = is_balanced(total_invested, total_cash_out, self._tolerance)

        return {
            "game_id": game_id,
            "can_complete": (
                not game.is_completed
                and can_complete(game.players, proposed, self._tolerance)
            ),
            "is_balanced": balanced,
            "total_invested": round_currency(total_invested),
            "total_cash_out": round_currency(total_cash_out),
            "difference": round_currency(total_cash_out - total_invested),
            "missing_cash_outs": missing,
        }

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    async def get_game_summary(self, game_id: str) -> GameSummary:
        """Totals, balanced flag and per-player results for a game."""
        game = await self.get_game(game_id)
        totals = compute_game_totals(game.players)

        biggest_winner: Optional[ResultHighlight] = None
        biggest_loser: Optional[ResultHighlight] = None
        for p in game.players:
            if p.profit > 0 and (biggest_winner is None or p.profit > biggest_winner.amount):
                biggest_winner = ResultHighlight(player_id=p.player_id, amount=p.profit)
            if p.profit < 0 and (biggest_loser is None or abs(p.profit) > biggest_loser.amount):
                biggest_loser = ResultHighlight(player_id=p.player_id, amount=abs(p.profit))

        return GameSummary(
            game_id=game_id,
            total_buy_in=totals["total_invested"],
            total_cash_out=totals["total_cash_out"],
            is_balanced=is_balanced(
                totals["total_invested"], totals["total_cash_out"], self._tolerance
            ),
            difference=round_currency(totals["total_cash_out"] - totals["total_invested"]),
            biggest_winner=biggest_winner,
            biggest_loser=biggest_loser,
            player_results=[
                PlayerResult(
                    player_id=p.player_id,
                    buy_in=p.buy_in,
                    rebuy_amount=p.rebuy_amount,
                    cash_out=p.cash_out,
                    profit=p.profit,
                )
                for p in game.players
            ],
        )

    # ------------------------------------------------------------------
    # Analytics extension
    # ------------------------------------------------------------------

    async def update_player_stats(
        self, game_id: str, player_id: str, fields: dict[str, Any]
    ) -> GamePlayerStats:
        """Merge free-form analytics fields for a player in a game.

        Raises:
            InvalidStateError: Stats disabled, or a field name is empty,
                contains ".", or starts with "$".
        """
        if self._stats_dal is None:
            raise InvalidStateError("Player statistics are not enabled")
        _check_stats_keys(fields)
        game = await self.get_game(game_id)
        if game.find_player(player_id) is None:
            raise NotFoundError("Player not found in this game")
        return await self._stats_dal.upsert(game_id, player_id, fields)

    async def get_player_stats(
        self, game_id: str, player_id: str
    ) -> Optional[GamePlayerStats]:
        if self._stats_dal is None:
            return None
        return await self._stats_dal.get(game_id, player_id)
