"""Unit tests for SettlementService: generation guard and paid-state ledger."""

import asyncio
import time
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from bson import ObjectId
from pymongo.errors import PyMongoError

from pokertracker.dal.games_dal import GameDAL
from pokertracker.models.common import SettlementStatus, SettlementStrategy
from pokertracker.models.game import Game, GamePlayer
from pokertracker.services.exceptions import (
    InvalidStateError,
    NotFoundError,
    SettlementPersistenceError,
)
from pokertracker.services.settlement_service import SettlementService


def _player(player_id: str, buy_in: float, cash_out: float) -> GamePlayer:
    player = GamePlayer(
        player_id=player_id, buy_in=buy_in, cash_out=cash_out, has_cashed_out=True
    )
    player.recompute_profit()
    return player


async def _insert_game(
    game_dal: GameDAL,
    players: list[GamePlayer],
    is_completed: bool = True,
    settlement_status: SettlementStatus = SettlementStatus.PENDING,
    group_id: str = "group-1",
) -> str:
    game = Game(
        group_id=group_id,
        stakes="1/2",
        default_buy_in=100,
        bank_person_id="alice",
        is_completed=is_completed,
        settlement_status=settlement_status,
        players=players,
    )
    game = await game_dal.create(game)
    return str(game.id)


@pytest_asyncio.fixture
async def finished_game_id(game_dal) -> str:
    """Completed game: alice +150, bob -50, carol -100."""
    return await _insert_game(
        game_dal,
        [_player("alice", 100, 250), _player("bob", 100, 50), _player("carol", 100, 0)],
    )


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class TestGenerateSettlements:

    @pytest.mark.asyncio
    async def test_generates_proportional_debts(
        self, settlement_service, game_dal, finished_game_id
    ):
        settlements = await settlement_service.generate_settlements(finished_game_id)
        assert [(s.from_player_id, s.to_player_id, s.amount) for s in settlements] == [
            ("bob", "alice", 50),
            ("carol", "alice", 100),
        ]
        assert all(s.id is not None for s in settlements)
        assert all(s.group_id == "group-1" for s in settlements)
        assert all(s.is_paid is False for s in settlements)

        game = await game_dal.get_by_id(finished_game_id)
        assert game.settlement_status == SettlementStatus.GENERATED

    @pytest.mark.asyncio
    async def test_second_call_returns_stored(
        self, settlement_service, settlement_dal, finished_game_id
    ):
        first = await settlement_service.generate_settlements(finished_game_id)
        second = await settlement_service.generate_settlements(finished_game_id)
        assert sorted(s.id for s in first) == sorted(s.id for s in second)
        assert await settlement_dal.count_by_game(finished_game_id) == 2

    @pytest.mark.asyncio
    async def test_concurrent_generation_writes_once(
        self, settlement_service, settlement_dal, finished_game_id
    ):
        await asyncio.gather(
            settlement_service.generate_settlements(finished_game_id),
            settlement_service.generate_settlements(finished_game_id),
            settlement_service.generate_settlements(finished_game_id),
        )
        assert await settlement_dal.count_by_game(finished_game_id) == 2

    @pytest.mark.asyncio
    async def test_active_game_rejected(self, settlement_service, game_dal):
        game_id = await _insert_game(
            game_dal,
            [_player("alice", 100, 150)],
            is_completed=False,
            settlement_status=SettlementStatus.NONE,
        )
        with pytest.raises(InvalidStateError):
            await settlement_service.generate_settlements(game_id)

    @pytest.mark.asyncio
    async def test_unknown_game(self, settlement_service):
        with pytest.raises(NotFoundError):
            await settlement_service.generate_settlements("65f000000000000000000001")

    @pytest.mark.asyncio
    async def test_completed_game_without_status_is_generated(
        self, settlement_service, game_dal
    ):
        game_id = await _insert_game(
            game_dal,
            [_player("alice", 100, 200), _player("bob", 100, 0)],
            settlement_status=SettlementStatus.NONE,
        )
        settlements = await settlement_service.generate_settlements(game_id)
        assert len(settlements) == 1
        game = await game_dal.get_by_id(game_id)
        assert game.settlement_status == SettlementStatus.GENERATED

    @pytest.mark.asyncio
    async def test_break_even_game_has_no_settlements(self, settlement_service, game_dal):
        game_id = await _insert_game(
            game_dal, [_player("alice", 100, 100), _player("bob", 100, 100)]
        )
        assert await settlement_service.generate_settlements(game_id) == []
        game = await game_dal.get_by_id(game_id)
        assert game.settlement_status == SettlementStatus.GENERATED

    @pytest.mark.asyncio
    async def test_greedy_strategy(self, game_dal, settlement_dal):
        service = SettlementService(
            game_dal, settlement_dal, strategy=SettlementStrategy.GREEDY
        )
        game_id = await _insert_game(
            game_dal,
            [
                _player("alice", 100, 160),
                _player("bob", 100, 140),
                _player("carol", 100, 30),
                _player("dave", 100, 70),
            ],
        )
        settlements = await service.generate_settlements(game_id)
        assert len(settlements) == 3

    @pytest.mark.asyncio
    async def test_retry_pending_skips_generated(
        self, settlement_service, finished_game_id
    ):
        assert await settlement_service.retry_pending() == 1
        assert await settlement_service.retry_pending() == 0

    @pytest.mark.asyncio
    async def test_concurrent_generation_from_none_writes_once(
        self, settlement_service, settlement_dal, game_dal
    ):
        game_id = await _insert_game(
            game_dal,
            [_player("alice", 100, 250), _player("bob", 100, 50), _player("carol", 100, 0)],
            settlement_status=SettlementStatus.NONE,
        )
        await asyncio.gather(
            settlement_service.generate_settlements(game_id),
            settlement_service.generate_settlements(game_id),
        )
        assert await settlement_dal.count_by_game(game_id) == 2
        game = await game_dal.get_by_id(game_id)
        assert game.settlement_status == SettlementStatus.GENERATED

    @pytest.mark.asyncio
    async def test_stale_read_of_none_status_keeps_generated_ledger(
        self, settlement_service, settlement_dal, game_dal, monkeypatch
    ):
        game_id = await _insert_game(
            game_dal,
            [_player("alice", 100, 250), _player("bob", 100, 50), _player("carol", 100, 0)],
            settlement_status=SettlementStatus.NONE,
        )
        snapshot = await game_dal.get_by_id(game_id)
        first = await settlement_service.generate_settlements(game_id)
        paid = await settlement_service.toggle_payment(first[0].id)

        # A second caller that read the game before the first one finished.
        monkeypatch.setattr(game_dal, "get_by_id", AsyncMock(return_value=snapshot))
        await settlement_service.generate_settlements(game_id)
        monkeypatch.undo()

        stored = await settlement_dal.list_by_game(game_id)
        assert sorted(s.id for s in stored) == sorted(s.id for s in first)
        assert next(s for s in stored if s.id == paid.id).is_paid is True
        game = await game_dal.get_by_id(game_id)
        assert game.settlement_status == SettlementStatus.GENERATED


# ---------------------------------------------------------------------------
# Storage failures and recovery
# ---------------------------------------------------------------------------

async def _expire_claim(mock_db, game_id: str) -> None:
    await mock_db.games.update_one(
        {"_id": ObjectId(game_id)},
        {"$set": {"settlement_lease_until": time.time() - 1}},
    )


class TestGenerationFailures:

    @pytest.mark.asyncio
    async def test_failed_rollback_still_returns_game_to_pending(
        self, settlement_service, settlement_dal, game_dal, finished_game_id, monkeypatch
    ):
        monkeypatch.setattr(
            settlement_dal, "create_many", AsyncMock(side_effect=PyMongoError("down"))
        )
        monkeypatch.setattr(
            settlement_dal, "delete_by_game", AsyncMock(side_effect=PyMongoError("down"))
        )
        with pytest.raises(SettlementPersistenceError):
            await settlement_service.generate_settlements(finished_game_id)

        game = await game_dal.get_by_id(finished_game_id)
        assert game.settlement_status == SettlementStatus.PENDING
        assert game.settlement_claim_id is None

        monkeypatch.undo()
        assert await settlement_service.retry_pending() == 1
        assert await settlement_dal.count_by_game(finished_game_id) == 2

    @pytest.mark.asyncio
    async def test_abandoned_claim_is_taken_over_after_lease(
        self, mock_db, settlement_service, settlement_dal, game_dal, finished_game_id, monkeypatch
    ):
        down = AsyncMock(side_effect=PyMongoError("down"))
        monkeypatch.setattr(settlement_dal, "create_many", down)
        monkeypatch.setattr(settlement_dal, "delete_by_game", down)
        monkeypatch.setattr(game_dal, "release_settlement_claim", down)
        with pytest.raises(SettlementPersistenceError):
            await settlement_service.generate_settlements(finished_game_id)
        monkeypatch.undo()

        game = await game_dal.get_by_id(finished_game_id)
        assert game.settlement_status == SettlementStatus.GENERATING

        # Lease still running: recovery leaves the claim alone.
        assert await settlement_service.retry_pending() == 0
        assert await settlement_service.generate_settlements(finished_game_id) == []

        await _expire_claim(mock_db, finished_game_id)
        assert len(await game_dal.find_pending_settlements()) == 1
        assert await settlement_service.retry_pending() == 1

        game = await game_dal.get_by_id(finished_game_id)
        assert game.settlement_status == SettlementStatus.GENERATED
        assert await settlement_dal.count_by_game(finished_game_id) == 2

    @pytest.mark.asyncio
    async def test_takeover_keeps_batch_already_stored(
        self, mock_db, settlement_service, settlement_dal, game_dal, finished_game_id
    ):
        first = await settlement_service.generate_settlements(finished_game_id)
        await settlement_service.mark_paid(first[0].id)

        # Writer stored the batch, then died before recording GENERATED.
        await mock_db.games.update_one(
            {"_id": ObjectId(finished_game_id)},
            {"$set": {"settlement_status": str(SettlementStatus.GENERATING)}},
        )
        await _expire_claim(mock_db, finished_game_id)

        assert await settlement_service.retry_pending() == 1
        stored = await settlement_dal.list_by_game(finished_game_id)
        assert sorted(s.id for s in stored) == sorted(s.id for s in first)
        assert sum(s.is_paid for s in stored) == 1
        game = await game_dal.get_by_id(finished_game_id)
        assert game.settlement_status == SettlementStatus.GENERATED

    @pytest.mark.asyncio
    async def test_claim_failure_is_reported_as_pending(
        self, settlement_service, game_dal, finished_game_id, monkeypatch
    ):
        monkeypatch.setattr(
            game_dal,
            "claim_settlement_generation",
            AsyncMock(side_effect=PyMongoError("down")),
        )
        with pytest.raises(SettlementPersistenceError):
            await settlement_service.generate_settlements(finished_game_id)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class TestQueries:

    @pytest.mark.asyncio
    async def test_settlements_for_game(self, settlement_service, finished_game_id):
        await settlement_service.generate_settlements(finished_game_id)
        listed = await settlement_service.get_settlements_for_game(finished_game_id)
        assert len(listed) == 2

    @pytest.mark.asyncio
    async def test_settlements_for_unknown_game(self, settlement_service):
        with pytest.raises(NotFoundError):
            await settlement_service.get_settlements_for_game("65f000000000000000000001")

    @pytest.mark.asyncio
    async def test_settlements_for_player(self, settlement_service, finished_game_id):
        settlements = await settlement_service.generate_settlements(finished_game_id)
        assert len(await settlement_service.get_settlements_for_player("alice")) == 2
        assert len(await settlement_service.get_settlements_for_player("bob")) == 1

        bob_debt = next(s for s in settlements if s.from_player_id == "bob")
        await settlement_service.mark_paid(bob_debt.id)
        unpaid = await settlement_service.get_settlements_for_player("alice", unpaid_only=True)
        assert [s.from_player_id for s in unpaid] == ["carol"]


# ---------------------------------------------------------------------------
# Paid state
# ---------------------------------------------------------------------------

class TestPaidState:

    @pytest.mark.asyncio
    async def test_toggle_twice_restores_unpaid(self, settlement_service, finished_game_id):
        settlement = (await settlement_service.generate_settlements(finished_game_id))[0]

        paid = await settlement_service.toggle_payment(settlement.id)
        assert paid.is_paid is True
        assert paid.paid_at is not None

        unpaid = await settlement_service.toggle_payment(settlement.id)
        assert unpaid.is_paid is False
        assert unpaid.paid_at is None
        assert unpaid.amount == settlement.amount
        assert unpaid.from_player_id == settlement.from_player_id

    @pytest.mark.asyncio
    async def test_mark_paid_is_one_way(self, settlement_service, finished_game_id):
        settlement = (await settlement_service.generate_settlements(finished_game_id))[0]
        first = await settlement_service.mark_paid(settlement.id)
        second = await settlement_service.mark_paid(settlement.id)
        assert first.is_paid is True
        assert second.is_paid is True
        assert second.paid_at == first.paid_at

    @pytest.mark.asyncio
    async def test_unknown_settlement(self, settlement_service):
        with pytest.raises(NotFoundError):
            await settlement_service.toggle_payment("65f000000000000000000001")
        with pytest.raises(NotFoundError):
            await settlement_service.mark_paid("bad-id")
