"""Integration tests for settlement, payment and balance route handlers."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pokertracker.routes import balances as balances_route_module
from pokertracker.routes import games as games_route_module
from pokertracker.routes import payments as payments_route_module
from pokertracker.routes import settlements as settlements_route_module

ALICE = {"X-Player-Id": "alice"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def test_client(mock_db, monkeypatch):
    """Async HTTP client wired to the FastAPI app with mocked db."""
    from pokertracker.main import app

    getter = lambda: mock_db
    for module in (
        games_route_module,
        settlements_route_module,
        payments_route_module,
        balances_route_module,
    ):
        monkeypatch.setattr(module, "get_database", getter)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _play_game(
    test_client: AsyncClient, results: dict[str, float], complete: bool = True
) -> str:
    """Create a game where everyone buys in for 100 and cashes out ``results``."""
    resp = await test_client.post(
        "/api/games",
        json={"group_id": "group-1", "stakes": "1/2", "default_buy_in": 100, "bank_person_id": "alice"},
        headers=ALICE,
    )
    assert resp.status_code == 201
    game_id = resp.json()["game_id"]

    for player_id in results:
        resp = await test_client.post(
            f"/api/games/{game_id}/players",
            json={"player_id": player_id, "buy_in": 100},
            headers=ALICE,
        )
        assert resp.status_code == 200

    if complete:
        for player_id, amount in results.items():
            resp = await test_client.post(
                f"/api/games/{game_id}/players/{player_id}/cash-out",
                json={"amount": amount},
                headers=ALICE,
            )
            assert resp.status_code == 200
    return game_id


# ---------------------------------------------------------------------------
# Settlements
# ---------------------------------------------------------------------------

class TestSettlementRoutes:

    @pytest.mark.asyncio
    async def test_list_game_settlements(self, test_client: AsyncClient):
        game_id = await _play_game(test_client, {"alice": 250, "bob": 50, "carol": 0})
        resp = await test_client.get(f"/api/games/{game_id}/settlements")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 2
        assert all(s["is_paid"] is False for s in data)
        assert sum(s["amount"] for s in data) == 150

    @pytest.mark.asyncio
    async def test_generate_is_idempotent(self, test_client: AsyncClient):
        game_id = await _play_game(test_client, {"alice": 150, "bob": 50})
        resp = await test_client.post(
            f"/api/games/{game_id}/settlements/generate", headers=ALICE
        )
        assert resp.status_code == 200
        assert len(resp.json()) == 1

        listed = await test_client.get(f"/api/games/{game_id}/settlements")
        assert len(listed.json()) == 1

    @pytest.mark.asyncio
    async def test_generate_for_active_game(self, test_client: AsyncClient):
        game_id = await _play_game(test_client, {"alice": 150, "bob": 50}, complete=False)
        resp = await test_client.post(
            f"/api/games/{game_id}/settlements/generate", headers=ALICE
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_toggle_and_mark_paid(self, test_client: AsyncClient):
        game_id = await _play_game(test_client, {"alice": 150, "bob": 50})
        settlement_id = (await test_client.get(f"/api/games/{game_id}/settlements")).json()[0]["settlement_id"]

        resp = await test_client.post(f"/api/settlements/{settlement_id}/toggle", headers=ALICE)
        assert resp.status_code == 200
        assert resp.json()["is_paid"] is True
        assert resp.json()["paid_at"] is not None

        resp = await test_client.post(f"/api/settlements/{settlement_id}/toggle", headers=ALICE)
        assert resp.json()["is_paid"] is False
        assert resp.json()["paid_at"] is None

        resp = await test_client.post(f"/api/settlements/{settlement_id}/mark-paid", headers=ALICE)
        assert resp.status_code == 200
        assert resp.json()["is_paid"] is True

    @pytest.mark.asyncio
    async def test_unknown_settlement(self, test_client: AsyncClient):
        resp = await test_client.post(
            "/api/settlements/65f000000000000000000001/toggle", headers=ALICE
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_player_settlements_unpaid_only(self, test_client: AsyncClient):
        game_id = await _play_game(test_client, {"alice": 250, "bob": 50, "carol": 0})
        settlements = (await test_client.get(f"/api/games/{game_id}/settlements")).json()
        bob_debt = next(s for s in settlements if s["from_player_id"] == "bob")
        await test_client.post(f"/api/settlements/{bob_debt['settlement_id']}/toggle", headers=ALICE)

        resp = await test_client.get("/api/players/alice/settlements")
        assert len(resp.json()) == 2
        resp = await test_client.get("/api/players/alice/settlements", params={"unpaid_only": "true"})
        assert [s["from_player_id"] for s in resp.json()] == ["carol"]


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

class TestPaymentRoutes:

    @pytest.mark.asyncio
    async def test_default_unpaid(self, test_client: AsyncClient):
        game_id = await _play_game(test_client, {"alice": 150, "bob": 50})
        resp = await test_client.get(f"/api/games/{game_id}/payments/bob")
        assert resp.status_code == 200
        assert resp.json() == {
            "game_id": game_id,
            "player_id": "bob",
            "is_paid": False,
            "paid_at": None,
        }

    @pytest.mark.asyncio
    async def test_toggle_flips(self, test_client: AsyncClient):
        game_id = await _play_game(test_client, {"alice": 150, "bob": 50})
        resp = await test_client.post(f"/api/games/{game_id}/payments/bob/toggle", headers=ALICE)
        assert resp.status_code == 200
        assert resp.json()["is_paid"] is True

        resp = await test_client.post(f"/api/games/{game_id}/payments/bob/toggle", headers=ALICE)
        assert resp.json()["is_paid"] is False

        resp = await test_client.get(f"/api/games/{game_id}/payments")
        assert len(resp.json()) == 1

    @pytest.mark.asyncio
    async def test_independent_of_settlements(self, test_client: AsyncClient):
        game_id = await _play_game(test_client, {"alice": 150, "bob": 50})
        await test_client.post(f"/api/games/{game_id}/payments/bob/toggle", headers=ALICE)
        settlements = (await test_client.get(f"/api/games/{game_id}/settlements")).json()
        assert all(s["is_paid"] is False for s in settlements)

    @pytest.mark.asyncio
    async def test_toggle_unknown_game(self, test_client: AsyncClient):
        resp = await test_client.post(
            "/api/games/65f000000000000000000001/payments/bob/toggle", headers=ALICE
        )
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------

class TestBalanceRoutes:

    @pytest.mark.asyncio
    async def test_balance_across_games(self, test_client: AsyncClient):
        await _play_game(test_client, {"alice": 250, "bob": 50, "carol": 0})
        await _play_game(test_client, {"alice": 50, "bob": 150})

        resp = await test_client.get("/api/players/alice/balance")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_profit"] == 100
        assert data["net_balance"] == 100
        assert data["games_played"] == 2
        assert data["owed_by_others"] == 150
        assert data["owes_to_others"] == 50

    @pytest.mark.asyncio
    async def test_balance_for_newcomer(self, test_client: AsyncClient):
        resp = await test_client.get("/api/players/dave/balance", params={"group_id": "group-1"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["group_id"] == "group-1"
        assert data["games_played"] == 0
        assert data["net_balance"] == 0
