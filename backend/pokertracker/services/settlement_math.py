"""Pure settlement allocation.

Turns final per-player profits into directed debts. No database access,
no async. Inputs are ``(player_id, profit)`` pairs; outputs are dicts with
from_player_id, to_player_id and amount.
"""

from typing import Iterable

from pokertracker.models.common import SettlementStrategy
from pokertracker.services.ledger_math import round_currency


def compute_proportional_settlements(
    profits: Iterable[tuple[str, float]],
) -> list[dict]:
    """Each loser pays every winner in proportion to that winner's share.

    Produces up to ``losers x winners`` debts. Amounts are rounded to cents
    per debt, so a loser's debts may miss their loss by up to one cent.

    Example:
        Profits +150 / -50 / -100 give two debts of 50 and 100, both to
        the single winner.
    """
    entries = list(profits)
    winners = [(pid, p) for pid, p in entries if p > 0]
    losers = [(pid, p) for pid, p in entries if p < 0]
    if not winners or not losers:
        return []

    total_won = sum(p for _, p in winners)
    debts: list[dict] = []
    for loser_id, loser_profit in losers:
        total_owed = abs(loser_profit)
        for winner_id, winner_profit in winners:
            proportion = winner_profit / total_won
            amount = round_currency(total_owed * proportion)
            if amount > 0:
                debts.append(
                    {
                        "from_player_id": loser_id,
                        "to_player_id": winner_id,
                        "amount": amount,
                    }
                )
    return debts


def compute_greedy_settlements(
    profits: Iterable[tuple[str, float]],
) -> list[dict]:
    """Largest debtor pays largest creditor until everyone is square.

    Yields at most ``players - 1`` debts. Balances within a cent count as
    settled.
    """
    entries = list(profits)
    creditors = sorted(
        ([pid, p] for pid, p in entries if p > 0),
        key=lambda e: e[1],
        reverse=True,
    )
    debtors = sorted(
        ([pid, -p] for pid, p in entries if p < 0),
        key=lambda e: e[1],
        reverse=True,
    )

    debts: list[dict] = []
    d_idx = 0
    c_idx = 0
    while d_idx < len(debtors) and c_idx < len(creditors):
        debtor = debtors[d_idx]
        creditor = creditors[c_idx]
        amount = round_currency(min(debtor[1], creditor[1]))
        if amount > 0:
            debts.append(
                {
                    "from_player_id": debtor[0],
                    "to_player_id": creditor[0],
                    "amount": amount,
                }
            )
        debtor[1] -= amount
        creditor[1] -= amount
        if debtor[1] < 0.01:
            d_idx += 1
        if creditor[1] < 0.01:
            c_idx += 1
    return debts


def compute_settlements(
    profits: Iterable[tuple[str, float]],
    strategy: SettlementStrategy = SettlementStrategy.PROPORTIONAL,
) -> list[dict]:
    """Dispatch to the configured allocation rule. Never mixes the two."""
    if strategy == SettlementStrategy.GREEDY:
        return compute_greedy_settlements(profits)
    return compute_proportional_settlements(profits)
