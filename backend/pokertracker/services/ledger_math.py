"""Pure functions for ledger calculations.

No database access, no async. Inputs are plain numbers or objects exposing
``buy_in``, ``rebuy_amount``, ``cash_out``, ``has_cashed_out`` and
``player_id`` attributes (GamePlayer instances in practice).
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

DEFAULT_TOLERANCE = 0.01


def compute_profit(buy_in: float, rebuy_amount: float, cash_out: float) -> float:
    """Profit is the cash-out minus everything the player put in."""
    return cash_out - (buy_in + rebuy_amount)


def is_balanced(
    total_buy_in: float,
    total_cash_out: float,
    tolerance: float = DEFAULT_TOLERANCE,
) -> bool:
    """True when money in and money out agree within ``tolerance``.

    Sub-cent float drift must not block completion.
    """
    return abs(total_buy_in - total_cash_out) < tolerance


def round_currency(value: float) -> float:
    """Round to cents, half away from zero (2.675 -> 2.68, -0.005 -> -0.01)."""
    if not math.isfinite(value):
        return 0.0
    quantized = Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(quantized)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def safe_divide(numerator: float, denominator: float, default: float = 0) -> float:
    if not _is_number(numerator) or not _is_number(denominator) or denominator == 0:
        return default
    return numerator / denominator


def safe_average(values: Optional[Iterable[float]]) -> float:
    if not values:
        return 0
    valid = [v for v in values if _is_number(v)]
    if not valid:
        return 0
    return sum(valid) / len(valid)


def safe_percentage(part: float, total: float) -> float:
    """Percentage of ``part`` in ``total``, clamped to 0..100."""
    if not _is_number(part) or not _is_number(total) or total == 0:
        return 0
    return min(100, max(0, (part / total) * 100))


def compute_game_totals(players: Iterable[Any]) -> dict[str, float]:
    """Sum buy-ins, rebuys and cash-outs over a game's players.

    Returns:
        Dict with total_buy_in, total_rebuys, total_invested and
        total_cash_out.
    """
    total_buy_in = 0.0
    total_rebuys = 0.0
    total_cash_out = 0.0
    for p in players:
        total_buy_in += p.buy_in
        total_rebuys += p.rebuy_amount
        total_cash_out += p.cash_out

    return {
        "total_buy_in": total_buy_in,
        "total_rebuys": total_rebuys,
        "total_invested": total_buy_in + total_rebuys,
        "total_cash_out": total_cash_out,
    }


def can_complete(
    players: Iterable[Any],
    proposed_cash_outs: Optional[dict[str, float]] = None,
    tolerance: float = DEFAULT_TOLERANCE,
) -> bool:
    """Whether a game is ready to be completed.

    Every player needs a cash-out, either proposed here or already
    recorded, and the proposed totals must balance against buy-ins plus
    rebuys. A host may still force-complete when this returns False.
    """
    proposed = proposed_cash_outs or {}
    players = list(players)
    if not players:
        return False

    total_invested = 0.0
    total_cash_out = 0.0
    for p in players:
        if p.player_id in proposed:
            amount = proposed[p.player_id]
        elif p.has_cashed_out:
            amount = p.cash_out
        else:
            return False
        if amount is None or not _is_number(amount) or amount < 0:
            return False
        total_invested += p.buy_in + p.rebuy_amount
        total_cash_out += amount

    return is_balanced(total_invested, total_cash_out, tolerance)
