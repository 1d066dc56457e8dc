"""Background tasks for PokerTracker."""

from pokertracker.tasks.settlement_recovery import (
    retry_pending_settlements,
    start_settlement_recovery,
    stop_settlement_recovery,
)

__all__ = [
    "start_settlement_recovery",
    "stop_settlement_recovery",
    "retry_pending_settlements",
]
