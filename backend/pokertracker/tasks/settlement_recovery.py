"""Background task that finishes settlement generation for completed games.

A game whose settlements failed to persist stays completed with
settlement status PENDING, or GENERATING when its writer died mid-batch.
This task periodically retries both, the latter once the claim lease has
expired, so the debts are never silently dropped.
"""

import asyncio
import logging
from typing import Optional

from pokertracker.config import settings
from pokertracker.dal.database import get_database
from pokertracker.dal.games_dal import GameDAL
from pokertracker.dal.settlements_dal import SettlementDAL
from pokertracker.services.settlement_service import SettlementService

logger = logging.getLogger("pokertracker.tasks.settlement_recovery")

# Global task handle for cancellation
_recovery_task: Optional[asyncio.Task] = None


async def retry_pending_settlements() -> int:
    """Generate settlements for every completed game still pending.

    Returns:
        Number of games whose settlements were generated.
    """
    try:
        db = get_database()
    except RuntimeError:
        logger.warning("Database not available, skipping settlement recovery")
        return 0

    service = SettlementService(GameDAL(db), SettlementDAL(db))
    generated = await service.retry_pending()
    if generated > 0:
        logger.info("Recovered settlements for %d game(s)", generated)
    return generated


async def _recovery_loop():
    """Background loop that periodically retries pending settlements."""
    interval = settings.SETTLEMENT_RETRY_INTERVAL_SECONDS
    logger.info("Settlement recovery started (interval=%ds)", interval)

    while True:
        try:
            await asyncio.sleep(interval)
            await retry_pending_settlements()
        except asyncio.CancelledError:
            logger.info("Settlement recovery stopped")
            break
        except Exception as e:
            logger.error("Error in settlement recovery: %s", str(e))


def start_settlement_recovery():
    """Start the background settlement recovery task."""
    global _recovery_task

    if _recovery_task is not None and not _recovery_task.done():
        logger.warning("Settlement recovery already running")
        return

    _recovery_task = asyncio.create_task(_recovery_loop())
    logger.info("Settlement recovery task created")


def stop_settlement_recovery():
    """Stop the background settlement recovery task."""
    global _recovery_task

    if _recovery_task is not None and not _recovery_task.done():
        _recovery_task.cancel()
        logger.info("Settlement recovery task cancelled")
    _recovery_task = None
