"""Health check endpoint.

Reports database reachability and the settlement backlog, i.e. completed
games whose settlements are queued or still being written.
"""

import logging

from fastapi import APIRouter
from pymongo.errors import PyMongoError

from pokertracker.config import settings
from pokertracker.dal.database import get_database
from pokertracker.models.common import SettlementStatus

logger = logging.getLogger("pokertracker.routes.health")
router = APIRouter(tags=["Health"])

_BACKLOG = [str(SettlementStatus.PENDING), str(SettlementStatus.GENERATING)]


@router.get("/health")
async def health_check():
    """Always answers 200; degraded dependencies show up in ``checks``."""
    checks = {"database": "unknown", "pending_settlements": None}
    healthy = True

    try:
        db = get_database()
        await db.command("ping")
        checks["database"] = "ok"
        checks["pending_settlements"] = await db.games.count_documents(
            {"is_completed": True, "settlement_status": {"$in": _BACKLOG}}
        )
    except (RuntimeError, PyMongoError) as e:
        logger.warning("Database health check failed: %s", str(e))
        checks["database"] = "down"
        healthy = False

    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.APP_VERSION,
        "checks": checks,
    }
