"""
PokerTracker FastAPI Application Entry Point.

Configures FastAPI, sets up middleware, registers routes, maps ledger
exceptions to HTTP responses and manages the MongoDB connection and the
settlement recovery task.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pokertracker.config import settings
from pokertracker.dal.database import connect_to_mongo, close_mongo_connection, ensure_indexes, get_database
from pokertracker.routes.health import router as health_router
from pokertracker.routes.games import router as games_router
from pokertracker.routes.settlements import router as settlements_router
from pokertracker.routes.payments import router as payments_router
from pokertracker.routes.balances import router as balances_router
from pokertracker.services.exceptions import LedgerError
from pokertracker.tasks import start_settlement_recovery, stop_settlement_recovery

logger = logging.getLogger("pokertracker.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.
    Handles startup and shutdown events for MongoDB connection.
    """
    # Startup: Connect to MongoDB and ensure indexes
    try:
        await connect_to_mongo()
        db = get_database()
        await ensure_indexes(db)
        logger.info("PokerTracker v%s started with database connection", settings.APP_VERSION)

        # Finish settlements left pending by earlier failures
        start_settlement_recovery()
    except Exception as e:
        # Allow the app to start even if MongoDB is not available so the
        # health endpoint can report the outage.
        logger.warning(
            "Failed to connect to MongoDB during startup: %s. "
            "Application will start but database operations will fail until connection is established.",
            str(e)
        )
        logger.info("PokerTracker v%s started WITHOUT database connection", settings.APP_VERSION)

    yield

    # Shutdown: Stop background tasks and close MongoDB connection
    stop_settlement_recovery()
    await close_mongo_connection()
    logger.info("PokerTracker shutdown complete")


# Initialize FastAPI application
app = FastAPI(
    title="PokerTracker API",
    description="Home poker game ledger and settlement engine - REST API",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID", "X-Player-Id"],
    expose_headers=["X-Request-ID"],
    max_age=600,  # Cache preflight requests for 10 minutes
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Translate service-layer exceptions into ``{"detail": ...}`` responses."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Register routers
app.include_router(health_router)  # Health endpoint at root level
app.include_router(health_router, prefix="/api")
app.include_router(games_router, prefix="/api")
app.include_router(settlements_router, prefix="/api")
app.include_router(payments_router, prefix="/api")
app.include_router(balances_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "PokerTracker API",
        "version": settings.APP_VERSION,
        "status": "operational",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pokertracker.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
