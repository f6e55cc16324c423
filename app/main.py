"""CIRRUS — FastAPI Application Entry Point.

Cloud pricing catalog sync service.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.exceptions import MigrationError
from app.database import _mask_url, db_url, engine, test_connection
from app.scheduler.jobs import start_scheduler, stop_scheduler
from app.api.sync_routes import router as sync_router
from app.core.logging import get_logger
from app.sync.runner import migrate_database

logger = get_logger("main")


IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 CIRRUS starting up...")
    logger.info(f"🌍 Environment: {'SERVERLESS' if IS_SERVERLESS else 'LOCAL'}")
    # Test connection first
    db_ok = test_connection()
    if db_ok:
        try:
            applied = migrate_database(engine)
            logger.info(f"✅ Schema ready ({len(applied)} migrations applied now)")
        except MigrationError as e:
            logger.error(f"❌ Migration {e.unit_name} failed: {e}")
    else:
        logger.error("❌ Database NOT connected — endpoints will fail")
    if not IS_SERVERLESS:
        start_scheduler()
    yield
    if not IS_SERVERLESS:
        stop_scheduler()
    logger.info("CIRRUS shut down")


app = FastAPI(
    title="CIRRUS",
    description="Cloud pricing catalog sync — pulls the provider billing catalog into a local relational store.",
    version="1.0.0",
    lifespan=lifespan,
)

# Routers
app.include_router(sync_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "cirrus",
        "version": "1.0.0",
    }


@app.get("/debug/db", tags=["System"])
async def debug_db():
    """Debug endpoint — check database connectivity."""
    error = None
    connected = False
    try:
        connected = test_connection()
    except Exception as e:
        error = str(e)

    backend = "postgresql" if db_url.startswith("postgresql") else "sqlite"
    return {
        "connected": connected,
        "backend": backend,
        "url": _mask_url(db_url),
        "environment": "serverless" if IS_SERVERLESS else "local",
        "error": error,
    }
