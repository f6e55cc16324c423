"""CIRRUS — Sync & Migration API Routes."""

import asyncio
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.engine import Engine

from app.core.exceptions import StoreError, SyncError
from app.core.logging import get_logger
from app.database import get_engine
from app.migrations.engine import SchemaMigrationEngine
from app.models.catalog_models import PricingUpdate
from app.repository import CatalogRepository
from app.sync.runner import run_catalog_sync

logger = get_logger("api.sync")

router = APIRouter(tags=["Sync"])


# ── Response Models ──


class RunSyncResponse(BaseModel):
    """Response for POST /sync/run."""

    status: str = "success"
    update: PricingUpdate


class PricingUpdatesResponse(BaseModel):
    """Response for GET /sync/updates."""

    status: str = "success"
    count: int
    updates: List[PricingUpdate]


# ── Endpoints ──


@router.post("/sync/run", response_model=RunSyncResponse)
async def trigger_sync(engine: Engine = Depends(get_engine)):
    """Run one full catalog sync now and return its audit record."""
    try:
        update = await run_catalog_sync(engine)
        return RunSyncResponse(update=update)
    except SyncError as e:
        logger.error(f"Sync failed: {e}")
        raise HTTPException(status_code=502, detail=f"Catalog source failed: {e.message}")
    except StoreError as e:
        logger.error(f"Sync failed: {e}")
        raise HTTPException(status_code=500, detail=f"Store write failed: {e.message}")
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail="Sync run timed out")


@router.get("/sync/updates", response_model=PricingUpdatesResponse)
async def list_sync_updates(
    limit: int = Query(20, ge=1, le=500),
    engine: Engine = Depends(get_engine),
):
    """Audit trail of completed sync runs, newest first."""
    updates = CatalogRepository(engine).list_pricing_updates(limit=limit)
    return PricingUpdatesResponse(count=len(updates), updates=updates)


@router.get("/migrations")
async def list_migrations(engine: Engine = Depends(get_engine)):
    """Schema versions applied to the store."""
    migrations = SchemaMigrationEngine(engine)
    migrations.ensure_tracking_table()
    versions = sorted(migrations.applied_versions())
    return {"status": "success", "count": len(versions), "versions": versions}
