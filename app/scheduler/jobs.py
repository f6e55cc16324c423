"""CIRRUS — Scheduler Jobs.

APScheduler daily job that runs a full catalog sync at the configured hour.
"""

import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.config import settings
from app.core.exceptions import CirrusError
from app.core.logging import get_logger
from app.database import get_engine
from app.sync.runner import run_catalog_sync

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler(timezone="UTC")


async def daily_sync_job():
    """Run one full catalog sync."""
    logger.info("Scheduled catalog sync starting...")
    try:
        update = await run_catalog_sync(get_engine())
        logger.info(
            f"Scheduled sync complete. Services: {update.services_updated}, SKUs: {update.skus_updated}",
            extra={"update_id": update.update_id},
        )
    except asyncio.TimeoutError:
        logger.error(
            f"Scheduled sync exceeded {settings.sync_timeout_seconds}s and was cancelled"
        )
    except CirrusError as e:
        logger.error(f"Scheduled sync failed: {e}")


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        daily_sync_job,
        "cron",
        hour=settings.sync_hour,
        minute=0,
        id="daily_catalog_sync",
        replace_existing=True,
        misfire_grace_time=3600,
        max_instances=1,
    )
    scheduler.start()
    logger.info(f"Scheduler started. Daily sync at {settings.sync_hour}:00 UTC")


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
