"""CIRRUS — Catalog Sync Job.

One full reconciliation pass:
  list services → upsert service → list SKUs → upsert SKUs → upsert pricing
  → append audit row

A failure anywhere aborts the run. Rows written before the failure stay
committed and no audit row is written for the aborted run.

Repository writes block, so each one runs in a worker thread to keep the
event loop responsive. A cancelled run returns at once; a write already in
flight still completes in its thread.
"""

import asyncio
import time
from datetime import datetime, timezone

from app.core.exceptions import SyncError
from app.core.logging import get_logger
from app.models.catalog_models import STATUS_SUCCESS, PricingUpdate
from app.repository import CatalogRepository
from app.sync.source import CatalogSource

logger = get_logger("sync.job")

COMPLETION_MESSAGE = "sync completed"


class SyncJob:
    """Reconciles a catalog source into the repository."""

    def __init__(self, source: CatalogSource, repository: CatalogRepository):
        self.source = source
        self.repository = repository

    async def run(self) -> PricingUpdate:
        """Execute one sync run and return the audit record it wrote."""
        started = time.perf_counter()
        logger.info("Starting catalog sync")

        try:
            services = await self.source.list_services()
        except Exception as e:
            logger.error(f"Listing services failed: {e}")
            raise SyncError(f"list services failed: {e}") from e
        logger.info(f"Catalog lists {len(services)} services")

        services_updated = 0
        skus_updated = 0
        service_id = None
        sku_id = None
        try:
            for service in services:
                service_id, sku_id = service.service_id, None
                await asyncio.to_thread(self.repository.upsert_service, service)
                services_updated += 1

                try:
                    skus, prices = await self.source.list_skus(service.service_id)
                except Exception as e:
                    raise SyncError(
                        f"list skus for service {service.service_id} failed: {e}",
                        details={"service_id": service.service_id},
                    ) from e

                for sku in skus:
                    sku_id = sku.sku_id
                    await asyncio.to_thread(self.repository.upsert_sku, sku)
                    skus_updated += 1
                for pricing in prices:
                    sku_id = pricing.sku_id
                    await asyncio.to_thread(self.repository.upsert_pricing_info, pricing)
                sku_id = None

                logger.debug(
                    f"Synced {len(skus)} SKUs / {len(prices)} prices",
                    extra={"service_id": service.service_id},
                )
        except Exception as e:
            logger.error(
                f"Sync aborted after {services_updated} services / {skus_updated} SKUs: {e}",
                extra={"service_id": service_id, "sku_id": sku_id},
            )
            raise

        update = PricingUpdate(
            update_time=datetime.now(timezone.utc),
            status=STATUS_SUCCESS,
            services_updated=services_updated,
            skus_updated=skus_updated,
            log_message=COMPLETION_MESSAGE,
        )
        update.update_id = await asyncio.to_thread(self.repository.insert_pricing_update, update)

        duration_ms = round((time.perf_counter() - started) * 1000, 1)
        logger.info(
            f"Sync complete: {services_updated} services, {skus_updated} SKUs",
            extra={"update_id": update.update_id, "duration_ms": duration_ms},
        )
        return update
