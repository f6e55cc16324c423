"""CIRRUS — Wiring for migrations and sync runs.

Binds the core components to configuration: where migration scripts live,
which catalog client to use, and how long a sync run may take.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

from sqlalchemy.engine import Engine

from app.config import settings
from app.connectors.gcp.client import GCPCatalogClient
from app.migrations.engine import SchemaMigrationEngine, load_migration_units
from app.models.catalog_models import PricingUpdate
from app.repository import CatalogRepository
from app.sync.job import SyncJob
from app.sync.source import CatalogSource


def migrate_database(engine: Engine, directory: Optional[Path] = None) -> List[str]:
    """Apply every pending migration unit found in ``directory``."""
    units = load_migration_units(directory or settings.effective_migrations_dir)
    return SchemaMigrationEngine(engine).apply(units)


async def run_catalog_sync(
    engine: Engine,
    source: Optional[CatalogSource] = None,
    timeout: Optional[float] = None,
) -> PricingUpdate:
    """Run one sync against ``source`` (the GCP catalog by default) under a deadline."""
    repository = CatalogRepository(engine)
    deadline = timeout or settings.sync_timeout_seconds
    if source is not None:
        return await asyncio.wait_for(SyncJob(source, repository).run(), deadline)
    async with GCPCatalogClient() as client:
        return await asyncio.wait_for(SyncJob(client, repository).run(), deadline)
