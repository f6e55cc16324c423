"""
Global pytest fixtures for the CIRRUS test suite.

Provides:
- A fresh SQLite file database per test
- The same database with the bundled migrations applied
- A CatalogRepository bound to it
- Row counting helper
"""
import os

# Set test environment BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GCP_API_KEY"] = "test-key"
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
from sqlalchemy import text

from app.database import build_engine
from app.repository import CatalogRepository
from app.sync.runner import migrate_database


@pytest.fixture
def engine(tmp_path):
    """Unmigrated engine on a throwaway SQLite file."""
    eng = build_engine(f"sqlite:///{tmp_path / 'cirrus-test.db'}")
    yield eng
    eng.dispose()


@pytest.fixture
def migrated_engine(engine):
    migrate_database(engine)
    return engine


@pytest.fixture
def repository(migrated_engine):
    return CatalogRepository(migrated_engine)


@pytest.fixture
def count_rows(migrated_engine):
    """Return a function counting rows of a table."""

    def _count(table: str) -> int:
        with migrated_engine.connect() as conn:
            return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()

    return _count
