"""CIRRUS — Command Line.

    cirrus migrate [--database-url URL] [--migrations-dir DIR]
    cirrus sync    [--database-url URL]
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from app.config import settings
from app.core.exceptions import CirrusError, MigrationError
from app.core.logging import get_logger
from app.database import build_engine
from app.sync.runner import migrate_database, run_catalog_sync

logger = get_logger("cli")


def _database_url(args: argparse.Namespace) -> str:
    if args.database_url:
        settings.database_url = args.database_url
    return settings.effective_database_url


def cmd_migrate(args: argparse.Namespace) -> int:
    engine = build_engine(_database_url(args))
    try:
        migrate_database(engine, Path(args.migrations_dir) if args.migrations_dir else None)
    except MigrationError as e:
        logger.error(f"migrate: {e}", extra={"unit_name": e.unit_name})
        return 1
    finally:
        engine.dispose()
    logger.info("migration complete")
    return 0


def cmd_sync(args: argparse.Namespace) -> int:
    engine = build_engine(_database_url(args))
    try:
        migrate_database(engine)
        update = asyncio.run(run_catalog_sync(engine))
    except asyncio.TimeoutError:
        logger.error(f"sync: exceeded {settings.sync_timeout_seconds}s")
        return 1
    except CirrusError as e:
        logger.error(f"sync: {e}")
        return 1
    finally:
        engine.dispose()
    logger.info(
        f"sync complete: {update.services_updated} services, {update.skus_updated} SKUs",
        extra={"update_id": update.update_id},
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cirrus", description="Cloud pricing catalog sync")
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate = subparsers.add_parser("migrate", help="Apply pending schema migrations")
    migrate.add_argument("--database-url", help="Overrides DATABASE_URL")
    migrate.add_argument("--migrations-dir", help="Directory of *.sql migration units")
    migrate.set_defaults(func=cmd_migrate)

    sync = subparsers.add_parser("sync", help="Run one full catalog sync")
    sync.add_argument("--database-url", help="Overrides DATABASE_URL")
    sync.set_defaults(func=cmd_sync)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    raise SystemExit(args.func(args))


if __name__ == "__main__":
    main()
