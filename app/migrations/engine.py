"""CIRRUS — Schema Migration Engine.

Applies named SQL migration units exactly once. Unit names double as version
identifiers and are applied in ascending lexical order, so they must carry a
sortable prefix (``0001_``, ``0002_``, ...). The engine cannot check that the
naming matches the intended order; that is the author's responsibility.

All pending units of one ``apply`` call run inside a single transaction
together with their tracking rows: either every pending unit is executed and
recorded, or the schema is left exactly as it was.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Set

from sqlalchemy import insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.exceptions import MigrationError
from app.core.logging import get_logger
from app.models.table_models import SchemaMigrationRecord

logger = get_logger("migrations")

STATEMENT_TERMINATOR = ";"

# opening quote -> closing quote
_QUOTES = {"'": "'", '"': '"', "`": "`", "[": "]"}


def _is_trigger(keywords: List[str]) -> bool:
    return bool(keywords) and keywords[0] == "CREATE" and "TRIGGER" in keywords[1:4]


def split_statements(sql: str, terminator: str = STATEMENT_TERMINATOR) -> List[str]:
    """Split migration text into statements on ``terminator``.

    Terminators inside quoted literals/identifiers, ``--`` and ``/* */``
    comments, and ``CREATE TRIGGER ... BEGIN ... END`` bodies do not end a
    statement. Empty and comment-only fragments are dropped.
    """
    statements: List[str] = []
    start = 0
    has_code = False
    keywords: List[str] = []
    depth = 0
    i, n = 0, len(sql)

    while i < n:
        ch = sql[i]

        if sql.startswith("--", i):
            end = sql.find("\n", i)
            i = n if end == -1 else end + 1
            continue

        if sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = n if end == -1 else end + 2
            continue

        if ch in _QUOTES:
            close = _QUOTES[ch]
            j = i + 1
            while j < n:
                if sql[j] == close:
                    # '' and "" escape the quote character
                    if close != "]" and sql.startswith(close * 2, j):
                        j += 2
                        continue
                    break
                j += 1
            i = j + 1
            has_code = True
            continue

        if ch.isalpha() or ch == "_":
            j = i + 1
            while j < n and (sql[j].isalnum() or sql[j] in "_$"):
                j += 1
            word = sql[i:j].upper()
            if len(keywords) < 4:
                keywords.append(word)
            if _is_trigger(keywords):
                if word in ("BEGIN", "CASE"):
                    depth += 1
                elif word == "END" and depth > 0:
                    depth -= 1
            has_code = True
            i = j
            continue

        if ch == terminator and depth == 0:
            if has_code:
                statements.append(sql[start:i].strip())
            start = i + 1
            has_code = False
            keywords = []
            i += 1
            continue

        if not ch.isspace():
            has_code = True
        i += 1

    if has_code:
        statements.append(sql[start:].strip())
    return statements


@dataclass(frozen=True)
class MigrationUnit:
    """A named block of schema statements, applied at most once."""

    name: str
    sql: str

    @property
    def statements(self) -> List[str]:
        return split_statements(self.sql)


def load_migration_units(directory: Path) -> List[MigrationUnit]:
    """Read every ``*.sql`` file in ``directory`` as a migration unit, sorted by name.

    Raises ``MigrationError`` if ``directory`` does not exist.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise MigrationError(
            str(directory), FileNotFoundError(f"migrations directory not found: {directory}")
        )
    paths = sorted(p for p in directory.glob("*.sql") if p.is_file())
    return [MigrationUnit(name=p.name, sql=p.read_text(encoding="utf-8")) for p in paths]


class SchemaMigrationEngine:
    """Brings the store's schema to the latest known version."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def ensure_tracking_table(self) -> None:
        """Create ``schema_migrations`` if it does not exist yet."""
        try:
            SchemaMigrationRecord.__table__.create(self.engine, checkfirst=True)
        except SQLAlchemyError as exc:
            raise MigrationError(SchemaMigrationRecord.__tablename__, exc) from exc

    def applied_versions(self) -> Set[str]:
        """Versions recorded as fully applied."""
        with Session(self.engine) as session:
            return set(session.exec(select(SchemaMigrationRecord.version)).all())

    def apply(self, units: Iterable[MigrationUnit]) -> List[str]:
        """Apply all units not yet recorded; return the names applied by this call."""
        ordered = sorted(units, key=lambda unit: unit.name)
        seen: Set[str] = set()
        for unit in ordered:
            if unit.name in seen:
                raise MigrationError(unit.name, ValueError("duplicate migration unit name"))
            seen.add(unit.name)

        self.ensure_tracking_table()
        try:
            applied = self.applied_versions()
        except SQLAlchemyError as exc:
            raise MigrationError(SchemaMigrationRecord.__tablename__, exc) from exc

        pending = [unit for unit in ordered if unit.name not in applied]
        if not pending:
            logger.info(f"Schema up to date ({len(applied)} migrations applied)")
            return []

        logger.info(f"Applying {len(pending)} pending migrations")
        started = time.perf_counter()
        current = pending[0].name
        try:
            with self.engine.begin() as conn:
                for unit in pending:
                    current = unit.name
                    statements = unit.statements
                    logger.info(
                        f"Running {unit.name} ({len(statements)} statements)",
                        extra={"unit_name": unit.name},
                    )
                    for statement in statements:
                        conn.exec_driver_sql(statement)

                applied_at = datetime.now(timezone.utc).replace(tzinfo=None)
                for unit in pending:
                    current = unit.name
                    conn.execute(
                        insert(SchemaMigrationRecord).values(
                            version=unit.name, applied_at=applied_at
                        )
                    )
        except SQLAlchemyError as exc:
            logger.error(
                f"Migration {current} failed, pending batch rolled back: {exc}",
                extra={"unit_name": current},
            )
            raise MigrationError(current, exc) from exc

        duration_ms = round((time.perf_counter() - started) * 1000, 1)
        logger.info(
            f"Applied {len(pending)} migrations",
            extra={"duration_ms": duration_ms},
        )
        return [unit.name for unit in pending]
