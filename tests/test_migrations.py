import pytest
from sqlalchemy import inspect, text

from app.config import settings
from app.core.exceptions import MigrationError
from app.migrations.engine import (
    MigrationUnit,
    SchemaMigrationEngine,
    load_migration_units,
    split_statements,
)
from app.sync.runner import migrate_database

BUNDLED_VERSIONS = {
    "0001_create_catalog_tables.sql",
    "0002_create_pricing_updates.sql",
    "0003_add_lookup_indexes.sql",
}

STRUCTURAL_TABLES = ("services", "skus", "pricing_info", "pricing_updates", "schema_migrations")


def _tables(engine) -> set:
    return set(inspect(engine).get_table_names())


def _schema(engine) -> dict:
    inspector = inspect(engine)
    return {
        table: [
            (c["name"], str(c["type"]), c["nullable"], bool(c.get("primary_key")))
            for c in inspector.get_columns(table)
        ]
        for table in STRUCTURAL_TABLES
    }


def test_migrate_creates_tables(engine):
    applied = migrate_database(engine)

    assert applied == sorted(BUNDLED_VERSIONS)
    assert set(STRUCTURAL_TABLES) <= _tables(engine)
    assert SchemaMigrationEngine(engine).applied_versions() == BUNDLED_VERSIONS


def test_migrate_twice_is_noop(engine):
    migrate_database(engine)
    schema_before = _schema(engine)

    assert migrate_database(engine) == []

    with engine.connect() as conn:
        tracked = conn.execute(text("SELECT COUNT(*) FROM schema_migrations")).scalar_one()
    assert tracked == len(BUNDLED_VERSIONS)
    assert _schema(engine) == schema_before


def test_migrate_column_types_and_nullability(migrated_engine):
    inspector = inspect(migrated_engine)

    def columns(table):
        return {c["name"]: c for c in inspector.get_columns(table)}

    skus = columns("skus")
    for blob in ("category", "service_regions", "geo_taxonomy"):
        assert str(skus[blob]["type"]) == "BLOB"
    assert str(skus["sku_name"]["type"]) == "TEXT"
    for required in ("service_id", "sku_name", "description"):
        assert skus[required]["nullable"] is False

    assert columns("services")["display_name"]["nullable"] is False
    assert columns("services")["business_entity_name"]["nullable"] is True
    assert str(columns("pricing_info")["tiered_rates"]["type"]) == "BLOB"
    assert set(columns("pricing_updates")) >= {
        "update_id",
        "update_time",
        "status",
        "services_updated",
        "skus_updated",
        "log_message",
    }

    foreign_keys = inspector.get_foreign_keys("skus")
    assert foreign_keys[0]["referred_table"] == "services"
    unique = inspector.get_unique_constraints("pricing_info")
    assert any(set(u["column_names"]) == {"sku_id", "effective_time"} for u in unique)


def test_failing_unit_rolls_back_whole_batch(engine):
    units = [
        MigrationUnit("0001_alpha.sql", "CREATE TABLE alpha (id INTEGER PRIMARY KEY);"),
        MigrationUnit(
            "0002_beta.sql",
            "CREATE TABLE beta (id INTEGER PRIMARY KEY);\nINSERT INTO missing_table VALUES (1);",
        ),
    ]
    migrations = SchemaMigrationEngine(engine)

    with pytest.raises(MigrationError) as excinfo:
        migrations.apply(units)

    assert excinfo.value.unit_name == "0002_beta.sql"
    assert excinfo.value.cause is not None
    assert "alpha" not in _tables(engine)
    assert "beta" not in _tables(engine)
    assert migrations.applied_versions() == set()

    fixed = [units[0], MigrationUnit("0002_beta.sql", "CREATE TABLE beta (id INTEGER PRIMARY KEY);")]
    assert migrations.apply(fixed) == ["0001_alpha.sql", "0002_beta.sql"]
    assert {"alpha", "beta"} <= _tables(engine)


def test_failure_keeps_previously_committed_units(engine):
    migrations = SchemaMigrationEngine(engine)
    first = MigrationUnit("0001_alpha.sql", "CREATE TABLE alpha (id INTEGER PRIMARY KEY);")
    migrations.apply([first])

    broken = MigrationUnit("0002_broken.sql", "CREATE TABLE gamma (id INTEGER); CREATE TABLE alpha (id INTEGER);")
    with pytest.raises(MigrationError):
        migrations.apply([first, broken])

    assert migrations.applied_versions() == {"0001_alpha.sql"}
    assert "gamma" not in _tables(engine)


def test_units_apply_in_name_order(engine):
    units = [
        MigrationUnit("0002_index.sql", "CREATE INDEX idx_alpha_name ON alpha(name);"),
        MigrationUnit("0001_table.sql", "CREATE TABLE alpha (id INTEGER PRIMARY KEY, name TEXT);"),
    ]

    applied = SchemaMigrationEngine(engine).apply(units)

    assert applied == ["0001_table.sql", "0002_index.sql"]


def test_duplicate_unit_names_rejected(engine):
    units = [
        MigrationUnit("0001_a.sql", "CREATE TABLE a (id INTEGER);"),
        MigrationUnit("0001_a.sql", "CREATE TABLE b (id INTEGER);"),
    ]

    with pytest.raises(MigrationError) as excinfo:
        SchemaMigrationEngine(engine).apply(units)

    assert excinfo.value.unit_name == "0001_a.sql"
    assert "a" not in _tables(engine)


def test_terminator_inside_literal_is_applied_intact(engine):
    unit = MigrationUnit(
        "0001_seed.sql",
        "CREATE TABLE notes (body TEXT);\nINSERT INTO notes VALUES ('first; second');",
    )

    SchemaMigrationEngine(engine).apply([unit])

    with engine.connect() as conn:
        assert conn.execute(text("SELECT body FROM notes")).scalar_one() == "first; second"


def test_load_migration_units_reads_sorted_sql_files(tmp_path):
    (tmp_path / "0002_b.sql").write_text("CREATE TABLE b (id INTEGER);", encoding="utf-8")
    (tmp_path / "0001_a.sql").write_text("CREATE TABLE a (id INTEGER);", encoding="utf-8")
    (tmp_path / "README.md").write_text("not a migration", encoding="utf-8")

    units = load_migration_units(tmp_path)

    assert [u.name for u in units] == ["0001_a.sql", "0002_b.sql"]
    assert units[0].statements == ["CREATE TABLE a (id INTEGER)"]


def test_bundled_migrations_directory_is_default():
    names = [u.name for u in load_migration_units(settings.effective_migrations_dir)]
    assert names == sorted(BUNDLED_VERSIONS)


def test_missing_migrations_directory_fails(engine, tmp_path):
    missing = tmp_path / "typo"

    with pytest.raises(MigrationError) as excinfo:
        migrate_database(engine, missing)

    assert excinfo.value.unit_name == str(missing)
    assert isinstance(excinfo.value.cause, FileNotFoundError)
    assert "services" not in _tables(engine)


# ── Statement splitting ──


def test_split_skips_empty_fragments():
    assert split_statements("CREATE TABLE a (id INT);;\n  ;\nCREATE TABLE b (id INT)") == [
        "CREATE TABLE a (id INT)",
        "CREATE TABLE b (id INT)",
    ]


def test_split_ignores_terminator_in_quotes():
    sql = "INSERT INTO t VALUES ('a;b', 'it''s; fine');\nSELECT \"odd;name\" FROM t;"
    assert split_statements(sql) == [
        "INSERT INTO t VALUES ('a;b', 'it''s; fine')",
        'SELECT "odd;name" FROM t',
    ]


def test_split_ignores_terminator_in_comments():
    sql = "-- header; not a statement\nCREATE TABLE a (id INT); /* trailing; comment */\n-- done;"
    statements = split_statements(sql)
    assert len(statements) == 1
    assert statements[0].endswith("CREATE TABLE a (id INT)")


def test_split_keeps_trigger_body_together():
    sql = (
        "CREATE TABLE t (id INTEGER, note TEXT);\n"
        "CREATE TRIGGER t_ai AFTER INSERT ON t BEGIN "
        "UPDATE t SET note = 'x;y' WHERE id = NEW.id; "
        "UPDATE t SET note = CASE WHEN note IS NULL THEN 'n' ELSE note END WHERE id = NEW.id; "
        "END;\n"
        "INSERT INTO t (id) VALUES (1);"
    )
    statements = split_statements(sql)
    assert len(statements) == 3
    assert statements[1].startswith("CREATE TRIGGER")
    assert statements[1].endswith("END")


def test_trigger_unit_applies(engine):
    unit = MigrationUnit(
        "0001_trigger.sql",
        "CREATE TABLE t (id INTEGER, note TEXT);\n"
        "CREATE TRIGGER t_ai AFTER INSERT ON t BEGIN UPDATE t SET note = 'seen;' WHERE id = NEW.id; END;\n"
        "INSERT INTO t (id) VALUES (1);",
    )

    SchemaMigrationEngine(engine).apply([unit])

    with engine.connect() as conn:
        assert conn.execute(text("SELECT note FROM t")).scalar_one() == "seen;"