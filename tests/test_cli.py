import pytest
from sqlalchemy import create_engine, inspect

from app.cli import main
from app.config import Settings, settings


@pytest.fixture(autouse=True)
def restore_database_url(monkeypatch):
    monkeypatch.setattr(settings, "database_url", settings.database_url)


def _exit_code(argv) -> int:
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    return excinfo.value.code


def test_migrate_applies_bundled_units(tmp_path):
    db_file = tmp_path / "cli.db"

    assert _exit_code(["migrate", "--database-url", f"sqlite:///{db_file}"]) == 0

    tables = set(inspect(create_engine(f"sqlite:///{db_file}")).get_table_names())
    assert {"services", "skus", "pricing_info", "pricing_updates", "schema_migrations"} <= tables


def test_migrate_failure_exits_nonzero(tmp_path):
    migrations = tmp_path / "sql"
    migrations.mkdir()
    (migrations / "0001_broken.sql").write_text("CREATE TABLE broken (;", encoding="utf-8")
    db_file = tmp_path / "cli.db"

    code = _exit_code(
        ["migrate", "--database-url", f"sqlite:///{db_file}", "--migrations-dir", str(migrations)]
    )

    assert code == 1
    assert "broken" not in inspect(create_engine(f"sqlite:///{db_file}")).get_table_names()


def test_migrate_with_missing_directory_exits_nonzero(tmp_path):
    db_file = tmp_path / "cli.db"

    code = _exit_code(
        ["migrate", "--database-url", f"sqlite:///{db_file}", "--migrations-dir", str(tmp_path / "typo")]
    )

    assert code == 1
    assert "services" not in inspect(create_engine(f"sqlite:///{db_file}")).get_table_names()


def test_command_is_required():
    assert _exit_code([]) == 2


# ── Configuration ──


def test_file_urls_map_to_sqlite():
    config = Settings(database_url="file:./data/pricing.db?_fk=1")
    assert config.effective_database_url == "sqlite:///./data/pricing.db"


def test_empty_url_falls_back_to_local_file():
    assert Settings(database_url="").effective_database_url == "sqlite:///./cloud-pricing.db"
