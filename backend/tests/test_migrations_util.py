from __future__ import annotations

from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect, text

from backend.app.database import Base
from backend.app.migrations import build_alembic_config, detect_revision, run_database_migrations

BACKEND_DIR = Path(__file__).resolve().parents[1]
BILLING_TABLES = {"users", "classes", "class_enrollments", "class_billing", "class_billing_items"}


def _expected_head() -> str:
    config = Config(str(BACKEND_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    return ScriptDirectory.from_config(config).get_current_head()


def _current_version(url: str) -> str:
    engine = create_engine(url, connect_args={"check_same_thread": False})
    try:
        with engine.connect() as connection:
            return connection.scalar(text("SELECT version_num FROM alembic_version"))
    finally:
        engine.dispose()


def _table_names(url: str) -> set[str]:
    engine = create_engine(url, connect_args={"check_same_thread": False})
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_fresh_database_is_upgraded_to_head(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'fresh.db'}"

    run_database_migrations(url)

    assert BILLING_TABLES <= _table_names(url)
    assert _current_version(url) == _expected_head()


def test_unrelated_legacy_tables_are_kept_and_schema_is_created(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'legacy.db'}"
    engine = create_engine(url, connect_args={"check_same_thread": False})
    with engine.begin() as connection:
        connection.execute(text("CREATE TABLE legacy_table (id INTEGER PRIMARY KEY)"))
    engine.dispose()

    monkeypatch.setenv("DATABASE_URL", url)
    run_database_migrations()

    tables = _table_names(url)
    assert "legacy_table" in tables
    assert BILLING_TABLES <= tables
    assert _current_version(url) == _expected_head()


def test_schema_created_without_alembic_is_stamped(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'current.db'}"
    engine = create_engine(url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    assert detect_revision(inspect(engine)) == "20251101_0001"
    engine.dispose()

    run_database_migrations(url)

    assert _current_version(url) == _expected_head()


def test_running_twice_is_a_no_op(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'twice.db'}"

    run_database_migrations(url)
    run_database_migrations(url)

    assert _current_version(url) == _expected_head()


def test_percent_signs_in_url_survive_config_interpolation() -> None:
    config = build_alembic_config("postgresql://user:p%40ss@db/billing")

    assert config.get_main_option("sqlalchemy.url") == "postgresql://user:p%40ss@db/billing"
