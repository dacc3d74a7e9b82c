"""
Tests for the Alembic migration runner against a throwaway SQLite file.
"""

import pytest
from sqlalchemy import create_engine, inspect

from licensegate.config import settings
from licensegate.db.migration_runner import (
    MigrationError,
    MigrationStatus,
    check_migrations_status,
    get_sync_database_url,
    run_migrations,
)


@pytest.fixture
def store_url(tmp_path, monkeypatch) -> str:
    url = f"sqlite+aiosqlite:///{tmp_path / 'migrated.db'}"
    monkeypatch.setattr(settings, "database_url", url)
    return url


class TestSyncUrl:
    """Async drivers are swapped for ones Alembic can drive."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("sqlite+aiosqlite:///./store.db", "sqlite:///./store.db"),
            (
                "postgresql+asyncpg://gate:pw@db:5432/licensegate",
                "postgresql+psycopg2://gate:pw@db:5432/licensegate",
            ),
        ],
    )
    def test_driver_mapping(self, url: str, expected: str):
        assert get_sync_database_url(url) == expected


class TestMigrationStatus:
    def test_pending_when_behind(self):
        assert MigrationStatus(current_revision=None, head_revision="0001").pending

    def test_not_pending_at_head(self):
        assert not MigrationStatus(current_revision="0001", head_revision="0001").pending


class TestRunMigrations:
    """Upgrading a fresh store to head."""

    def test_fresh_store_is_pending(self, store_url: str):
        status = check_migrations_status()

        assert status.current_revision is None
        assert status.pending

    def test_upgrade_creates_schema(self, store_url: str):
        status = run_migrations()

        assert not status.pending
        assert not check_migrations_status().pending

        engine = create_engine(get_sync_database_url(store_url))
        try:
            tables = set(inspect(engine).get_table_names())
        finally:
            engine.dispose()
        assert {"activation_codes", "restaurants", "devices", "audit_logs", "order_items"} <= tables

    def test_second_run_is_a_no_op(self, store_url: str):
        first = run_migrations()
        second = run_migrations()

        assert second == first

    def test_missing_config(self, store_url: str, tmp_path, monkeypatch):
        monkeypatch.setattr(
            "licensegate.db.migration_runner.ALEMBIC_INI_PATH", tmp_path / "missing.ini"
        )

        with pytest.raises(MigrationError):
            run_migrations()
