"""
Schema migrations for the terminal store.

Startup (with RUN_MIGRATIONS_ON_STARTUP) and `manage_codes.py migrate` both go
through here. Alembic drives blocking connections, so the configured async
URL is mapped to its sync driver first.
"""

from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import create_engine
from structlog import get_logger

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from licensegate.config import settings

logger = get_logger(__name__)

ALEMBIC_INI_PATH = Path(__file__).resolve().parents[2] / "alembic.ini"

_SYNC_DRIVERS = {"+aiosqlite": "", "+asyncpg": "+psycopg2"}


class MigrationError(RuntimeError):
    """The schema could not be inspected or upgraded."""


@dataclass(frozen=True)
class MigrationStatus:
    current_revision: str | None
    head_revision: str | None

    @property
    def pending(self) -> bool:
        return self.current_revision != self.head_revision


def get_sync_database_url(url: str | None = None) -> str:
    url = url or settings.database_url
    for async_driver, sync_driver in _SYNC_DRIVERS.items():
        url = url.replace(async_driver, sync_driver)
    return url


def _alembic_config() -> Config:
    if not ALEMBIC_INI_PATH.exists():
        raise MigrationError(f"Alembic config not found at {ALEMBIC_INI_PATH}")
    config = Config(str(ALEMBIC_INI_PATH))
    # ConfigParser interpolation treats % specially
    config.set_main_option("sqlalchemy.url", get_sync_database_url().replace("%", "%%"))
    return config


def _read_status(config: Config) -> MigrationStatus:
    engine = create_engine(get_sync_database_url())
    try:
        with engine.connect() as conn:
            current = MigrationContext.configure(conn).get_current_revision()
    finally:
        engine.dispose()
    head = ScriptDirectory.from_config(config).get_current_head()
    return MigrationStatus(current_revision=current, head_revision=head)


def check_migrations_status() -> MigrationStatus:
    """Report the store's revision against the newest script without upgrading."""
    try:
        return _read_status(_alembic_config())
    except MigrationError:
        raise
    except Exception as e:
        raise MigrationError(f"Could not read migration status: {e}") from e


def run_migrations() -> MigrationStatus:
    """
    Upgrade the store to head if it is behind.

    Returns the status after the run. Any failure is logged and re-raised as
    MigrationError so startup aborts instead of serving on a stale schema.
    """
    try:
        config = _alembic_config()
        status = _read_status(config)
        if not status.pending:
            logger.info("database_schema_up_to_date", revision=status.current_revision)
            return status

        logger.info(
            "running_migrations",
            current=status.current_revision,
            head=status.head_revision,
        )
        command.upgrade(config, "head")
        status = _read_status(config)
        logger.info("migrations_complete", revision=status.current_revision)
        return status
    except Exception as e:
        logger.error("migration_failed", error=str(e))
        if isinstance(e, MigrationError):
            raise
        raise MigrationError(f"Database migration failed: {e}") from e
