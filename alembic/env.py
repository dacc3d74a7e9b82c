"""Alembic environment. Runs migrations with a synchronous driver."""

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context

from licensegate.db.migration_runner import get_sync_database_url
from licensegate.db.models import Base

config = context.config

if config.config_file_name is not None:
    # Keep the application loggers alive when migrations run at startup
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# The runner sets sqlalchemy.url; plain `alembic upgrade head` falls back to settings
if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", get_sync_database_url().replace("%", "%%"))

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL to the script output instead of a live connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        # Batch mode lets ALTER-style migrations run on SQLite
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
