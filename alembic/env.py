"""Alembic environment for the position ledger schema.

The database URL comes from `DATABASE_URL` (or `.env`) unless overridden
with `alembic -x database_url=...`.
"""
# pylint: disable=no-member,invalid-name,wrong-import-order

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from position_ledger.config import config_load_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _resolve_database_url() -> str:
    """Return the migration target URL, preferring an explicit `-x` override."""

    override_url = context.get_x_argument(as_dictionary=True).get("database_url", "").strip()
    return override_url or config_load_database_url()


config.set_main_option("sqlalchemy.url", _resolve_database_url())

# Migrations are hand-written; no ORM metadata is used for autogenerate.
target_metadata = None


def run_migrations_offline() -> None:
    """Emit migration SQL without a live connection."""

    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a live connection in one transaction."""

    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    try:
        with connectable.connect() as connection:
            context.configure(connection=connection, target_metadata=target_metadata, transaction_per_migration=False)

            with context.begin_transaction():
                context.run_migrations()
    finally:
        connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
