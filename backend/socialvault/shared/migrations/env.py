# pylint: skip-file
# ruff: noqa
"""
Alembic Environment for the SocialVault job store.

The database is shared with the identity layer in front of this service
(profiles, sessions), so autogenerate only looks at the tables owned here:
backup_jobs, backups and media_files. Anything else is invisible to
``alembic revision --autogenerate`` and can never be dropped by it.

Migrations run against live tables that the worker keeps updating, so each
one waits at most ``MIGRATION_LOCK_TIMEOUT`` for its locks instead of
queueing behind a long job transaction.

Usage:
======
    cd backend
    alembic upgrade head
    alembic upgrade head --sql > migration.sql
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool, text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from socialvault.config.settings import settings
from socialvault.shared.models.base import Base

# Models register their tables on Base.metadata when imported
from socialvault.shared.models import Backup, BackupJob, MediaFile

OWNED_TABLES = frozenset(model.__tablename__ for model in (Backup, BackupJob, MediaFile))
MIGRATION_LOCK_TIMEOUT = "10s"

config = context.config
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def include_name(name, type_, parent_names) -> bool:
    """Restrict reflection to the tables this service owns."""
    if type_ == "table":
        return name in OWNED_TABLES
    return True


def run_migrations_offline() -> None:
    """Emit SQL without connecting to the database."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        include_name=include_name,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    connection.execute(text(f"SET lock_timeout = '{MIGRATION_LOCK_TIMEOUT}'"))
    # Session-level setting; end the implicit transaction so alembic opens its own
    connection.commit()
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        include_name=include_name,
        compare_type=True,
        compare_server_default=True,
        transaction_per_migration=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
