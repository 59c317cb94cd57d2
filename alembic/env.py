"""Alembic environment for the toolrelay telemetry database.

The database URL comes from ``sqlalchemy.url`` in alembic.ini when set,
otherwise from ``[database].url`` in the toolrelay config files.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from toolrelay.config.loader import load_config
from toolrelay.memory.db import expand_url
from toolrelay.memory.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_ASYNC_DRIVERS = {"aiosqlite", "asyncpg", "aiomysql"}


def _database_url() -> str:
    url = config.get_main_option("sqlalchemy.url") or load_config().database.url
    return expand_url(url)


def _section() -> dict[str, str]:
    section = dict(config.get_section(config.config_ini_section, {}))
    section["sqlalchemy.url"] = _database_url()
    return section


def run_migrations_offline() -> None:
    """Emit SQL without a live connection."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:  # type: ignore[no-untyped-def]
    # batch mode keeps ALTERs working on SQLite
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        _section(),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    """Migrate against a live database, sync or async driver."""
    url = _database_url()
    if any(f"+{driver}" in url for driver in _ASYNC_DRIVERS):
        asyncio.run(run_async_migrations())
        return

    connectable = engine_from_config(_section(), prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        do_run_migrations(connection)
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
