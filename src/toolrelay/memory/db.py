"""Async engine and session factory for the telemetry database."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from toolrelay.memory.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

MEMORY = ":memory:"


def expand_url(url: str) -> str:
    """Expand ``~`` in the path part of a file-based database URL.

    Only the text after ``:///`` is touched, so credentials and hosts
    containing ``~`` survive.
    """
    if ":///" not in url:
        return url
    prefix, path = url.split(":///", 1)
    return prefix + ":///" + os.path.expanduser(path)


def sqlite_path(url: str) -> str | None:
    """Filesystem path of a SQLite URL, or None for memory and other backends."""
    if not url.startswith("sqlite") or ":///" not in url:
        return None
    path = url.split(":///", 1)[1]
    return None if not path or path.startswith(MEMORY) else path


async def create_db(url: str) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create an async engine and sessionmaker for *url*.

    SQLite databases get the ``tool_executions`` table created here; other
    backends are managed by alembic migrations. File databases run in WAL
    mode so ``toolrelay executions`` can read while a run is writing.
    """
    url = expand_url(url)
    path = sqlite_path(url)

    engine_kwargs: dict[str, Any]
    if not url.startswith("sqlite"):
        engine_kwargs = {"pool_pre_ping": True}
    elif path is None:
        # One shared connection, or each session would see its own empty DB.
        engine_kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    else:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        engine_kwargs = {"poolclass": NullPool}

    engine = create_async_engine(url, **engine_kwargs)

    if path is not None:

        @event.listens_for(engine.sync_engine, "connect")
        def _wal_mode(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    if url.startswith("sqlite"):
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine
