"""Telemetry sink that persists execution records via SQLAlchemy."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from toolrelay.core.errors import StorageError
from toolrelay.memory.repository import ExecutionRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from toolrelay.telemetry.records import ExecutionRecord


class SqlTelemetrySink:
    """Write each record to ``tool_executions`` in its own transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = session_factory

    async def record(self, record: ExecutionRecord) -> None:
        try:
            async with self._factory() as session:
                await ExecutionRepository(session).add_execution(record)
                await session.commit()
        except SQLAlchemyError as e:
            msg = f"Failed to persist execution of {record.tool_name}: {e}"
            raise StorageError(msg) from e
