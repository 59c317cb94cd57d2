"""Execution repository: record and query tool executions.

Mutating methods add objects to the session and flush, but do NOT
commit. The caller controls transaction boundaries via
``session.commit()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func, select

from toolrelay.memory.models import ToolExecution

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from toolrelay.telemetry.records import ExecutionRecord


@dataclass(frozen=True, slots=True)
class ToolStats:
    """Aggregate figures for one tool."""

    tool_name: str
    calls: int
    failures: int
    avg_duration_ms: float

    @property
    def success_rate(self) -> float:
        if self.calls == 0:
            return 0.0
        return (self.calls - self.failures) / self.calls


def _id_str(value: str | int | None) -> str | None:
    return None if value is None else str(value)


def _jsonable(value: Any) -> Any:
    """Coerce *value* into something the JSON column accepts."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return repr(value)


class ExecutionRepository:
    """Async repository over the ``tool_executions`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_execution(self, record: ExecutionRecord) -> ToolExecution:
        """Persist *record* and return the new row."""
        result = record.result
        row = ToolExecution(
            tool_name=record.tool_name,
            user_id=_id_str(record.context.user_id),
            team_id=_id_str(record.context.team_id),
            arguments=_jsonable(record.arguments),
            success=result.ok,
            error_code=result.code,
            error_type=record.error_type,
            error_message=None if result.ok else result.message,
            duration_ms=record.duration_ms,
            memory_usage_bytes=record.memory_delta,
            retries=record.retries,
            cache_hit=record.cache_hit,
            duplicate=record.duplicate,
            result_data=_jsonable(result.data) if result.ok else None,
            trace_id=record.trace_id,
            idempotency_key=record.idempotency_key,
            chain_path=" > ".join(record.context.call_path) or None,
            created_at=record.created_at,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_executions(
        self,
        *,
        tool_name: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ToolExecution]:
        """List executions, most recent first."""
        stmt = select(ToolExecution).order_by(ToolExecution.created_at.desc())
        if tool_name is not None:
            stmt = stmt.where(ToolExecution.tool_name == tool_name)
        stmt = stmt.limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_trace_id(self, trace_id: str) -> list[ToolExecution]:
        """All executions sharing *trace_id*, oldest first."""
        stmt = (
            select(ToolExecution)
            .where(ToolExecution.trace_id == trace_id)
            .order_by(ToolExecution.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def tool_stats(self) -> list[ToolStats]:
        """Per-tool call counts, failure counts and mean duration."""
        failures = func.sum(case((ToolExecution.success, 0), else_=1))
        stmt = (
            select(
                ToolExecution.tool_name,
                func.count(ToolExecution.id),
                failures,
                func.avg(ToolExecution.duration_ms),
            )
            .group_by(ToolExecution.tool_name)
            .order_by(ToolExecution.tool_name)
        )
        result = await self._session.execute(stmt)
        return [
            ToolStats(
                tool_name=name,
                calls=int(calls),
                failures=int(failed or 0),
                avg_duration_ms=float(avg or 0.0),
            )
            for name, calls, failed, avg in result.all()
        ]
