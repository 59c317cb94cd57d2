"""Execution records and the sink protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from toolrelay.tools.base import ToolContext, ToolResult


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ExecutionRecord:
    """One tool call as seen by the executor, emitted on every outcome."""

    tool_name: str
    arguments: dict[str, Any]
    context: ToolContext
    result: ToolResult
    duration: float
    memory_delta: int = 0
    trace_id: str | None = None
    retries: int = 0
    cache_hit: bool = False
    duplicate: bool = False
    idempotency_key: str | None = None
    error_type: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def ok(self) -> bool:
        return self.result.ok

    @property
    def duration_ms(self) -> int:
        return int(self.duration * 1000)


@runtime_checkable
class TelemetrySink(Protocol):
    """Receives one :class:`ExecutionRecord` per executor call."""

    async def record(self, record: ExecutionRecord) -> None: ...
