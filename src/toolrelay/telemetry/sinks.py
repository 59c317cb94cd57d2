"""Built-in telemetry sinks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from toolrelay.telemetry.records import ExecutionRecord

logger = logging.getLogger(__name__)


class LoggingTelemetrySink:
    """Write each record as a single log line."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    async def record(self, record: ExecutionRecord) -> None:
        ctx = record.context
        if record.ok:
            self._log.info(
                "tool executed",
                extra={
                    "tool": record.tool_name,
                    "arguments": record.arguments,
                    "trace_id": record.trace_id,
                    "idempotency_key": record.idempotency_key,
                    "user_id": ctx.user_id,
                    "team_id": ctx.team_id,
                    "duration_ms": record.duration_ms,
                    "memory_delta": record.memory_delta,
                    "retries": record.retries,
                    "cache_hit": record.cache_hit,
                    "duplicate": record.duplicate,
                },
            )
        else:
            self._log.warning(
                "tool failed",
                extra={
                    "tool": record.tool_name,
                    "arguments": record.arguments,
                    "trace_id": record.trace_id,
                    "idempotency_key": record.idempotency_key,
                    "user_id": ctx.user_id,
                    "team_id": ctx.team_id,
                    "duration_ms": record.duration_ms,
                    "code": record.result.code,
                    "error": record.result.message,
                    "error_type": record.error_type,
                    "retries": record.retries,
                },
            )


class NullTelemetrySink:
    """Discard records."""

    async def record(self, record: ExecutionRecord) -> None:
        return None


class MemoryTelemetrySink:
    """Keep records in a list. Handy in tests and for ad-hoc inspection."""

    def __init__(self) -> None:
        self.records: list[ExecutionRecord] = []

    async def record(self, record: ExecutionRecord) -> None:
        self.records.append(record)
