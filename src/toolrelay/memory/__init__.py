"""Execution-record persistence (SQL telemetry sink)."""

from toolrelay.memory.db import create_db
from toolrelay.memory.models import Base, ToolExecution
from toolrelay.memory.repository import ExecutionRepository, ToolStats
from toolrelay.memory.sink import SqlTelemetrySink

__all__ = [
    "Base",
    "ExecutionRepository",
    "SqlTelemetrySink",
    "ToolExecution",
    "ToolStats",
    "create_db",
]
