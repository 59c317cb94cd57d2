"""Execution telemetry: records, sinks and logging setup."""

from toolrelay.telemetry.logs import KeyValueFormatter, configure_logging
from toolrelay.telemetry.records import ExecutionRecord, TelemetrySink
from toolrelay.telemetry.sinks import (
    LoggingTelemetrySink,
    MemoryTelemetrySink,
    NullTelemetrySink,
)

__all__ = [
    "ExecutionRecord",
    "KeyValueFormatter",
    "LoggingTelemetrySink",
    "MemoryTelemetrySink",
    "NullTelemetrySink",
    "TelemetrySink",
    "configure_logging",
]
