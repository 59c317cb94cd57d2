"""Shared test fixtures for toolrelay."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from toolrelay.config.schema import ToolRelayConfig
from toolrelay.memory.db import create_db
from toolrelay.orchestration.executor import ToolExecutor
from toolrelay.stores.memory import MemoryStore
from toolrelay.telemetry.sinks import MemoryTelemetrySink
from toolrelay.tools.base import ToolContext
from toolrelay.tools.echo import EchoTool
from toolrelay.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture
async def db_session() -> AsyncSession:  # type: ignore[misc]
    """In-memory SQLite async session with the schema created."""
    factory, engine = await create_db("sqlite+aiosqlite:///:memory:")
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def context() -> ToolContext:
    return ToolContext(user_id=1, team_id=10, trace_id="trace-test")


@pytest.fixture
def registry() -> ToolRegistry:
    reg = ToolRegistry()
    reg.register(EchoTool())
    return reg


@pytest.fixture
def config() -> ToolRelayConfig:
    """Config with fast retries so failure tests stay quick."""
    return ToolRelayConfig.model_validate(
        {"retry": {"base_delay": 0.0, "max_delay": 0.0, "jitter": False}}
    )


@pytest.fixture
def sink() -> MemoryTelemetrySink:
    return MemoryTelemetrySink()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def executor(
    registry: ToolRegistry,
    config: ToolRelayConfig,
    store: MemoryStore,
    sink: MemoryTelemetrySink,
) -> ToolExecutor:
    return ToolExecutor(registry, config, store=store, sink=sink)
