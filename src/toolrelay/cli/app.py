"""Main CLI application.

Click commands for toolrelay: tools, plan, run, executions.
"""

from __future__ import annotations

import asyncio
import importlib
import json as json_mod
import sys
from typing import TYPE_CHECKING, Any

import click

from toolrelay import __version__
from toolrelay.config.loader import load_config
from toolrelay.core.errors import ConfigError, ToolRelayError

if TYPE_CHECKING:
    from toolrelay.config.schema import ToolRelayConfig
    from toolrelay.telemetry.records import TelemetrySink
    from toolrelay.tools.registry import ToolRegistry


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> ToolRelayConfig:
    """Load config with user-friendly error handling."""
    try:
        return load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy


def _parse_args(raw: str) -> dict[str, Any]:
    """Parse the ``--args`` JSON object."""
    try:
        value = json_mod.loads(raw)
    except ValueError as e:
        msg = f"--args is not valid JSON: {e}"
        raise click.BadParameter(msg) from e
    if not isinstance(value, dict):
        msg = "--args must be a JSON object"
        raise click.BadParameter(msg)
    return value


def _load_factory(spec: str) -> list[Any]:
    """Import ``module:callable`` and return the tools it produces.

    The callable may return a single tool or an iterable of tools.
    """
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        msg = f"Expected module:callable, got {spec!r}"
        raise click.BadParameter(msg)
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        msg = f"Cannot load {spec}: {e}"
        raise click.BadParameter(msg) from e
    produced = factory()
    if hasattr(produced, "name") and hasattr(produced, "execute"):
        return [produced]
    return list(produced)


def _setup_tools(loads: tuple[str, ...]) -> ToolRegistry:
    """Build the registry: echo plus any ``--load`` factories."""
    from toolrelay.tools.echo import EchoTool
    from toolrelay.tools.registry import ToolRegistry

    registry = ToolRegistry()
    registry.register(EchoTool())
    for spec in loads:
        for tool in _load_factory(spec):
            registry.register(tool)
    return registry


def _context(user: str | None, team: str | None) -> Any:
    from toolrelay.tools.base import ToolContext

    return ToolContext(user_id=user, team_id=team)


# ── Group ────────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="toolrelay")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.option(
    "--load",
    "loads",
    multiple=True,
    metavar="MODULE:CALLABLE",
    help="Register tools returned by a factory. Repeatable.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, loads: tuple[str, ...]) -> None:
    """toolrelay - Tool orchestration runtime.

    Run tools with automatic dependency resolution.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["loads"] = loads
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── tools ────────────────────────────────────────────────────────


@cli.command()
@click.option("--category", default=None, help="Exact category (query, action, utility).")
@click.option("--tag", default=None, help="Only tools carrying this tag.")
@click.option("--module", "module", default=None, help="Name prefix before the first dot.")
@click.option(
    "--read-only/--writes",
    "read_only",
    default=None,
    help="Only read-only tools, or only tools that write.",
)
@click.option("--search", default=None, help="Free text over name and description.")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table.")
@click.pass_context
def tools(
    ctx: click.Context,
    category: str | None,
    tag: str | None,
    module: str | None,
    read_only: bool | None,
    search: str | None,
    as_json: bool,
) -> None:
    """List registered tools."""
    from toolrelay.cli.display import ToolRelayDisplay
    from toolrelay.tools.discovery import DiscoveryCriteria, ToolDiscovery

    registry = _setup_tools(ctx.obj["loads"])
    criteria = DiscoveryCriteria(
        category=category,
        tag=tag,
        read_only=read_only,
        module=module,
        search=search,
    )
    summaries = ToolDiscovery(registry).discover(criteria)
    if as_json:
        click.echo(json_mod.dumps([s.to_dict() for s in summaries], indent=2))
        return
    ToolRelayDisplay().tool_table(summaries)


# ── plan ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("tool_name")
@click.option("--args", "raw_args", default="{}", help="Tool arguments as a JSON object.")
@click.option("--user", default=None, help="User id for the call context.")
@click.option("--team", default=None, help="Team id for the call context.")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a panel.")
@click.pass_context
def plan(
    ctx: click.Context,
    tool_name: str,
    raw_args: str,
    user: str | None,
    team: str | None,
    as_json: bool,
) -> None:
    """Show the dependency chain for TOOL_NAME without running anything."""
    from toolrelay.cli.display import ToolRelayDisplay
    from toolrelay.orchestration.planner import ChainPlanner

    registry = _setup_tools(ctx.obj["loads"])
    arguments = _parse_args(raw_args)
    chain = ChainPlanner(registry).plan_chain(tool_name, arguments, _context(user, team))
    if as_json:
        click.echo(json_mod.dumps(chain.to_dict(), indent=2, default=repr))
        return
    ToolRelayDisplay().plan(chain)


# ── run ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("tool_name")
@click.option("--args", "raw_args", default="{}", help="Tool arguments as a JSON object.")
@click.option("--plan", "plan_first", is_flag=True, help="Plan the chain before running.")
@click.option("--max-depth", type=int, default=None, help="Maximum tool-chain depth.")
@click.option("--user", default=None, help="User id for the call context.")
@click.option("--team", default=None, help="Team id for the call context.")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    tool_name: str,
    raw_args: str,
    plan_first: bool,
    max_depth: int | None,
    user: str | None,
    team: str | None,
    as_json: bool,
) -> None:
    """Run TOOL_NAME with dependency resolution."""
    config = _load_config(ctx.obj["config_path"])
    registry = _setup_tools(ctx.obj["loads"])
    arguments = _parse_args(raw_args)
    try:
        ok = asyncio.run(
            _run_async(
                config,
                registry,
                tool_name,
                arguments,
                _context(user, team),
                plan_first=plan_first,
                max_depth=max_depth,
                as_json=as_json,
            )
        )
    except ToolRelayError as e:
        _error(str(e))
        return
    if not ok:
        sys.exit(1)


async def _run_async(
    config: ToolRelayConfig,
    registry: ToolRegistry,
    tool_name: str,
    arguments: dict[str, Any],
    context: Any,
    *,
    plan_first: bool,
    max_depth: int | None,
    as_json: bool,
) -> bool:
    """Async implementation for the run command. Returns result.ok."""
    from toolrelay.cli.display import ToolRelayDisplay
    from toolrelay.orchestration.executor import ToolExecutor
    from toolrelay.orchestration.orchestrator import ToolOrchestrator
    from toolrelay.telemetry.logs import configure_logging

    configure_logging(config.logging)

    engine = None
    sink: TelemetrySink | None = None
    if config.telemetry.sink == "sql":
        from toolrelay.memory.db import create_db
        from toolrelay.memory.sink import SqlTelemetrySink

        factory, engine = await create_db(config.database.url)
        sink = SqlTelemetrySink(factory)

    try:
        executor = ToolExecutor(registry, config, sink=sink)
        orchestrator = ToolOrchestrator(
            registry,
            executor,
            max_depth=config.orchestrator.max_depth,
            plan_first=config.orchestrator.plan_first,
        )
        result = await orchestrator.execute_with_dependencies(
            tool_name,
            arguments,
            context,
            max_depth=max_depth,
            plan_first=plan_first or None,
        )
    finally:
        if engine is not None:
            await engine.dispose()

    if as_json:
        click.echo(json_mod.dumps(result.to_dict(), indent=2, default=repr))
    else:
        ToolRelayDisplay().result(result, tool_name)
    return result.ok


# ── executions ───────────────────────────────────────────────────


@cli.command()
@click.option("--tool", "tool_name", default=None, help="Only executions of this tool.")
@click.option("--trace", "trace_id", default=None, help="Only executions with this trace id.")
@click.option("--limit", type=int, default=20, help="Max results.")
@click.option("--stats", is_flag=True, help="Show per-tool statistics instead.")
@click.pass_context
def executions(
    ctx: click.Context,
    tool_name: str | None,
    trace_id: str | None,
    limit: int,
    stats: bool,
) -> None:
    """Show recorded executions from the SQL telemetry sink."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_executions_async(config, tool_name, trace_id, limit, stats))
    except ToolRelayError as e:
        _error(str(e))


async def _executions_async(
    config: ToolRelayConfig,
    tool_name: str | None,
    trace_id: str | None,
    limit: int,
    stats: bool,
) -> None:
    """Async implementation for the executions command."""
    from toolrelay.cli.display import ToolRelayDisplay
    from toolrelay.memory.db import create_db
    from toolrelay.memory.repository import ExecutionRepository

    display = ToolRelayDisplay()
    factory, engine = await create_db(config.database.url)
    async with factory() as session:
        repo = ExecutionRepository(session)
        if stats:
            display.stats_table(await repo.tool_stats())
        elif trace_id:
            display.executions_table(await repo.get_by_trace_id(trace_id))
        else:
            display.executions_table(
                await repo.list_executions(tool_name=tool_name, limit=limit)
            )
    await engine.dispose()
