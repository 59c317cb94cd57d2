"""Tool orchestrator: resolve dependencies, then run the requested tool.

Tools describe what they need (:class:`ToolDependency` callbacks or
declarative :class:`DependencyDeclaration` objects); the orchestrator
reads those declarations, runs the dependency tools through the
executor, folds their results into the main tool's arguments and
finally runs the main tool. When a dependency's result is ambiguous the
call pauses and returns the options so a human can choose.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from toolrelay.core.errors import DependencyResolutionError
from toolrelay.orchestration.machine import OrchestrationState, OrchestrationStateMachine
from toolrelay.orchestration.planner import ChainPlanner, read_dependencies
from toolrelay.orchestration.resolver import DependencyResolver
from toolrelay.tools.base import DependencyDeclaration, ErrorCode, ToolDependency, ToolResult

if TYPE_CHECKING:
    from toolrelay.orchestration.executor import ToolExecutor
    from toolrelay.orchestration.planner import ChainPlan
    from toolrelay.orchestration.runs import RunTracker, ToolRun
    from toolrelay.tools.base import Dependency, Tool, ToolContext
    from toolrelay.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

PAUSE_MESSAGE = "Please choose from the list."


class _Paused(Exception):
    """Internal signal: a dependency needs a human decision."""

    def __init__(self, dependency_tool: str, data: Any) -> None:
        super().__init__(dependency_tool)
        self.dependency_tool = dependency_tool
        self.data = data


class ToolOrchestrator:
    """Run tools with automatic dependency resolution.

    The registry, executor and (optional) run tracker are injected. The
    orchestrator keeps a per-instance memo of each tool's declared
    dependencies; call :meth:`invalidate_dependency_cache` after
    re-registering a tool.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        executor: ToolExecutor,
        runs: RunTracker | None = None,
        *,
        max_depth: int = 5,
        plan_first: bool = False,
    ) -> None:
        self._registry = registry
        self._executor = executor
        self._runs = runs
        self.max_depth = max_depth
        self.plan_first = plan_first
        self._resolver = DependencyResolver(executor)
        self._planner = ChainPlanner(registry, self._dependencies_of)
        self._dependency_cache: dict[str, list[Dependency]] = {}

    @property
    def planner(self) -> ChainPlanner:
        return self._planner

    def plan(self, tool_name: str, arguments: dict[str, Any], context: ToolContext) -> ChainPlan:
        return self._planner.plan_chain(tool_name, arguments, context)

    # ── Dependency memo ───────────────────────────────────────

    def _dependencies_of(self, tool: Tool) -> list[Dependency]:
        cached = self._dependency_cache.get(tool.name)
        if cached is None:
            cached = self._dependency_cache[tool.name] = read_dependencies(tool)
        return cached

    def dependencies_for(self, tool_name: str) -> list[Dependency]:
        """Declared dependencies of *tool_name* (empty if unknown)."""
        tool = self._registry.get(tool_name)
        if tool is None:
            return []
        return self._dependencies_of(tool)

    def invalidate_dependency_cache(self, tool_name: str | None = None) -> None:
        """Forget memoised dependencies for *tool_name*, or for all tools."""
        if tool_name is None:
            self._dependency_cache.clear()
        else:
            self._dependency_cache.pop(tool_name, None)

    # ── Execution ─────────────────────────────────────────────

    async def execute_with_dependencies(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context: ToolContext,
        max_depth: int | None = None,
        plan_first: bool | None = None,
        conversation_id: str | None = None,
        run_id: str | None = None,
    ) -> ToolResult:
        """Resolve *tool_name*'s dependencies, then execute it.

        Never raises. Returns the main tool's result unchanged, an error
        result, or a pause payload (``requires_user_input``) when a
        dependency needs a human decision.
        """
        max_depth = self.max_depth if max_depth is None else max_depth
        plan_first = self.plan_first if plan_first is None else plan_first
        machine = OrchestrationStateMachine(tool_name)

        remaining = max_depth - len(context.call_path)
        if remaining <= 0 or tool_name in context.call_path:
            machine.fail("max depth exceeded")
            logger.warning(
                "Max tool-chain depth reached for %s (path: %s)",
                tool_name,
                " > ".join(context.call_path) or "-",
            )
            return ToolResult.error(
                ErrorCode.MAX_DEPTH_EXCEEDED,
                "Maximum tool-chain depth reached",
                {"call_path": list(context.call_path)},
            )

        run = self._start_run(tool_name, arguments, context, conversation_id, run_id)
        if run is not None:
            tool_name = run.next_tool or run.tool_name
            arguments = {**run.arguments, **arguments}

        if plan_first:
            machine.transition(OrchestrationState.PLANNING)
            plan = self._planner.plan_chain(tool_name, arguments, context)
            if plan.missing:
                logger.warning("Missing tools in plan for %s: %s", tool_name, plan.missing)
            for warning in plan.warnings:
                logger.warning("Chain plan warning for %s: %s", tool_name, warning)

        machine.transition(OrchestrationState.RESOLVING_DEPENDENCIES)
        child = context.descend(tool_name)
        try:
            arguments = await self._resolve_all(tool_name, arguments, child)
        except _Paused as pause:
            machine.transition(OrchestrationState.AWAITING_USER_INPUT)
            if run is not None and self._runs is not None:
                self._runs.mark_waiting_input(run.id, pause.data, tool_name, arguments)
            return ToolResult.success(
                {
                    "requires_user_input": True,
                    "message": PAUSE_MESSAGE,
                    "dependency_tool": pause.dependency_tool,
                    "dependency_tool_result": pause.data,
                    "next_tool": tool_name,
                    "next_tool_args": arguments,
                    "run_id": run.id if run is not None else None,
                    "conversation_id": conversation_id,
                }
            )
        except DependencyResolutionError as e:
            machine.fail(str(e))
            if run is not None and self._runs is not None:
                self._runs.fail(run.id, str(e))
            return ToolResult.error(
                ErrorCode.EXECUTION_ERROR,
                str(e),
                {"dependency_tool": e.resolver_tool, "error_type": "validation"},
            )

        machine.transition(OrchestrationState.EXECUTING_MAIN)
        result = await self._executor.execute(tool_name, arguments, child)

        if result.ok:
            machine.transition(OrchestrationState.DONE)
        else:
            machine.fail(result.message or "main tool failed")
        if run is not None and self._runs is not None:
            if result.ok:
                self._runs.complete(run.id)
            else:
                self._runs.fail(run.id, result.message)
        return result

    def _start_run(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context: ToolContext,
        conversation_id: str | None,
        run_id: str | None,
    ) -> ToolRun | None:
        if self._runs is None or not conversation_id:
            return None
        if run_id:
            run = self._runs.get_run(run_id)
            if run is not None:
                return run
            logger.warning("Run %s not found, starting a new one", run_id)
        return self._runs.create_run(conversation_id, tool_name, arguments, context)

    async def _resolve_all(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context: ToolContext,
    ) -> dict[str, Any]:
        """Run every dependency in declared order and return merged arguments.

        Raises:
            _Paused: A dependency needs a human decision.
            DependencyResolutionError: A ``fail``-strategy declaration
                was ambiguous.
        """
        tool = self._registry.get(tool_name)
        if tool is None:
            return arguments
        try:
            dependencies = self._dependencies_of(tool)
        except Exception:
            logger.exception("Could not read dependencies of %s", tool_name)
            return arguments

        for dependency in dependencies:
            if isinstance(dependency, DependencyDeclaration):
                try:
                    arguments = await self._resolve_declaration(dependency, arguments, context)
                except (_Paused, DependencyResolutionError):
                    raise
                except Exception:
                    logger.exception(
                        "Declared dependency via %s on %s failed",
                        dependency.resolver_tool,
                        tool_name,
                    )
            elif isinstance(dependency, ToolDependency):
                arguments = await self._resolve_callback(tool_name, dependency, arguments, context)
            else:
                logger.warning("Ignoring unknown dependency on %s: %r", tool_name, dependency)
        return arguments

    async def _resolve_declaration(
        self,
        declaration: DependencyDeclaration,
        arguments: dict[str, Any],
        context: ToolContext,
    ) -> dict[str, Any]:
        resolution = await self._resolver.resolve_detailed(declaration, arguments, context)
        if resolution.arguments is not None:
            return resolution.arguments
        raise _Paused(declaration.resolver_tool or "", resolution.payload)

    async def _resolve_callback(
        self,
        tool_name: str,
        dependency: ToolDependency,
        arguments: dict[str, Any],
        context: ToolContext,
    ) -> dict[str, Any]:
        dep_name = dependency.tool_name
        try:
            if dependency.condition is not None and not dependency.condition(arguments, context):
                return arguments
            if dependency.args is not None:
                dep_args = dependency.args(arguments, context)
                if dep_args is None:
                    return arguments
            else:
                dep_args = {}
        except Exception:
            logger.exception("Dependency callback for %s on %s failed", dep_name, tool_name)
            return arguments

        logger.info("Running dependency %s for %s", dep_name, tool_name)
        result = await self._executor.execute(dep_name, dep_args, context)
        if not result.ok:
            logger.warning(
                "Dependency %s for %s failed (%s): %s",
                dep_name,
                tool_name,
                result.code,
                result.message,
            )
            return arguments

        if dependency.merge_result is None:
            return arguments
        try:
            merged = dependency.merge_result(arguments, result)
        except Exception:
            logger.exception("merge_result for %s on %s failed", dep_name, tool_name)
            return arguments
        if merged is None:
            raise _Paused(dep_name, result.data)
        return merged
