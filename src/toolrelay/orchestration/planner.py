"""Pre-flight planning of tool chains.

The planner walks a tool's declared dependencies without executing
anything and returns a :class:`ChainPlan`: which tools are involved,
which are unknown, and an order in which every tool comes after the
tools it depends on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from toolrelay.orchestration.resolver import missing_fields
from toolrelay.tools.base import DependencyDeclaration, DependencyProvider, ToolDependency

if TYPE_CHECKING:
    from collections.abc import Callable

    from toolrelay.tools.base import Dependency, Tool, ToolContext
    from toolrelay.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def read_dependencies(tool: Tool) -> list[Dependency]:
    """Dependencies declared by *tool*, or an empty list."""
    if isinstance(tool, DependencyProvider):
        return list(tool.dependencies())
    return []


@dataclass
class PlannedTool:
    """One node of a chain plan."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    dependencies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "arguments": self.arguments,
            "dependencies": list(self.dependencies),
        }


@dataclass
class ChainPlan:
    """Result of :meth:`ChainPlanner.plan_chain`."""

    main_tool: str
    tools: dict[str, PlannedTool] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    cycles: list[str] = field(default_factory=list)

    @property
    def has_cycles(self) -> bool:
        return bool(self.cycles)

    def to_dict(self) -> dict[str, Any]:
        return {
            "main_tool": self.main_tool,
            "tools": {name: node.to_dict() for name, node in self.tools.items()},
            "order": list(self.order),
            "missing": list(self.missing),
            "warnings": list(self.warnings),
        }


class ChainPlanner:
    """Build dependency graphs and execution orders. Never executes tools."""

    def __init__(
        self,
        registry: ToolRegistry,
        dependency_source: Callable[[Tool], list[Dependency]] = read_dependencies,
    ) -> None:
        self._registry = registry
        self._dependencies_of = dependency_source

    def plan_chain(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context: ToolContext,
    ) -> ChainPlan:
        plan = ChainPlan(main_tool=tool_name)
        self._collect(tool_name, arguments, context, plan, ())
        plan.order = self._topological_sort(plan.tools)
        return plan

    # ── Internals ─────────────────────────────────────────────

    def _collect(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context: ToolContext,
        plan: ChainPlan,
        visited: tuple[str, ...],
    ) -> None:
        if tool_name in visited:
            chain = " -> ".join((*visited, tool_name))
            plan.warnings.append(f"Cyclic dependency detected: {chain}")
            plan.cycles.append(tool_name)
            return
        visited = (*visited, tool_name)

        tool = self._registry.get(tool_name)
        if tool is None:
            if tool_name not in plan.missing:
                plan.missing.append(tool_name)
            return

        node = plan.tools.get(tool_name)
        if node is None:
            node = plan.tools[tool_name] = PlannedTool(name=tool_name, arguments=dict(arguments))

        try:
            dependencies = self._dependencies_of(tool)
        except Exception as e:
            plan.warnings.append(f"Could not read dependencies of {tool_name}: {e}")
            return

        for dependency in dependencies:
            edge = self._edge(tool_name, dependency, arguments, context, plan)
            if edge is None:
                continue
            dep_name, dep_args = edge
            if dep_name not in node.dependencies:
                node.dependencies.append(dep_name)
            self._collect(dep_name, dep_args, context, plan, visited)

    @staticmethod
    def _edge(
        tool_name: str,
        dependency: Dependency,
        arguments: dict[str, Any],
        context: ToolContext,
        plan: ChainPlan,
    ) -> tuple[str, dict[str, Any]] | None:
        """Return ``(dependency name, its arguments)`` or None to skip."""
        if isinstance(dependency, DependencyDeclaration):
            if not dependency.resolver_tool:
                return None
            if not missing_fields(dependency.requires, arguments):
                return None
            return dependency.resolver_tool, {}

        if not isinstance(dependency, ToolDependency):
            plan.warnings.append(f"Unknown dependency type on {tool_name}: {dependency!r}")
            return None

        try:
            if dependency.condition is not None and not dependency.condition(arguments, context):
                return None
            dep_args = dependency.args(arguments, context) if dependency.args else {}
        except Exception as e:
            plan.warnings.append(
                f"Dependency callback for {dependency.tool_name} on {tool_name} failed: {e}"
            )
            return None
        if dep_args is None:
            return None
        return dependency.tool_name, dict(dep_args)

    @staticmethod
    def _topological_sort(tools: dict[str, PlannedTool]) -> list[str]:
        """Depth-first post-order: dependencies before dependents."""
        order: list[str] = []
        done: set[str] = set()
        visiting: set[str] = set()

        def visit(name: str) -> None:
            if name in done or name in visiting:
                return
            visiting.add(name)
            for dep in tools[name].dependencies:
                if dep in tools:
                    visit(dep)
            visiting.discard(name)
            done.add(name)
            order.append(name)

        for name in tools:
            visit(name)
        return order
