"""Rich rendering for CLI output.

Tables for tool listings and execution history, panels for results
and chain plans. Accepts an optional :class:`~rich.console.Console`
for dependency injection in tests.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from toolrelay.memory.models import ToolExecution
    from toolrelay.memory.repository import ToolStats
    from toolrelay.orchestration.planner import ChainPlan
    from toolrelay.tools.base import ToolResult
    from toolrelay.tools.discovery import ToolSummary

_TRUNCATE_LEN = 60


def _truncate(text: str, limit: int = _TRUNCATE_LEN) -> str:
    """Truncate text to *limit* characters with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


def _pretty(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=repr)


class ToolRelayDisplay:
    """Console rendering for the toolrelay CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    @property
    def console(self) -> Console:
        return self._console

    # ── Tools ─────────────────────────────────────────────────

    def tool_table(self, summaries: Sequence[ToolSummary]) -> None:
        if not summaries:
            self._console.print("No tools found.")
            return
        table = Table(title=f"Tools ({len(summaries)})")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Category")
        table.add_column("Mode")
        table.add_column("Risk")
        table.add_column("Description")
        for summary in summaries:
            meta = summary.metadata
            table.add_row(
                summary.name,
                meta.category,
                "read" if meta.read_only else "write",
                str(meta.risk_level),
                _truncate(summary.description),
            )
        self._console.print(table)

    # ── Results ───────────────────────────────────────────────

    def result(self, result: ToolResult, tool_name: str) -> None:
        if result.ok and isinstance(result.data, dict) and result.data.get("requires_user_input"):
            data = result.data
            body = Text()
            body.append(f"{data.get('message', '')}\n\n", style="bold")
            body.append(_pretty(data.get("dependency_tool_result")))
            if data.get("run_id"):
                body.append(f"\n\nrun: {data['run_id']}", style="dim")
            self._console.print(
                Panel(
                    body,
                    title=f"[bold yellow]{tool_name}: input required[/bold yellow]",
                    border_style="yellow",
                )
            )
            return

        if result.ok:
            self._console.print(
                Panel(
                    Text(_pretty(result.data)),
                    title=f"[bold green]{tool_name}[/bold green]",
                    border_style="green",
                )
            )
            return

        body = Text()
        body.append(f"{result.code}: ", style="bold red")
        body.append(result.message or "")
        if result.metadata:
            body.append("\n\n")
            body.append(_pretty(result.metadata), style="dim")
        self._console.print(
            Panel(body, title=f"[bold red]{tool_name} failed[/bold red]", border_style="red")
        )

    # ── Plans ─────────────────────────────────────────────────

    def plan(self, plan: ChainPlan) -> None:
        body = Text()
        body.append("Order: ", style="bold")
        body.append(" -> ".join(plan.order) or "-")
        for name in plan.order:
            node = plan.tools[name]
            deps = ", ".join(node.dependencies) or "none"
            body.append(f"\n  {name}", style="cyan")
            body.append(f"  needs: {deps}", style="dim")
        if plan.missing:
            body.append("\nMissing: ", style="bold red")
            body.append(", ".join(plan.missing))
        for warning in plan.warnings:
            body.append(f"\nWarning: {warning}", style="yellow")
        self._console.print(
            Panel(body, title=f"[bold]Plan for {plan.main_tool}[/bold]", border_style="cyan")
        )

    # ── Executions ────────────────────────────────────────────

    def executions_table(self, rows: Sequence[ToolExecution]) -> None:
        if not rows:
            self._console.print("No executions recorded.")
            return
        table = Table(title="Recent executions")
        table.add_column("When", no_wrap=True)
        table.add_column("Tool", style="cyan")
        table.add_column("OK")
        table.add_column("ms", justify="right")
        table.add_column("Trace")
        table.add_column("Error")
        for row in rows:
            table.add_row(
                row.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                row.tool_name,
                "[green]yes[/green]" if row.success else "[red]no[/red]",
                str(row.duration_ms),
                row.trace_id or "",
                _truncate(row.error_message or "", 40),
            )
        self._console.print(table)

    def stats_table(self, stats: Sequence[ToolStats]) -> None:
        if not stats:
            self._console.print("No executions recorded.")
            return
        table = Table(title="Tool statistics")
        table.add_column("Tool", style="cyan")
        table.add_column("Calls", justify="right")
        table.add_column("Failures", justify="right")
        table.add_column("Success", justify="right")
        table.add_column("Avg ms", justify="right")
        for item in stats:
            table.add_row(
                item.tool_name,
                str(item.calls),
                str(item.failures),
                f"{item.success_rate:.0%}",
                f"{item.avg_duration_ms:.1f}",
            )
        self._console.print(table)
