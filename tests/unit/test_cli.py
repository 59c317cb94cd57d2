"""Tests for the CLI commands: argument parsing, output formatting, errors."""

from __future__ import annotations

import io
import json
import logging

import pytest
from click.testing import CliRunner
from rich.console import Console

from toolrelay.cli.app import cli
from toolrelay.cli.display import ToolRelayDisplay, _truncate
from toolrelay.memory.repository import ToolStats
from toolrelay.orchestration.planner import ChainPlan, PlannedTool
from toolrelay.tools.base import ToolResult

LOAD = ["--load", "tests.fixtures.tools:team_tools"]


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def quiet_config(tmp_path) -> str:
    """Config that keeps log lines and telemetry out of command output."""
    path = tmp_path / "toolrelay.toml"
    path.write_text('[logging]\nlevel = "ERROR"\n\n[telemetry]\nsink = "none"\n')
    return str(path)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    root = logging.getLogger("toolrelay")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)


# ── CLI group ────────────────────────────────────────────────────


class TestCliGroup:
    def test_no_command_shows_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli)
        assert result.exit_code == 0
        assert "Tool orchestration runtime" in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "toolrelay" in result.output
        assert "0.1.0" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        for command in ("tools", "plan", "run", "executions"):
            assert command in result.output

    def test_bad_load_spec(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--load", "no-colon", "tools"])
        assert result.exit_code != 0
        assert "module:callable" in result.output

    def test_unimportable_load(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--load", "does.not.exist:factory", "tools"])
        assert result.exit_code != 0
        assert "Cannot load" in result.output


# ── tools ────────────────────────────────────────────────────────


class TestToolsCommand:
    def test_table(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["tools"])
        assert result.exit_code == 0
        assert "echo" in result.output

    def test_json_with_loaded_tools(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, [*LOAD, "tools", "--json"])
        assert result.exit_code == 0
        names = [t["name"] for t in json.loads(result.output)]
        assert names == ["echo", "core.teams.GET", "planner.projects.POST"]

    def test_filters(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, [*LOAD, "tools", "--writes", "--json"])
        data = json.loads(result.output)
        assert [t["name"] for t in data] == ["planner.projects.POST"]
        assert data[0]["has_dependencies"] is True

    def test_no_match(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["tools", "--search", "zzz"])
        assert result.exit_code == 0
        assert "No tools found" in result.output


# ── plan ─────────────────────────────────────────────────────────


class TestPlanCommand:
    def test_plan_json(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, [*LOAD, "plan", "planner.projects.POST", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["order"] == ["core.teams.GET", "planner.projects.POST"]

    def test_plan_panel_reports_missing(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["plan", "ghost.GET"])
        assert result.exit_code == 0
        assert "Missing" in result.output
        assert "ghost.GET" in result.output

    def test_invalid_args(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["plan", "echo", "--args", "[1]"])
        assert result.exit_code != 0
        assert "JSON object" in result.output


# ── run ──────────────────────────────────────────────────────────


class TestRunCommand:
    def test_echo_json(self, runner: CliRunner, quiet_config: str) -> None:
        result = runner.invoke(
            cli,
            ["--config", quiet_config, "run", "echo", "--args", '{"message": "hi"}', "--json"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["ok"] is True
        assert data["data"]["echo"] == "hi"

    def test_echo_panel(self, runner: CliRunner, quiet_config: str) -> None:
        result = runner.invoke(
            cli, ["--config", quiet_config, "run", "echo", "--args", '{"message": "hello"}']
        )
        assert result.exit_code == 0
        assert "hello" in result.output

    def test_failure_exits_nonzero(self, runner: CliRunner, quiet_config: str) -> None:
        result = runner.invoke(cli, ["--config", quiet_config, "run", "echo", "--json"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["error"]["code"] == "VALIDATION_ERROR"
        assert data["error"]["errors"] == ["Field 'message' is required"]

    def test_unknown_tool(self, runner: CliRunner, quiet_config: str) -> None:
        result = runner.invoke(cli, ["--config", quiet_config, "run", "ghost"])
        assert result.exit_code == 1
        assert "TOOL_NOT_FOUND" in result.output

    def test_pause_is_success(self, runner: CliRunner, quiet_config: str) -> None:
        result = runner.invoke(
            cli,
            ["--config", quiet_config, *LOAD, "run", "planner.projects.POST", "--json"],
        )
        assert result.exit_code == 0
        data = json.loads(result.output)["data"]
        assert data["requires_user_input"] is True
        assert data["dependency_tool"] == "core.teams.GET"

    def test_resolved_dependency(self, runner: CliRunner, quiet_config: str) -> None:
        result = runner.invoke(
            cli,
            [
                "--config",
                quiet_config,
                *LOAD,
                "run",
                "planner.projects.POST",
                "--args",
                '{"team_id": 8}',
                "--plan",
                "--json",
            ],
        )
        assert result.exit_code == 0
        assert json.loads(result.output)["data"] == {"created": True}

    def test_max_depth_zero(self, runner: CliRunner, quiet_config: str) -> None:
        args = ["run", "echo", "--args", '{"message": "x"}', "--max-depth", "0", "--json"]
        result = runner.invoke(cli, ["--config", quiet_config, *args])
        assert result.exit_code == 1
        assert json.loads(result.output)["error"]["code"] == "MAX_DEPTH_EXCEEDED"

    def test_sql_sink_and_executions(self, runner: CliRunner, tmp_path) -> None:
        db = tmp_path / "relay.db"
        config = tmp_path / "sql.toml"
        config.write_text(
            '[logging]\nlevel = "ERROR"\n\n[telemetry]\nsink = "sql"\n\n'
            f'[database]\nurl = "sqlite+aiosqlite:///{db}"\n'
        )
        run = runner.invoke(
            cli, ["--config", str(config), "run", "echo", "--args", '{"message": "a"}']
        )
        assert run.exit_code == 0, run.output

        listed = runner.invoke(cli, ["--config", str(config), "executions"])
        assert listed.exit_code == 0
        assert "echo" in listed.output

        stats = runner.invoke(cli, ["--config", str(config), "executions", "--stats"])
        assert stats.exit_code == 0
        assert "100%" in stats.output


# ── Display ──────────────────────────────────────────────────────


def _make_display() -> tuple[ToolRelayDisplay, io.StringIO]:
    buf = io.StringIO()
    return ToolRelayDisplay(console=Console(file=buf, width=100, no_color=True)), buf


class TestDisplay:
    def test_truncate(self) -> None:
        assert _truncate("hello", 10) == "hello"
        assert _truncate("hello world", 5) == "hello ..."

    def test_error_panel(self) -> None:
        display, buf = _make_display()
        display.result(ToolResult.error("RATE_LIMITED", "slow down", {"retry_after": 3}), "echo")
        out = buf.getvalue()
        assert "echo failed" in out
        assert "RATE_LIMITED: slow down" in out
        assert "retry_after" in out

    def test_pause_panel(self) -> None:
        display, buf = _make_display()
        payload = {
            "requires_user_input": True,
            "message": "Please choose from the list.",
            "dependency_tool_result": {"teams": [{"id": 7}]},
            "run_id": "abc",
        }
        display.result(ToolResult.success(payload), "planner.projects.POST")
        out = buf.getvalue()
        assert "input required" in out
        assert "Please choose from the list." in out
        assert "run: abc" in out

    def test_plan_panel(self) -> None:
        display, buf = _make_display()
        plan = ChainPlan(
            main_tool="A",
            tools={"A": PlannedTool("A", dependencies=["B"]), "B": PlannedTool("B")},
            order=["B", "A"],
            warnings=["Cyclic dependency detected: A -> B -> A"],
        )
        display.plan(plan)
        out = buf.getvalue()
        assert "B -> A" in out
        assert "Cyclic dependency detected" in out

    def test_stats_table(self) -> None:
        display, buf = _make_display()
        display.stats_table([ToolStats("echo", calls=4, failures=1, avg_duration_ms=2.5)])
        out = buf.getvalue()
        assert "echo" in out
        assert "75%" in out

    def test_empty_tables(self) -> None:
        display, buf = _make_display()
        display.executions_table([])
        display.stats_table([])
        assert buf.getvalue().count("No executions recorded.") == 2
