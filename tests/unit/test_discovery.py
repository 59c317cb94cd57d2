"""Tests for tool discovery and metadata inference."""

from __future__ import annotations

import pytest

from tests.fixtures.tools import DepTool, FakeTool, MetaTool
from toolrelay.tools.base import RiskLevel, ToolDependency, ToolMetadata
from toolrelay.tools.discovery import (
    DiscoveryCriteria,
    ToolDiscovery,
    infer_metadata,
    module_of,
)
from toolrelay.tools.registry import ToolRegistry


@pytest.fixture
def discovery() -> ToolDiscovery:
    reg = ToolRegistry()
    reg.register(FakeTool("core.teams.GET", description="List teams of the user"))
    reg.register(FakeTool("planner.projects.POST", description="Create a project"))
    reg.register(FakeTool("planner.projects.DELETE", description="Delete a project"))
    reg.register(
        MetaTool(
            "okr.report",
            description="Quarterly OKR report",
            meta=ToolMetadata(
                category="report",
                tags=("okr", "quarterly"),
                examples=("show me the quarterly okr report",),
            ),
        )
    )
    reg.register(
        DepTool(
            "planner.tasks.POST",
            description="Create a task",
            deps=[ToolDependency("planner.projects.GET")],
        )
    )
    return ToolDiscovery(reg)


# ── Inference ───────────────────────────────────────────────────────


class TestInferMetadata:
    @pytest.mark.parametrize("verb", ["GET", "list", "get", "search", "describe"])
    def test_query_verbs(self, verb: str) -> None:
        meta = infer_metadata(f"core.teams.{verb}")
        assert meta.category == "query"
        assert meta.read_only is True
        assert meta.risk_level == RiskLevel.SAFE

    @pytest.mark.parametrize("verb", ["POST", "PUT", "create", "update"])
    def test_write_verbs(self, verb: str) -> None:
        meta = infer_metadata(f"planner.projects.{verb}")
        assert meta.category == "action"
        assert meta.read_only is False
        assert meta.risk_level == RiskLevel.WRITE

    @pytest.mark.parametrize("verb", ["DELETE", "delete"])
    def test_delete_is_destructive(self, verb: str) -> None:
        meta = infer_metadata(f"planner.projects.{verb}")
        assert meta.read_only is False
        assert meta.risk_level == RiskLevel.DESTRUCTIVE

    def test_unknown_verb_is_read_only_utility(self) -> None:
        meta = infer_metadata("core.cache.flush")
        assert meta.category == "utility"
        assert meta.read_only is True

    def test_single_segment(self) -> None:
        meta = infer_metadata("echo")
        assert meta.category == "utility"
        assert meta.tags == ("echo",)

    def test_tags(self) -> None:
        assert infer_metadata("core.teams.GET").tags == ("core", "teams", "get")

    def test_module_of(self) -> None:
        assert module_of("planner.projects.POST") == "planner"
        assert module_of("echo") == "echo"


# ── Criteria ────────────────────────────────────────────────────────


class TestDiscover:
    def test_no_criteria_returns_all(self, discovery: ToolDiscovery) -> None:
        assert len(discovery.discover()) == 5

    def test_by_category(self, discovery: ToolDiscovery) -> None:
        names = [s.name for s in discovery.discover(DiscoveryCriteria(category="action"))]
        assert names == ["planner.projects.POST", "planner.projects.DELETE", "planner.tasks.POST"]

    def test_by_tag(self, discovery: ToolDiscovery) -> None:
        names = [s.name for s in discovery.discover(DiscoveryCriteria(tag="quarterly"))]
        assert names == ["okr.report"]

    def test_by_read_only(self, discovery: ToolDiscovery) -> None:
        names = [s.name for s in discovery.discover(DiscoveryCriteria(read_only=True))]
        assert names == ["core.teams.GET", "okr.report"]

    def test_by_module(self, discovery: ToolDiscovery) -> None:
        names = [s.name for s in discovery.discover(DiscoveryCriteria(module="planner"))]
        assert len(names) == 3

    def test_search_is_case_insensitive(self, discovery: ToolDiscovery) -> None:
        names = [s.name for s in discovery.discover(DiscoveryCriteria(search="PROJECT"))]
        assert names == ["planner.projects.POST", "planner.projects.DELETE"]

    def test_combined_criteria(self, discovery: ToolDiscovery) -> None:
        crit = DiscoveryCriteria(module="planner", read_only=False, search="delete")
        assert [t.name for t in discovery.find_by_criteria(crit)] == ["planner.projects.DELETE"]

    def test_summary_flags_dependencies(self, discovery: ToolDiscovery) -> None:
        summaries = {s.name: s for s in discovery.discover()}
        assert summaries["planner.tasks.POST"].has_dependencies is True
        assert summaries["core.teams.GET"].has_dependencies is False

    def test_summary_to_dict(self, discovery: ToolDiscovery) -> None:
        summary = discovery.discover(DiscoveryCriteria(tag="okr"))[0]
        out = summary.to_dict()
        assert out["name"] == "okr.report"
        assert out["metadata"]["category"] == "report"
        assert out["metadata"]["tags"] == ["okr", "quarterly"]

    def test_declared_metadata_wins(self, discovery: ToolDiscovery) -> None:
        tool = discovery.find_by_criteria(DiscoveryCriteria(module="okr"))[0]
        assert discovery.get_tool_metadata(tool).category == "report"


# ── Intent ──────────────────────────────────────────────────────────


class TestFindByIntent:
    def test_ranks_by_keywords(self, discovery: ToolDiscovery) -> None:
        tools = discovery.find_by_intent("create a new project")
        assert tools[0].name == "planner.projects.POST"

    def test_examples_count(self, discovery: ToolDiscovery) -> None:
        tools = discovery.find_by_intent("quarterly report")
        assert tools[0].name == "okr.report"

    def test_plural_matches_singular(self, discovery: ToolDiscovery) -> None:
        names = [t.name for t in discovery.find_by_intent("teams")]
        assert names[0] == "core.teams.GET"

    def test_no_keywords(self, discovery: ToolDiscovery) -> None:
        assert discovery.find_by_intent("the and") == []
