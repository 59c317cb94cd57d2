"""Tests for multi-step run tracking."""

from __future__ import annotations

import pytest

from toolrelay.orchestration.runs import RunStatus, RunTracker, merge_user_input
from toolrelay.tools.base import ToolContext

# ─── merge_user_input ─────────────────────────────────────────


class TestMergeUserInput:
    @pytest.mark.parametrize(
        ("user_input", "expected"),
        [
            ({"team_id": 8}, {"name": "x", "team_id": 8}),
            (8, {"name": "x", "selected_id": 8}),
            ("8", {"name": "x", "selected_id": 8}),
            (" 12 ", {"name": "x", "selected_id": 12}),
            ('{"team_id": 3}', {"name": "x", "team_id": 3}),
            ("the second one", {"name": "x", "user_input": "the second one"}),
            ("[1, 2]", {"name": "x", "user_input": "[1, 2]"}),
            (True, {"name": "x", "user_input": True}),
        ],
    )
    def test_merge(self, user_input, expected):
        assert merge_user_input({"name": "x"}, user_input) == expected

    def test_does_not_mutate(self):
        args = {"name": "x"}
        merge_user_input(args, {"team_id": 1})
        assert args == {"name": "x"}


# ─── RunTracker ───────────────────────────────────────────────


class TestRunTracker:
    def test_create_and_get(self, context: ToolContext):
        tracker = RunTracker()
        run = tracker.create_run("conv", "planner.projects.POST", {"a": 1}, context)
        assert tracker.get_run(run.id) is run
        assert run.status == RunStatus.PENDING
        assert run.step == 0
        assert run.user_id == 1
        assert run.team_id == 10

    def test_unknown_run(self):
        tracker = RunTracker()
        assert tracker.get_run("nope") is None
        assert tracker.complete("nope") is None
        assert tracker.resume("nope", 1) is None

    def test_waiting_then_resume(self, context: ToolContext):
        tracker = RunTracker()
        run = tracker.create_run("conv", "planner.projects.POST", {"a": 1}, context)
        tracker.mark_waiting_input(
            run.id,
            {"teams": [{"id": 7}, {"id": 8}]},
            "planner.projects.POST",
            {"a": 1, "name": "Launch"},
        )
        assert run.status == RunStatus.WAITING_INPUT
        assert run.input_options == [{"id": 7}, {"id": 8}]

        tracker.resume(run.id, "8")
        assert run.status == RunStatus.PENDING
        assert run.step == 1
        assert run.arguments == {"a": 1, "name": "Launch", "selected_id": 8}
        assert run.next_tool_args == run.arguments

    def test_fail(self, context: ToolContext):
        tracker = RunTracker()
        run = tracker.create_run("conv", "t", {}, context)
        tracker.fail(run.id, "exploded")
        assert run.status == RunStatus.FAILED
        assert run.error == "exploded"

    def test_runs_for_conversation(self, context: ToolContext):
        tracker = RunTracker()
        first = tracker.create_run("conv", "a", {}, context)
        second = tracker.create_run("conv", "b", {}, context, step=1)
        tracker.create_run("other", "c", {}, context)
        assert [r.id for r in tracker.runs_for_conversation("conv")] == [first.id, second.id]

    def test_to_dict(self, context: ToolContext):
        run = RunTracker().create_run("conv", "a", {"k": "v"}, context)
        out = run.to_dict()
        assert out["conversation_id"] == "conv"
        assert out["status"] == "pending"
        assert out["arguments"] == {"k": "v"}
