"""Tests for OrchestrationStateMachine: transitions and guards."""

from __future__ import annotations

import pytest

from toolrelay.core.errors import OrchestrationError
from toolrelay.orchestration.machine import OrchestrationState, OrchestrationStateMachine

S = OrchestrationState

# ── Helpers ──────────────────────────────────────────────────────


def _advance_to_resolving(sm: OrchestrationStateMachine, plan: bool = False) -> None:
    """Move from IDLE to RESOLVING_DEPENDENCIES, optionally via PLANNING."""
    if plan:
        sm.transition(S.PLANNING)
    sm.transition(S.RESOLVING_DEPENDENCIES)


def _advance_to_executing(sm: OrchestrationStateMachine) -> None:
    _advance_to_resolving(sm)
    sm.transition(S.EXECUTING_MAIN)


# ── OrchestrationState enum ─────────────────────────────────────


class TestOrchestrationState:
    def test_all_states_exist(self) -> None:
        assert {s.name for s in S} == {
            "IDLE",
            "PLANNING",
            "RESOLVING_DEPENDENCIES",
            "AWAITING_USER_INPUT",
            "EXECUTING_MAIN",
            "DONE",
            "FAILED",
        }


# ── Happy paths ─────────────────────────────────────────────────


class TestHappyPaths:
    def test_starts_idle(self) -> None:
        sm = OrchestrationStateMachine("echo")
        assert sm.state == S.IDLE
        assert sm.history == [S.IDLE]
        assert not sm.is_terminal

    def test_direct_run(self) -> None:
        sm = OrchestrationStateMachine("echo")
        _advance_to_executing(sm)
        sm.transition(S.DONE)
        assert sm.history == [S.IDLE, S.RESOLVING_DEPENDENCIES, S.EXECUTING_MAIN, S.DONE]
        assert sm.is_terminal

    def test_planned_run(self) -> None:
        sm = OrchestrationStateMachine("echo")
        _advance_to_resolving(sm, plan=True)
        assert sm.history[:3] == [S.IDLE, S.PLANNING, S.RESOLVING_DEPENDENCIES]

    def test_pause(self) -> None:
        sm = OrchestrationStateMachine("echo")
        _advance_to_resolving(sm)
        sm.transition(S.AWAITING_USER_INPUT)
        assert sm.is_terminal


# ── Guards ──────────────────────────────────────────────────────


class TestGuards:
    @pytest.mark.parametrize(
        ("setup", "target"),
        [
            (lambda sm: None, S.EXECUTING_MAIN),
            (lambda sm: None, S.DONE),
            (lambda sm: sm.transition(S.PLANNING), S.EXECUTING_MAIN),
            (_advance_to_resolving, S.DONE),
            (_advance_to_executing, S.AWAITING_USER_INPUT),
        ],
    )
    def test_invalid_transition_raises(self, setup, target) -> None:
        sm = OrchestrationStateMachine("echo")
        setup(sm)
        assert not sm.can_transition(target)
        with pytest.raises(OrchestrationError, match="Invalid transition"):
            sm.transition(target)

    @pytest.mark.parametrize(
        "setup", [lambda sm: None, _advance_to_resolving, _advance_to_executing]
    )
    def test_fail_from_any_non_terminal(self, setup) -> None:
        sm = OrchestrationStateMachine("echo")
        setup(sm)
        sm.fail("boom")
        assert sm.state == S.FAILED
        assert sm.error == "boom"

    def test_terminal_states_are_final(self) -> None:
        sm = OrchestrationStateMachine("echo")
        _advance_to_executing(sm)
        sm.transition(S.DONE)
        assert not sm.can_transition(S.FAILED)
        with pytest.raises(OrchestrationError, match="terminal"):
            sm.fail("late")

    def test_valid_transitions(self) -> None:
        sm = OrchestrationStateMachine("echo")
        assert set(sm.valid_transitions()) == {S.PLANNING, S.RESOLVING_DEPENDENCIES, S.FAILED}
        _advance_to_executing(sm)
        assert set(sm.valid_transitions()) == {S.DONE, S.FAILED}
        sm.transition(S.DONE)
        assert list(sm.valid_transitions()) == []
