"""Orchestration state machine: states and valid transitions.

Pure logic module. No IO. The orchestrator drives it and the machine
only checks that each step is legal.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from toolrelay.core.errors import OrchestrationError

if TYPE_CHECKING:
    from collections.abc import Sequence


class OrchestrationState(enum.Enum):
    """States of one orchestrated call."""

    IDLE = "idle"
    PLANNING = "planning"
    RESOLVING_DEPENDENCIES = "resolving_dependencies"
    AWAITING_USER_INPUT = "awaiting_user_input"
    EXECUTING_MAIN = "executing_main"
    DONE = "done"
    FAILED = "failed"


# FAILED can be reached from any non-terminal state (handled separately).
_VALID_TRANSITIONS: dict[OrchestrationState, frozenset[OrchestrationState]] = {
    OrchestrationState.IDLE: frozenset(
        {OrchestrationState.PLANNING, OrchestrationState.RESOLVING_DEPENDENCIES}
    ),
    OrchestrationState.PLANNING: frozenset({OrchestrationState.RESOLVING_DEPENDENCIES}),
    OrchestrationState.RESOLVING_DEPENDENCIES: frozenset(
        {OrchestrationState.AWAITING_USER_INPUT, OrchestrationState.EXECUTING_MAIN}
    ),
    OrchestrationState.EXECUTING_MAIN: frozenset({OrchestrationState.DONE}),
    OrchestrationState.AWAITING_USER_INPUT: frozenset(),
    OrchestrationState.DONE: frozenset(),
    OrchestrationState.FAILED: frozenset(),
}

_TERMINAL_STATES: frozenset[OrchestrationState] = frozenset(
    {
        OrchestrationState.AWAITING_USER_INPUT,
        OrchestrationState.DONE,
        OrchestrationState.FAILED,
    }
)


class OrchestrationStateMachine:
    """Validates transitions for a single orchestrated call."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        self._state = OrchestrationState.IDLE
        self.history: list[OrchestrationState] = [OrchestrationState.IDLE]
        self.error: str | None = None

    @property
    def state(self) -> OrchestrationState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in _TERMINAL_STATES

    def can_transition(self, to: OrchestrationState) -> bool:
        if self._state in _TERMINAL_STATES:
            return False
        if to == OrchestrationState.FAILED:
            return True
        return to in _VALID_TRANSITIONS.get(self._state, frozenset())

    def transition(self, to: OrchestrationState) -> None:
        """Move to *to*.

        Raises:
            OrchestrationError: If the transition is not allowed.
        """
        current = self._state
        if current in _TERMINAL_STATES:
            msg = f"Cannot transition from terminal state {current.value}"
            raise OrchestrationError(msg)
        if to != OrchestrationState.FAILED and to not in _VALID_TRANSITIONS.get(
            current, frozenset()
        ):
            msg = f"Invalid transition for {self.tool_name}: {current.value} -> {to.value}"
            raise OrchestrationError(msg)
        self._state = to
        self.history.append(to)

    def fail(self, error: str) -> None:
        """Transition to FAILED and remember *error*."""
        self.transition(OrchestrationState.FAILED)
        self.error = error

    def valid_transitions(self) -> Sequence[OrchestrationState]:
        if self._state in _TERMINAL_STATES:
            return []
        candidates = list(_VALID_TRANSITIONS.get(self._state, frozenset()))
        candidates.append(OrchestrationState.FAILED)
        return candidates
