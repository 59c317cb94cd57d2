"""Multi-step runs that pause for user input and resume later."""

from __future__ import annotations

import enum
import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from toolrelay.orchestration.resolver import extract_candidates

if TYPE_CHECKING:
    from toolrelay.tools.base import ToolContext

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RunStatus(enum.StrEnum):
    PENDING = "pending"
    WAITING_INPUT = "waiting_input"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ToolRun:
    """State of one multi-step run within a conversation."""

    conversation_id: str
    tool_name: str
    arguments: dict[str, Any]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    step: int = 0
    status: RunStatus = RunStatus.PENDING
    user_id: str | int | None = None
    team_id: str | int | None = None
    input_options: list[Any] = field(default_factory=list)
    next_tool: str | None = None
    next_tool_args: dict[str, Any] | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "step": self.step,
            "tool_name": self.tool_name,
            "arguments": self.arguments,
            "status": str(self.status),
            "input_options": self.input_options,
            "next_tool": self.next_tool,
            "next_tool_args": self.next_tool_args,
            "error": self.error,
        }


def merge_user_input(arguments: dict[str, Any], user_input: Any) -> dict[str, Any]:
    """Fold a human's answer into *arguments*.

    A number becomes ``selected_id``; a JSON object is merged key by key;
    anything else is kept verbatim as ``user_input``.
    """
    merged = dict(arguments)
    if isinstance(user_input, dict):
        merged.update(user_input)
        return merged
    if isinstance(user_input, bool):
        merged["user_input"] = user_input
        return merged
    if isinstance(user_input, int):
        merged["selected_id"] = user_input
        return merged

    text = str(user_input).strip()
    if text.lstrip("-").isdigit():
        merged["selected_id"] = int(text)
        return merged
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        merged.update(parsed)
    else:
        merged["user_input"] = user_input
    return merged


class RunTracker:
    """In-memory registry of :class:`ToolRun` objects."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._runs: dict[str, ToolRun] = {}

    def create_run(
        self,
        conversation_id: str,
        tool_name: str,
        arguments: dict[str, Any],
        context: ToolContext,
        step: int = 0,
    ) -> ToolRun:
        run = ToolRun(
            conversation_id=conversation_id,
            tool_name=tool_name,
            arguments=dict(arguments),
            step=step,
            user_id=context.user_id,
            team_id=context.team_id,
        )
        with self._lock:
            self._runs[run.id] = run
        logger.debug("Created run %s for %s", run.id, tool_name)
        return run

    def get_run(self, run_id: str) -> ToolRun | None:
        with self._lock:
            return self._runs.get(run_id)

    def _update(self, run_id: str, **changes: Any) -> ToolRun | None:
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                logger.warning("Run %s not found", run_id)
                return None
            for name, value in changes.items():
                setattr(run, name, value)
            run.updated_at = _utcnow()
            return run

    def mark_waiting_input(
        self,
        run_id: str,
        options: Any,
        next_tool: str,
        next_tool_args: dict[str, Any],
    ) -> ToolRun | None:
        return self._update(
            run_id,
            status=RunStatus.WAITING_INPUT,
            input_options=extract_candidates(options),
            next_tool=next_tool,
            next_tool_args=dict(next_tool_args),
        )

    def complete(self, run_id: str) -> ToolRun | None:
        return self._update(run_id, status=RunStatus.COMPLETED)

    def fail(self, run_id: str, error: str | None) -> ToolRun | None:
        return self._update(run_id, status=RunStatus.FAILED, error=error)

    def resume(self, run_id: str, user_input: Any) -> ToolRun | None:
        """Merge *user_input* into the paused run and advance its step."""
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                return None
            base = run.next_tool_args if run.next_tool_args is not None else run.arguments
            run.arguments = merge_user_input(base, user_input)
            run.next_tool_args = dict(run.arguments)
            run.status = RunStatus.PENDING
            run.step += 1
            run.updated_at = _utcnow()
            return run

    def runs_for_conversation(self, conversation_id: str) -> list[ToolRun]:
        with self._lock:
            runs = [r for r in self._runs.values() if r.conversation_id == conversation_id]
        return sorted(runs, key=lambda r: r.created_at)
