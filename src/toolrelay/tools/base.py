"""Tool protocol, capabilities and data types.

Defines the ``Tool`` protocol every tool implementation must satisfy,
the two optional capability protocols (``MetadataProvider`` and
``DependencyProvider``), and the value types that flow through the
runtime: ``ToolContext``, ``ToolResult``, ``ToolMetadata`` and the two
dependency shapes.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable


class ErrorCode:
    """Error codes carried by failed :class:`ToolResult` objects."""

    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    MAX_DEPTH_EXCEEDED = "MAX_DEPTH_EXCEEDED"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    DUPLICATE_IN_PROGRESS = "DUPLICATE_IN_PROGRESS"


# ── Context & result ──────────────────────────────────────────


@dataclass(frozen=True)
class ToolContext:
    """Caller identity and session scope for one tool call.

    Built by the caller (auth/session layer). The runtime only ever
    derives new contexts from it, never mutates it.
    """

    user_id: str | int | None = None
    team_id: str | int | None = None
    trace_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    call_path: tuple[str, ...] = ()

    def with_metadata(self, **metadata: Any) -> ToolContext:
        """Return a copy with *metadata* merged in."""
        return replace(self, metadata={**self.metadata, **metadata})

    def descend(self, tool_name: str) -> ToolContext:
        """Return a copy with *tool_name* appended to the call path."""
        return replace(self, call_path=(*self.call_path, tool_name))

    @property
    def depth(self) -> int:
        """Number of orchestrated calls enclosing this one."""
        return len(self.call_path)


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of a tool invocation: success with data, or an error."""

    ok: bool
    data: Any = None
    code: str | None = None
    message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, data: Any = None, metadata: dict[str, Any] | None = None) -> ToolResult:
        return cls(ok=True, data=data, metadata=dict(metadata or {}))

    @classmethod
    def error(
        cls,
        code: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> ToolResult:
        return cls(ok=False, code=code, message=message, metadata=dict(metadata or {}))

    def with_metadata(self, **metadata: Any) -> ToolResult:
        """Return a copy with *metadata* merged in."""
        return replace(self, metadata={**self.metadata, **metadata})

    def to_dict(self) -> dict[str, Any]:
        """Render the wire shape returned to callers."""
        if self.ok:
            out: dict[str, Any] = {"ok": True, "data": self.data}
            if self.metadata:
                out["metadata"] = self.metadata
            return out
        error: dict[str, Any] = {"message": self.message}
        if self.code:
            error["code"] = self.code
        error.update(self.metadata)
        return {"ok": False, "error": error}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ToolResult:
        """Inverse of :meth:`to_dict` for successful results.

        Error payloads are restored with their extra keys as metadata.
        """
        if payload.get("ok"):
            return cls.success(payload.get("data"), payload.get("metadata"))
        error = dict(payload.get("error") or {})
        message = error.pop("message", "") or ""
        code = error.pop("code", ErrorCode.EXECUTION_ERROR)
        return cls.error(code, message, error)


# ── Metadata ──────────────────────────────────────────────────


class RiskLevel(enum.StrEnum):
    SAFE = "safe"
    WRITE = "write"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True, slots=True)
class ToolMetadata:
    """Descriptive metadata used for discovery, caching and idempotency."""

    category: str = "utility"
    tags: tuple[str, ...] = ()
    read_only: bool = True
    risk_level: str = RiskLevel.SAFE
    idempotent: bool = False
    confirmation_required: bool = False
    related_tools: tuple[str, ...] = ()
    examples: tuple[str, ...] = ()
    requires_auth: bool = True
    requires_team: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "tags": list(self.tags),
            "read_only": self.read_only,
            "risk_level": str(self.risk_level),
            "idempotent": self.idempotent,
            "confirmation_required": self.confirmation_required,
            "related_tools": list(self.related_tools),
            "examples": list(self.examples),
            "requires_auth": self.requires_auth,
            "requires_team": self.requires_team,
        }


# ── Dependencies ──────────────────────────────────────────────


class SelectStrategy(enum.StrEnum):
    """How a resolver's candidate list becomes a single value."""

    AUTO_IF_SINGLE = "auto_if_single"
    ASK_USER = "ask_user"
    FAIL = "fail"


@dataclass(frozen=True, slots=True)
class ToolDependency:
    """Callback-shaped dependency on another tool.

    ``condition(arguments, context)`` decides whether the dependency runs.
    ``args(arguments, context)`` builds its arguments; ``None`` skips it.
    ``merge_result(arguments, result)`` folds the dependency's result into
    the main tool's arguments; returning ``None`` means the result is
    ambiguous and a human has to choose.
    """

    tool_name: str
    condition: Callable[[dict[str, Any], ToolContext], bool] | None = None
    args: Callable[[dict[str, Any], ToolContext], dict[str, Any] | None] | None = None
    merge_result: Callable[[dict[str, Any], ToolResult], dict[str, Any] | None] | None = None


@dataclass(frozen=True, slots=True)
class DependencyDeclaration:
    """Declarative dependency resolved by the generic resolver.

    ``map`` associates target argument names with path expressions such
    as ``$.teams[0].id`` evaluated against the resolver tool's output.
    """

    requires: tuple[str, ...]
    resolver_tool: str | None = None
    select_strategy: SelectStrategy = SelectStrategy.AUTO_IF_SINGLE
    map: dict[str, str] = field(default_factory=dict)


Dependency = ToolDependency | DependencyDeclaration


# ── Protocols ─────────────────────────────────────────────────


@runtime_checkable
class Tool(Protocol):
    """Protocol that all tool implementations must satisfy."""

    @property
    def name(self) -> str:
        """Unique, dot-segmented name (e.g. ``core.teams.GET``)."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    def schema(self) -> dict[str, Any]:
        """JSON Schema subset describing the tool's arguments."""
        ...

    async def execute(self, arguments: dict[str, Any], context: ToolContext) -> ToolResult:
        """Run the tool.

        May raise; the executor catches, classifies and wraps anything
        that escapes.
        """
        ...


@runtime_checkable
class MetadataProvider(Protocol):
    """Optional capability: a tool that describes itself."""

    def metadata(self) -> ToolMetadata: ...


@runtime_checkable
class DependencyProvider(Protocol):
    """Optional capability: a tool that declares the tools it needs."""

    def dependencies(self) -> list[Dependency]: ...
