"""Exception hierarchy for toolrelay.

Every module imports from here. The hierarchy is:

    ToolRelayError
    ├── ToolError(tool_name)
    │   ├── ToolTimeoutError(timeout)
    │   ├── RateLimitError(retry_after)
    │   ├── AuthorizationError
    │   └── CircuitOpenError
    ├── DependencyResolutionError
    ├── PathSyntaxError
    ├── OrchestrationError
    ├── ConfigError
    └── StorageError

None of these cross the executor or orchestrator boundary: they are
caught there and turned into error :class:`~toolrelay.tools.base.ToolResult`
objects.
"""

from __future__ import annotations


class ToolRelayError(Exception):
    """Base exception for all toolrelay errors."""


# ─── Tool Errors ──────────────────────────────────────────────


class ToolError(ToolRelayError):
    """Base for errors raised while running a tool."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"[{tool_name}] {message}")


class ToolTimeoutError(ToolError):
    """Tool did not finish within its time budget."""

    def __init__(self, tool_name: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(tool_name, f"Timed out after {timeout}s")


class RateLimitError(ToolError):
    """A rate limit was hit. Includes retry_after if available."""

    def __init__(self, tool_name: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        msg = "Rate limited"
        if retry_after is not None:
            msg += f" (retry after {retry_after}s)"
        super().__init__(tool_name, msg)


class AuthorizationError(ToolError):
    """Caller is not allowed to perform the operation."""


class CircuitOpenError(ToolError):
    """Circuit breaker is open for this tool."""


# ─── Orchestration Errors ─────────────────────────────────────


class DependencyResolutionError(ToolRelayError):
    """A dependency declared with the ``fail`` strategy was ambiguous."""

    def __init__(self, resolver_tool: str, candidates: int) -> None:
        self.resolver_tool = resolver_tool
        self.candidates = candidates
        super().__init__(
            f"Dependency resolution via '{resolver_tool}' failed: "
            f"expected exactly one result, got {candidates}"
        )


class PathSyntaxError(ToolRelayError):
    """A mapping path uses syntax outside the supported subset."""


class OrchestrationError(ToolRelayError):
    """Invalid orchestration state transition."""


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(ToolRelayError):
    """Invalid configuration."""


# ─── Storage Errors ───────────────────────────────────────────


class StorageError(ToolRelayError):
    """Database or store layer error."""
