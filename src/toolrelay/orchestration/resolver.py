"""Generic resolver for declarative tool dependencies.

A :class:`DependencyDeclaration` names the arguments a tool needs, the
tool that can supply them, how to choose among several candidates, and
where in the resolver's output each value lives::

    DependencyDeclaration(
        requires=("team_id",),
        resolver_tool="core.teams.GET",
        map={"team_id": "$.teams[0].id"},
    )

Paths use a deliberately small language: ``$`` for the root, ``.key``
for object members and ``[n]`` for list indices. The leading ``$`` is
optional, so ``id`` and ``$.id`` are the same path. Wildcards, filters
and functions are rejected.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from toolrelay.core.errors import DependencyResolutionError, PathSyntaxError
from toolrelay.tools.base import SelectStrategy

if TYPE_CHECKING:
    from toolrelay.orchestration.executor import ToolExecutor
    from toolrelay.tools.base import DependencyDeclaration, ToolContext

logger = logging.getLogger(__name__)

CANDIDATE_KEYS = ("teams", "data", "items", "results", "list")

_SEGMENT_RE = re.compile(r"\.([A-Za-z_][\w-]*)|\[(\d+)\]")
_FORBIDDEN = ("*", "?", "(", "..", "@")


class _Missing:
    """Sentinel for a path that did not resolve."""

    def __repr__(self) -> str:
        return "<missing>"


MISSING: Any = _Missing()


def parse_path(path: str) -> list[str | int]:
    """Split *path* into member names and list indices.

    Raises:
        PathSyntaxError: If the path uses unsupported syntax.
    """
    if any(token in path for token in _FORBIDDEN):
        msg = f"Unsupported path syntax (wildcards/filters): {path!r}"
        raise PathSyntaxError(msg)

    body = path[1:] if path.startswith("$") else path
    if body and body[0] not in ".[":
        body = "." + body

    segments: list[str | int] = []
    pos = 0
    while pos < len(body):
        match = _SEGMENT_RE.match(body, pos)
        if match is None:
            msg = f"Invalid path segment at {pos} in {path!r}"
            raise PathSyntaxError(msg)
        key, index = match.groups()
        segments.append(key if key is not None else int(index))
        pos = match.end()
    return segments


def evaluate_path(path: str, data: Any) -> Any:
    """Evaluate *path* against *data*.

    Returns :data:`MISSING` when any segment is absent. ``$`` alone
    returns *data* itself.
    """
    current = data
    for segment in parse_path(path):
        if isinstance(segment, int):
            if not isinstance(current, (list, tuple)) or segment >= len(current):
                return MISSING
            current = current[segment]
        else:
            if not isinstance(current, dict) or segment not in current:
                return MISSING
            current = current[segment]
    return current


def extract_candidates(payload: Any) -> list[Any]:
    """Turn a resolver tool's output into a list of candidates.

    A flat list of dicts is used as-is; otherwise the first list found
    under one of :data:`CANDIDATE_KEYS`; otherwise the payload itself is
    the single candidate.
    """
    if isinstance(payload, list):
        if not payload or all(isinstance(item, dict) for item in payload):
            return list(payload)
    if isinstance(payload, dict):
        for key in CANDIDATE_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return list(value)
    if payload is None:
        return []
    return [payload]


def missing_fields(required: tuple[str, ...] | list[str], arguments: dict[str, Any]) -> list[str]:
    """Required fields absent from *arguments* or set to None."""
    return [name for name in required if arguments.get(name) is None]


@dataclass(frozen=True, slots=True)
class Resolution:
    """Outcome of one declaration.

    ``arguments`` is None when a human must choose; ``payload`` is then
    the resolver tool's output to choose from.
    """

    arguments: dict[str, Any] | None
    payload: Any = None


class DependencyResolver:
    """Fill missing arguments by running a declaration's resolver tool."""

    def __init__(self, executor: ToolExecutor) -> None:
        self._executor = executor

    async def resolve(
        self,
        declaration: DependencyDeclaration,
        arguments: dict[str, Any],
        context: ToolContext,
    ) -> dict[str, Any] | None:
        """Return the merged arguments, or None when a human must choose.

        Raises:
            DependencyResolutionError: For ``fail`` strategy when the
                resolver does not produce exactly one candidate.
        """
        return (await self.resolve_detailed(declaration, arguments, context)).arguments

    async def resolve_detailed(
        self,
        declaration: DependencyDeclaration,
        arguments: dict[str, Any],
        context: ToolContext,
    ) -> Resolution:
        """Like :meth:`resolve`, keeping the resolver payload.

        The resolver tool runs at most once per call.
        """
        missing = missing_fields(declaration.requires, arguments)
        if not missing:
            return Resolution(arguments)

        resolver_tool = declaration.resolver_tool
        if not resolver_tool:
            logger.warning("No resolver tool declared for missing fields %s", missing)
            return Resolution(arguments)

        result = await self._executor.execute(resolver_tool, {}, context)
        if not result.ok:
            logger.warning(
                "Resolver tool %s failed (%s): %s",
                resolver_tool,
                result.code,
                result.message,
            )
            return Resolution(arguments)

        payload = result.data
        candidates = extract_candidates(payload)
        selected = self._select(declaration, resolver_tool, candidates)
        if selected is MISSING:
            logger.info(
                "Resolver %s returned %d candidates; user input required",
                resolver_tool,
                len(candidates),
            )
            return Resolution(None, payload)

        merged = dict(arguments)
        for target, path in declaration.map.items():
            if merged.get(target) is not None:
                continue
            try:
                value = evaluate_path(path, selected)
                if value is MISSING:
                    value = evaluate_path(path, payload)
            except PathSyntaxError as e:
                logger.warning("Skipping map entry %s for %s: %s", target, resolver_tool, e)
                continue
            if value is MISSING:
                logger.debug("Path %s did not resolve for %s", path, target)
                continue
            merged[target] = value

        still_missing = missing_fields(declaration.requires, merged)
        if still_missing:
            logger.warning(
                "Fields %s still missing after resolving via %s",
                still_missing,
                resolver_tool,
            )
            return Resolution(None, payload)
        return Resolution(merged, payload)

    @staticmethod
    def _select(
        declaration: DependencyDeclaration,
        resolver_tool: str,
        candidates: list[Any],
    ) -> Any:
        strategy = SelectStrategy(declaration.select_strategy)
        if strategy is SelectStrategy.ASK_USER:
            return MISSING
        if len(candidates) == 1:
            return candidates[0]
        if strategy is SelectStrategy.FAIL:
            raise DependencyResolutionError(resolver_tool, len(candidates))
        return MISSING
