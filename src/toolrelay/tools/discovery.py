"""Tool discovery: metadata-driven filtering and search over the registry.

Tools that implement :class:`~toolrelay.tools.base.MetadataProvider`
describe themselves. For every other tool, metadata is inferred from the
verb at the end of its name; anything unrecognised is treated as a
read-only utility.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from toolrelay.tools.base import (
    DependencyProvider,
    MetadataProvider,
    RiskLevel,
    ToolMetadata,
)

if TYPE_CHECKING:
    from toolrelay.tools.base import Tool
    from toolrelay.tools.registry import ToolRegistry

_QUERY_VERBS = frozenset({"GET", "list", "get", "search", "describe"})
_ACTION_VERBS = frozenset({"POST", "PUT", "DELETE", "create", "update", "delete"})
_DESTRUCTIVE_VERBS = frozenset({"DELETE", "delete"})

_STOP_WORDS = frozenset(
    {"the", "and", "for", "with", "from", "into", "all", "please", "can", "you", "show", "me"}
)

# Intent verbs and the name fragments that usually implement them.
_ACTION_SYNONYMS: dict[str, tuple[str, ...]] = {
    "create": ("create", "post", "new", "add"),
    "add": ("create", "post", "add"),
    "list": ("list", "get", "search", "find"),
    "find": ("list", "get", "search", "find"),
    "delete": ("delete", "remove"),
    "remove": ("delete", "remove"),
    "update": ("update", "put", "edit"),
    "edit": ("update", "put", "edit"),
}


def infer_metadata(tool_name: str) -> ToolMetadata:
    """Infer metadata from *tool_name*'s verb suffix."""
    parts = tool_name.split(".")
    verb = parts[-1] if len(parts) > 1 else ""

    if verb in _QUERY_VERBS:
        category, read_only, risk = "query", True, RiskLevel.SAFE
    elif verb in _ACTION_VERBS:
        category, read_only = "action", False
        risk = RiskLevel.DESTRUCTIVE if verb in _DESTRUCTIVE_VERBS else RiskLevel.WRITE
    else:
        category, read_only, risk = "utility", True, RiskLevel.SAFE

    tags: list[str] = [parts[0]]
    if len(parts) > 2:
        tags.append(parts[1])
    if verb:
        tags.append(verb.lower())

    return ToolMetadata(
        category=category,
        tags=tuple(dict.fromkeys(tags)),
        read_only=read_only,
        risk_level=risk,
    )


def resolve_metadata(tool: Tool) -> ToolMetadata:
    """Return the tool's own metadata, or inferred metadata if it has none."""
    if isinstance(tool, MetadataProvider):
        return tool.metadata()
    return infer_metadata(tool.name)


def module_of(tool_name: str) -> str:
    """Return the module prefix (text before the first dot)."""
    return tool_name.split(".", 1)[0]


@dataclass(frozen=True, slots=True)
class DiscoveryCriteria:
    """Filters for :meth:`ToolDiscovery.discover`. ``None`` means "any"."""

    category: str | None = None
    tag: str | None = None
    read_only: bool | None = None
    module: str | None = None
    search: str | None = None


@dataclass(frozen=True, slots=True)
class ToolSummary:
    """What discovery reports about one tool."""

    name: str
    description: str
    schema: dict[str, Any]
    metadata: ToolMetadata
    has_dependencies: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "schema": self.schema,
            "metadata": self.metadata.to_dict(),
            "has_dependencies": self.has_dependencies,
        }


class ToolDiscovery:
    """Read-only queries over a :class:`ToolRegistry`."""

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    def get_tool_metadata(self, tool: Tool) -> ToolMetadata:
        return resolve_metadata(tool)

    def discover(self, criteria: DiscoveryCriteria | None = None) -> list[ToolSummary]:
        """Return summaries of all tools matching *criteria*."""
        return [
            ToolSummary(
                name=tool.name,
                description=tool.description,
                schema=tool.schema,
                metadata=self.get_tool_metadata(tool),
                has_dependencies=isinstance(tool, DependencyProvider),
            )
            for tool in self.find_by_criteria(criteria)
        ]

    def find_by_criteria(self, criteria: DiscoveryCriteria | None = None) -> list[Tool]:
        """Return the tools matching *criteria*, in registration order."""
        crit = criteria or DiscoveryCriteria()
        return [
            tool for tool in self._registry.all().values() if self._matches(tool, crit)
        ]

    def _matches(self, tool: Tool, crit: DiscoveryCriteria) -> bool:
        if crit.module is not None and module_of(tool.name) != crit.module:
            return False

        if crit.search:
            needle = crit.search.lower()
            haystack = f"{tool.name} {tool.description}".lower()
            if needle not in haystack:
                return False

        if crit.category is None and crit.tag is None and crit.read_only is None:
            return True

        metadata = self.get_tool_metadata(tool)
        if crit.category is not None and metadata.category != crit.category:
            return False
        if crit.tag is not None and crit.tag not in metadata.tags:
            return False
        return crit.read_only is None or metadata.read_only == crit.read_only

    def find_by_intent(self, intent: str) -> list[Tool]:
        """Rank tools by keyword overlap with a free-text *intent*.

        Scores examples (10), action synonyms (10), name (8), name
        segments (6), tags (5) and description (3). Tools scoring zero
        are dropped; ties keep registration order.
        """
        keywords = _extract_keywords(intent)
        if not keywords:
            return []

        scored: list[tuple[int, int, Tool]] = []
        for index, tool in enumerate(self._registry.all().values()):
            score = self._score(tool, keywords)
            if score > 0:
                scored.append((score, index, tool))

        scored.sort(key=lambda item: (-item[0], item[1]))
        return [tool for _, _, tool in scored]

    def _score(self, tool: Tool, keywords: list[str]) -> int:
        metadata = self.get_tool_metadata(tool)
        name = tool.name.lower()
        segments = name.split(".")
        description = tool.description.lower()
        score = 0

        for example in metadata.examples:
            if any(kw in example.lower() for kw in keywords):
                score += 10

        for tag in metadata.tags:
            tag_lower = tag.lower()
            if any(kw in tag_lower or tag_lower in kw for kw in keywords):
                score += 5

        for kw in keywords:
            if kw in name:
                score += 8
            score += 6 * sum(1 for seg in segments if kw in seg or seg in kw)
            score += 10 * sum(1 for syn in _ACTION_SYNONYMS.get(kw, ()) if syn in segments)
            if kw in description:
                score += 3

        return score


def _extract_keywords(intent: str) -> list[str]:
    words = re.split(r"[\s,.!?;:()\[\]{}]+", intent.lower())
    keywords = [w for w in words if len(w) > 2 and w not in _STOP_WORDS]
    # Singular forms help "teams" match "team" tags and vice versa.
    keywords.extend(w[:-1] for w in list(keywords) if w.endswith("s") and len(w) > 3)
    return list(dict.fromkeys(keywords))
