"""Tool registry: registration and lookup of tools by name.

Lookup understands two naming eras. Current names end in an HTTP-style
verb (``core.teams.GET``); older callers still ask for the legacy verb
(``core.teams.list``). A miss on the exact name is retried with the verb
swapped, and the resolved alias is remembered.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from toolrelay.tools.base import Tool

logger = logging.getLogger(__name__)

# (current verb, legacy verb)
_VERB_ALIASES: tuple[tuple[str, str], ...] = (
    ("GET", "list"),
    ("POST", "create"),
    ("PUT", "update"),
    ("DELETE", "delete"),
)


def alias_candidates(name: str) -> list[str]:
    """Return alternative names for *name* under the other naming era.

    ``core.teams.list`` -> ``["core.teams.GET"]``,
    ``core.teams.GET`` -> ``["core.teams.list"]``,
    ``core.teams.get`` -> ``["core.teams.list", "core.teams.GET"]``.
    """
    prefix, sep, verb = name.rpartition(".")
    if not sep:
        return []
    candidates: list[str] = []
    for current, legacy in _VERB_ALIASES:
        if verb == current:
            candidates.append(f"{prefix}.{legacy}")
        elif verb == legacy:
            candidates.append(f"{prefix}.{current}")
    if verb == "get":
        candidates.extend([f"{prefix}.list", f"{prefix}.GET"])
    return candidates


class ToolRegistry:
    """Registry for managing available tools.

    Registration is last-write-wins: registering a name twice replaces
    the earlier tool and logs a warning.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._aliases: dict[str, str] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool, replacing any tool with the same name."""
        name = tool.name
        if name in self._tools:
            logger.warning("Tool '%s' is already registered; overwriting", name)
        self._tools[name] = tool
        # An exact registration always beats a remembered alias.
        self._aliases.pop(name, None)
        self._aliases = {
            alias: target
            for alias, target in self._aliases.items()
            if name not in alias_candidates(alias)
        }
        logger.debug("Registered tool '%s'", name)

    def get(self, name: str) -> Tool | None:
        """Return the tool registered under *name* or a legacy alias of it."""
        tool = self._tools.get(name)
        if tool is not None:
            return tool

        target = self._aliases.get(name)
        if target is not None:
            return self._tools.get(target)

        for candidate in alias_candidates(name):
            if candidate in self._tools:
                self._aliases[name] = candidate
                logger.debug("Resolved tool alias '%s' -> '%s'", name, candidate)
                return self._tools[candidate]
        return None

    def has(self, name: str) -> bool:
        """Return True if *name* (or one of its aliases) is registered."""
        return self.get(name) is not None

    def all(self) -> dict[str, Tool]:
        """Return a snapshot of all registered tools keyed by name."""
        return dict(self._tools)

    def names(self) -> list[str]:
        """Return names of all registered tools."""
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return self.has(name)
