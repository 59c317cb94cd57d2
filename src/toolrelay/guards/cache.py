"""Result cache for read-only tools."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from toolrelay.guards.keys import call_key
from toolrelay.tools.base import ToolResult

if TYPE_CHECKING:
    from toolrelay.stores.base import KeyValueStore
    from toolrelay.tools.base import ToolContext

logger = logging.getLogger(__name__)

_PREFIX = "cache:"


class ResultCache:
    """Store successful results keyed by ``(tool, args, user, team)``.

    Only successful results are written; errors are never cached.
    """

    def __init__(self, store: KeyValueStore, default_ttl: int = 3600) -> None:
        self._store = store
        self.default_ttl = default_ttl

    def key(self, tool_name: str, arguments: dict[str, Any], context: ToolContext) -> str:
        return _PREFIX + call_key(tool_name, arguments, context)

    def get(
        self, tool_name: str, arguments: dict[str, Any], context: ToolContext
    ) -> ToolResult | None:
        """Return the cached result marked ``cache_hit``, or None."""
        payload = self._store.get(self.key(tool_name, arguments, context))
        if payload is None:
            return None
        logger.debug("Cache hit for %s", tool_name)
        return ToolResult.from_dict(payload).with_metadata(cache_hit=True)

    def put(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context: ToolContext,
        result: ToolResult,
        ttl: int | None = None,
    ) -> None:
        if not result.ok:
            return
        self._store.put(
            self.key(tool_name, arguments, context),
            result.to_dict(),
            ttl if ttl is not None else self.default_ttl,
        )

    def invalidate(
        self, tool_name: str, arguments: dict[str, Any], context: ToolContext
    ) -> None:
        self._store.delete(self.key(tool_name, arguments, context))
