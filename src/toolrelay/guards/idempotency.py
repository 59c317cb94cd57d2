"""Duplicate suppression for idempotent tools."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from toolrelay.guards.keys import call_key
from toolrelay.tools.base import ToolResult

if TYPE_CHECKING:
    from toolrelay.stores.base import KeyValueStore
    from toolrelay.tools.base import ToolContext

logger = logging.getLogger(__name__)

_PREFIX = "idem:"
PENDING = "__pending__"

# Claims outlive any sane execution but still expire if a process dies
# between claim and release.
_CLAIM_TTL = 300


class IdempotencyGuard:
    """Claim, complete or release idempotency keys in a store.

    Lifecycle of a key: absent -> claimed (``PENDING``) -> completed
    (stored result). A claim is released on any non-success outcome so a
    later identical call can run the tool again.
    """

    def __init__(self, store: KeyValueStore, ttl: int = 86_400) -> None:
        self._store = store
        self.ttl = ttl

    def key(self, tool_name: str, arguments: dict[str, Any], context: ToolContext) -> str:
        return call_key(tool_name, arguments, context)

    def lookup(self, key: str) -> ToolResult | str | None:
        """Return the stored result, ``PENDING``, or None when unclaimed."""
        value = self._store.get(_PREFIX + key)
        if value is None or value == PENDING:
            return value
        return ToolResult.from_dict(value)

    def claim(self, key: str) -> bool:
        """Atomically claim *key*. False if someone else holds it."""
        return self._store.add(_PREFIX + key, PENDING, _CLAIM_TTL)

    def complete(self, key: str, result: ToolResult) -> None:
        self._store.put(_PREFIX + key, result.to_dict(), self.ttl)

    def release(self, key: str) -> None:
        logger.debug("Releasing idempotency claim %s", key[:12])
        self._store.delete(_PREFIX + key)
