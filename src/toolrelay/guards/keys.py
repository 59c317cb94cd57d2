"""Canonical keys for the cache and the idempotency store."""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from toolrelay.tools.base import ToolContext


def canonical_payload(tool_name: str, arguments: dict[str, Any], context: ToolContext) -> str:
    """Serialize a call to a stable JSON document.

    ``None``-valued arguments are dropped so that omitting an optional
    argument and passing it explicitly as null hit the same key.
    Values JSON cannot represent fall back to ``repr``.
    """
    document = {
        "tool": tool_name,
        "args": {k: v for k, v in arguments.items() if v is not None},
        "user_id": context.user_id,
        "team_id": context.team_id,
    }
    return json.dumps(
        document,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=repr,
    )


def call_key(tool_name: str, arguments: dict[str, Any], context: ToolContext) -> str:
    """SHA-256 hex digest of :func:`canonical_payload`."""
    payload = canonical_payload(tool_name, arguments, context)
    return hashlib.sha256(payload.encode()).hexdigest()
