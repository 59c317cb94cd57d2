"""Echo tool: returns its arguments. Used for smoke tests and the CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from toolrelay.tools.base import ToolResult

if TYPE_CHECKING:
    from toolrelay.tools.base import ToolContext


class EchoTool:
    """Echo the ``message`` argument back.

    Implements the :class:`Tool` protocol.
    """

    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo tool for testing. Returns the message it was given."

    @property
    def schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "message": {
                    "type": "string",
                    "description": "Message to echo back.",
                },
                "number": {
                    "type": "integer",
                    "description": "Optional number to echo back.",
                },
            },
            "required": ["message"],
        }

    async def execute(self, arguments: dict[str, Any], context: ToolContext) -> ToolResult:
        return ToolResult.success(
            {
                "echo": arguments.get("message", ""),
                "number": arguments.get("number"),
                "user_id": context.user_id,
            }
        )
