"""Fixed-window rate limiting per tool, per user and per team."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from toolrelay.stores.base import KeyValueStore
    from toolrelay.tools.base import ToolContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Outcome of a rate-limit check."""

    allowed: bool
    limit_type: str | None = None
    limit: int | None = None
    retry_after: int | None = None


class RateLimiter:
    """Count calls in fixed windows using the store's atomic ``increment``.

    Every call increments the tool counter, then the user counter (when
    the context has a user), then the team counter (when it has a team).
    The first counter over its limit rejects the call.
    """

    def __init__(
        self,
        store: KeyValueStore,
        default_limit: int = 100,
        per_user_limit: int = 50,
        per_team_limit: int = 200,
        window: int = 60,
    ) -> None:
        self._store = store
        self.default_limit = default_limit
        self.per_user_limit = per_user_limit
        self.per_team_limit = per_team_limit
        self.window = window

    def check(
        self,
        tool_name: str,
        context: ToolContext,
        tool_limit: int | None = None,
    ) -> RateLimitDecision:
        counters: list[tuple[str, str, int]] = [
            ("tool", f"rate:tool:{tool_name}", tool_limit or self.default_limit),
        ]
        if context.user_id is not None:
            counters.append(("user", f"rate:user:{context.user_id}", self.per_user_limit))
        if context.team_id is not None:
            counters.append(("team", f"rate:team:{context.team_id}", self.per_team_limit))

        for limit_type, key, limit in counters:
            count = self._store.increment(key, self.window)
            if count > limit:
                logger.warning(
                    "Rate limit exceeded for %s (%s: %d/%d)",
                    tool_name,
                    limit_type,
                    count,
                    limit,
                )
                return RateLimitDecision(
                    allowed=False,
                    limit_type=limit_type,
                    limit=limit,
                    retry_after=self._retry_after(key),
                )
        return RateLimitDecision(allowed=True)

    def _retry_after(self, key: str) -> int:
        remaining = None
        ttl = getattr(self._store, "ttl", None)
        if callable(ttl):
            remaining = ttl(key)
        if remaining is None:
            return self.window
        return max(1, int(remaining + 0.999))
