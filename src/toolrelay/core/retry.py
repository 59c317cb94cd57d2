"""Backoff retry for transient tool failures.

Only retry-safe tools (read-only or idempotent) are ever routed through
here; the executor decides that. This module only knows which errors are
transient and how long to wait between attempts.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from toolrelay.core.errors import RateLimitError, ToolTimeoutError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from toolrelay.config.schema import RetrySettings

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    RateLimitError,
    ToolTimeoutError,
    ConnectionError,
)


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Attempt budget and delay curve for one retried call."""

    max_retries: int = 2
    base_delay: float = 0.1
    max_delay: float = 5.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryConfig:
        return cls(
            max_retries=settings.max_retries,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
            jitter=settings.jitter,
        )


def is_retryable(error: Exception) -> bool:
    return isinstance(error, TRANSIENT_ERRORS)


def backoff_delay(retry: int, config: RetryConfig, error: Exception) -> float:
    """Seconds to wait before retry number ``retry`` (zero-based).

    A rate-limited tool that reports ``retry_after`` is waited out exactly,
    capped at ``max_delay``; jitter never applies to it.
    """
    if isinstance(error, RateLimitError) and error.retry_after is not None:
        return min(error.retry_after, config.max_delay)

    delay = min(config.base_delay * 2**retry, config.max_delay)
    if config.jitter:
        delay *= random.uniform(0.5, 1.5)
    return delay


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    on_retry: Callable[[int, float, Exception], None] | None = None,
) -> T:
    """Await ``fn()`` until it succeeds or the retry budget runs out.

    ``on_retry(n, delay, error)`` is called before the n-th retry (one-based),
    which lets callers count retries for telemetry. Non-transient errors and
    the last transient error propagate unchanged.
    """
    cfg = config or RetryConfig()
    retries = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if retries >= cfg.max_retries or not is_retryable(e):
                raise
            delay = backoff_delay(retries, cfg, e)
            retries += 1
            if on_retry is not None:
                on_retry(retries, delay, e)
            await asyncio.sleep(delay)
