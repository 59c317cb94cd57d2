"""Tool executor: the single place where ``tool.execute`` is called.

Every call goes through the same pipeline, and every step may
short-circuit with an error result:

1. lookup
2. idempotency (tools whose metadata says ``idempotent``)
3. rate limiting
4. argument validation against the tool's schema
5. result cache (read-only tools)
6. circuit breaker
7. execution with retry, all attempts sharing one timeout budget
8. telemetry

Nothing raises out of :meth:`ToolExecutor.execute`.
"""

from __future__ import annotations

import asyncio
import logging
import time
import tracemalloc
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from toolrelay.config.schema import ToolRelayConfig
from toolrelay.core.errors import (
    AuthorizationError,
    RateLimitError,
    ToolError,
    ToolTimeoutError,
)
from toolrelay.core.retry import RetryConfig, retry_with_backoff
from toolrelay.guards.cache import ResultCache
from toolrelay.guards.circuit import CircuitBreaker
from toolrelay.guards.idempotency import PENDING, IdempotencyGuard
from toolrelay.guards.ratelimit import RateLimiter
from toolrelay.stores.memory import MemoryStore
from toolrelay.telemetry.records import ExecutionRecord
from toolrelay.telemetry.sinks import LoggingTelemetrySink, NullTelemetrySink
from toolrelay.tools.base import ErrorCode, ToolResult
from toolrelay.tools.discovery import resolve_metadata

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from toolrelay.stores.base import KeyValueStore
    from toolrelay.telemetry.records import TelemetrySink
    from toolrelay.tools.base import Tool, ToolContext, ToolMetadata
    from toolrelay.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
}


def _matches_type(value: Any, expected: str) -> bool:
    types = _JSON_TYPES.get(expected)
    if types is None:
        return True
    # bool is an int subclass but never a JSON integer/number
    if isinstance(value, bool) and expected in ("integer", "number"):
        return False
    return isinstance(value, types)


def validate_arguments(schema: dict[str, Any], arguments: dict[str, Any]) -> list[str]:
    """Return every violation of *schema* by *arguments* (empty if valid)."""
    errors: list[str] = []
    for name in schema.get("required", []):
        if arguments.get(name) is None:
            errors.append(f"Field '{name}' is required")

    properties = schema.get("properties", {})
    for name, value in arguments.items():
        if value is None:
            continue
        spec = properties.get(name)
        if not isinstance(spec, dict):
            continue
        expected = spec.get("type")
        if isinstance(expected, str) and not _matches_type(value, expected):
            errors.append(f"Field '{name}' has wrong type (expected {expected})")
    return errors


def classify_error(error: BaseException) -> str:
    """Map an exception to an error category.

    Checked in priority order: validation, authorization, timeout,
    rate_limit, execution.
    """
    if isinstance(error, (ValueError, TypeError)):
        return "validation"
    if isinstance(error, (AuthorizationError, PermissionError)):
        return "authorization"
    if isinstance(error, (ToolTimeoutError, TimeoutError)):
        return "timeout"
    if isinstance(error, RateLimitError):
        return "rate_limit"
    message = str(error).lower()
    if "timeout" in message or "timed out" in message:
        return "timeout"
    return "execution"


@dataclass
class _Attempt:
    """Mutable bookkeeping for one call through the pipeline."""

    trace_id: str
    started: float
    memory_before: int
    retries: int = 0
    cache_hit: bool = False
    duplicate: bool = False
    idempotency_key: str | None = None
    error_type: str | None = None


def _traced_memory() -> int:
    if not tracemalloc.is_tracing():
        return 0
    current, _peak = tracemalloc.get_traced_memory()
    return current


async def _within_budget(
    run: Callable[[], Awaitable[ToolResult]],
    tool_name: str,
    timeout: float | None,
) -> ToolResult:
    """Await ``run()`` under a single deadline that covers every retry."""
    try:
        async with asyncio.timeout(timeout) as deadline:
            return await run()
    except TimeoutError as e:
        if deadline.expired():
            raise ToolTimeoutError(tool_name, timeout or 0.0) from e
        raise


class ToolExecutor:
    """Run tools through the guard pipeline.

    Guards are built once from *config*. Pass a shared *store* to let
    several executors (or processes, with a shared store) see the same
    cache, counters and idempotency keys.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        config: ToolRelayConfig | None = None,
        *,
        store: KeyValueStore | None = None,
        sink: TelemetrySink | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or ToolRelayConfig()
        cfg = self._config
        self._store: KeyValueStore = store if store is not None else MemoryStore()

        self._cache = (
            ResultCache(self._store, cfg.cache.default_ttl) if cfg.cache.enabled else None
        )
        self._rate_limiter = (
            RateLimiter(
                self._store,
                default_limit=cfg.rate_limiting.default_limit,
                per_user_limit=cfg.rate_limiting.per_user_limit,
                per_team_limit=cfg.rate_limiting.per_team_limit,
                window=cfg.rate_limiting.window,
            )
            if cfg.rate_limiting.enabled
            else None
        )
        self._idempotency = (
            IdempotencyGuard(self._store, cfg.idempotency.ttl)
            if cfg.idempotency.enabled
            else None
        )
        if circuit_breaker is not None:
            self._breaker: CircuitBreaker | None = circuit_breaker
        elif cfg.circuit_breaker.enabled:
            self._breaker = CircuitBreaker(
                failure_threshold=cfg.circuit_breaker.failure_threshold,
                timeout_seconds=cfg.circuit_breaker.timeout_seconds,
                success_threshold=cfg.circuit_breaker.success_threshold,
            )
        else:
            self._breaker = None

        if sink is not None:
            self._sink: TelemetrySink = sink
        elif cfg.telemetry.sink == "log":
            self._sink = LoggingTelemetrySink()
        else:
            # "sql" needs a session factory; callers pass SqlTelemetrySink in.
            self._sink = NullTelemetrySink()

        if cfg.telemetry.trace_memory and not tracemalloc.is_tracing():
            tracemalloc.start()

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def config(self) -> ToolRelayConfig:
        return self._config

    @property
    def circuit_breaker(self) -> CircuitBreaker | None:
        return self._breaker

    async def execute(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context: ToolContext,
    ) -> ToolResult:
        """Execute *tool_name* and always return a :class:`ToolResult`."""
        attempt = _Attempt(
            trace_id=context.trace_id or uuid.uuid4().hex[:16],
            started=time.perf_counter(),
            memory_before=_traced_memory(),
        )
        arguments = dict(arguments)
        try:
            result = await self._run_pipeline(tool_name, arguments, context, attempt)
        except Exception as e:
            logger.exception("Pipeline failed for %s (trace %s)", tool_name, attempt.trace_id)
            result = self._error_result(e, attempt)
        await self._emit(tool_name, arguments, context, result, attempt)
        return result

    @staticmethod
    def _error_result(error: Exception, attempt: _Attempt) -> ToolResult:
        attempt.error_type = classify_error(error)
        return ToolResult.error(
            ErrorCode.EXECUTION_ERROR,
            str(error) or type(error).__name__,
            {"trace_id": attempt.trace_id, "error_type": attempt.error_type},
        )

    # ── Pipeline ──────────────────────────────────────────────

    async def _run_pipeline(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context: ToolContext,
        attempt: _Attempt,
    ) -> ToolResult:
        tool = self._registry.get(tool_name)
        if tool is None:
            return ToolResult.error(
                ErrorCode.TOOL_NOT_FOUND,
                f"Tool '{tool_name}' not found",
            )
        # Aliases resolve to the canonical name for guards and telemetry.
        tool_name = tool.name
        try:
            metadata = resolve_metadata(tool)
        except Exception as e:
            logger.exception("Could not read metadata of %s", tool_name)
            return self._error_result(e, attempt)

        key: str | None = None
        if self._idempotency is not None and metadata.idempotent:
            key = self._idempotency.key(tool_name, arguments, context)
            attempt.idempotency_key = key
            stored = self._idempotency.lookup(key)
            if stored == PENDING:
                return ToolResult.error(
                    ErrorCode.DUPLICATE_IN_PROGRESS,
                    f"An identical call to '{tool_name}' is already running",
                    {"idempotency_key": key},
                )
            if isinstance(stored, ToolResult):
                attempt.duplicate = True
                logger.info("Duplicate call to %s suppressed", tool_name)
                return stored.with_metadata(duplicate=True)
            if not self._idempotency.claim(key):
                return ToolResult.error(
                    ErrorCode.DUPLICATE_IN_PROGRESS,
                    f"An identical call to '{tool_name}' is already running",
                    {"idempotency_key": key},
                )

        completed = False
        try:
            result = await self._guarded(tool, tool_name, metadata, arguments, context, attempt)
            if key is not None and self._idempotency is not None and result.ok:
                self._idempotency.complete(key, result)
                completed = True
            return result
        finally:
            # The claim must not outlive a failed or aborted call.
            if key is not None and self._idempotency is not None and not completed:
                self._idempotency.release(key)

    async def _guarded(
        self,
        tool: Tool,
        tool_name: str,
        metadata: ToolMetadata,
        arguments: dict[str, Any],
        context: ToolContext,
        attempt: _Attempt,
    ) -> ToolResult:
        override = self._config.tool_override(tool_name)

        if self._rate_limiter is not None:
            decision = self._rate_limiter.check(tool_name, context, override.rate_limit)
            if not decision.allowed:
                return ToolResult.error(
                    ErrorCode.RATE_LIMITED,
                    f"Rate limit exceeded for '{tool_name}'",
                    {
                        "retry_after": decision.retry_after,
                        "limit_type": decision.limit_type,
                    },
                )

        errors = validate_arguments(tool.schema or {}, arguments)
        if errors:
            return ToolResult.error(
                ErrorCode.VALIDATION_ERROR,
                "Validation failed: " + "; ".join(errors),
                {"errors": errors},
            )

        use_cache = (
            self._cache is not None
            and metadata.read_only
            and (override.cache if override.cache is not None else True)
        )
        if use_cache and self._cache is not None:
            cached = self._cache.get(tool_name, arguments, context)
            if cached is not None:
                attempt.cache_hit = True
                return cached

        if self._breaker is not None and not self._breaker.allow(tool_name):
            return ToolResult.error(
                ErrorCode.CIRCUIT_OPEN,
                f"Circuit open for '{tool_name}'",
            )

        result = await self._invoke(tool, tool_name, metadata, arguments, context, attempt)

        if use_cache and self._cache is not None and result.ok:
            self._cache.put(tool_name, arguments, context, result, override.cache_ttl)
        return result

    async def _invoke(
        self,
        tool: Tool,
        tool_name: str,
        metadata: ToolMetadata,
        arguments: dict[str, Any],
        context: ToolContext,
        attempt: _Attempt,
    ) -> ToolResult:
        cfg = self._config
        override = self._config.tool_override(tool_name)
        timeout: float | None = None
        if cfg.timeout.enabled:
            timeout = (
                override.timeout if override.timeout is not None else cfg.timeout.default_seconds
            )

        async def call_once() -> ToolResult:
            out = await tool.execute(arguments, context)
            if not isinstance(out, ToolResult):
                raise ToolError(tool_name, f"returned {type(out).__name__} instead of ToolResult")
            return out

        retry_enabled = override.retry if override.retry is not None else cfg.retry.enabled
        retry_safe = metadata.read_only or metadata.idempotent

        def on_retry(n: int, delay: float, error: Exception) -> None:
            attempt.retries = n
            logger.warning(
                "Retrying %s in %.2fs (attempt %d): %s",
                tool_name,
                delay,
                n,
                error,
            )

        async def run() -> ToolResult:
            if retry_enabled and retry_safe:
                return await retry_with_backoff(
                    call_once, RetryConfig.from_settings(cfg.retry), on_retry
                )
            return await call_once()

        try:
            result = await _within_budget(run, tool_name, timeout)
        except Exception as e:
            if self._breaker is not None:
                self._breaker.record_failure(tool_name)
            logger.exception("Tool %s raised (trace %s)", tool_name, attempt.trace_id)
            return self._error_result(e, attempt)

        if self._breaker is not None:
            if result.ok:
                self._breaker.record_success(tool_name)
            else:
                self._breaker.record_failure(tool_name)
        return result

    # ── Telemetry ─────────────────────────────────────────────

    async def _emit(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context: ToolContext,
        result: ToolResult,
        attempt: _Attempt,
    ) -> None:
        record = ExecutionRecord(
            tool_name=tool_name,
            arguments=arguments,
            context=context,
            result=result,
            duration=time.perf_counter() - attempt.started,
            memory_delta=_traced_memory() - attempt.memory_before,
            trace_id=attempt.trace_id,
            retries=attempt.retries,
            cache_hit=attempt.cache_hit,
            duplicate=attempt.duplicate,
            idempotency_key=attempt.idempotency_key,
            error_type=attempt.error_type,
        )
        try:
            await self._sink.record(record)
        except Exception:
            logger.exception("Telemetry sink failed for %s", tool_name)
