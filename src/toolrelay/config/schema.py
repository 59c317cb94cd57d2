"""Pydantic models for toolrelay configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class CacheConfig(BaseModel):
    """Result caching for read-only tools."""

    enabled: bool = True
    default_ttl: int = 3600


class RateLimitConfig(BaseModel):
    """Fixed-window rate limits (calls per window)."""

    enabled: bool = True
    default_limit: int = 100
    per_user_limit: int = 50
    per_team_limit: int = 200
    window: int = 60


class RetrySettings(BaseModel):
    """Retry with backoff for retry-safe tools."""

    enabled: bool = True
    max_retries: int = 2
    base_delay: float = 0.1
    max_delay: float = 5.0
    jitter: bool = True


class TimeoutConfig(BaseModel):
    """Per-call timeout budget."""

    enabled: bool = True
    default_seconds: float = 30.0


class CircuitBreakerConfig(BaseModel):
    """Circuit breaker thresholds."""

    enabled: bool = True
    failure_threshold: int = 5
    timeout_seconds: float = 60.0
    success_threshold: int = 2


class IdempotencyConfig(BaseModel):
    """Duplicate suppression for idempotent tools."""

    enabled: bool = True
    ttl: int = 86_400


class OrchestratorConfig(BaseModel):
    """Defaults for dependency orchestration."""

    max_depth: int = 5
    plan_first: bool = False


class TelemetryConfig(BaseModel):
    """Where execution records go."""

    sink: Literal["log", "sql", "none"] = "log"
    trace_memory: bool = False


class DatabaseConfig(BaseModel):
    """Database connection settings for the SQL telemetry sink."""

    url: str = "sqlite+aiosqlite:///~/.local/share/toolrelay/toolrelay.db"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class ToolOverride(BaseModel):
    """Per-tool settings. ``None`` means "use the global default"."""

    cache: bool | None = None
    cache_ttl: int | None = None
    timeout: float | None = None
    rate_limit: int | None = None
    retry: bool | None = None


class ToolRelayConfig(BaseModel):
    """Top-level configuration for toolrelay."""

    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limiting: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    timeout: TimeoutConfig = Field(default_factory=TimeoutConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    idempotency: IdempotencyConfig = Field(default_factory=IdempotencyConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tools: dict[str, ToolOverride] = Field(default_factory=dict)

    def tool_override(self, tool_name: str) -> ToolOverride:
        """Return the override block for *tool_name* (empty if none)."""
        return self.tools.get(tool_name) or ToolOverride()
