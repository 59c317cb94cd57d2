"""Configuration loading and validation."""

from toolrelay.config.loader import load_config
from toolrelay.config.schema import (
    CacheConfig,
    CircuitBreakerConfig,
    DatabaseConfig,
    IdempotencyConfig,
    LoggingConfig,
    OrchestratorConfig,
    RateLimitConfig,
    RetrySettings,
    TelemetryConfig,
    TimeoutConfig,
    ToolOverride,
    ToolRelayConfig,
)

__all__ = [
    "CacheConfig",
    "CircuitBreakerConfig",
    "DatabaseConfig",
    "IdempotencyConfig",
    "LoggingConfig",
    "OrchestratorConfig",
    "RateLimitConfig",
    "RetrySettings",
    "TelemetryConfig",
    "TimeoutConfig",
    "ToolOverride",
    "ToolRelayConfig",
    "load_config",
]
