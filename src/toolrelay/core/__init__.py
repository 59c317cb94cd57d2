"""Core types, errors, and shared utilities."""

from toolrelay.core.errors import (
    AuthorizationError,
    CircuitOpenError,
    ConfigError,
    DependencyResolutionError,
    OrchestrationError,
    PathSyntaxError,
    RateLimitError,
    StorageError,
    ToolError,
    ToolRelayError,
    ToolTimeoutError,
)
from toolrelay.core.retry import RetryConfig, is_retryable, retry_with_backoff

__all__ = [
    "AuthorizationError",
    "CircuitOpenError",
    "ConfigError",
    "DependencyResolutionError",
    "OrchestrationError",
    "PathSyntaxError",
    "RateLimitError",
    "RetryConfig",
    "StorageError",
    "ToolError",
    "ToolRelayError",
    "ToolTimeoutError",
    "is_retryable",
    "retry_with_backoff",
]
