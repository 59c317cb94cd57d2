"""Pipeline guards wrapped around tool execution."""

from toolrelay.guards.cache import ResultCache
from toolrelay.guards.circuit import CircuitBreaker, CircuitState
from toolrelay.guards.idempotency import PENDING, IdempotencyGuard
from toolrelay.guards.keys import call_key, canonical_payload
from toolrelay.guards.ratelimit import RateLimitDecision, RateLimiter

__all__ = [
    "PENDING",
    "CircuitBreaker",
    "CircuitState",
    "IdempotencyGuard",
    "RateLimitDecision",
    "RateLimiter",
    "ResultCache",
    "call_key",
    "canonical_payload",
]
