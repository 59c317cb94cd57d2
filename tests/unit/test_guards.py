"""Tests for cache, rate limiter, idempotency guard and circuit breaker."""

from __future__ import annotations

import pytest

from toolrelay.guards.cache import ResultCache
from toolrelay.guards.circuit import CircuitBreaker, CircuitState
from toolrelay.guards.idempotency import PENDING, IdempotencyGuard
from toolrelay.guards.keys import call_key, canonical_payload
from toolrelay.guards.ratelimit import RateLimiter
from toolrelay.stores.memory import MemoryStore
from toolrelay.tools.base import ToolContext, ToolResult


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


CTX = ToolContext(user_id=1, team_id=10)


# ─── Keys ─────────────────────────────────────────────────────


class TestKeys:
    def test_argument_order_does_not_matter(self):
        assert call_key("t", {"a": 1, "b": 2}, CTX) == call_key("t", {"b": 2, "a": 1}, CTX)

    def test_none_arguments_dropped(self):
        assert call_key("t", {"a": 1, "b": None}, CTX) == call_key("t", {"a": 1}, CTX)

    def test_identity_is_part_of_key(self):
        other = ToolContext(user_id=2, team_id=10)
        assert call_key("t", {}, CTX) != call_key("t", {}, other)

    def test_trace_id_is_not_part_of_key(self):
        traced = ToolContext(user_id=1, team_id=10, trace_id="abc")
        assert call_key("t", {}, CTX) == call_key("t", {}, traced)

    def test_payload_is_compact_json(self):
        payload = canonical_payload("t", {"b": 1, "a": "é"}, CTX)
        assert payload == '{"args":{"a":"é","b":1},"team_id":10,"tool":"t","user_id":1}'

    def test_unserialisable_values_fall_back_to_repr(self):
        assert call_key("t", {"s": {1, 2}}, CTX)


# ─── Cache ────────────────────────────────────────────────────


class TestResultCache:
    def test_miss_then_hit(self):
        cache = ResultCache(MemoryStore())
        assert cache.get("t", {}, CTX) is None
        cache.put("t", {}, CTX, ToolResult.success({"x": 1}))
        hit = cache.get("t", {}, CTX)
        assert hit is not None
        assert hit.data == {"x": 1}
        assert hit.metadata == {"cache_hit": True}

    def test_errors_not_stored(self):
        cache = ResultCache(MemoryStore())
        cache.put("t", {}, CTX, ToolResult.error("X", "no"))
        assert cache.get("t", {}, CTX) is None

    def test_ttl(self):
        clock = FakeClock()
        cache = ResultCache(MemoryStore(clock=clock), default_ttl=10)
        cache.put("t", {}, CTX, ToolResult.success(1))
        cache.put("u", {}, CTX, ToolResult.success(2), ttl=100)
        clock.now = 50
        assert cache.get("t", {}, CTX) is None
        assert cache.get("u", {}, CTX) is not None

    def test_invalidate(self):
        cache = ResultCache(MemoryStore())
        cache.put("t", {"a": 1}, CTX, ToolResult.success(1))
        cache.invalidate("t", {"a": 1}, CTX)
        assert cache.get("t", {"a": 1}, CTX) is None


# ─── Rate limiting ────────────────────────────────────────────


class TestRateLimiter:
    def test_allows_under_limit(self):
        limiter = RateLimiter(MemoryStore(), default_limit=2)
        assert limiter.check("t", CTX).allowed
        assert limiter.check("t", CTX).allowed

    def test_tool_limit_first(self):
        limiter = RateLimiter(MemoryStore(), default_limit=1, per_user_limit=1)
        limiter.check("t", CTX)
        decision = limiter.check("t", CTX)
        assert not decision.allowed
        assert decision.limit_type == "tool"
        assert decision.limit == 1
        assert decision.retry_after == 60

    def test_tool_override(self):
        limiter = RateLimiter(MemoryStore(), default_limit=100)
        limiter.check("t", CTX, tool_limit=1)
        assert not limiter.check("t", CTX, tool_limit=1).allowed

    def test_user_limit_spans_tools(self):
        limiter = RateLimiter(MemoryStore(), per_user_limit=1)
        limiter.check("a", CTX)
        decision = limiter.check("b", CTX)
        assert decision.limit_type == "user"

    def test_team_limit(self):
        limiter = RateLimiter(MemoryStore(), per_team_limit=1)
        limiter.check("a", ToolContext(user_id=1, team_id=10))
        decision = limiter.check("a", ToolContext(user_id=2, team_id=10))
        assert decision.limit_type == "team"

    def test_anonymous_only_tool_counter(self):
        store = MemoryStore()
        limiter = RateLimiter(store, per_user_limit=1, per_team_limit=1)
        for _ in range(3):
            assert limiter.check("a", ToolContext()).allowed
        assert store.get("rate:tool:a") == 3

    def test_window_resets(self):
        clock = FakeClock()
        limiter = RateLimiter(MemoryStore(clock=clock), default_limit=1, window=60)
        limiter.check("t", CTX)
        clock.now = 45
        decision = limiter.check("t", CTX)
        assert decision.retry_after == 15
        clock.now = 61
        assert limiter.check("t", CTX).allowed


# ─── Idempotency ──────────────────────────────────────────────


class TestIdempotencyGuard:
    def test_lifecycle(self):
        guard = IdempotencyGuard(MemoryStore())
        key = guard.key("t", {"a": 1}, CTX)
        assert guard.lookup(key) is None
        assert guard.claim(key) is True
        assert guard.lookup(key) == PENDING
        assert guard.claim(key) is False
        guard.complete(key, ToolResult.success({"id": 5}))
        stored = guard.lookup(key)
        assert isinstance(stored, ToolResult)
        assert stored.data == {"id": 5}

    def test_release(self):
        guard = IdempotencyGuard(MemoryStore())
        key = guard.key("t", {}, CTX)
        guard.claim(key)
        guard.release(key)
        assert guard.lookup(key) is None
        assert guard.claim(key) is True

    def test_completed_result_expires(self):
        clock = FakeClock()
        guard = IdempotencyGuard(MemoryStore(clock=clock), ttl=100)
        key = guard.key("t", {}, CTX)
        guard.claim(key)
        guard.complete(key, ToolResult.success(1))
        clock.now = 100
        assert guard.lookup(key) is None


# ─── Circuit breaker ──────────────────────────────────────────


class TestCircuitBreaker:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def breaker(self, clock):
        return CircuitBreaker(
            failure_threshold=2, timeout_seconds=30, success_threshold=2, clock=clock
        )

    def test_starts_closed(self, breaker):
        assert breaker.state("t") == CircuitState.CLOSED
        assert breaker.allow("t")

    def test_opens_at_threshold(self, breaker):
        breaker.record_failure("t")
        assert breaker.allow("t")
        breaker.record_failure("t")
        assert breaker.state("t") == CircuitState.OPEN
        assert not breaker.allow("t")

    def test_circuits_are_per_tool(self, breaker):
        breaker.record_failure("a")
        breaker.record_failure("a")
        assert breaker.allow("b")

    def test_half_open_after_timeout(self, breaker, clock):
        breaker.record_failure("t")
        breaker.record_failure("t")
        clock.now = 30
        assert breaker.allow("t")
        assert breaker.state("t") == CircuitState.HALF_OPEN

    def test_half_open_closes_after_successes(self, breaker, clock):
        breaker.record_failure("t")
        breaker.record_failure("t")
        clock.now = 30
        breaker.allow("t")
        breaker.record_success("t")
        assert breaker.state("t") == CircuitState.HALF_OPEN
        breaker.record_success("t")
        assert breaker.state("t") == CircuitState.CLOSED

    def test_half_open_failure_reopens(self, breaker, clock):
        breaker.record_failure("t")
        breaker.record_failure("t")
        clock.now = 30
        breaker.allow("t")
        breaker.record_failure("t")
        assert breaker.state("t") == CircuitState.OPEN
        assert not breaker.allow("t")

    def test_reset(self, breaker):
        breaker.record_failure("t")
        breaker.record_failure("t")
        breaker.reset("t")
        assert breaker.state("t") == CircuitState.CLOSED
