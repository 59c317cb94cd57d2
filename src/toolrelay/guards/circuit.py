"""Per-tool circuit breaker.

States::

    CLOSED --(failure_threshold failures)--> OPEN
    OPEN --(timeout_seconds elapsed)--> HALF_OPEN
    HALF_OPEN --(success_threshold successes)--> CLOSED
    HALF_OPEN --(any failure)--> OPEN
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

# Successes in the closed state after which stale failures are forgotten.
_CLOSED_RESET_SUCCESSES = 5


class CircuitState(enum.StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class _Circuit:
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    opened_at: float | None = None


class CircuitBreaker:
    """Track failures per tool and refuse calls while a circuit is open."""

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout_seconds: float = 60.0,
        success_threshold: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.timeout_seconds = timeout_seconds
        self.success_threshold = success_threshold
        self._clock = clock
        self._lock = threading.Lock()
        self._circuits: dict[str, _Circuit] = {}

    def _circuit(self, name: str) -> _Circuit:
        circuit = self._circuits.get(name)
        if circuit is None:
            circuit = self._circuits[name] = _Circuit()
        return circuit

    def state(self, name: str) -> CircuitState:
        with self._lock:
            return self._circuit(name).state

    def allow(self, name: str) -> bool:
        """Return True if a call to *name* may proceed.

        An open circuit whose timeout has elapsed moves to half-open and
        lets one trial call through.
        """
        with self._lock:
            circuit = self._circuit(name)
            if circuit.state is not CircuitState.OPEN:
                return True
            opened_at = circuit.opened_at or 0.0
            if self._clock() - opened_at >= self.timeout_seconds:
                circuit.state = CircuitState.HALF_OPEN
                circuit.success_count = 0
                logger.info("Circuit for %s is half-open", name)
                return True
            return False

    def record_success(self, name: str) -> None:
        with self._lock:
            circuit = self._circuit(name)
            circuit.success_count += 1
            if circuit.state is CircuitState.HALF_OPEN:
                if circuit.success_count >= self.success_threshold:
                    circuit.state = CircuitState.CLOSED
                    circuit.failure_count = 0
                    circuit.opened_at = None
                    logger.info("Circuit for %s closed", name)
            elif circuit.failure_count and circuit.success_count >= _CLOSED_RESET_SUCCESSES:
                circuit.failure_count = 0

    def record_failure(self, name: str) -> None:
        with self._lock:
            circuit = self._circuit(name)
            circuit.failure_count += 1
            if circuit.state is CircuitState.HALF_OPEN:
                circuit.state = CircuitState.OPEN
                circuit.opened_at = self._clock()
                circuit.success_count = 0
                logger.warning("Circuit for %s reopened after failed trial call", name)
            elif (
                circuit.state is CircuitState.CLOSED
                and circuit.failure_count >= self.failure_threshold
            ):
                circuit.state = CircuitState.OPEN
                circuit.opened_at = self._clock()
                logger.warning(
                    "Circuit for %s opened after %d failures",
                    name,
                    circuit.failure_count,
                )

    def reset(self, name: str) -> None:
        with self._lock:
            self._circuits.pop(name, None)
