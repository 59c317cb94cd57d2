"""Key/value store protocol shared by cache, rate limiter and idempotency."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Narrow store contract. Backing technology is replaceable.

    ``add`` and ``increment`` must be atomic: ``add`` only writes when the
    key is absent (check-and-set) and ``increment`` returns the new count.
    """

    def get(self, key: str) -> Any | None: ...

    def put(self, key: str, value: Any, ttl: float | None = None) -> None: ...

    def add(self, key: str, value: Any, ttl: float | None = None) -> bool: ...

    def increment(self, key: str, window: float) -> int: ...

    def delete(self, key: str) -> None: ...
