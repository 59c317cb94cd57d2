"""In-process key/value store with TTLs."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


class MemoryStore:
    """Thread-safe dict store with per-key expiry.

    Implements the :class:`KeyValueStore` protocol. Suitable for a single
    process; multi-process deployments plug in a shared store instead.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (value, expires_at or None)
        self._data: dict[str, tuple[Any, float | None]] = {}

    def _expiry(self, ttl: float | None) -> float | None:
        return None if ttl is None else self._clock() + ttl

    def _live(self, key: str) -> tuple[Any, float | None] | None:
        """Return the entry for *key* if present and unexpired. Lock held."""
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._live(key)
            return None if entry is None else entry[0]

    def put(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            self._data[key] = (value, self._expiry(ttl))

    def add(self, key: str, value: Any, ttl: float | None = None) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (value, self._expiry(ttl))
            return True

    def increment(self, key: str, window: float) -> int:
        """Increment a fixed-window counter; the window starts on first hit."""
        with self._lock:
            entry = self._live(key)
            if entry is None:
                self._data[key] = (1, self._expiry(window))
                return 1
            count = int(entry[0]) + 1
            self._data[key] = (count, entry[1])
            return count

    def ttl(self, key: str) -> float | None:
        """Seconds until *key* expires, or None if absent or non-expiring."""
        with self._lock:
            entry = self._live(key)
            if entry is None or entry[1] is None:
                return None
            return max(0.0, entry[1] - self._clock())

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for key in list(self._data) if self._live(key) is not None)
