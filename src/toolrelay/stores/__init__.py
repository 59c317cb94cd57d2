"""Key/value stores backing the cache, rate limiter and idempotency guard."""

from toolrelay.stores.base import KeyValueStore
from toolrelay.stores.memory import MemoryStore

__all__ = ["KeyValueStore", "MemoryStore"]
