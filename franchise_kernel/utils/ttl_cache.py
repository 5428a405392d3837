"""
Thread-safe TTL cache for read-mostly lookups.

Used for resolved scopes, franchise lookups and stored overrides.  Staleness
is bounded by the TTL; writers call ``invalidate()`` or ``clear()`` before
their call returns, so a reader that starts after the write never sees the
old value.
"""

import threading
import time
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Mapping of key -> (value, expiry) guarded by a single lock."""

    def __init__(
        self,
        ttl_seconds: float,
        timer: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self._ttl = ttl_seconds
        self._timer = timer
        self._lock = threading.Lock()
        self._entries: dict[Hashable, tuple[V, float]] = {}
        self._generation = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: Hashable) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._timer() >= expires_at:
                del self._entries[key]
                return None
            return value

    def put(self, key: Hashable, value: V, generation: int | None = None) -> None:
        """
        Store a value.

        When ``generation`` is given and an invalidation happened since it
        was read, the value is dropped: it was loaded before the write that
        invalidated it.
        """
        if self._ttl == 0:
            return
        with self._lock:
            if generation is not None and generation != self._generation:
                return
            self._entries[key] = (value, self._timer() + self._ttl)

    def get_or_load(self, key: Hashable, loader: Callable[[], V]) -> V:
        cached = self.get(key)
        if cached is not None:
            return cached
        generation = self.generation
        value = loader()
        if value is not None:
            self.put(key, value, generation)
        return value

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._generation += 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
