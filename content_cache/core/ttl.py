"""Short-lived memo for derived aggregates."""

from __future__ import annotations

import time
from typing import Callable, Generic, Hashable, TypeVar

T = TypeVar("T")


class TTLMemo(Generic[T]):
    """Keyed values that expire ttl_ms after being stored."""

    def __init__(self, ttl_ms: int, clock: Callable[[], float] = time.time) -> None:
        if ttl_ms < 0:
            raise ValueError("ttl_ms must not be negative")
        self._ttl = ttl_ms / 1000
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, T]] = {}

    def get(self, key: Hashable) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: T) -> None:
        now = self._clock()
        # Expired entries go on every write, not only when their key is read
        expired = [k for k, (stored_at, _) in self._entries.items() if now - stored_at >= self._ttl]
        for k in expired:
            del self._entries[k]
        self._entries[key] = (now, value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
