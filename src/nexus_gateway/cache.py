"""
Small expiring cache for lookups against external services.

Each entry stores its value together with an expiry time. Expired entries
are dropped lazily when read; loaders are only awaited on a miss.
"""

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float


class TTLCache(Generic[T]):
    """Key/value cache with a fixed time-to-live per entry."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry[T]] = {}

    def get(self, key: Hashable) -> T | None:
        """Get a live value, evicting it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: Hashable, value: T) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + self.ttl_seconds)

    async def get_or_load(
        self,
        key: Hashable,
        loader: Callable[[], Awaitable[T | None]],
    ) -> T | None:
        """Return the cached value or refresh it from the loader.

        A loader returning None is treated as a failed lookup and is not cached.
        """
        value = self.get(key)
        if value is not None:
            return value

        value = await loader()
        if value is not None:
            self.set(key, value)
        return value

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
