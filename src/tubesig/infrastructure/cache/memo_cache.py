"""Process-wide get-or-populate cache with single-flight producers."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog

log = structlog.get_logger(__name__)

T = TypeVar("T")


class SingleFlightCache(Generic[T]):
    """TTL cache where concurrent misses for one key share one producer.

    - The first caller for a missing key starts the producer as a task;
      later callers await the same task.
    - Waiters are shielded: a cancelled waiter detaches without cancelling
      the shared task, so remaining waiters still get the value.
    - A failed producer is not cached; the next caller retries.
    - Expired entries are dropped lazily on access.
    """

    def __init__(
        self,
        *,
        name: str = "memo",
        default_ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.default_ttl = default_ttl
        self._clock = clock
        self._values: dict[str, tuple[T, float | None]] = {}
        self._in_flight: dict[str, asyncio.Task[T]] = {}

    def __len__(self) -> int:
        return len(self._values)

    def peek(self, key: str) -> T | None:
        """Return a live cached value without populating."""
        entry = self._values.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline is not None and self._clock() >= deadline:
            del self._values[key]
            log.debug("memo_entry_expired", cache=self.name, key=key)
            return None
        return value

    async def get_or_populate(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        *,
        ttl: float | None = None,
    ) -> T:
        cached = self.peek(key)
        if cached is not None:
            return cached

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._populate(key, producer, ttl))
            self._in_flight[key] = task
        else:
            log.debug("memo_join_in_flight", cache=self.name, key=key)
        return await asyncio.shield(task)

    async def _populate(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: float | None,
    ) -> T:
        try:
            value = await producer()
            lifetime = self.default_ttl if ttl is None else ttl
            deadline = self._clock() + lifetime if lifetime else None
            self._values[key] = (value, deadline)
            log.debug("memo_populated", cache=self.name, key=key, ttl=lifetime)
            return value
        finally:
            self._in_flight.pop(key, None)

    def invalidate(self, key: str) -> bool:
        return self._values.pop(key, None) is not None

    def clear(self) -> None:
        self._values.clear()

    def stats(self) -> dict[str, Any]:
        return {"entries": len(self._values), "in_flight": len(self._in_flight)}
