"""In-process CachePort implementation."""

from __future__ import annotations

import time
from typing import Any, Callable


class MemoryCacheAdapter:
    """Dict-backed cache with lazy expiry.

    Backs ``create_cache("memory")``, the default script store.
    """

    def __init__(
        self,
        ttl_seconds: int = 86_400,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = ttl_seconds
        self._clock = clock
        self._data: dict[str, tuple[Any, float | None]] = {}

    async def __aenter__(self) -> MemoryCacheAdapter:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._data.clear()

    def _live(self, key: str) -> tuple[Any, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, deadline = entry
        if deadline is not None and self._clock() >= deadline:
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> Any:
        entry = self._live(key)
        return None if entry is None else entry[0]

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        expire = ttl if ttl is not None else self.default_ttl
        deadline = self._clock() + expire if expire else None
        self._data[key] = (value, deadline)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None

    async def clear(self) -> None:
        self._data.clear()
