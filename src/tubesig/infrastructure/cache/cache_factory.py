"""Cache factory - builds the script store adapter from config."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import structlog

from tubesig.domain.ports.cache import CachePort
from tubesig.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from tubesig.infrastructure.cache.memory_adapter import MemoryCacheAdapter

log = structlog.get_logger(__name__)

CacheBackend = Literal["memory", "diskcache"]


def create_cache(
    backend: CacheBackend = "memory",
    *,
    directory: str | Path = "./.cache/tubesig",
    ttl_seconds: int = 86_400,
) -> CachePort:
    """Create the script store adapter for ``backend``.

    Raises:
        ValueError: If ``backend`` is unknown.
    """
    log.debug(
        "cache_factory_create",
        backend=backend,
        directory=str(directory),
        ttl=ttl_seconds,
    )
    if backend == "diskcache":
        return DiskcacheAdapter(directory=directory, ttl_seconds=ttl_seconds)
    if backend == "memory":
        return MemoryCacheAdapter(ttl_seconds=ttl_seconds)
    raise ValueError(
        f"Unknown cache backend: {backend!r}. Must be 'memory' or 'diskcache'."
    )
