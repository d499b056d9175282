"""Cache infrastructure - script stores and the single-flight memo."""

from .cache_factory import CacheBackend, create_cache
from .diskcache_adapter import DiskcacheAdapter
from .memo_cache import SingleFlightCache
from .memory_adapter import MemoryCacheAdapter

__all__ = [
    "CacheBackend",
    "DiskcacheAdapter",
    "MemoryCacheAdapter",
    "SingleFlightCache",
    "create_cache",
]
