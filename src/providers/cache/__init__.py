"""Cache providers.

MemoryCacheProvider keeps entries in process memory, which is enough for the
PosterType verification memo.  A shared store can be added behind
ICacheProvider without touching the seeder.
"""

from src.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
