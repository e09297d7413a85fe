"""In-process TTL cache backed by ``cachetools.TTLCache``."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import structlog
from cachetools import TTLCache

from src.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """Process-local cache; entries expire *ttl* seconds after they are set.

    Parameters
    ----------
    max_size:
        Entry count above which the least-recently-used entry is evicted.
    ttl:
        Lifetime of each entry in seconds.
    timer:
        Clock used for expiry.  Tests pass a fake clock to move time
        forward without sleeping.
    """

    def __init__(
        self,
        max_size: int = 256,
        ttl: float = 300,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl, timer=timer)

    @property
    def ttl(self) -> float:
        return self._ttl

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        value = self._cache.get(key)
        logger.debug("cache_hit" if value is not None else "cache_miss", key=key)
        return value

    async def set(self, key: str, value: Any) -> None:
        self._cache[key] = value
        logger.debug("cache_set", key=key, ttl=self._ttl)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        return key in self._cache
