"""Abstract base class for key-value caches.

Used by :class:`src.services.poster_type_seeder.PosterTypeSeeder` to
remember that the PosterType nodes were verified recently, so a batch of
posters does not re-check the graph for every image.  Implementations may
keep entries in process memory or in a shared store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementation: MemoryCacheProvider (src/providers/cache/)
class ICacheProvider(ABC):
    """Contract for key-value caches with expiry.

    All operations are async so that a network-backed store can be
    dropped in without blocking the event loop.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under *key*, or ``None`` if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*; expiry follows the cache's configured TTL.

        Parameters
        ----------
        key:
            The cache key.
        value:
            Any picklable value.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key*.  A missing key is not an error."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""
