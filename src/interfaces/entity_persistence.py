"""Abstract base class for graph entity persistence.

Assembly never writes a node blindly: it calls :meth:`get_entity` with the
node's deterministic name first and only calls :meth:`create_entities` when
nothing was found.  That existence-check-then-create pattern is what makes
repeated processing of the same poster idempotent.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.graph import GraphEntity, PersistenceResult


# Concrete implementation: InMemoryGraphStore (src/providers/persistence/)
class IEntityPersistence(ABC):
    """Contract for storing and looking up graph nodes by name."""

    @abstractmethod
    async def create_entities(self, entities: list[GraphEntity]) -> PersistenceResult:
        """Create *entities*.

        Implementations should treat a name that already exists as a
        no-op and report it under ``skipped``.

        Raises
        ------
        src.utils.errors.PersistenceError
            If the store rejects the write.
        """

    @abstractmethod
    async def get_entity(self, name: str) -> GraphEntity | None:
        """Return the node called *name*, or ``None`` if absent."""
