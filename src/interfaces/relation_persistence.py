"""Abstract base class for graph relation persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.graph import GraphRelation, PersistenceResult


# Concrete implementation: InMemoryGraphStore (src/providers/persistence/)
class IRelationPersistence(ABC):
    """Contract for storing directed, typed edges between graph nodes."""

    @abstractmethod
    async def create_relations(self, relations: list[GraphRelation]) -> PersistenceResult:
        """Create *relations*.

        An edge with the same ``(from, to, type)`` as an existing one is
        reported under ``skipped`` instead of being stored twice.

        Raises
        ------
        src.utils.errors.PersistenceError
            If the store rejects the write.
        """
