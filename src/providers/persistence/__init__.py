"""Graph persistence adapters.

InMemoryGraphStore implements both IEntityPersistence and
IRelationPersistence.  It is the default store wired by build_processor()
and the one the test suite asserts against.
"""

from src.providers.persistence.memory_graph_store import InMemoryGraphStore

__all__ = ["InMemoryGraphStore"]
