"""Process-local graph store keyed by entity name.

Names are unique: creating an entity whose name already exists is a
no-op reported under ``skipped``, and the same holds for a relation with
an existing ``(from, to, type)`` key.  Together with the deterministic
names assembly generates, this makes re-processing a poster leave the
graph unchanged.

Writes take an ``asyncio.Lock`` so the check and the insert happen as one
step even when two runs for different posters share an Artist or Venue.
"""

from __future__ import annotations

import asyncio
from collections import Counter

import structlog

from src.interfaces.entity_persistence import IEntityPersistence
from src.interfaces.relation_persistence import IRelationPersistence
from src.models.graph import (
    GraphEntity,
    GraphEntityType,
    GraphRelation,
    PersistenceResult,
    RelationType,
)
from src.utils.errors import PersistenceError
from src.utils.logging import get_logger


class InMemoryGraphStore(IEntityPersistence, IRelationPersistence):
    """Dict-backed entity and relation store.

    Parameters
    ----------
    name:
        Label used as ``provider_name`` on errors and in logs.
    """

    def __init__(self, name: str = "memory_graph") -> None:
        self._name = name
        self._entities: dict[str, GraphEntity] = {}
        self._relations: dict[tuple[str, str, str], GraphRelation] = {}
        self._lock = asyncio.Lock()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IEntityPersistence
    # ------------------------------------------------------------------

    async def create_entities(self, entities: list[GraphEntity]) -> PersistenceResult:
        created: list[str] = []
        skipped: list[str] = []
        async with self._lock:
            for entity in entities:
                if not entity.name:
                    raise PersistenceError(
                        message="Entity name must not be empty",
                        provider_name=self._name,
                    )
                if entity.name in self._entities:
                    skipped.append(entity.name)
                    continue
                self._entities[entity.name] = entity
                created.append(entity.name)
        self._logger.debug(
            "graph_entities_written", created=len(created), skipped=len(skipped)
        )
        return PersistenceResult(success=True, created=created, skipped=skipped)

    async def get_entity(self, name: str) -> GraphEntity | None:
        return self._entities.get(name)

    # ------------------------------------------------------------------
    # IRelationPersistence
    # ------------------------------------------------------------------

    async def create_relations(self, relations: list[GraphRelation]) -> PersistenceResult:
        created: list[str] = []
        skipped: list[str] = []
        async with self._lock:
            for relation in relations:
                label = f"{relation.from_name}-[{relation.relation_type.value}]->{relation.to_name}"
                missing = [
                    name
                    for name in (relation.from_name, relation.to_name)
                    if name not in self._entities
                ]
                if missing:
                    raise PersistenceError(
                        message=f"Relation {label} refers to unknown entities: {', '.join(missing)}",
                        provider_name=self._name,
                    )
                if relation.key in self._relations:
                    skipped.append(label)
                    continue
                self._relations[relation.key] = relation
                created.append(label)
        self._logger.debug(
            "graph_relations_written", created=len(created), skipped=len(skipped)
        )
        return PersistenceResult(success=True, created=created, skipped=skipped)

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------

    @property
    def entities(self) -> list[GraphEntity]:
        return list(self._entities.values())

    @property
    def relations(self) -> list[GraphRelation]:
        return list(self._relations.values())

    def entities_of_type(self, entity_type: GraphEntityType) -> list[GraphEntity]:
        return [e for e in self._entities.values() if e.entity_type == entity_type]

    def relations_of_type(self, relation_type: RelationType) -> list[GraphRelation]:
        return [r for r in self._relations.values() if r.relation_type == relation_type]

    def count_by_type(self) -> dict[str, int]:
        """Entity counts keyed by entity type value, e.g. ``{"Artist": 3}``."""
        return dict(Counter(e.entity_type.value for e in self._entities.values()))

    def clear(self) -> None:
        self._entities.clear()
        self._relations.clear()
