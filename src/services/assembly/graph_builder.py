"""Ledger-keeping builder for one assembly pass.

Strategies never touch the stores directly.  They call
:meth:`GraphBuilder.add_entity` and :meth:`GraphBuilder.add_relation`,
which look the node up by its deterministic name, create it only when it
is missing, and append one line to the ledger either way.  A second pass
over the same fields therefore writes nothing and reports every node with
``is_new=False``.

Persistence failures are logged and the affected node or edge is left out
of the graph; :meth:`add_entity` returns ``None`` in that case and any
relation touching ``None`` is dropped, so one failing write never takes
the rest of the poster down with it.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.interfaces.entity_persistence import IEntityPersistence
from src.interfaces.relation_persistence import IRelationPersistence
from src.models.graph import (
    EntityLedgerEntry,
    GraphEntity,
    GraphEntityType,
    GraphRelation,
    RelationLedgerEntry,
    RelationType,
)
from src.utils.logging import get_logger


class GraphBuilder:
    """Collects the entities and relations of one poster.

    Parameters
    ----------
    entity_store:
        Node lookup and creation.  ``None`` builds the ledger only.
    relation_store:
        Edge creation.  ``None`` builds the ledger only.
    skip_storage:
        When True existing nodes are still looked up (so ``is_new`` is
        accurate) but nothing is written.
    """

    def __init__(
        self,
        entity_store: IEntityPersistence | None,
        relation_store: IRelationPersistence | None,
        skip_storage: bool = False,
    ) -> None:
        self._entity_store = entity_store
        self._relation_store = relation_store
        self._skip_storage = skip_storage
        self._entities: dict[str, EntityLedgerEntry] = {}
        self._relations: dict[tuple[str, str, str], RelationLedgerEntry] = {}
        self._errors: list[str] = []
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def entities(self) -> list[EntityLedgerEntry]:
        return list(self._entities.values())

    @property
    def relations(self) -> list[RelationLedgerEntry]:
        return list(self._relations.values())

    @property
    def errors(self) -> list[str]:
        return list(self._errors)

    async def add_entity(
        self,
        name: str,
        entity_type: GraphEntityType,
        observations: list[str] | None = None,
        properties: dict[str, Any] | None = None,
    ) -> str | None:
        """Ensure the node *name* exists and return its name.

        Returns ``None`` when the lookup or the write failed.
        """
        if name in self._entities:
            return name

        is_new = True
        if self._entity_store is not None:
            try:
                is_new = await self._entity_store.get_entity(name) is None
                if is_new and not self._skip_storage:
                    await self._entity_store.create_entities(
                        [
                            GraphEntity(
                                name=name,
                                entity_type=entity_type,
                                observations=[o for o in observations or [] if o],
                                properties=properties or {},
                            )
                        ]
                    )
            except Exception as exc:  # noqa: BLE001
                self._logger.warning(
                    "assembly_entity_failed",
                    entity=name,
                    entity_type=entity_type.value,
                    error=str(exc),
                )
                self._errors.append(f"{entity_type.value} {name}: {exc}")
                return None

        self._entities[name] = EntityLedgerEntry(type=entity_type, name=name, is_new=is_new)
        return name

    async def add_relation(
        self,
        from_name: str | None,
        to_name: str | None,
        relation_type: RelationType,
        confidence: float | None = None,
        properties: dict[str, Any] | None = None,
    ) -> None:
        """Link two nodes; silently skipped when either end is missing."""
        if not from_name or not to_name:
            return
        key = (from_name, to_name, relation_type.value)
        if key in self._relations:
            return

        if self._relation_store is not None and not self._skip_storage:
            try:
                await self._relation_store.create_relations(
                    [
                        GraphRelation(
                            from_name=from_name,
                            to_name=to_name,
                            relation_type=relation_type,
                            confidence=confidence,
                            properties=properties or {},
                        )
                    ]
                )
            except Exception as exc:  # noqa: BLE001
                self._logger.warning(
                    "assembly_relation_failed",
                    relation=relation_type.value,
                    from_name=from_name,
                    to_name=to_name,
                    error=str(exc),
                )
                self._errors.append(f"{relation_type.value} {from_name}->{to_name}: {exc}")
                return

        self._relations[key] = RelationLedgerEntry(
            type=relation_type, from_name=from_name, to_name=to_name
        )
