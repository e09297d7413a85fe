"""Entity/relation graph models shared by assembly and the persistence collaborators.

A poster becomes a small knowledge graph: the Poster node plus Artist,
Venue, Event, Show, Album, Organization and PosterType nodes joined by
typed relations.  Node names are deterministic (see
:func:`src.utils.text_normalizer.slugify`), which is what lets repeated
assembly runs find and reuse nodes instead of duplicating them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GraphEntityType(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    POSTER = "Poster"
    ARTIST = "Artist"
    VENUE = "Venue"
    EVENT = "Event"
    SHOW = "Show"
    ALBUM = "Album"
    ORGANIZATION = "Organization"
    POSTER_TYPE = "PosterType"


class RelationType(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Every relation the assembly strategies emit."""

    HAS_TYPE = "HAS_TYPE"
    HEADLINED_ON = "HEADLINED_ON"
    PERFORMED_ON = "PERFORMED_ON"
    ADVERTISES_VENUE = "ADVERTISES_VENUE"
    ADVERTISES_EVENT = "ADVERTISES_EVENT"
    ADVERTISES_SHOW = "ADVERTISES_SHOW"
    ADVERTISES_ALBUM = "ADVERTISES_ALBUM"
    HELD_AT = "HELD_AT"
    HEADLINED = "HEADLINED"
    PERFORMED_AT = "PERFORMED_AT"
    PERFORMS_IN = "PERFORMS_IN"
    PART_OF_EVENT = "PART_OF_EVENT"
    PROMOTED_BY = "PROMOTED_BY"
    CREATED_BY = "CREATED_BY"
    RELEASED_BY = "RELEASED_BY"
    DIRECTED_BY = "DIRECTED_BY"
    STARS = "STARS"


class GraphEntity(BaseModel):
    """A node as handed to :class:`IEntityPersistence`."""

    model_config = ConfigDict(frozen=True)

    name: str
    entity_type: GraphEntityType
    observations: list[str] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)


class GraphRelation(BaseModel):
    """A directed edge as handed to :class:`IRelationPersistence`."""

    model_config = ConfigDict(frozen=True)

    from_name: str
    to_name: str
    relation_type: RelationType
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    properties: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.from_name, self.to_name, self.relation_type.value)


class EntityLedgerEntry(BaseModel):
    """One line of the assembly ledger: which node was touched and whether it was new."""

    model_config = ConfigDict(frozen=True)

    type: GraphEntityType
    name: str
    is_new: bool


class RelationLedgerEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: RelationType
    from_name: str = Field(alias="from")
    to_name: str = Field(alias="to")


class PersistenceResult(BaseModel):
    """Outcome reported by a persistence collaborator for one batch write."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    created: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    error: str | None = None
