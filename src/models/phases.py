"""Typed results for every pipeline phase.

Each phase returns one variant of the :data:`PhaseResult` tagged union.
The ``phase`` literal is the discriminator, so a serialized result can be
validated back into the right class and the orchestrator can match on it
exhaustively instead of poking at an untyped dict.

    TypePhaseResult       (phase="type")        -- poster taxonomy
    ArtistPhaseResult     (phase="artist")      -- headliner / supporting acts
    VenuePhaseResult      (phase="venue")       -- venue + location
    EventPhaseResult      (phase="event")       -- dates, shows, pricing
    AssemblyPhaseResult   (phase="assembly")    -- graph construction ledger
    EnrichmentPhaseResult (phase="enrichment")  -- external catalog lookups
    ReviewPhaseResult     (phase="review")      -- self-critique + corrections
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from src.models.graph import EntityLedgerEntry, RelationLedgerEntry
from src.models.poster import DateInfo, PosterEntity, PosterType, ShowInfo, TypeInference, VisualCues


class PhaseStatus(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Outcome of a single phase."""

    COMPLETED = "completed"
    NEEDS_REVIEW = "needs_review"
    FAILED = "failed"
    SKIPPED = "skipped"
    PARTIAL = "partial"


class _PhaseResultBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: PhaseStatus = PhaseStatus.COMPLETED
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    processing_time_ms: int = 0
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None


# ---------------------------------------------------------------------------
# Phase 1: Type
# ---------------------------------------------------------------------------


class TypePhaseResult(_PhaseResultBase):
    phase: Literal["type"] = "type"
    primary_type: TypeInference | None = None
    secondary_types: list[TypeInference] = Field(default_factory=list)
    visual_cues: VisualCues = Field(default_factory=VisualCues)
    extracted_text: str | None = None
    refined: bool = False


# ---------------------------------------------------------------------------
# Phase 2: Artist
# ---------------------------------------------------------------------------


class ArtistMatch(BaseModel):
    """A performer name as read from the poster, optionally validated externally."""

    model_config = ConfigDict(frozen=True)

    extracted_name: str
    validated_name: str | None = None
    external_id: str | None = None
    external_url: str | None = None
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    source: str = "vision"

    @property
    def display_name(self) -> str:
        return self.validated_name or self.extracted_name


class ArtistPhaseResult(_PhaseResultBase):
    phase: Literal["artist"] = "artist"
    poster_type: PosterType = PosterType.UNKNOWN
    headliner: ArtistMatch | None = None
    supporting_acts: list[ArtistMatch] = Field(default_factory=list)
    title: str | None = None
    tour_name: str | None = None
    record_label: str | None = None
    director: ArtistMatch | None = None
    cast: list[ArtistMatch] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Phase 3: Venue
# ---------------------------------------------------------------------------


class VenueMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    extracted_name: str
    validated_name: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    existing_venue_id: str | None = None
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    source: str = "vision"

    @property
    def display_name(self) -> str:
        return self.validated_name or self.extracted_name


class VenuePhaseResult(_PhaseResultBase):
    phase: Literal["venue"] = "venue"
    poster_type: PosterType = PosterType.UNKNOWN
    venue: VenueMatch | None = None


# ---------------------------------------------------------------------------
# Phase 4: Event
# ---------------------------------------------------------------------------


class EventPhaseResult(_PhaseResultBase):
    phase: Literal["event"] = "event"
    poster_type: PosterType = PosterType.UNKNOWN
    event_date: DateInfo | None = None
    shows: list[ShowInfo] = Field(default_factory=list)
    year: int | None = None
    decade: str | None = None
    door_time: str | None = None
    show_time: str | None = None
    ticket_price: str | None = None
    age_restriction: str | None = None
    promoter: str | None = None


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


class AssemblyPhaseResult(_PhaseResultBase):
    phase: Literal["assembly"] = "assembly"
    entity: PosterEntity
    entities_created: list[EntityLedgerEntry] = Field(default_factory=list)
    relationships_created: list[RelationLedgerEntry] = Field(default_factory=list)
    fields_needing_review: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


class EnrichmentSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    external_id: str
    match_confidence: float = Field(ge=0.0, le=1.0)
    fields_enriched: list[str] = Field(default_factory=list)


class EnrichmentPhaseResult(_PhaseResultBase):
    phase: Literal["enrichment"] = "enrichment"
    enriched_fields: list[str] = Field(default_factory=list)
    original_values: dict[str, Any] = Field(default_factory=dict)
    sources: list[EnrichmentSource] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    enriched_entity: PosterEntity | None = None
    enhanced_artist_result: ArtistPhaseResult | None = None

    @property
    def artist_fields_changed(self) -> bool:
        """True when the enrichment rewrote performer or label data."""
        return any(
            field in self.enriched_fields
            for field in ("headliner_validated", "director", "cast", "record_label", "headliner")
        )


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


class ReviewCorrection(BaseModel):
    """One field-level fix proposed by the reviewing model.

    ``corrected_value=None`` means "this field should be empty".
    """

    model_config = ConfigDict(frozen=True)

    field: str
    original_value: Any = None
    corrected_value: Any = None
    reason: str = ""
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)


class ReviewPhaseResult(_PhaseResultBase):
    phase: Literal["review"] = "review"
    passed: bool = False
    corrections: list[ReviewCorrection] = Field(default_factory=list)
    fields_flagged: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    applied_corrections: list[str] = Field(default_factory=list)


PhaseResult = Annotated[
    Union[
        TypePhaseResult,
        ArtistPhaseResult,
        VenuePhaseResult,
        EventPhaseResult,
        AssemblyPhaseResult,
        EnrichmentPhaseResult,
        ReviewPhaseResult,
    ],
    Field(discriminator="phase"),
]
