"""Poster image and assembled poster entity models.

Defines the Pydantic v2 models that bracket the pipeline:

    1. A caller hands the processor a file path   → PosterImage
    2. The phases fill in fields and type guesses → PosterEntity
    3. Assembly links the PosterEntity into the graph (see src/models/graph.py)

All models use frozen config.  Corrections from the review phase and
enrichment produce new instances via ``model_copy(update=...)``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator


class PosterType(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """The closed taxonomy every poster is classified into.

    The type decides which fields the later phases ask for and which
    assembly strategy builds the graph, so an unresolvable type ends the run.
    """

    CONCERT = "concert"
    FESTIVAL = "festival"
    COMEDY = "comedy"
    THEATER = "theater"
    FILM = "film"
    ALBUM = "album"
    PROMO = "promo"
    EXHIBITION = "exhibition"
    HYBRID = "hybrid"
    UNKNOWN = "unknown"


# Types that share the venue + event + per-date show graph shape.
EVENT_FAMILY: frozenset[PosterType] = frozenset(
    {PosterType.CONCERT, PosterType.FESTIVAL, PosterType.COMEDY, PosterType.THEATER}
)


class PosterImage(BaseModel):
    """A poster image on disk plus its content hash.

    The raw bytes are kept in a private attribute so they never end up in
    serialized results.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    image_hash: str
    content_type: str = "image/jpeg"
    file_size: int = 0
    _image_data: bytes | None = PrivateAttr(default=None)

    @property
    def poster_id(self) -> str:
        """Deterministic poster identifier: ``poster_`` + first 16 hex chars of the hash."""
        return f"poster_{self.image_hash[:16]}"

    @property
    def image_data(self) -> bytes | None:
        return self._image_data

    def with_image_data(self, data: bytes) -> PosterImage:
        """Return a copy of this image carrying *data* in its private attribute."""
        clone = self.model_copy()
        clone.__pydantic_private__["_image_data"] = data
        return clone


class TypeInference(BaseModel):
    """One guess at the poster's type, with the evidence behind it."""

    model_config = ConfigDict(frozen=True)

    type_key: PosterType
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    evidence: list[str] = Field(default_factory=list)
    source: str = "vision"
    is_primary: bool = False


class VisualCues(BaseModel):
    """Layout hints reported by the type classifier."""

    model_config = ConfigDict(frozen=True)

    has_artist_photo: bool | None = None
    has_album_artwork: bool | None = None
    has_logo: bool | None = None
    dominant_colors: list[str] = Field(default_factory=list)
    style: str | None = None


class DateInfo(BaseModel):
    """A single date read off the poster, raw and parsed."""

    model_config = ConfigDict(frozen=True)

    raw_value: str
    year: int | None = None
    month: int | None = Field(default=None, ge=1, le=12)
    day: int | None = Field(default=None, ge=1, le=31)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    format: str | None = None

    @property
    def iso(self) -> str | None:
        """``YYYY-MM-DD`` (or ``YYYY-MM`` / ``YYYY``) for whatever parts are known."""
        if self.year is None:
            return None
        if self.month is None:
            return f"{self.year:04d}"
        if self.day is None:
            return f"{self.year:04d}-{self.month:02d}"
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


class ShowInfo(BaseModel):
    """One dated performance advertised on a poster (multi-night runs have several)."""

    model_config = ConfigDict(frozen=True)

    date: DateInfo
    show_number: int = 1
    day_of_week: str | None = None
    door_time: str | None = None
    show_time: str | None = None
    ticket_price: str | None = None
    age_restriction: str | None = None


class PosterMetadata(BaseModel):
    """Processing provenance stored alongside the poster."""

    model_config = ConfigDict(frozen=True)

    source_image_hash: str
    vision_model: str
    processing_time_ms: int = 0
    extraction_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    consensus_agreement: float | None = Field(default=None, ge=0.0, le=1.0)
    processing_date: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class PosterEntity(BaseModel):
    """The assembled poster record.

    Invariant: when ``inferred_types`` is non-empty exactly one entry has
    ``is_primary=True``.  The validator rejects any other shape so no
    code path can persist a poster with zero or two primary types.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    poster_type: PosterType = PosterType.UNKNOWN
    title: str | None = None
    headliner: str | None = None
    supporting_acts: list[str] = Field(default_factory=list)
    venue_name: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    event_date: str | None = None
    shows: list[ShowInfo] = Field(default_factory=list)
    year: int | None = None
    decade: str | None = None
    door_time: str | None = None
    show_time: str | None = None
    ticket_price: str | None = None
    age_restriction: str | None = None
    promoter: str | None = None
    tour_name: str | None = None
    record_label: str | None = None
    director: str | None = None
    cast: list[str] = Field(default_factory=list)
    extracted_text: str | None = None
    observations: list[str] = Field(default_factory=list)
    inferred_types: list[TypeInference] = Field(default_factory=list)
    metadata: PosterMetadata | None = None

    @model_validator(mode="after")
    def _exactly_one_primary_type(self) -> PosterEntity:
        if self.inferred_types:
            primaries = sum(1 for t in self.inferred_types if t.is_primary)
            if primaries != 1:
                raise ValueError(
                    f"inferred_types must contain exactly one primary entry, found {primaries}"
                )
        return self

    @property
    def primary_type(self) -> TypeInference | None:
        for inference in self.inferred_types:
            if inference.is_primary:
                return inference
        return None
