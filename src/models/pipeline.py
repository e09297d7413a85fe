"""Pipeline run models: options, per-run context, and top-level results.

Architecture note:
    ProcessingContext is the one mutable object in the pipeline.  It is
    created by :class:`src.pipeline.context_store.PhaseContextStore` when a
    run starts, threaded through every phase, and dropped when the run
    ends (on success, failure, or exception).  It is never persisted.
    Everything a phase *returns* is a frozen model from
    src/models/phases.py; the context only accumulates field values,
    errors, and the phase results recorded so far.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.consensus import ConsensusOptions, ConsensusResult
from src.models.phases import (
    ArtistPhaseResult,
    AssemblyPhaseResult,
    EnrichmentPhaseResult,
    EventPhaseResult,
    PhaseResult,
    PhaseStatus,
    ReviewPhaseResult,
    TypePhaseResult,
    VenuePhaseResult,
)
from src.models.poster import PosterEntity, PosterImage, PosterType


class PipelinePhase(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Stages of a processing run, in execution order."""

    INPUT = "input"
    CONSENSUS = "consensus"
    TYPE = "type"
    ARTIST = "artist"
    VENUE = "venue"
    EVENT = "event"
    ASSEMBLY = "assembly"
    ENRICHMENT = "enrichment"
    REVIEW = "review"


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class ProcessingOptions(BaseModel):
    """Per-call options recognised by ``process_image`` / ``process_batch``."""

    model_config = ConfigDict(frozen=True)

    model_key: str | None = None
    skip_storage: bool = False
    skip_enrichment: bool = False
    skip_review: bool = False
    consensus: ConsensusOptions | None = None


# ---------------------------------------------------------------------------
# ProcessingError -- records errors without crashing the run.
# ---------------------------------------------------------------------------


class ProcessingError(BaseModel):
    """An error recorded during a run.

    ``recoverable=False`` marks the error that ended the run.
    """

    model_config = ConfigDict(frozen=True)

    phase: PipelinePhase
    message: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    recoverable: bool = True


# ---------------------------------------------------------------------------
# ProcessingContext -- per-run mutable state
# ---------------------------------------------------------------------------


class FieldValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: Any = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source_phase: PipelinePhase


class ProcessingContext(BaseModel):
    """Mutable state owned by exactly one in-flight run."""

    session_id: str
    image: PosterImage
    options: ProcessingOptions = Field(default_factory=ProcessingOptions)
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    errors: list[ProcessingError] = Field(default_factory=list)
    phase_results: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    @property
    def poster_id(self) -> str:
        return self.image.poster_id

    @property
    def image_path(self) -> str:
        return self.image.path

    def set_field(
        self, name: str, value: Any, confidence: float, source_phase: PipelinePhase
    ) -> None:
        if value is None or value == "" or value == []:
            return
        self.fields[name] = FieldValue(
            value=value, confidence=max(0.0, min(1.0, confidence)), source_phase=source_phase
        )

    def get_field(self, name: str, default: Any = None) -> Any:
        entry = self.fields.get(name)
        return entry.value if entry is not None else default

    def record_error(
        self, phase: PipelinePhase, message: str, recoverable: bool = True
    ) -> ProcessingError:
        error = ProcessingError(phase=phase, message=message, recoverable=recoverable)
        self.errors.append(error)
        return error

    def store_phase_result(self, result: PhaseResult) -> None:
        self.phase_results[result.phase] = result

    def get_phase_result(self, phase: str) -> Any:
        return self.phase_results.get(phase)

    @property
    def poster_type(self) -> PosterType:
        """The detected type, ``unknown`` until the Type phase has run."""
        type_result = self.phase_results.get("type")
        if isinstance(type_result, TypePhaseResult) and type_result.primary_type is not None:
            return type_result.primary_type.type_key
        return PosterType.UNKNOWN

    def overall_confidence(self) -> float:
        """Mean confidence of the extraction phases that produced a non-zero score."""
        scores = [
            result.confidence
            for key in ("type", "artist", "venue", "event")
            if (result := self.phase_results.get(key)) is not None and result.confidence > 0
        ]
        if not scores:
            return 0.0
        return sum(scores) / len(scores)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class PhaseRecord(BaseModel):
    """The phase results gathered by a run, whether or not it finished."""

    model_config = ConfigDict(frozen=True)

    type: TypePhaseResult | None = None
    artist: ArtistPhaseResult | None = None
    venue: VenuePhaseResult | None = None
    event: EventPhaseResult | None = None
    assembly: AssemblyPhaseResult | None = None
    enrichment: EnrichmentPhaseResult | None = None
    review: ReviewPhaseResult | None = None
    consensus: ConsensusResult | None = None

    def statuses(self) -> dict[str, PhaseStatus]:
        return {
            name: result.status
            for name in ("type", "artist", "venue", "event", "assembly", "enrichment", "review")
            if (result := getattr(self, name)) is not None
        }


class IterativeProcessingResult(BaseModel):
    """Top-level result of ``process_image``.

    ``success``, ``error`` and ``phases`` are always populated so callers
    can inspect partial output even when the run failed.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    poster_id: str
    image_path: str
    entity: PosterEntity | None = None
    phases: PhaseRecord = Field(default_factory=PhaseRecord)
    overall_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    fields_needing_review: list[str] = Field(default_factory=list)
    processing_time_ms: int = 0
    models_used: list[str] = Field(default_factory=list)
    agreement_score: float | None = Field(default=None, ge=0.0, le=1.0)
    errors: list[ProcessingError] = Field(default_factory=list)
    error: str | None = None


class BatchSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    successful: int = 0
    failed: int = 0
    needs_review: int = 0
    average_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    by_type: dict[PosterType, int] = Field(
        default_factory=lambda: {poster_type: 0 for poster_type in PosterType}
    )


class IterativeBatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str
    results: list[IterativeProcessingResult] = Field(default_factory=list)
    summary: BatchSummary = Field(default_factory=BatchSummary)
    processing_time_ms: int = 0
