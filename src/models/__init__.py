"""posterGraph domain models -- re-exports all public model classes.

The models are organized across five submodules by domain concern:
    - poster.py     -- Poster image, type taxonomy, assembled PosterEntity
    - phases.py     -- Tagged union of per-phase results
    - graph.py      -- Graph nodes, relations, and the assembly ledger
    - consensus.py  -- Cross-model consensus options and results
    - pipeline.py   -- Run options, per-run context, top-level results

If you add a new model class, remember to add it to ``__all__`` too.
"""

from __future__ import annotations

# --- Consensus models ---
from src.models.consensus import (
    ConsensusOptions,
    ConsensusResult,
    FieldConsensus,
    MergeStrategy,
    ProviderOutput,
)
# --- Graph models: nodes, edges, ledger entries ---
from src.models.graph import (
    EntityLedgerEntry,
    GraphEntity,
    GraphEntityType,
    GraphRelation,
    PersistenceResult,
    RelationLedgerEntry,
    RelationType,
)
# --- Phase result variants ---
from src.models.phases import (
    ArtistMatch,
    ArtistPhaseResult,
    AssemblyPhaseResult,
    EnrichmentPhaseResult,
    EnrichmentSource,
    EventPhaseResult,
    PhaseResult,
    PhaseStatus,
    ReviewCorrection,
    ReviewPhaseResult,
    TypePhaseResult,
    VenueMatch,
    VenuePhaseResult,
)
# --- Pipeline run models ---
from src.models.pipeline import (
    BatchSummary,
    FieldValue,
    IterativeBatchResult,
    IterativeProcessingResult,
    PhaseRecord,
    PipelinePhase,
    ProcessingContext,
    ProcessingError,
    ProcessingOptions,
)
# --- Poster models ---
from src.models.poster import (
    EVENT_FAMILY,
    DateInfo,
    PosterEntity,
    PosterImage,
    PosterMetadata,
    PosterType,
    ShowInfo,
    TypeInference,
    VisualCues,
)

__all__ = [
    # consensus
    "ConsensusOptions",
    "ConsensusResult",
    "FieldConsensus",
    "MergeStrategy",
    "ProviderOutput",
    # graph
    "EntityLedgerEntry",
    "GraphEntity",
    "GraphEntityType",
    "GraphRelation",
    "PersistenceResult",
    "RelationLedgerEntry",
    "RelationType",
    # phases
    "ArtistMatch",
    "ArtistPhaseResult",
    "AssemblyPhaseResult",
    "EnrichmentPhaseResult",
    "EnrichmentSource",
    "EventPhaseResult",
    "PhaseResult",
    "PhaseStatus",
    "ReviewCorrection",
    "ReviewPhaseResult",
    "TypePhaseResult",
    "VenueMatch",
    "VenuePhaseResult",
    # pipeline
    "BatchSummary",
    "FieldValue",
    "IterativeBatchResult",
    "IterativeProcessingResult",
    "PhaseRecord",
    "PipelinePhase",
    "ProcessingContext",
    "ProcessingError",
    "ProcessingOptions",
    # poster
    "EVENT_FAMILY",
    "DateInfo",
    "PosterEntity",
    "PosterImage",
    "PosterMetadata",
    "PosterType",
    "ShowInfo",
    "TypeInference",
    "VisualCues",
]
