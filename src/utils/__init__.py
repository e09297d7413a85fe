"""Utility modules for posterGraph.

Available utility modules (the commonly used names are re-exported here):

- **confidence** -- Clamping, weighted scoring and the consensus blend that
  turn per-phase scores into the run's overall confidence.
- **errors** -- Domain-specific exception hierarchy rooted at PosterGraphError;
  each pipeline stage raises its own subclass so callers can handle failures
  granularly without broad ``except Exception`` blocks.
- **concurrency** -- Per-call timeouts, settled fan-out over labelled
  coroutines (consensus), and the per-poster lock that serialises runs.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- Value normalisation, slugs for deterministic node
  ids, list splitting and rapidfuzz name matching.
- **field_checks** -- Heuristics that spot dates, venues, prose and film
  credits in fields that should hold a name.
- **json_parsing** (not re-exported here) -- Pulls the first JSON object out
  of a model response that may wrap it in prose or code fences.
"""

# -- Confidence scoring utilities ------------------------------------------
from src.utils.confidence import (
    calculate_confidence,
    clamp,
    merge_consensus_confidence,
    normalize_confidence,
)

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    AssemblyError,
    ConfigurationError,
    ConsensusError,
    EnrichmentError,
    PersistenceError,
    PhaseError,
    PipelineError,
    PosterGraphError,
    ProviderTimeoutError,
    ReviewError,
    VisionExtractionError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import KeyedLock, gather_settled, run_with_timeout

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

# -- Text normalization (names, slugs, fuzzy matching) ---------------------
from src.utils.text_normalizer import name_similarity, normalize_value, slugify

__all__ = [
    "AssemblyError",
    "ConfigurationError",
    "ConsensusError",
    "EnrichmentError",
    "KeyedLock",
    "PersistenceError",
    "PhaseError",
    "PipelineError",
    "PosterGraphError",
    "ProviderTimeoutError",
    "ReviewError",
    "VisionExtractionError",
    "calculate_confidence",
    "clamp",
    "configure_logging",
    "gather_settled",
    "get_logger",
    "merge_consensus_confidence",
    "name_similarity",
    "normalize_confidence",
    "normalize_value",
    "run_with_timeout",
    "slugify",
]
