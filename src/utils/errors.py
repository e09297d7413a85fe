"""Custom exception hierarchy for posterGraph.

All application exceptions inherit from :class:`PosterGraphError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "anthropic", "openai", "musicbrainz", "graph_store")
caused the failure.

The hierarchy is organized by pipeline stage:

    PosterGraphError  (base -- catch-all for any posterGraph error)
    +-- VisionExtractionError   (a vision model call failed)
    |   +-- ProviderTimeoutError (a vision model call exceeded its budget)
    +-- PhaseError              (an extraction phase could not produce output)
    +-- ConsensusError          (cross-model consensus could not run)
    +-- ReviewError             (self-review call failed)
    +-- AssemblyError           (graph construction failed)
    +-- PersistenceError        (entity/relation store rejected a write)
    +-- EnrichmentError         (reference catalog lookup failed)
    +-- PipelineError           (orchestration / fatal run failure)
    +-- ConfigurationError      (startup / missing config)

Almost everything below the orchestrator is caught locally and turned into
a recorded ``ProcessingError`` on the run.  Only ``PipelineError`` and
``ConfigurationError`` are expected to reach callers.
"""


class PosterGraphError(Exception):
    """Base exception for all posterGraph errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which collaborator triggered the error.
    ``__str__`` prefixes the provider name in brackets for structured log
    output, e.g. ``[openai] request timed out``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Extraction errors
# ---------------------------------------------------------------------------

class VisionExtractionError(PosterGraphError):
    """Raised when a vision model call fails or returns nothing usable."""

    def __init__(
        self,
        message: str = "Vision extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderTimeoutError(VisionExtractionError):
    """Raised when a vision model does not answer within its time budget."""

    def __init__(
        self,
        message: str = "Vision provider timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PhaseError(PosterGraphError):
    """Raised inside an extraction phase; converted to a phase status by the base class."""

    def __init__(
        self,
        message: str = "Extraction phase failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConsensusError(PosterGraphError):
    """Raised when consensus cannot be attempted (e.g. no providers configured)."""

    def __init__(
        self,
        message: str = "Consensus extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ReviewError(PosterGraphError):
    """Raised when the self-review call cannot be completed."""

    def __init__(
        self,
        message: str = "Review phase failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Graph construction / persistence errors
# ---------------------------------------------------------------------------

class AssemblyError(PosterGraphError):
    """Raised when an assembly strategy cannot build its part of the graph."""

    def __init__(
        self,
        message: str = "Graph assembly failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistenceError(PosterGraphError):
    """Raised by entity/relation stores when a write or lookup fails."""

    def __init__(
        self,
        message: str = "Graph persistence operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EnrichmentError(PosterGraphError):
    """Raised by reference lookups (MusicBrainz, Discogs, TMDB) on API failure."""

    def __init__(
        self,
        message: str = "Reference lookup failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(PosterGraphError):
    """Raised when a run cannot continue (unknown poster type, missing provider)."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(PosterGraphError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
