"""posterGraph composition root.

Wires providers, phases, and services into an :class:`IterativeProcessor`
via dependency injection.  Reads configuration from ``.env`` and
``config/config.yaml`` and configures structured logging once at import.

Only collaborators with credentials configured are built: a vision
provider without an API key is left out, and enrichment catalogs without
a token report themselves unavailable.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.vision_provider import IVisionExtractionProvider
from src.models.consensus import ConsensusOptions
from src.models.pipeline import ProcessingOptions
from src.pipeline.context_store import PhaseContextStore
from src.pipeline.orchestrator import IterativeProcessor
from src.pipeline.phases import ArtistPhase, EnrichmentPhase, EventPhase, TypePhase, VenuePhase
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.persistence.memory_graph_store import InMemoryGraphStore
from src.providers.reference.discogs_provider import DiscogsLookup
from src.providers.reference.musicbrainz_provider import MusicBrainzLookup
from src.providers.reference.tmdb_provider import TMDBLookup
from src.providers.vision.anthropic_provider import AnthropicVisionProvider
from src.providers.vision.openai_provider import OpenAIVisionProvider
from src.services.assembly import PosterAssembler
from src.services.consensus_processor import ConsensusProcessor
from src.services.poster_type_seeder import PosterTypeSeeder
from src.services.review_service import ReviewService
from src.utils.errors import ConfigurationError
from src.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)

logger = structlog.get_logger(logger_name=__name__)


def build_vision_providers(app_settings: Settings) -> dict[str, IVisionExtractionProvider]:
    """Instantiate the vision providers that have credentials, keyed by model key."""
    providers: dict[str, IVisionExtractionProvider] = {}
    if app_settings.anthropic_api_key:
        providers["anthropic"] = AnthropicVisionProvider(settings=app_settings)
    if app_settings.openai_api_key:
        providers["openai"] = OpenAIVisionProvider(settings=app_settings)
    return providers


def consensus_defaults(config: dict[str, Any]) -> ConsensusOptions:
    """Build the default :class:`ConsensusOptions` from the resolved config dict.

    Raises
    ------
    ConfigurationError
        If the ``consensus`` section holds values of the wrong shape.
    """
    section = config.get("consensus", {}) or {}
    try:
        return ConsensusOptions(
            enabled=bool(section.get("enabled", False)),
            models=list(section.get("models") or []),
            min_agreement_ratio=float(section.get("min_agreement_ratio", 0.5)),
            parallel=bool(section.get("parallel", True)),
            model_timeout_ms=int(section.get("model_timeout_ms", 60000)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid consensus configuration: {exc}") from exc


def default_options(app_settings: Settings | None = None) -> ProcessingOptions:
    s = app_settings or settings
    return ProcessingOptions(model_key=s.default_model_key)


def build_processor(
    custom_settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    graph_store: InMemoryGraphStore | None = None,
    vision_providers: dict[str, IVisionExtractionProvider] | None = None,
) -> IterativeProcessor:
    """Construct a fully wired :class:`IterativeProcessor`.

    Parameters
    ----------
    custom_settings:
        Application settings.  Uses module-level ``settings`` if not provided.
    http_client:
        Shared client for HTTP-based lookups (TMDB).  The caller owns its
        lifetime; when omitted and a TMDB key is configured one is created.
    graph_store:
        Entity and relation persistence.  A fresh in-memory store is used
        when omitted.
    vision_providers:
        Override of the credential-driven provider set, for tests.
    """
    s = custom_settings or settings
    config = load_config(settings=s)
    store = graph_store or InMemoryGraphStore()
    providers = vision_providers if vision_providers is not None else build_vision_providers(s)

    film_catalog: TMDBLookup | None = None
    if s.tmdb_api_key:
        film_catalog = TMDBLookup(
            http_client=http_client or httpx.AsyncClient(timeout=30.0),
            api_key=s.tmdb_api_key,
        )

    enrichment = EnrichmentPhase(
        music_catalog=MusicBrainzLookup(settings=s),
        release_catalog=DiscogsLookup(settings=s),
        film_catalog=film_catalog,
        min_match_confidence=s.enrichment_min_match_confidence,
    )

    processor = IterativeProcessor(
        providers=providers,
        default_model_key=s.default_model_key,
        type_phase=TypePhase(confidence_threshold=s.type_confidence_threshold),
        artist_phase=ArtistPhase(confidence_threshold=s.artist_confidence_threshold),
        venue_phase=VenuePhase(confidence_threshold=s.venue_confidence_threshold, entity_store=store),
        event_phase=EventPhase(confidence_threshold=s.event_confidence_threshold),
        assembler=PosterAssembler(entity_store=store, relation_store=store),
        review_service=ReviewService(
            pass_threshold=s.review_pass_threshold,
            min_correction_confidence=s.review_min_correction_confidence,
        ),
        enrichment_phase=enrichment,
        consensus_processor=ConsensusProcessor(),
        seeder=PosterTypeSeeder(
            entity_store=store,
            cache=MemoryCacheProvider(max_size=16, ttl=s.poster_type_cache_ttl),
        ),
        context_store=PhaseContextStore(),
        default_consensus=consensus_defaults(config),
        batch_delay_ms=s.batch_inter_image_delay_ms,
    )
    logger.info(
        "processor_built",
        vision_providers=sorted(providers),
        default_model=s.default_model_key,
        enrichment=enrichment.has_catalogs,
        environment=s.app_env,
    )
    return processor
