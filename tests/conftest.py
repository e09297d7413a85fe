"""Shared pytest fixtures for the posterGraph test suite."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.reference_lookup import IReferenceLookup
from src.interfaces.vision_provider import IVisionExtractionProvider, ModelInfo, VisionExtraction
from src.models.phases import TypePhaseResult
from src.models.pipeline import ProcessingContext, ProcessingOptions
from src.models.poster import PosterImage, PosterType, TypeInference
from src.pipeline.context_store import PhaseContextStore
from src.pipeline.orchestrator import IterativeProcessor
from src.pipeline.phases import ArtistPhase, EnrichmentPhase, EventPhase, TypePhase, VenuePhase
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.persistence.memory_graph_store import InMemoryGraphStore
from src.services.assembly import PosterAssembler
from src.services.consensus_processor import ConsensusProcessor
from src.services.poster_type_seeder import PosterTypeSeeder
from src.services.review_service import ReviewService

# ---------------------------------------------------------------------------
# Canned vision responses, keyed by the prompt they answer
# ---------------------------------------------------------------------------

# Opening line of each prompt in src/pipeline/phases/prompts.py.
PROMPT_MARKERS: tuple[tuple[str, str], ...] = (
    ("Classify the poster in this image", "type"),
    ("A first look at this poster was unsure", "refine"),
    ("Read the people credited", "artist"),
    ("Read where the event", "venue"),
    ("Read the dates and event details", "event"),
    ("Extract the details of the poster", "consensus"),
    ("You are checking data", "review"),
)

PASSING_REVIEW: dict[str, Any] = {"passed": True, "confidence": 0.9, "issues": [], "corrections": []}

CONCERT_RESPONSES: dict[str, Any] = {
    "type": {
        "poster_type": "concert",
        "confidence": 0.95,
        "evidence": ["venue and date printed", "doors time"],
        "visual_cues": {"has_artist_photo": True, "style": "photographic"},
        "extracted_text": (
            "THE BLACK KEYS live with special guest Shannon and the Clams "
            "THE TIVOLI Brisbane 14/03/2025 doors 7pm tickets $65"
        ),
    },
    "artist": {
        "headliner": "The Black Keys",
        "supporting_acts": ["Shannon and the Clams"],
        "confidence": 0.9,
    },
    "venue": {"venue_name": "The Tivoli", "city": "Brisbane", "state": "QLD", "country": "Australia"},
    "event": {
        "event_date": "14/03/2025",
        "year": 2025,
        "door_time": "19:00",
        "ticket_price": "$65",
        "age_restriction": "18+",
        "promoter": "Secret Sounds",
    },
    "review": PASSING_REVIEW,
}

ALBUM_RESPONSES: dict[str, Any] = {
    "type": {
        "poster_type": "album",
        "confidence": 0.95,
        "evidence": ["out now wording", "streaming logos"],
        "visual_cues": {"has_album_artwork": True, "style": "illustrated"},
        "extracted_text": "ARTIST X First Light new album out now streaming everywhere Indie Records",
    },
    "artist": {
        "headliner": "Artist X",
        "album_title": "First Light",
        "featured_artists": [],
        "record_label": "Indie Records",
        "confidence": 0.9,
    },
    "venue": {"venue_name": None, "city": None},
    "event": {"release_date": "07/06/2024", "year": 2024},
    "review": PASSING_REVIEW,
}


def _render(response: Any) -> VisionExtraction:
    if isinstance(response, str):
        return VisionExtraction(extracted_text=response)
    return VisionExtraction(extracted_text=json.dumps(response))


def make_vision_provider(
    responses: dict[str, Any],
    name: str = "anthropic",
    model: str = "claude-test",
) -> MagicMock:
    """Mock IVisionExtractionProvider that answers each prompt from *responses*.

    Values may be a dict (sent back as JSON), a raw string, or an
    exception instance (raised).  A prompt with no entry gets ``"{}"``,
    except review, which gets a passing verdict.
    """

    async def _extract(image_path: str, prompt: str) -> VisionExtraction:
        kind = next((k for marker, k in PROMPT_MARKERS if prompt.startswith(marker)), "unknown")
        if kind == "review":
            response = responses.get("review", PASSING_REVIEW)
        else:
            response = responses.get(kind, "{}")
        if isinstance(response, BaseException):
            raise response
        return _render(response)

    mock = MagicMock(spec=IVisionExtractionProvider)
    mock.extract_from_image = AsyncMock(side_effect=_extract)
    mock.health_check = AsyncMock(return_value=True)
    mock.get_model_info.return_value = ModelInfo(name=model, provider=name)
    mock.get_provider_name.return_value = name
    return mock


def prompts_sent(provider: MagicMock) -> list[str]:
    """Prompt kinds the mock *provider* was asked, in call order."""
    kinds: list[str] = []
    for call in provider.extract_from_image.await_args_list:
        prompt = call.args[1]
        kinds.append(next((k for marker, k in PROMPT_MARKERS if prompt.startswith(marker)), "unknown"))
    return kinds


def with_poster_type(
    context: ProcessingContext,
    poster_type: PosterType,
    confidence: float = 0.9,
    extracted_text: str | None = None,
) -> ProcessingContext:
    """Record a Type phase result on *context* as if classification had run."""
    context.store_phase_result(
        TypePhaseResult(
            confidence=confidence,
            primary_type=TypeInference(type_key=poster_type, confidence=confidence, is_primary=True),
            extracted_text=extracted_text,
        )
    )
    return context


# ---------------------------------------------------------------------------
# Provider fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def vision_provider_factory() -> Callable[..., MagicMock]:
    """Return :func:`make_vision_provider` so tests can script their own answers."""
    return make_vision_provider


@pytest.fixture
def concert_provider() -> MagicMock:
    return make_vision_provider(CONCERT_RESPONSES)


@pytest.fixture
def album_provider() -> MagicMock:
    return make_vision_provider(ALBUM_RESPONSES)


@pytest.fixture
def mock_reference_lookup() -> MagicMock:
    """Mock IReferenceLookup with nothing found; tests set return values as needed."""
    mock = MagicMock(spec=IReferenceLookup)
    mock.get_source_name.return_value = "musicbrainz"
    mock.is_available.return_value = True
    mock.search_artist = AsyncMock(return_value=[])
    mock.search_release = AsyncMock(return_value=[])
    mock.search_film = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def mock_cache() -> MagicMock:
    mock = MagicMock(spec=ICacheProvider)
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(return_value=None)
    mock.delete = AsyncMock(return_value=None)
    mock.exists = AsyncMock(return_value=False)
    return mock


@pytest.fixture
def graph_store() -> InMemoryGraphStore:
    return InMemoryGraphStore()


# ---------------------------------------------------------------------------
# Poster images and contexts
# ---------------------------------------------------------------------------


@pytest.fixture
def poster_file_factory(tmp_path: Path) -> Callable[..., str]:
    """Write a small fake image and return its path.

    Different *content* gives a different hash, and so a different poster id.
    """

    def _make(name: str = "poster.jpg", content: bytes | None = None) -> str:
        path = tmp_path / name
        path.write_bytes(content if content is not None else b"\xff\xd8\xff\xe0" + name.encode() * 8)
        return str(path)

    return _make


@pytest.fixture
def poster_path(poster_file_factory: Callable[..., str]) -> str:
    return poster_file_factory("tivoli.jpg")


@pytest.fixture
def poster_image() -> PosterImage:
    return PosterImage(
        path="/tmp/posters/tivoli.jpg",
        image_hash="ab12cd34ef56ab78cd90ef12ab34cd56ef78ab90cd12ef34ab56cd78ef90ab12",
        content_type="image/jpeg",
        file_size=2048,
    )


@pytest.fixture
def context_factory(poster_image: PosterImage) -> Callable[..., ProcessingContext]:
    def _make(options: ProcessingOptions | None = None) -> ProcessingContext:
        return ProcessingContext(
            session_id="session_test",
            image=poster_image,
            options=options or ProcessingOptions(),
        )

    return _make


@pytest.fixture
def context(context_factory: Callable[..., ProcessingContext]) -> ProcessingContext:
    return context_factory()


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------


@pytest.fixture
def processor_factory(graph_store: InMemoryGraphStore) -> Callable[..., IterativeProcessor]:
    """Build an :class:`IterativeProcessor` wired like production, minus the network.

    Enrichment is off unless an :class:`EnrichmentPhase` is passed in.
    """

    def _make(
        providers: dict[str, IVisionExtractionProvider],
        default_model_key: str = "anthropic",
        enrichment_phase: EnrichmentPhase | None = None,
        review: bool = True,
        **kwargs: Any,
    ) -> IterativeProcessor:
        return IterativeProcessor(
            providers=providers,
            default_model_key=default_model_key,
            type_phase=TypePhase(confidence_threshold=0.7),
            artist_phase=ArtistPhase(confidence_threshold=0.6),
            venue_phase=VenuePhase(confidence_threshold=0.6, entity_store=graph_store),
            event_phase=EventPhase(confidence_threshold=0.5),
            assembler=PosterAssembler(entity_store=graph_store, relation_store=graph_store),
            review_service=ReviewService() if review else None,
            enrichment_phase=enrichment_phase,
            consensus_processor=ConsensusProcessor(),
            seeder=PosterTypeSeeder(entity_store=graph_store, cache=MemoryCacheProvider(max_size=4, ttl=60)),
            context_store=PhaseContextStore(),
            batch_delay_ms=0,
            **kwargs,
        )

    return _make
