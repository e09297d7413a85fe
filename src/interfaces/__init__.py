"""Public interface definitions for every external collaborator.

The pipeline never talks to a vision API, a graph database, or a
reference catalog directly.  It talks to the abstract base classes in
this package, and concrete adapters are injected by
``src.main.build_processor``.  That keeps three things cheap:
    - Swapping Claude for GPT-4o (or running both for consensus) is a
      change to the provider map, not to the phases.
    - Unit tests inject ``AsyncMock(spec=...)`` fakes instead of making
      network calls.
    - A real graph database can replace the in-memory store without
      touching assembly.

CONCRETE PROVIDER MAP:
    Interface                   ->  Concrete implementations (in src/providers/)
    -----------------------------------------------------------------------
    IVisionExtractionProvider   ->  AnthropicVisionProvider, OpenAIVisionProvider
    IEntityPersistence          ->  InMemoryGraphStore
    IRelationPersistence        ->  InMemoryGraphStore
    IReferenceLookup            ->  MusicBrainzLookup, DiscogsLookup, TMDBLookup
    ICacheProvider              ->  MemoryCacheProvider

Re-exports
----------
IVisionExtractionProvider, VisionExtraction, ModelInfo
    Vision model contract and its result dataclasses.
IEntityPersistence, IRelationPersistence
    Graph node and edge storage contracts.
IReferenceLookup, ReferenceArtist, ReferenceRelease, ReferenceFilm
    Enrichment catalog contract and its result dataclasses.
ICacheProvider
    Key-value cache contract.
"""

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.entity_persistence import IEntityPersistence
from src.interfaces.reference_lookup import (
    IReferenceLookup,
    ReferenceArtist,
    ReferenceFilm,
    ReferenceRelease,
)
from src.interfaces.relation_persistence import IRelationPersistence
from src.interfaces.vision_provider import IVisionExtractionProvider, ModelInfo, VisionExtraction

__all__ = [
    "ICacheProvider",
    "IEntityPersistence",
    "IReferenceLookup",
    "IRelationPersistence",
    "IVisionExtractionProvider",
    "ModelInfo",
    "ReferenceArtist",
    "ReferenceFilm",
    "ReferenceRelease",
    "VisionExtraction",
]
