"""Makes sure the canonical PosterType nodes exist before posters link to them.

The seeds are checked one by one with :meth:`IEntityPersistence.get_entity`
and only the missing ones are created, so seeding is safe to call before
every run.  A successful check is remembered in the injected cache for the
cache's TTL; ``force_refresh=True`` bypasses it.  ``hybrid`` has no seed:
assembly creates that node on demand like any other.
"""

from __future__ import annotations

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.entity_persistence import IEntityPersistence
from src.models.graph import GraphEntity, GraphEntityType
from src.models.poster import PosterType
from src.utils.logging import get_logger

_VERIFIED_KEY = "poster_types:verified"


class PosterTypeSeed(BaseModel):
    model_config = ConfigDict(frozen=True)

    type_key: PosterType
    display_name: str
    description: str
    detection_hints: list[str] = Field(default_factory=list)

    @property
    def node_name(self) -> str:
        return f"PosterType_{self.type_key.value}"

    def to_entity(self) -> GraphEntity:
        hints = (
            f"Detection hints: {', '.join(self.detection_hints)}"
            if self.detection_hints
            else "No detection hints"
        )
        return GraphEntity(
            name=self.node_name,
            entity_type=GraphEntityType.POSTER_TYPE,
            observations=[
                f"Type key: {self.type_key.value}",
                f"Display name: {self.display_name}",
                f"Description: {self.description}",
                hints,
            ],
            properties={
                "type_key": self.type_key.value,
                "display_name": self.display_name,
                "description": self.description,
                "detection_hints": list(self.detection_hints),
            },
        )


POSTER_TYPE_SEEDS: tuple[PosterTypeSeed, ...] = (
    PosterTypeSeed(
        type_key=PosterType.CONCERT,
        display_name="Concert",
        description="Single artist/band live performance at a venue",
        detection_hints=["live", "show", "performance", "tour", "tickets", "doors"],
    ),
    PosterTypeSeed(
        type_key=PosterType.FESTIVAL,
        display_name="Festival",
        description="Multi-act music festival",
        detection_hints=["festival", "fest", "day 1", "day 2", "multiple stages", "lineup"],
    ),
    PosterTypeSeed(
        type_key=PosterType.COMEDY,
        display_name="Comedy",
        description="Comedy show or standup performance",
        detection_hints=["comedy", "standup", "stand-up", "comedian", "funny", "laughs"],
    ),
    PosterTypeSeed(
        type_key=PosterType.THEATER,
        display_name="Theater",
        description="Theatrical production or play",
        detection_hints=["theater", "theatre", "play", "musical", "production", "broadway"],
    ),
    PosterTypeSeed(
        type_key=PosterType.FILM,
        display_name="Film",
        description="Movie or film screening",
        detection_hints=["film", "movie", "cinema", "screening", "premiere", "directed by"],
    ),
    PosterTypeSeed(
        type_key=PosterType.ALBUM,
        display_name="Album",
        description="Album, single, EP, or music release promo",
        detection_hints=["album", "out now", "new release", "available", "streaming", "pre-order", "tracklist"],
    ),
    PosterTypeSeed(
        type_key=PosterType.PROMO,
        display_name="Promo",
        description="General promotional/advertising",
        detection_hints=["promo", "advertisement", "sponsored", "brand"],
    ),
    PosterTypeSeed(
        type_key=PosterType.EXHIBITION,
        display_name="Exhibition",
        description="Art exhibition, gallery, or museum",
        detection_hints=["exhibition", "gallery", "museum", "art show", "exhibit", "opening"],
    ),
    PosterTypeSeed(
        type_key=PosterType.UNKNOWN,
        display_name="Unknown",
        description="Type could not be determined",
    ),
)


class SeedReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    created: list[str] = Field(default_factory=list)
    existing: int = 0
    cached: bool = False


class PosterTypeSeeder:
    """Creates missing PosterType nodes, at most once per cache TTL.

    Parameters
    ----------
    entity_store:
        Where the nodes live.
    cache:
        Remembers a successful verification; entries expire with the
        cache's TTL so a cleared graph is re-seeded eventually.
    seeds:
        Override of :data:`POSTER_TYPE_SEEDS`, for tests.
    """

    def __init__(
        self,
        entity_store: IEntityPersistence,
        cache: ICacheProvider,
        seeds: tuple[PosterTypeSeed, ...] = POSTER_TYPE_SEEDS,
    ) -> None:
        self._store = entity_store
        self._cache = cache
        self._seeds = seeds
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @staticmethod
    def valid_type_keys() -> list[str]:
        return [seed.type_key.value for seed in POSTER_TYPE_SEEDS]

    async def ensure_seeded(self, force_refresh: bool = False) -> SeedReport:
        """Create whichever seeds are missing.

        Raises
        ------
        src.utils.errors.PersistenceError
            Propagated from the store; the verification is not cached.
        """
        if not force_refresh and await self._cache.exists(_VERIFIED_KEY):
            return SeedReport(existing=len(self._seeds), cached=True)

        missing: list[PosterTypeSeed] = []
        for seed in self._seeds:
            if await self._store.get_entity(seed.node_name) is None:
                missing.append(seed)

        if missing:
            await self._store.create_entities([seed.to_entity() for seed in missing])
            self._logger.info("poster_types_seeded", created=[s.node_name for s in missing])
        else:
            self._logger.debug("poster_types_present", count=len(self._seeds))

        await self._cache.set(_VERIFIED_KEY, True)
        return SeedReport(
            created=[s.node_name for s in missing],
            existing=len(self._seeds) - len(missing),
        )

    async def reset(self) -> None:
        """Forget the last verification so the next call checks the store."""
        await self._cache.delete(_VERIFIED_KEY)
