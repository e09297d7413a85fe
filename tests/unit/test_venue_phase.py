"""Unit tests for the venue extraction phase."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.entity_persistence import IEntityPersistence
from src.models.graph import GraphEntity, GraphEntityType
from src.models.phases import PhaseStatus, VenueMatch
from src.models.pipeline import ProcessingContext
from src.models.poster import PosterType
from src.pipeline.phases.venue_phase import VenuePhase, venue_confidence
from src.providers.persistence.memory_graph_store import InMemoryGraphStore
from tests.conftest import with_poster_type


# ======================================================================
# venue_confidence
# ======================================================================


class TestVenueConfidence:
    def test_name_only(self) -> None:
        venue = VenueMatch(extracted_name="The Tivoli")
        assert venue_confidence(venue, PosterType.CONCERT) == pytest.approx(0.5)

    def test_all_bonuses(self) -> None:
        venue = VenueMatch(
            extracted_name="The Tivoli",
            validated_name="The Tivoli",
            city="Brisbane",
            existing_venue_id="venue_the_tivoli",
        )
        assert venue_confidence(venue, PosterType.CONCERT) == pytest.approx(0.85)

    @pytest.mark.parametrize("poster_type", [PosterType.ALBUM, PosterType.PROMO, PosterType.FILM])
    def test_missing_venue_on_optional_type(self, poster_type: PosterType) -> None:
        assert venue_confidence(None, poster_type) == pytest.approx(0.6)

    def test_missing_venue_on_concert(self) -> None:
        assert venue_confidence(None, PosterType.CONCERT) == 0.0


# ======================================================================
# VenuePhase.execute
# ======================================================================


class TestVenuePhase:
    """Tests for VenuePhase.execute."""

    @pytest.mark.asyncio()
    async def test_concert_venue(self, context: ProcessingContext, concert_provider: MagicMock) -> None:
        with_poster_type(context, PosterType.CONCERT)
        result = await VenuePhase(confidence_threshold=0.6).execute(context, concert_provider)

        assert result.venue is not None
        assert result.venue.extracted_name == "The Tivoli"
        assert result.venue.city == "Brisbane"
        assert result.venue.country == "Australia"
        assert result.venue.existing_venue_id is None
        assert result.confidence == pytest.approx(0.6)
        assert context.get_field("venue_name") == "The Tivoli"

    @pytest.mark.asyncio()
    async def test_existing_node_is_matched(
        self,
        context: ProcessingContext,
        graph_store: InMemoryGraphStore,
        vision_provider_factory: Callable[..., MagicMock],
    ) -> None:
        await graph_store.create_entities(
            [
                GraphEntity(
                    name="venue_the_tivoli",
                    entity_type=GraphEntityType.VENUE,
                    properties={"name": "The Tivoli", "city": "Brisbane", "country": "Australia"},
                )
            ]
        )
        with_poster_type(context, PosterType.CONCERT)
        provider = vision_provider_factory({"venue": {"venue_name": "the tivoli"}})
        phase = VenuePhase(confidence_threshold=0.6, entity_store=graph_store)
        result = await phase.execute(context, provider)

        assert result.venue.existing_venue_id == "venue_the_tivoli"
        assert result.venue.validated_name == "The Tivoli"
        assert result.venue.city == "Brisbane"
        assert result.confidence == pytest.approx(0.85)
        assert result.status == PhaseStatus.COMPLETED
        assert context.get_field("venue_name") == "The Tivoli"

    @pytest.mark.asyncio()
    async def test_lookup_failure_keeps_extracted_venue(
        self, context: ProcessingContext, concert_provider: MagicMock
    ) -> None:
        store = MagicMock(spec=IEntityPersistence)
        store.get_entity = AsyncMock(side_effect=RuntimeError("store offline"))
        with_poster_type(context, PosterType.CONCERT)
        result = await VenuePhase(0.6, entity_store=store).execute(context, concert_provider)

        assert result.venue.extracted_name == "The Tivoli"
        assert result.venue.existing_venue_id is None
        assert result.error is None

    @pytest.mark.asyncio()
    async def test_prose_venue_is_discarded(
        self, context: ProcessingContext, vision_provider_factory: Callable[..., MagicMock]
    ) -> None:
        with_poster_type(context, PosterType.CONCERT)
        provider = vision_provider_factory(
            {"venue": {"venue_name": "The venue is not clearly visible on the poster", "city": "Sydney"}}
        )
        result = await VenuePhase(0.6).execute(context, provider)

        assert result.venue is None
        assert result.status == PhaseStatus.NEEDS_REVIEW
        assert result.confidence == 0.0
        assert any("discarded" in w for w in result.warnings)
        assert context.get_field("venue_name") is None

    @pytest.mark.asyncio()
    async def test_album_without_venue_completes(
        self, context: ProcessingContext, album_provider: MagicMock
    ) -> None:
        with_poster_type(context, PosterType.ALBUM)
        result = await VenuePhase(0.6).execute(context, album_provider)

        assert result.venue is None
        assert result.status == PhaseStatus.COMPLETED
        assert result.confidence == pytest.approx(0.6)
        assert result.warnings == []

    @pytest.mark.asyncio()
    async def test_concert_without_venue_needs_review(
        self, context: ProcessingContext, vision_provider_factory: Callable[..., MagicMock]
    ) -> None:
        with_poster_type(context, PosterType.CONCERT)
        provider = vision_provider_factory({"venue": {"venue_name": None}})
        result = await VenuePhase(0.6).execute(context, provider)

        assert result.status == PhaseStatus.NEEDS_REVIEW
        assert "No venue information extracted" in result.warnings

    @pytest.mark.asyncio()
    async def test_film_reads_theater_name(
        self, context: ProcessingContext, vision_provider_factory: Callable[..., MagicMock]
    ) -> None:
        with_poster_type(context, PosterType.FILM)
        provider = vision_provider_factory({"venue": {"theater_name": "Palace Cinemas", "city": "Melbourne"}})
        result = await VenuePhase(0.6).execute(context, provider)

        assert result.venue.extracted_name == "Palace Cinemas"
        assert result.status == PhaseStatus.COMPLETED

    @pytest.mark.asyncio()
    async def test_city_missing_warns(
        self, context: ProcessingContext, vision_provider_factory: Callable[..., MagicMock]
    ) -> None:
        with_poster_type(context, PosterType.CONCERT)
        provider = vision_provider_factory({"venue": {"venue_name": "The Zoo"}})
        result = await VenuePhase(0.6).execute(context, provider)

        assert "City not identified for venue" in result.warnings
        assert result.status == PhaseStatus.NEEDS_REVIEW
