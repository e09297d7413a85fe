"""Phase 3: read the venue and its location.

When an entity store is wired in, the extracted name is looked up under
its deterministic ``venue_<slug>`` node name; a prior match raises the
confidence and lends the stored display name and location to this run.
"""

from __future__ import annotations

from typing import Any, ClassVar

from src.interfaces.entity_persistence import IEntityPersistence
from src.interfaces.vision_provider import IVisionExtractionProvider
from src.models.graph import GraphEntity
from src.models.phases import ArtistPhaseResult, PhaseStatus, VenueMatch, VenuePhaseResult
from src.models.pipeline import PipelinePhase, ProcessingContext
from src.models.poster import PosterType
from src.pipeline.phases.base import BasePhase, elapsed_ms
from src.pipeline.phases.prompts import build_venue_prompt
from src.utils.field_checks import suspicious_venue_name
from src.utils.text_normalizer import clean_string, name_similarity, slugify

VENUE_OPTIONAL_TYPES: frozenset[PosterType] = frozenset(
    {PosterType.ALBUM, PosterType.PROMO, PosterType.FILM}
)

_VALIDATED_NAME_SIMILARITY = 0.7


def venue_confidence(venue: VenueMatch | None, poster_type: PosterType) -> float:
    """0.5 base, +0.1 city, +0.15 prior graph match, +0.1 validated name.

    A missing venue scores 0.6 where the type does not need one, else 0.
    """
    if venue is None:
        return 0.6 if poster_type in VENUE_OPTIONAL_TYPES else 0.0
    score = 0.5
    if venue.city:
        score += 0.1
    if venue.existing_venue_id:
        score += 0.15
    if venue.validated_name:
        score += 0.1
    return min(score, 1.0)


class VenuePhase(BasePhase[VenuePhaseResult]):
    """Extract the venue, city, state and country."""

    phase: ClassVar[PipelinePhase] = PipelinePhase.VENUE

    def __init__(
        self,
        confidence_threshold: float,
        entity_store: IEntityPersistence | None = None,
    ) -> None:
        super().__init__(confidence_threshold)
        self._entity_store = entity_store

    async def _run(
        self,
        context: ProcessingContext,
        provider: IVisionExtractionProvider,
        started: float,
    ) -> VenuePhaseResult:
        poster_type = context.poster_type
        artist_result = context.get_phase_result("artist")
        headliner = (
            artist_result.headliner.display_name
            if isinstance(artist_result, ArtistPhaseResult) and artist_result.headliner
            else None
        )

        _, parsed = await self._ask(provider, context, build_venue_prompt(poster_type, headliner))
        venue_name, city, state, country = _read_location(parsed, poster_type)

        warnings: list[str] = []
        flagged = False
        reason = suspicious_venue_name(venue_name)
        if reason is not None:
            warnings.append(f"venue_name '{venue_name}' {reason}; discarded")
            venue_name = None
            flagged = True

        venue: VenueMatch | None = None
        if venue_name:
            venue = VenueMatch(
                extracted_name=venue_name, city=city, state=state, country=country
            )
            venue = await self._match_existing(venue)
            venue = venue.model_copy(update={"confidence": venue_confidence(venue, poster_type)})

        confidence = venue_confidence(venue, poster_type)
        optional = poster_type in VENUE_OPTIONAL_TYPES
        if venue is None:
            if not optional:
                warnings.append("No venue information extracted")
        elif not venue.city:
            warnings.append("City not identified for venue")

        if flagged:
            status = PhaseStatus.NEEDS_REVIEW
        elif optional:
            status = PhaseStatus.COMPLETED
        else:
            status = self._status_for(confidence)

        if venue is not None:
            context.set_field("venue_name", venue.display_name, confidence, self.phase)
            context.set_field("city", venue.city, confidence, self.phase)
            context.set_field("state", venue.state, confidence, self.phase)
            context.set_field("country", venue.country, confidence, self.phase)

        return VenuePhaseResult(
            status=status,
            confidence=confidence,
            processing_time_ms=elapsed_ms(started),
            warnings=warnings,
            poster_type=poster_type,
            venue=venue,
        )

    async def _match_existing(self, venue: VenueMatch) -> VenueMatch:
        """Attach a prior graph node for the same venue, if one exists.

        Lookup failures are logged and the unmatched venue is returned.
        """
        if self._entity_store is None:
            return venue
        node_name = f"venue_{slugify(venue.extracted_name)}"
        try:
            existing: GraphEntity | None = await self._entity_store.get_entity(node_name)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("phase_venue_lookup_failed", venue=node_name, error=str(exc))
            return venue
        if existing is None:
            return venue

        update: dict[str, Any] = {"existing_venue_id": existing.name}
        stored_name = clean_string(existing.properties.get("name"))
        if stored_name and name_similarity(venue.extracted_name, stored_name) > _VALIDATED_NAME_SIMILARITY:
            update["validated_name"] = stored_name
        for key in ("city", "state", "country"):
            if getattr(venue, key) is None and existing.properties.get(key):
                update[key] = existing.properties[key]
        self._logger.debug("phase_venue_matched", venue=node_name)
        return venue.model_copy(update=update)

    def _failure_result(self, status: PhaseStatus, error: str, elapsed_ms: int) -> VenuePhaseResult:
        return VenuePhaseResult(
            status=status,
            confidence=0.0,
            processing_time_ms=elapsed_ms,
            error=error,
        )


def _read_location(
    parsed: dict[str, Any], poster_type: PosterType
) -> tuple[str | None, str | None, str | None, str | None]:
    if poster_type == PosterType.FILM:
        name = clean_string(parsed.get("theater_name")) or clean_string(parsed.get("venue_name"))
    else:
        name = clean_string(parsed.get("venue_name"))
    return (
        name,
        clean_string(parsed.get("city")),
        clean_string(parsed.get("state")),
        clean_string(parsed.get("country")),
    )
