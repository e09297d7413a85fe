"""Best-effort enrichment of an assembled poster from external catalogs.

Strategy by poster type:

    album, hybrid     MusicBrainz artist + release (date, year, label);
                      Discogs as a fallback when MusicBrainz filled in
                      fewer than two fields
    film              TMDB title search: director, top-5 cast, year; the
                      extracted headliner (usually an actor) is cleared
    everything else   MusicBrainz artist validation of the headliner

Only empty fields are filled; values read from the poster are never
overwritten.  Catalog failures become strings in ``errors``, never
exceptions, and an unconfigured catalog simply contributes nothing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import structlog

from src.interfaces.reference_lookup import IReferenceLookup
from src.models.phases import (
    ArtistMatch,
    ArtistPhaseResult,
    EnrichmentPhaseResult,
    EnrichmentSource,
    PhaseStatus,
)
from src.models.poster import PosterEntity, PosterType
from src.utils.logging import get_logger
from src.utils.text_normalizer import name_similarity

_TOP_CAST = 5
_DISCOGS_FALLBACK_BELOW = 2


def format_catalog_date(date: str) -> str:
    """``YYYY-MM-DD`` -> ``DD/MM/YYYY``; ``YYYY-MM`` -> ``MM/YYYY``; ``YYYY`` unchanged."""
    parts = date.split("-")
    if len(parts) == 3:
        return f"{parts[2]}/{parts[1]}/{parts[0]}"
    if len(parts) == 2:
        return f"{parts[1]}/{parts[0]}"
    return parts[0]


def _year_from(date: str | None) -> int | None:
    if date and len(date) >= 4 and date[:4].isdigit():
        return int(date[:4])
    return None


@dataclass
class _Draft:
    """Mutable working copy; frozen results are built from it at the end."""

    entity_updates: dict[str, Any] = field(default_factory=dict)
    artist_updates: dict[str, Any] = field(default_factory=dict)
    observations: list[str] = field(default_factory=list)
    original_values: dict[str, Any] = field(default_factory=dict)
    enriched_fields: list[str] = field(default_factory=list)
    sources: list[EnrichmentSource] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def fill(self, entity: PosterEntity, name: str, value: Any) -> bool:
        """Set *name* on the entity only if it is still empty."""
        if value in (None, "", []) or self.current(entity, name) not in (None, "", []):
            return False
        self.original_values[name] = getattr(entity, name)
        self.entity_updates[name] = value
        return True

    def current(self, entity: PosterEntity, name: str) -> Any:
        return self.entity_updates.get(name, getattr(entity, name))


class EnrichmentPhase:
    """Look up the poster's artist, release, or film in reference catalogs.

    Parameters
    ----------
    music_catalog:
        Artist and release lookups (MusicBrainz).
    release_catalog:
        Fallback release lookups (Discogs).
    film_catalog:
        Film lookups (TMDB).
    min_match_confidence:
        Catalog hits whose name similarity to the poster text is below
        this are ignored.
    """

    def __init__(
        self,
        music_catalog: IReferenceLookup | None = None,
        release_catalog: IReferenceLookup | None = None,
        film_catalog: IReferenceLookup | None = None,
        min_match_confidence: float = 0.7,
    ) -> None:
        self._music = music_catalog
        self._releases = release_catalog
        self._films = film_catalog
        self._min_match = min_match_confidence
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def has_catalogs(self) -> bool:
        return any(
            catalog is not None and catalog.is_available()
            for catalog in (self._music, self._releases, self._films)
        )

    async def execute(
        self,
        entity: PosterEntity,
        artist_result: ArtistPhaseResult | None = None,
    ) -> EnrichmentPhaseResult:
        """Enrich *entity*; never raises."""
        started = time.monotonic()
        artist_result = artist_result or ArtistPhaseResult(poster_type=entity.poster_type)

        if not self.has_catalogs:
            return EnrichmentPhaseResult(
                status=PhaseStatus.SKIPPED,
                warnings=["No reference catalogs configured"],
                enriched_entity=entity,
                enhanced_artist_result=artist_result,
            )

        self._logger.info("enrichment_start", poster_type=entity.poster_type.value)
        draft = _Draft()
        try:
            if entity.poster_type == PosterType.FILM:
                await self._enrich_film(entity, artist_result, draft)
            elif entity.poster_type in (PosterType.ALBUM, PosterType.HYBRID):
                await self._enrich_album(entity, artist_result, draft)
            else:
                await self._validate_headliner(entity, artist_result, draft)
        except Exception as exc:  # noqa: BLE001
            draft.errors.append(str(exc))

        if not draft.enriched_fields:
            status = PhaseStatus.FAILED if draft.errors else PhaseStatus.SKIPPED
        elif draft.errors:
            status = PhaseStatus.PARTIAL
        else:
            status = PhaseStatus.COMPLETED

        enriched_entity = entity.model_copy(
            update={
                **draft.entity_updates,
                "observations": [*entity.observations, *draft.observations],
            }
        )
        result = EnrichmentPhaseResult(
            status=status,
            confidence=max((s.match_confidence for s in draft.sources), default=0.0),
            processing_time_ms=int((time.monotonic() - started) * 1000),
            enriched_fields=draft.enriched_fields,
            original_values=draft.original_values,
            sources=draft.sources,
            errors=draft.errors,
            enriched_entity=enriched_entity,
            enhanced_artist_result=artist_result.model_copy(update=draft.artist_updates),
        )
        self._logger.info(
            "enrichment_complete",
            status=status.value,
            enriched_fields=draft.enriched_fields,
            errors=len(draft.errors),
        )
        return result

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    async def _enrich_film(
        self, entity: PosterEntity, artist_result: ArtistPhaseResult, draft: _Draft
    ) -> None:
        if self._films is None or not self._films.is_available():
            draft.errors.append("TMDB not configured - set TMDB_API_KEY")
            return
        title = entity.title or entity.headliner
        if not title:
            draft.errors.append("No film title available for lookup")
            return

        source = self._films.get_source_name()
        try:
            films = await self._films.search_film(title, entity.year)
        except Exception as exc:  # noqa: BLE001
            draft.errors.append(f"{source} lookup failed: {exc}")
            return
        if not films:
            draft.errors.append(f"No {source} matches found for \"{title}\"")
            return

        film = films[0]
        match = name_similarity(title, film.title)
        if match < self._min_match:
            draft.errors.append(f"{source} match confidence too low: {match:.2f} for \"{film.title}\"")
            return

        fields: list[str] = []
        if draft.fill(entity, "year", _year_from(film.release_date)):
            fields.append("year")
        if film.director and artist_result.director is None:
            draft.artist_updates["director"] = ArtistMatch(
                extracted_name=film.director,
                validated_name=film.director,
                confidence=match,
                source=source,
            )
            draft.fill(entity, "director", film.director)
            fields.append("director")
        if film.cast and not artist_result.cast:
            top_cast = film.cast[:_TOP_CAST]
            draft.artist_updates["cast"] = [
                ArtistMatch(extracted_name=name, validated_name=name, confidence=match, source=source)
                for name in top_cast
            ]
            draft.fill(entity, "cast", top_cast)
            fields.append("cast")
        if entity.headliner and entity.headliner != film.title:
            draft.observations.append(
                f"Originally extracted headliner \"{entity.headliner}\" (likely an actor)"
            )
            draft.original_values["headliner"] = entity.headliner
            draft.entity_updates["headliner"] = None
            draft.artist_updates["headliner"] = None
            fields.append("headliner")

        if fields:
            draft.enriched_fields.extend(fields)
            draft.sources.append(
                EnrichmentSource(
                    source=source,
                    external_id=f"{source}:{film.id}",
                    match_confidence=match,
                    fields_enriched=fields,
                )
            )
            draft.observations.append(f"TMDB ID: {film.id}")
            draft.observations.append(f"TMDB Title: {film.title}")

    async def _enrich_album(
        self, entity: PosterEntity, artist_result: ArtistPhaseResult, draft: _Draft
    ) -> None:
        artist_name = (
            artist_result.headliner.extracted_name if artist_result.headliner else entity.headliner
        )
        if not artist_name:
            draft.errors.append("No artist name available for album lookup")
            return

        if self._music is not None and self._music.is_available():
            await self._enrich_from_music_catalog(self._music, entity, artist_result, artist_name, draft)
        if (
            self._releases is not None
            and self._releases.is_available()
            and len(draft.enriched_fields) < _DISCOGS_FALLBACK_BELOW
        ):
            await self._enrich_from_release_catalog(self._releases, entity, artist_name, draft)

    async def _enrich_from_music_catalog(
        self,
        catalog: IReferenceLookup,
        entity: PosterEntity,
        artist_result: ArtistPhaseResult,
        artist_name: str,
        draft: _Draft,
    ) -> None:
        source = catalog.get_source_name()
        try:
            artists = await catalog.search_artist(artist_name)
            if not artists:
                return
            artist = artists[0]
            artist_match = name_similarity(artist_name, artist.name)
            if artist_match < self._min_match:
                return

            fields: list[str] = []
            if artist_result.headliner is not None:
                draft.artist_updates["headliner"] = artist_result.headliner.model_copy(
                    update={"validated_name": artist.name, "external_id": f"mbid:{artist.id}", "source": source}
                )
                fields.append("headliner_validated")

            external_id, match = f"mbid:{artist.id}", artist_match
            if entity.title:
                releases = await catalog.search_release(entity.title, artist.name)
                release = releases[0] if releases else None
                release_match = name_similarity(entity.title, release.title) if release else 0.0
                if release is not None and release_match >= self._min_match:
                    if release.date and draft.fill(entity, "event_date", format_catalog_date(release.date)):
                        fields.append("release_date")
                    if draft.fill(entity, "year", release.year or _year_from(release.date)):
                        fields.append("year")
                    if release.labels and draft.fill(entity, "record_label", release.labels[0]):
                        draft.artist_updates["record_label"] = release.labels[0]
                        fields.append("record_label")
                    draft.observations.append(f"MusicBrainz Release ID: {release.id}")
                    if release.country:
                        draft.observations.append(f"Release Country: {release.country}")
                    external_id, match = f"mbid:{release.id}", release_match
        except Exception as exc:  # noqa: BLE001
            draft.errors.append(f"{source} lookup failed: {exc}")
            return

        if fields:
            draft.enriched_fields.extend(fields)
            draft.sources.append(
                EnrichmentSource(
                    source=source, external_id=external_id, match_confidence=match, fields_enriched=fields
                )
            )

    async def _enrich_from_release_catalog(
        self, catalog: IReferenceLookup, entity: PosterEntity, artist_name: str, draft: _Draft
    ) -> None:
        source = catalog.get_source_name()
        title = entity.title
        try:
            releases = await catalog.search_release(title or artist_name, artist_name)
        except Exception as exc:  # noqa: BLE001
            draft.errors.append(f"{source} lookup failed: {exc}")
            return
        if not releases:
            return

        release = releases[0]
        match = name_similarity(title or artist_name, release.title)
        if match < self._min_match:
            return

        fields: list[str] = []
        if draft.fill(entity, "year", release.year):
            fields.append("year")
        if release.labels and draft.fill(entity, "record_label", release.labels[0]):
            draft.artist_updates["record_label"] = release.labels[0]
            fields.append("record_label")
        draft.observations.append(f"Discogs ID: {release.id}")
        if release.genres:
            draft.observations.append(f"Genre: {', '.join(release.genres)}")
        if release.styles:
            draft.observations.append(f"Style: {', '.join(release.styles)}")

        if fields:
            draft.enriched_fields.extend(fields)
            draft.sources.append(
                EnrichmentSource(
                    source=source,
                    external_id=f"{source}:{release.id}",
                    match_confidence=match,
                    fields_enriched=fields,
                )
            )

    async def _validate_headliner(
        self, entity: PosterEntity, artist_result: ArtistPhaseResult, draft: _Draft
    ) -> None:
        if self._music is None or not self._music.is_available() or artist_result.headliner is None:
            return
        artist_name = artist_result.headliner.extracted_name
        source = self._music.get_source_name()
        try:
            artists = await self._music.search_artist(artist_name)
        except Exception as exc:  # noqa: BLE001
            draft.errors.append(f"Artist validation failed: {exc}")
            return
        if not artists:
            return

        artist = artists[0]
        match = name_similarity(artist_name, artist.name)
        if match < self._min_match:
            return
        draft.artist_updates["headliner"] = artist_result.headliner.model_copy(
            update={
                "validated_name": artist.name,
                "external_id": f"mbid:{artist.id}",
                "confidence": match,
                "source": source,
            }
        )
        draft.enriched_fields.append("headliner_validated")
        draft.sources.append(
            EnrichmentSource(
                source=source,
                external_id=f"mbid:{artist.id}",
                match_confidence=match,
                fields_enriched=["headliner_validated"],
            )
        )
        draft.observations.append(f"MusicBrainz Artist ID: {artist.id}")
