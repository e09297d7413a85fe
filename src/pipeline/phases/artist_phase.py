"""Phase 2: read the performers (or credits) printed on the poster.

The prompt and the keys read back depend on the poster type: a film poster
yields a director and cast, a theater poster a playwright and performers,
an exhibition poster the exhibiting artist.  Everything is normalised into
the same :class:`ArtistPhaseResult` shape so assembly does not care which
keys the model used.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from src.interfaces.vision_provider import IVisionExtractionProvider
from src.models.phases import ArtistMatch, ArtistPhaseResult, PhaseStatus, TypePhaseResult
from src.models.pipeline import PipelinePhase, ProcessingContext
from src.models.poster import PosterType
from src.pipeline.phases.base import BasePhase, elapsed_ms
from src.pipeline.phases.prompts import build_artist_prompt
from src.utils.confidence import normalize_confidence
from src.utils.field_checks import looks_like_film_credit, suspicious_artist_name
from src.utils.text_normalizer import clean_string, dedupe_names, normalize_value, split_list_value

_DEFAULT_NAME_CONFIDENCE = 0.75
_SUSPICIOUS_NAME_CONFIDENCE = 0.3
_HEADLINER_OPTIONAL = frozenset({PosterType.EXHIBITION, PosterType.PROMO})


@dataclass
class _ArtistFields:
    headliner: str | None = None
    supporting_acts: list[str] = field(default_factory=list)
    title: str | None = None
    tour_name: str | None = None
    record_label: str | None = None
    director: str | None = None
    cast: list[str] = field(default_factory=list)


def map_artist_fields(parsed: dict[str, Any], poster_type: PosterType) -> _ArtistFields:
    """Read the type-specific response keys into one shape."""
    if poster_type == PosterType.FILM:
        cast = dedupe_names(
            split_list_value(parsed.get("lead_actors")) + split_list_value(parsed.get("supporting_cast"))
        )
        return _ArtistFields(
            headliner=cast[0] if cast else None,
            title=clean_string(parsed.get("title")),
            director=clean_string(parsed.get("director")),
            cast=cast,
        )

    if poster_type == PosterType.THEATER:
        performers = split_list_value(parsed.get("lead_performers"))
        headliner = clean_string(parsed.get("playwright")) or (performers[0] if performers else None)
        return _ArtistFields(
            headliner=headliner,
            supporting_acts=performers,
            director=clean_string(parsed.get("director")),
        )

    if poster_type == PosterType.EXHIBITION:
        return _ArtistFields(
            headliner=clean_string(parsed.get("exhibiting_artist")),
            title=clean_string(parsed.get("title")),
        )

    if poster_type == PosterType.ALBUM:
        return _ArtistFields(
            headliner=clean_string(parsed.get("headliner")),
            supporting_acts=split_list_value(parsed.get("featured_artists")),
            title=clean_string(parsed.get("album_title")),
            record_label=clean_string(parsed.get("record_label")),
        )

    if poster_type == PosterType.UNKNOWN:
        return _ArtistFields(
            headliner=clean_string(parsed.get("primary_name")),
            supporting_acts=split_list_value(parsed.get("other_names")),
        )

    # concert, festival, comedy, promo, hybrid
    return _ArtistFields(
        headliner=clean_string(parsed.get("headliner")),
        supporting_acts=split_list_value(parsed.get("supporting_acts")),
        title=clean_string(parsed.get("album_title") or parsed.get("title")),
        tour_name=clean_string(parsed.get("tour_name") or parsed.get("festival_name")),
        record_label=clean_string(parsed.get("record_label")),
    )


def artist_confidence(
    headliner: ArtistMatch | None,
    supporting: list[ArtistMatch],
    poster_type: PosterType,
) -> float:
    """``0.6 * headliner + 0.3 * mean(supporting)`` plus 0.1 for an external id.

    No supporting acts counts as a neutral 0.5; exhibition and promo
    posters without a headliner get half credit for it.
    """
    score = 0.0
    if headliner is not None:
        score += 0.6 * headliner.confidence
        if headliner.external_id:
            score += 0.1
    elif poster_type in _HEADLINER_OPTIONAL:
        score += 0.6 * 0.5

    if supporting:
        score += 0.3 * (sum(m.confidence for m in supporting) / len(supporting))
    else:
        score += 0.3 * 0.5
    return min(score, 1.0)


class ArtistPhase(BasePhase[ArtistPhaseResult]):
    """Extract headliner, supporting acts, and type-specific credits."""

    phase: ClassVar[PipelinePhase] = PipelinePhase.ARTIST

    async def _run(
        self,
        context: ProcessingContext,
        provider: IVisionExtractionProvider,
        started: float,
    ) -> ArtistPhaseResult:
        poster_type = context.poster_type
        type_result = context.get_phase_result("type")
        prior_text = type_result.extracted_text if isinstance(type_result, TypePhaseResult) else None

        _, parsed = await self._ask(provider, context, build_artist_prompt(poster_type, prior_text))
        fields = map_artist_fields(parsed, poster_type)
        base_confidence = normalize_confidence(parsed.get("confidence"), _DEFAULT_NAME_CONFIDENCE)

        warnings: list[str] = []
        flagged = False
        headliner = self._match(fields.headliner, "headliner", base_confidence, warnings)

        headliner_key = normalize_value(fields.headliner)
        supporting: list[ArtistMatch] = []
        for name in dedupe_names(fields.supporting_acts):
            if normalize_value(name) == headliner_key:
                continue
            if poster_type != PosterType.FILM and looks_like_film_credit(name):
                warnings.append(f"supporting act '{name}' looks like a film credit")
                flagged = True
                continue
            match = self._match(name, "supporting act", base_confidence, warnings)
            if match is not None:
                supporting.append(match)

        director = self._match(fields.director, "director", base_confidence, warnings)
        cast = [
            m
            for name in fields.cast
            if (m := self._match(name, "cast member", base_confidence, warnings)) is not None
        ]

        flagged = flagged or any(
            suspicious_artist_name(m.extracted_name) is not None
            for m in (headliner, director, *supporting, *cast)
            if m is not None
        )

        lead = headliner or (director if poster_type == PosterType.FILM else None)
        confidence = artist_confidence(lead, supporting, poster_type)
        if lead is None and poster_type not in _HEADLINER_OPTIONAL:
            warnings.append("No headliner extracted")

        context.set_field("headliner", fields.headliner, confidence, self.phase)
        context.set_field("supporting_acts", [m.extracted_name for m in supporting], confidence, self.phase)
        context.set_field("title", fields.title, confidence, self.phase)
        context.set_field("tour_name", fields.tour_name, confidence, self.phase)
        context.set_field("record_label", fields.record_label, confidence, self.phase)
        context.set_field("director", fields.director, confidence, self.phase)
        context.set_field("cast", fields.cast, confidence, self.phase)

        return ArtistPhaseResult(
            status=self._status_for(confidence, force_review=flagged),
            confidence=confidence,
            processing_time_ms=elapsed_ms(started),
            warnings=warnings,
            poster_type=poster_type,
            headliner=headliner,
            supporting_acts=supporting,
            title=fields.title,
            tour_name=fields.tour_name,
            record_label=fields.record_label,
            director=director,
            cast=cast,
        )

    @staticmethod
    def _match(
        name: str | None,
        role: str,
        base_confidence: float,
        warnings: list[str],
    ) -> ArtistMatch | None:
        if not name:
            return None
        reason = suspicious_artist_name(name)
        if reason is not None:
            warnings.append(f"{role} '{name}' {reason}")
            return ArtistMatch(extracted_name=name, confidence=_SUSPICIOUS_NAME_CONFIDENCE)
        return ArtistMatch(extracted_name=name, confidence=base_confidence)

    def _failure_result(self, status: PhaseStatus, error: str, elapsed_ms: int) -> ArtistPhaseResult:
        return ArtistPhaseResult(
            status=status,
            confidence=0.0,
            processing_time_ms=elapsed_ms,
            error=error,
        )
