"""Phase 1: classify the poster into the closed :class:`PosterType` taxonomy.

The model's answer is checked against a keyword table: the share of the
detected type's keywords found in the poster text, minus a penalty for
keywords that belong to competing types, is blended into the final
confidence (70% model, 30% keywords).  When the model itself is unsure a
single refinement prompt is sent before blending.
"""

from __future__ import annotations

import re
from typing import Any, ClassVar

from src.interfaces.vision_provider import IVisionExtractionProvider
from src.models.phases import PhaseStatus, TypePhaseResult
from src.models.pipeline import PipelinePhase, ProcessingContext
from src.models.poster import PosterType, TypeInference, VisualCues
from src.pipeline.phases.base import BasePhase, elapsed_ms, require_object
from src.pipeline.phases.prompts import TYPE_CLASSIFICATION_PROMPT, build_refinement_prompt
from src.utils.confidence import clamp, normalize_confidence
from src.utils.text_normalizer import clean_string, split_list_value

TYPE_PATTERNS: dict[PosterType, tuple[str, ...]] = {
    PosterType.CONCERT: ("venue", "doors", "show", "tickets", "live", "with", "featuring", "support"),
    PosterType.FESTIVAL: ("festival", "fest", "day 1", "day 2", "stages", "lineup", "gates"),
    PosterType.ALBUM: (
        "out now", "available", "new album", "new single", "streaming", "pre-order", "release date",
    ),
    PosterType.FILM: (
        "in theaters", "in cinemas", "coming soon", "directed by", "starring", "pg-13", "rated r",
    ),
    PosterType.THEATER: ("broadway", "west end", "now playing", "written by", "a play", "musical"),
    PosterType.COMEDY: ("comedy", "stand-up", "standup", "comedian", "laughs"),
    PosterType.PROMO: ("merchandise", "merch", "tour dates", "available at", "shop", "order now"),
    PosterType.EXHIBITION: (
        "exhibition", "gallery", "museum", "on view", "opening reception", "curated",
    ),
    PosterType.HYBRID: ("album release show", "release party", "record release", "launch party"),
    PosterType.UNKNOWN: (),
}

# Checked in order; the first match wins.
_TYPE_ALIASES: tuple[tuple[re.Pattern[str], PosterType], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), poster_type)
    for pattern, poster_type in (
        (r"release (?:show|party)|launch party|\bhybrid\b", PosterType.HYBRID),
        (r"\bfest", PosterType.FESTIVAL),
        (r"comed|stand[- ]?up", PosterType.COMEDY),
        (r"\bart show\b|exhibit|gallery|museum", PosterType.EXHIBITION),
        (r"theat|\bplay\b|musical|broadway", PosterType.THEATER),
        (r"movie|\bfilm\b|cinema|screening", PosterType.FILM),
        (r"album|release|\bsingle\b|\bep\b|record", PosterType.ALBUM),
        (r"concert|\bgig\b|\bshow\b|\blive\b|music", PosterType.CONCERT),
        (r"promo|merch|advert", PosterType.PROMO),
    )
)

_STYLES = ("photographic", "illustrated", "typographic", "mixed", "other")

_HYBRID_COMPONENTS: tuple[tuple[PosterType, float], ...] = (
    (PosterType.ALBUM, 0.9),
    (PosterType.CONCERT, 0.85),
)


def validate_poster_type(raw: Any) -> PosterType:
    """Map whatever the model called the poster onto the closed taxonomy."""
    text = clean_string(raw)
    if text is None:
        return PosterType.UNKNOWN
    lowered = text.lower()
    try:
        return PosterType(lowered)
    except ValueError:
        pass
    for pattern, poster_type in _TYPE_ALIASES:
        if pattern.search(lowered):
            return poster_type
    return PosterType.UNKNOWN


def pattern_confidence(text: str | None, detected: PosterType) -> float:
    """Keyword support for *detected* in *text*, in [0, 1].

    Match ratio over the detected type's keywords minus 0.05 per keyword
    hit belonging to another type (penalty capped at 0.3).  Types without
    keywords score a neutral 0.5.
    """
    patterns = TYPE_PATTERNS.get(detected, ())
    if not patterns:
        return 0.5
    lowered = (text or "").lower()
    matches = sum(1 for pattern in patterns if pattern in lowered)
    competing = sum(
        1
        for other, other_patterns in TYPE_PATTERNS.items()
        if other not in (detected, PosterType.UNKNOWN)
        for pattern in other_patterns
        if pattern in lowered
    )
    penalty = min(competing * 0.05, 0.3)
    return max(0.0, matches / len(patterns) - penalty)


def parse_visual_cues(raw: Any) -> VisualCues:
    if not isinstance(raw, dict):
        return VisualCues()
    style = clean_string(raw.get("style"))
    if style is not None:
        lowered = style.lower()
        if lowered not in _STYLES:
            if "photo" in lowered:
                lowered = "photographic"
            elif "illustrat" in lowered or "drawn" in lowered:
                lowered = "illustrated"
            elif "typo" in lowered or "text" in lowered:
                lowered = "typographic"
            elif "mix" in lowered:
                lowered = "mixed"
            else:
                lowered = "other"
        style = lowered
    return VisualCues(
        has_artist_photo=raw.get("has_artist_photo") is True,
        has_album_artwork=raw.get("has_album_artwork") is True,
        has_logo=raw.get("has_logo") is True,
        dominant_colors=split_list_value(raw.get("dominant_colors")),
        style=style,
    )


class TypePhase(BasePhase[TypePhaseResult]):
    """Classify the poster; the only phase allowed to fail the run."""

    phase: ClassVar[PipelinePhase] = PipelinePhase.TYPE
    fatal_on_error: ClassVar[bool] = True

    async def _run(
        self,
        context: ProcessingContext,
        provider: IVisionExtractionProvider,
        started: float,
    ) -> TypePhaseResult:
        raw_text, parsed = await self._ask(provider, context, TYPE_CLASSIFICATION_PROMPT)
        require_object(parsed, self.phase, provider.get_provider_name())

        poster_type = validate_poster_type(parsed.get("poster_type"))
        confidence = normalize_confidence(parsed.get("confidence"))
        evidence = split_list_value(parsed.get("evidence"))
        refined = False

        if confidence < self._threshold:
            refined_type, refined_conf, refined_evidence = await self._refine(
                context, provider, poster_type, confidence, evidence
            )
            if refined_conf > confidence:
                poster_type, confidence, evidence = refined_type, refined_conf, refined_evidence
                refined = True

        extracted_text = clean_string(parsed.get("extracted_text"))
        keyword_score = pattern_confidence(extracted_text or raw_text, poster_type)
        final = clamp(confidence * 0.7 + keyword_score * 0.3)

        model_name = provider.get_model_info().name
        primary = TypeInference(
            type_key=poster_type,
            confidence=final,
            evidence=evidence or [f"{model_name} classification"],
            source="vision",
            is_primary=True,
        )
        secondary = [
            TypeInference(
                type_key=component,
                confidence=clamp(final * factor),
                evidence=[f"{component.value} component of a hybrid poster"],
                source="vision",
                is_primary=False,
            )
            for component, factor in _HYBRID_COMPONENTS
            if poster_type == PosterType.HYBRID
        ]

        warnings: list[str] = []
        if final < 0.7:
            warnings.append(f"Low confidence type classification: {poster_type.value}")

        context.set_field("poster_type", poster_type.value, final, self.phase)
        context.set_field("extracted_text", extracted_text, final, self.phase)

        return TypePhaseResult(
            status=self._status_for(final),
            confidence=final,
            processing_time_ms=elapsed_ms(started),
            warnings=warnings,
            primary_type=primary,
            secondary_types=secondary,
            visual_cues=parse_visual_cues(parsed.get("visual_cues")),
            extracted_text=extracted_text,
            refined=refined,
        )

    async def _refine(
        self,
        context: ProcessingContext,
        provider: IVisionExtractionProvider,
        previous_type: PosterType,
        previous_confidence: float,
        previous_evidence: list[str],
    ) -> tuple[PosterType, float, list[str]]:
        """Ask once more with the first answer as context; keep the first answer on error."""
        self._logger.info(
            "phase_type_refining",
            previous_type=previous_type.value,
            previous_confidence=round(previous_confidence, 4),
        )
        prompt = build_refinement_prompt(previous_type.value, previous_confidence, previous_evidence)
        try:
            _, parsed = await self._ask(provider, context, prompt)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("phase_type_refinement_failed", error=str(exc))
            return previous_type, previous_confidence, previous_evidence
        if not parsed:
            return previous_type, previous_confidence, previous_evidence
        return (
            validate_poster_type(parsed.get("poster_type")),
            normalize_confidence(parsed.get("confidence")),
            split_list_value(parsed.get("evidence")),
        )

    def _failure_result(self, status: PhaseStatus, error: str, elapsed_ms: int) -> TypePhaseResult:
        return TypePhaseResult(
            status=status,
            confidence=0.0,
            processing_time_ms=elapsed_ms,
            error=error,
        )
