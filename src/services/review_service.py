"""Self-review of an extracted poster draft.

The draft and the image go back to a vision provider together with a
catalogue of the mistakes extraction makes most often.  The provider
answers with a verdict and field-level corrections; :meth:`apply_corrections`
folds the confident ones back into the draft.

A local heuristic pass runs alongside the model's critique so that a
date-and-venue string in ``headliner`` (or a sentence in ``venue_name``)
is caught even when the reviewing model waves it through.
"""

from __future__ import annotations

import json
import time
from typing import Any

import structlog

from src.interfaces.vision_provider import IVisionExtractionProvider, VisionExtraction
from src.models.phases import PhaseStatus, ReviewCorrection, ReviewPhaseResult
from src.models.poster import PosterEntity, PosterType
from src.pipeline.phases.prompts import REVIEW_PROMPT
from src.utils.confidence import normalize_confidence
from src.utils.errors import ReviewError
from src.utils.field_checks import looks_like_film_credit, suspicious_artist_name, suspicious_venue_name
from src.utils.json_parsing import extract_json_object
from src.utils.logging import get_logger
from src.utils.text_normalizer import clean_string, split_list_value

_PROVIDER_FAILURE_CONFIDENCE = 0.3
_PROVIDER_FAILURE_FLAGS = ["headliner", "venue_name", "supporting_acts"]
_PARSE_FAILURE_CONFIDENCE = 0.4
_PARSE_FAILURE_FLAGS = ["headliner", "venue_name"]
_DEFAULT_CORRECTION_CONFIDENCE = 0.7
_HEURISTIC_CORRECTION_CONFIDENCE = 0.8

# Fields a correction may rewrite, with the alias a model sometimes uses.
_FIELD_ALIASES = {"venue": "venue_name"}
_CORRECTABLE_FIELDS = frozenset(
    {
        "title",
        "headliner",
        "supporting_acts",
        "venue_name",
        "city",
        "state",
        "country",
        "event_date",
        "year",
        "door_time",
        "show_time",
        "ticket_price",
        "age_restriction",
        "promoter",
        "tour_name",
        "record_label",
        "director",
    }
)

_DRAFT_FIELDS = (
    "poster_type",
    "title",
    "headliner",
    "supporting_acts",
    "venue_name",
    "city",
    "state",
    "country",
    "event_date",
    "year",
    "tour_name",
    "record_label",
    "ticket_price",
    "director",
    "cast",
)


def format_draft(entity: PosterEntity) -> str:
    """Render the reviewable fields of *entity* as indented JSON."""
    draft: dict[str, Any] = {}
    for name in _DRAFT_FIELDS:
        value = getattr(entity, name)
        if name == "poster_type":
            value = entity.poster_type.value
        draft[name] = value if value not in ("", []) else None
    return json.dumps(draft, indent=2, ensure_ascii=False)


def heuristic_corrections(entity: PosterEntity) -> tuple[list[ReviewCorrection], list[str]]:
    """Corrections and issues found without asking a model."""
    corrections: list[ReviewCorrection] = []
    issues: list[str] = []

    reason = suspicious_artist_name(entity.headliner)
    if reason is not None:
        issues.append(f"headliner '{entity.headliner}' {reason}")
        corrections.append(
            ReviewCorrection(
                field="headliner",
                original_value=entity.headliner,
                corrected_value=None,
                reason=f"Headliner {reason}",
                confidence=_HEURISTIC_CORRECTION_CONFIDENCE,
            )
        )

    reason = suspicious_venue_name(entity.venue_name)
    if reason is not None:
        issues.append(f"venue_name '{entity.venue_name}' {reason}")
        corrections.append(
            ReviewCorrection(
                field="venue_name",
                original_value=entity.venue_name,
                corrected_value=None,
                reason=f"Venue {reason}",
                confidence=_HEURISTIC_CORRECTION_CONFIDENCE,
            )
        )

    if entity.supporting_acts:
        kept = [
            act
            for act in entity.supporting_acts
            if suspicious_artist_name(act) is None
            and (entity.poster_type == PosterType.FILM or not looks_like_film_credit(act))
        ]
        if len(kept) != len(entity.supporting_acts):
            dropped = [act for act in entity.supporting_acts if act not in kept]
            issues.append(f"supporting_acts contain non-artist entries: {', '.join(dropped)}")
            corrections.append(
                ReviewCorrection(
                    field="supporting_acts",
                    original_value=entity.supporting_acts,
                    corrected_value=kept or None,
                    reason="Removed date, venue or credit text from supporting acts",
                    confidence=_HEURISTIC_CORRECTION_CONFIDENCE,
                )
            )
    return corrections, issues


def _parse_corrections(raw: Any) -> list[ReviewCorrection]:
    if not isinstance(raw, list):
        return []
    corrections: list[ReviewCorrection] = []
    for item in raw:
        if not isinstance(item, dict) or not isinstance(item.get("field"), str):
            continue
        corrections.append(
            ReviewCorrection(
                field=item["field"].strip(),
                original_value=item.get("original_value", item.get("originalValue")),
                corrected_value=item.get("corrected_value", item.get("correctedValue")),
                reason=clean_string(item.get("reason")) or "No reason provided",
                confidence=normalize_confidence(item.get("confidence"), _DEFAULT_CORRECTION_CONFIDENCE),
            )
        )
    return corrections


class ReviewService:
    """Ask a provider to critique a draft and apply its corrections.

    Parameters
    ----------
    pass_threshold:
        Minimum reviewer confidence for a ``passed`` verdict.
    min_correction_confidence:
        Corrections below this confidence are never applied.
    """

    def __init__(self, pass_threshold: float = 0.7, min_correction_confidence: float = 0.5) -> None:
        self._pass_threshold = pass_threshold
        self._min_correction = min_correction_confidence
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def review_extracted_data(
        self,
        image_path: str,
        draft: PosterEntity,
        provider: IVisionExtractionProvider,
    ) -> ReviewPhaseResult:
        """Review *draft* against the image; never raises."""
        started = time.monotonic()
        local_corrections, local_issues = heuristic_corrections(draft)
        prompt = REVIEW_PROMPT.format(draft=format_draft(draft))

        try:
            extraction = await provider.extract_from_image(image_path, prompt)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("review_provider_failed", error=str(exc))
            return ReviewPhaseResult(
                status=PhaseStatus.NEEDS_REVIEW,
                confidence=_PROVIDER_FAILURE_CONFIDENCE,
                processing_time_ms=_elapsed(started),
                passed=False,
                corrections=local_corrections,
                fields_flagged=list(_PROVIDER_FAILURE_FLAGS),
                issues=[f"Review failed: {exc}", *local_issues],
                error=str(exc),
            )

        try:
            parsed = _require_verdict(extraction)
        except ReviewError as exc:
            self._logger.warning("review_unparseable", error=str(exc), preview=extraction.extracted_text[:120])
            return ReviewPhaseResult(
                status=PhaseStatus.NEEDS_REVIEW,
                confidence=_PARSE_FAILURE_CONFIDENCE,
                processing_time_ms=_elapsed(started),
                passed=False,
                corrections=local_corrections,
                fields_flagged=list(_PARSE_FAILURE_FLAGS),
                issues=[exc.message, *local_issues],
            )

        confidence = normalize_confidence(parsed.get("confidence", parsed.get("overallConfidence")))
        corrections = _parse_corrections(parsed.get("corrections"))
        model_fields = {c.field for c in corrections}
        corrections.extend(c for c in local_corrections if c.field not in model_fields)

        flagged = split_list_value(parsed.get("fields_to_review", parsed.get("flaggedForReview")))
        for correction in local_corrections:
            if correction.field not in flagged:
                flagged.append(correction.field)

        issues = [*split_list_value(parsed.get("issues")), *local_issues]
        passed = parsed.get("passed") is True and confidence >= self._pass_threshold and not local_issues

        self._logger.info(
            "review_complete",
            passed=passed,
            confidence=round(confidence, 4),
            corrections=len(corrections),
            flagged=flagged,
        )
        return ReviewPhaseResult(
            status=PhaseStatus.COMPLETED if passed else PhaseStatus.NEEDS_REVIEW,
            confidence=confidence,
            processing_time_ms=_elapsed(started),
            passed=passed,
            corrections=corrections,
            fields_flagged=flagged,
            issues=issues,
        )

    def apply_corrections(
        self, entity: PosterEntity, review: ReviewPhaseResult
    ) -> tuple[PosterEntity, list[str]]:
        """Return *entity* with confident corrections applied, and the fields changed.

        A ``None`` corrected value clears the field.  ``supporting_acts``
        accepts a list or a comma-separated string.  Unknown fields, malformed
        values and corrections below the confidence floor are ignored.
        """
        updates: dict[str, Any] = {}
        applied: list[str] = []
        for correction in review.corrections:
            if correction.confidence < self._min_correction:
                continue
            field = _FIELD_ALIASES.get(correction.field, correction.field)
            if field not in _CORRECTABLE_FIELDS:
                continue
            try:
                updates[field] = _coerce(field, correction.corrected_value)
            except ValueError as exc:
                self._logger.warning("review_correction_malformed", field=field, error=str(exc))
                continue
            if field not in applied:
                applied.append(field)

        if not updates:
            return entity, []
        if "event_date" in updates:
            # Per-date shows were parsed from the value being replaced.
            updates["shows"] = []
        self._logger.info("review_corrections_applied", fields=applied)
        return entity.model_copy(update=updates), applied


def _require_verdict(extraction: VisionExtraction) -> dict[str, Any]:
    parsed = extraction.structured_data or extract_json_object(extraction.extracted_text)
    if not parsed or "passed" not in parsed:
        raise ReviewError("Failed to parse review response")
    return parsed


def _coerce(field: str, value: Any) -> Any:
    """Convert a corrected value to the field's type; only ``None`` clears.

    Raises:
        ValueError: If a non-null value cannot be read as the field's type.
    """
    if value is None:
        return [] if field == "supporting_acts" else None
    if field == "supporting_acts":
        if not isinstance(value, (str, list, tuple)):
            raise ValueError(f"expected a list of names, got {type(value).__name__}")
        return split_list_value(value)
    text = clean_string(value)
    if text is None:
        raise ValueError(f"unusable value {value!r}")
    if field == "year":
        if not text.isdigit():
            raise ValueError(f"not a year: {text!r}")
        return int(text)
    return text



def _elapsed(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
