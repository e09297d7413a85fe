"""Cross-model consensus over a single combined extraction prompt.

Every configured provider is asked the same question about the same
image.  Outputs are aligned field by field and one value is resolved per
field:

    all responders agree (after case/whitespace normalisation)
        -> that value, agreement 1.0, confidence 1.0
    one value held by more than ``min_agreement_ratio`` of responders
        -> the plurality value, confidence = agreeing / responding
    anything else
        -> the answer of the first provider (in configured order) that
           gave one, flagged ``low_confidence``

Array fields are unioned case-insensitively; their agreement is the mean
share of responders that listed each member.  Providers that fail or
time out are excluded from every denominator, and the whole run never
raises: with no survivors the result is a structured failure.
"""

from __future__ import annotations

import time
from collections import Counter
from typing import Any

import structlog

from src.interfaces.vision_provider import IVisionExtractionProvider, VisionExtraction
from src.models.consensus import (
    ConsensusOptions,
    ConsensusResult,
    FieldConsensus,
    MergeStrategy,
    ProviderOutput,
)
from src.pipeline.phases.prompts import CONSENSUS_EXTRACTION_PROMPT
from src.pipeline.phases.type_phase import validate_poster_type
from src.utils.concurrency import gather_settled
from src.utils.errors import ConsensusError
from src.utils.json_parsing import extract_json_object
from src.utils.logging import get_logger
from src.utils.text_normalizer import clean_string, normalize_value, split_list_value

CONSENSUS_FIELDS: tuple[str, ...] = (
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
    "door_time",
    "show_time",
    "ticket_price",
    "age_restriction",
    "tour_name",
    "record_label",
    "promoter",
)

ARRAY_FIELDS: frozenset[str] = frozenset({"supporting_acts"})

# Alternate keys some models use for the same field.
_FIELD_ALIASES: dict[str, str] = {"venue": "venue_name", "date": "event_date"}

_CORE_FIELDS = ("poster_type", "title", "headliner")
_SUPPORT_FIELDS = ("venue_name", "city", "event_date", "year")

ALL_MODELS_FAILED = "All models failed to extract data"


def parse_consensus_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Keep the recognised, non-empty fields of one provider's answer."""
    for alias, target in _FIELD_ALIASES.items():
        if alias in data and target not in data:
            data = {**data, target: data[alias]}

    fields: dict[str, Any] = {}
    for name in CONSENSUS_FIELDS:
        raw = data.get(name)
        if name in ARRAY_FIELDS:
            value: Any = split_list_value(raw) or None
        elif name == "poster_type":
            value = validate_poster_type(raw).value if clean_string(raw) else None
        elif name == "year":
            text = clean_string(raw)
            value = int(text) if text and text.isdigit() else None
        else:
            value = clean_string(raw)
        if value is not None:
            fields[name] = value
    return fields


def completeness(fields: dict[str, Any]) -> float:
    """Share of core (weight 2) and supporting (weight 1) fields present."""
    score = sum(2 for f in _CORE_FIELDS if fields.get(f)) + sum(1 for f in _SUPPORT_FIELDS if fields.get(f))
    return score / (2 * len(_CORE_FIELDS) + len(_SUPPORT_FIELDS))


def resolve_scalar(
    field: str,
    answers: list[tuple[str, Any]],
    min_agreement_ratio: float,
) -> FieldConsensus:
    """Resolve one scalar field from ``(model_key, value)`` answers in provider order."""
    responding = [key for key, _ in answers]
    counts = Counter(normalize_value(value) for _, value in answers)
    ranked = counts.most_common()
    top_key, top_count = ranked[0]
    ratio = top_count / len(answers)

    if len(counts) == 1:
        return FieldConsensus(
            field=field,
            value=answers[0][1],
            agreement=1.0,
            confidence=1.0,
            strategy=MergeStrategy.UNANIMOUS,
            responding=responding,
            agreeing=responding,
        )

    unique_top = len(ranked) == 1 or ranked[1][1] < top_count
    if unique_top and ratio > min_agreement_ratio:
        agreeing = [key for key, value in answers if normalize_value(value) == top_key]
        winner = next(value for _, value in answers if normalize_value(value) == top_key)
        return FieldConsensus(
            field=field,
            value=winner,
            agreement=ratio,
            confidence=ratio,
            strategy=MergeStrategy.PLURALITY,
            responding=responding,
            agreeing=agreeing,
        )

    _, first_value = answers[0]
    first_norm = normalize_value(first_value)
    agreeing = [key for key, value in answers if normalize_value(value) == first_norm]
    share = len(agreeing) / len(answers)
    return FieldConsensus(
        field=field,
        value=first_value,
        agreement=share,
        confidence=share,
        strategy=MergeStrategy.FIRST_PROVIDER,
        responding=responding,
        agreeing=agreeing,
        low_confidence=True,
    )


def resolve_array(field: str, answers: list[tuple[str, list[str]]]) -> FieldConsensus:
    """Union list answers; agreement is the mean membership ratio."""
    responding = [key for key, _ in answers]
    members: dict[str, str] = {}
    holders: dict[str, set[str]] = {}
    for key, values in answers:
        for value in values:
            norm = normalize_value(value)
            members.setdefault(norm, value)
            holders.setdefault(norm, set()).add(key)

    ratios = [len(holders[norm]) / len(answers) for norm in members]
    agreement = sum(ratios) / len(ratios) if ratios else 0.0
    everyone = [key for key in responding if all(key in holders[norm] for norm in members)]
    return FieldConsensus(
        field=field,
        value=list(members.values()),
        agreement=agreement,
        confidence=agreement,
        strategy=MergeStrategy.UNION,
        responding=responding,
        agreeing=everyone,
        low_confidence=agreement <= 0.5,
    )


class ConsensusProcessor:
    """Run one extraction across several providers and merge the answers.

    Parameters
    ----------
    prompt:
        The combined extraction prompt sent to every provider.
    """

    def __init__(self, prompt: str = CONSENSUS_EXTRACTION_PROMPT) -> None:
        self._prompt = prompt
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def process_with_consensus(
        self,
        image_path: str,
        providers: dict[str, IVisionExtractionProvider],
        options: ConsensusOptions,
    ) -> ConsensusResult:
        """Ask every provider in *providers* (in order) and merge the answers.

        Never raises.  ``success`` is False only when no provider produced
        usable output.
        """
        started = time.monotonic()
        timeout_s = options.model_timeout_ms / 1000 if options.model_timeout_ms else None
        self._logger.info(
            "consensus_start",
            models=list(providers),
            parallel=options.parallel,
            timeout_s=timeout_s,
        )

        outcomes = await gather_settled(
            [(key, self._extract(key, provider, image_path)) for key, provider in providers.items()],
            timeout_s=timeout_s,
            parallel=options.parallel,
        )

        outputs: list[ProviderOutput] = []
        errors: list[str] = []
        for outcome in outcomes:
            if outcome.ok and outcome.value is not None:
                outputs.append(outcome.value.model_copy(update={"processing_time_ms": outcome.elapsed_ms}))
                continue
            message = str(outcome.error) if outcome.error is not None else "no output"
            self._logger.warning("consensus_provider_failed", model=outcome.label, error=message)
            errors.append(f"{outcome.label}: {message}")
            outputs.append(
                ProviderOutput(model_key=outcome.label, error=message, processing_time_ms=outcome.elapsed_ms)
            )

        succeeded = [o for o in outputs if o.succeeded]
        failed = [o.model_key for o in outputs if not o.succeeded]
        elapsed = int((time.monotonic() - started) * 1000)

        if not succeeded:
            self._logger.error("consensus_all_failed", models=list(providers))
            return ConsensusResult(
                success=False,
                models_used=[],
                models_failed=failed,
                agreement_score=0.0,
                provider_outputs=outputs,
                errors=[ALL_MODELS_FAILED],
                processing_time_ms=elapsed,
            )

        if len(succeeded) < 2:
            only = succeeded[0]
            self._logger.info("consensus_single_provider", model=only.model_key)
            return ConsensusResult(
                success=True,
                models_used=[only.model_key],
                models_failed=failed,
                agreement_score=1.0,
                overall_confidence=completeness(only.fields),
                consensus_computed=False,
                merged_fields=dict(only.fields),
                provider_outputs=outputs,
                errors=errors,
                processing_time_ms=elapsed,
            )

        field_consensus = self.merge(succeeded, options.min_agreement_ratio)
        agreement = (
            sum(fc.agreement for fc in field_consensus) / len(field_consensus) if field_consensus else 1.0
        )
        mean_confidence = (
            sum(fc.confidence for fc in field_consensus) / len(field_consensus) if field_consensus else 0.0
        )
        result = ConsensusResult(
            success=True,
            models_used=[o.model_key for o in succeeded],
            models_failed=failed,
            agreement_score=agreement,
            overall_confidence=min(1.0, mean_confidence * 0.6 + agreement * 0.4),
            consensus_computed=True,
            merged_fields={fc.field: fc.value for fc in field_consensus},
            field_consensus=field_consensus,
            provider_outputs=outputs,
            errors=errors,
            processing_time_ms=elapsed,
        )
        self._logger.info(
            "consensus_complete",
            models_used=result.models_used,
            models_failed=failed,
            agreement=round(agreement, 4),
            low_confidence_fields=[fc.field for fc in field_consensus if fc.low_confidence],
        )
        return result

    @staticmethod
    def merge(outputs: list[ProviderOutput], min_agreement_ratio: float) -> list[FieldConsensus]:
        """Resolve every field at least one of *outputs* answered."""
        resolved: list[FieldConsensus] = []
        for field in CONSENSUS_FIELDS:
            answers = [(o.model_key, o.fields[field]) for o in outputs if o.fields.get(field)]
            if not answers:
                continue
            if field in ARRAY_FIELDS:
                resolved.append(resolve_array(field, answers))
            else:
                resolved.append(resolve_scalar(field, answers, min_agreement_ratio))
        return resolved

    async def _extract(
        self,
        model_key: str,
        provider: IVisionExtractionProvider,
        image_path: str,
    ) -> ProviderOutput:
        extraction: VisionExtraction = await provider.extract_from_image(image_path, self._prompt)
        data = extraction.structured_data or extract_json_object(extraction.extracted_text)
        if data is None:
            raise ConsensusError(message="No JSON object in response", provider_name=model_key)
        return ProviderOutput(
            model_key=model_key,
            model_name=provider.get_model_info().name,
            fields=parse_consensus_fields(data),
            raw_text=extraction.extracted_text,
        )
