"""Entry point of the poster pipeline: one image in, one graph-linked record out.

A run walks a fixed sequence over a single :class:`ProcessingContext`:

    (consensus) -> type -> artist -> venue -> event
        -> assembly -> enrichment -> review -> re-assembly

Type is the only step whose failure ends the run.  Every other step
reports its problems in its own result and the run carries on, so the
returned :class:`IterativeProcessingResult` always holds whatever was
extracted.

When enrichment or review may still change the poster, the first
assembly builds the ledger without writing; the graph is written once,
from the corrected entity, by the final assembly.  Runs for the same
image (same content hash) are serialised so two of them never interleave
the check-then-create steps of assembly.
"""

from __future__ import annotations

import asyncio
import hashlib
import mimetypes
import secrets
import time
from pathlib import Path

import structlog

from src.interfaces.vision_provider import IVisionExtractionProvider
from src.models.consensus import ConsensusOptions, ConsensusResult
from src.models.phases import (
    ArtistPhaseResult,
    AssemblyPhaseResult,
    EnrichmentPhaseResult,
    EventPhaseResult,
    PhaseStatus,
    ReviewPhaseResult,
    TypePhaseResult,
    VenuePhaseResult,
)
from src.models.pipeline import (
    BatchSummary,
    IterativeBatchResult,
    IterativeProcessingResult,
    PhaseRecord,
    PipelinePhase,
    ProcessingContext,
    ProcessingOptions,
)
from src.models.poster import PosterEntity, PosterImage, PosterType
from src.pipeline.context_store import PhaseContextStore
from src.pipeline.phases import ArtistPhase, EnrichmentPhase, EventPhase, TypePhase, VenuePhase
from src.services.assembly import PosterAssembler, build_poster_entity
from src.services.consensus_processor import ConsensusProcessor
from src.services.poster_type_seeder import PosterTypeSeeder
from src.services.review_service import ReviewService
from src.utils.concurrency import KeyedLock
from src.utils.confidence import merge_consensus_confidence
from src.utils.errors import PipelineError
from src.utils.logging import get_logger

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    digits = ""
    while value:
        value, rem = divmod(value, 36)
        digits = _BASE36[rem] + digits
    return digits or "0"


def new_job_id() -> str:
    """``batch_<base36 epoch ms>_<8 hex chars>``."""
    return f"batch_{_base36(int(time.time() * 1000))}_{secrets.token_hex(4)}"


def load_poster_image(image_path: str) -> PosterImage:
    """Read *image_path* and hash its bytes.

    Raises
    ------
    FileNotFoundError
        If the path does not name a file.
    """
    path = Path(image_path)
    if not path.is_file():
        raise FileNotFoundError(image_path)
    data = path.read_bytes()
    content_type, _ = mimetypes.guess_type(path.name)
    image = PosterImage(
        path=str(path),
        image_hash=hashlib.sha256(data).hexdigest(),
        content_type=content_type or "image/jpeg",
        file_size=len(data),
    )
    return image.with_image_data(data)


class IterativeProcessor:
    """Runs posters through the phase sequence.

    All collaborators are injected; see :func:`src.main.build_processor`
    for the production wiring.

    Parameters
    ----------
    providers:
        Vision providers keyed by model key (``"anthropic"``, ``"openai"``).
    default_model_key:
        Provider used when the options name none.
    type_phase, artist_phase, venue_phase, event_phase:
        The four extraction phases.
    assembler:
        Builds and persists the graph.
    review_service:
        Self-review; ``None`` disables review.
    enrichment_phase:
        Reference-catalog enrichment; ``None`` disables it.
    consensus_processor:
        Cross-model voting; ``None`` disables consensus runs.
    seeder:
        Ensures PosterType nodes exist before assembly links to them.
    context_store:
        Registry of in-flight runs.
    default_consensus:
        Consensus options applied when a call passes none.
    batch_delay_ms:
        Pause between images in :meth:`process_batch`.
    """

    def __init__(
        self,
        providers: dict[str, IVisionExtractionProvider],
        default_model_key: str,
        type_phase: TypePhase,
        artist_phase: ArtistPhase,
        venue_phase: VenuePhase,
        event_phase: EventPhase,
        assembler: PosterAssembler,
        review_service: ReviewService | None = None,
        enrichment_phase: EnrichmentPhase | None = None,
        consensus_processor: ConsensusProcessor | None = None,
        seeder: PosterTypeSeeder | None = None,
        context_store: PhaseContextStore | None = None,
        default_consensus: ConsensusOptions | None = None,
        batch_delay_ms: int = 100,
    ) -> None:
        self._providers = providers
        self._default_model_key = default_model_key
        self._type_phase = type_phase
        self._artist_phase = artist_phase
        self._venue_phase = venue_phase
        self._event_phase = event_phase
        self._assembler = assembler
        self._review = review_service
        self._enrichment = enrichment_phase
        self._consensus = consensus_processor
        self._seeder = seeder
        self._contexts = context_store or PhaseContextStore()
        self._default_consensus = default_consensus
        self._batch_delay_ms = batch_delay_ms
        self._poster_locks = KeyedLock()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def context_store(self) -> PhaseContextStore:
        return self._contexts

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_image(
        self,
        image_path: str,
        options: ProcessingOptions | None = None,
    ) -> IterativeProcessingResult:
        """Process one poster image.

        Never raises: a missing file, a failed Type phase and unexpected
        errors all come back as ``success=False`` with ``error`` set and
        whatever phases had completed.
        """
        started = time.monotonic()
        options = options or ProcessingOptions()

        try:
            image = load_poster_image(image_path)
        except OSError:
            self._logger.warning("process_image_not_found", image_path=image_path)
            return IterativeProcessingResult(
                success=False,
                poster_id="",
                image_path=image_path,
                processing_time_ms=_elapsed(started),
                error=f"File not found: {image_path}",
            )

        async with self._poster_locks.hold(image.poster_id):
            async with self._contexts.session(image, options) as context:
                try:
                    return await self._run(context, started)
                except Exception as exc:  # noqa: BLE001
                    self._logger.error(
                        "process_image_failed",
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    context.record_error(PipelinePhase.INPUT, str(exc), recoverable=False)
                    return IterativeProcessingResult(
                        success=False,
                        poster_id=context.poster_id,
                        image_path=context.image_path,
                        phases=_phase_record(context),
                        processing_time_ms=_elapsed(started),
                        errors=list(context.errors),
                        error=str(exc),
                    )

    async def process_batch(
        self,
        image_paths: list[str],
        options: ProcessingOptions | None = None,
    ) -> IterativeBatchResult:
        """Process *image_paths* one after another and summarise the outcomes."""
        started = time.monotonic()
        job_id = new_job_id()
        self._logger.info("batch_start", job_id=job_id, total=len(image_paths))

        results: list[IterativeProcessingResult] = []
        for index, image_path in enumerate(image_paths):
            results.append(await self.process_image(image_path, options))
            if index < len(image_paths) - 1 and self._batch_delay_ms > 0:
                await asyncio.sleep(self._batch_delay_ms / 1000)

        summary = summarize_batch(results)
        self._logger.info(
            "batch_complete",
            job_id=job_id,
            successful=summary.successful,
            failed=summary.failed,
            needs_review=summary.needs_review,
        )
        return IterativeBatchResult(
            job_id=job_id,
            results=results,
            summary=summary,
            processing_time_ms=_elapsed(started),
        )

    # ------------------------------------------------------------------
    # One run
    # ------------------------------------------------------------------

    async def _run(self, context: ProcessingContext, started: float) -> IterativeProcessingResult:
        options = context.options
        self._logger.info("process_image_start", image_path=context.image_path)

        consensus = await self._maybe_consensus(context)
        model_key = self._phase_model_key(options, consensus)
        provider = self._provider(model_key)

        await self._ensure_poster_types(context)

        type_result: TypePhaseResult = await self._type_phase.execute(context, provider)
        context.store_phase_result(type_result)
        if type_result.status == PhaseStatus.FAILED:
            message = f"Type classification failed: {type_result.error or 'unknown error'}"
            context.record_error(PipelinePhase.TYPE, message, recoverable=False)
            self._logger.warning("process_image_type_failed", error=type_result.error)
            return IterativeProcessingResult(
                success=False,
                poster_id=context.poster_id,
                image_path=context.image_path,
                phases=_phase_record(context, consensus),
                processing_time_ms=_elapsed(started),
                models_used=[model_key],
                errors=list(context.errors),
                error=message,
            )

        artist_result: ArtistPhaseResult = await self._artist_phase.execute(context, provider)
        context.store_phase_result(artist_result)
        venue_result: VenuePhaseResult = await self._venue_phase.execute(context, provider)
        context.store_phase_result(venue_result)
        event_result: EventPhaseResult = await self._event_phase.execute(context, provider)
        context.store_phase_result(event_result)
        for result in (artist_result, venue_result, event_result):
            if result.error:
                context.record_error(PipelinePhase(result.phase), result.error)

        if consensus is not None and consensus.success:
            self._fill_from_consensus(context, consensus)

        overall = context.overall_confidence()
        agreement: float | None = None
        if consensus is not None and consensus.success and consensus.consensus_computed:
            agreement = consensus.agreement_score
            overall = merge_consensus_confidence(overall, consensus.overall_confidence, agreement)

        entity = build_poster_entity(context, provider.get_model_info().name)
        statuses = {
            name: result.status
            for name in ("type", "artist", "venue", "event")
            if (result := context.get_phase_result(name)) is not None
        }

        run_enrichment = self._enrichment is not None and not options.skip_enrichment
        run_review = self._review is not None and not options.skip_review
        draft_only = options.skip_storage or run_enrichment or run_review

        assembly = await self._assemble(
            context, entity, statuses, artist_result, venue_result, draft_only, overall
        )
        entity = assembly.entity

        enrichment: EnrichmentPhaseResult | None = None
        if run_enrichment and self._enrichment is not None:
            enrichment = await self._enrichment.execute(entity, artist_result)
            context.store_phase_result(enrichment)
            if enrichment.enriched_entity is not None:
                entity = enrichment.enriched_entity
            if enrichment.enhanced_artist_result is not None:
                artist_result = enrichment.enhanced_artist_result
            for message in enrichment.errors:
                context.record_error(PipelinePhase.ENRICHMENT, message)

        review: ReviewPhaseResult | None = None
        if run_review and self._review is not None:
            review = await self._review.review_extracted_data(context.image_path, entity, provider)
            entity, applied = self._review.apply_corrections(entity, review)
            review = review.model_copy(update={"applied_corrections": applied})
            context.store_phase_result(review)
            if review.error:
                context.record_error(PipelinePhase.REVIEW, review.error)

        entity = _finalise_metadata(entity, started, overall, agreement)
        if run_enrichment or run_review:
            assembly = await self._assemble(
                context, entity, statuses, artist_result, venue_result, options.skip_storage, overall
            )
        else:
            assembly = assembly.model_copy(update={"entity": entity})
        context.store_phase_result(assembly)

        review_fields = list(assembly.fields_needing_review)
        extra_flags: list[str] = []
        if review is not None and not review.passed:
            extra_flags.extend(review.fields_flagged)
        if consensus is not None and consensus.consensus_computed:
            extra_flags.extend(fc.field for fc in consensus.field_consensus if fc.low_confidence)
        for name in extra_flags:
            if name not in review_fields:
                review_fields.append(name)

        if consensus is not None and consensus.success:
            models_used = list(consensus.models_used)
        else:
            models_used = [model_key]

        result = IterativeProcessingResult(
            success=True,
            poster_id=context.poster_id,
            image_path=context.image_path,
            entity=entity,
            phases=_phase_record(context, consensus),
            overall_confidence=overall,
            fields_needing_review=review_fields,
            processing_time_ms=_elapsed(started),
            models_used=models_used,
            agreement_score=agreement,
            errors=list(context.errors),
        )
        self._logger.info(
            "process_image_complete",
            poster_type=entity.poster_type.value,
            confidence=round(overall, 4),
            needs_review=review_fields,
            elapsed_ms=result.processing_time_ms,
        )
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _maybe_consensus(self, context: ProcessingContext) -> ConsensusResult | None:
        settings = context.options.consensus or self._default_consensus
        if self._consensus is None or settings is None or not settings.enabled or len(settings.models) < 2:
            return None

        providers: dict[str, IVisionExtractionProvider] = {}
        for key in settings.models:
            if key in self._providers:
                providers[key] = self._providers[key]
            else:
                self._logger.warning("consensus_model_unavailable", model=key)

        result = await self._consensus.process_with_consensus(context.image_path, providers, settings)
        if not result.success:
            context.record_error(PipelinePhase.CONSENSUS, "; ".join(result.errors) or "consensus failed")
            self._logger.warning("consensus_fallback_single_provider", errors=result.errors)
        return result

    def _phase_model_key(self, options: ProcessingOptions, consensus: ConsensusResult | None) -> str:
        if consensus is not None and consensus.success and consensus.models_used:
            return consensus.models_used[0]
        return options.model_key or self._default_model_key

    def _provider(self, model_key: str) -> IVisionExtractionProvider:
        provider = self._providers.get(model_key)
        if provider is None:
            raise PipelineError(
                message=f"Vision model '{model_key}' is not configured "
                f"(available: {', '.join(sorted(self._providers)) or 'none'})"
            )
        return provider

    async def _ensure_poster_types(self, context: ProcessingContext) -> None:
        if self._seeder is None or context.options.skip_storage:
            return
        try:
            await self._seeder.ensure_seeded()
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("poster_type_seed_failed", error=str(exc))
            context.record_error(PipelinePhase.ASSEMBLY, f"PosterType seeding failed: {exc}")

    @staticmethod
    def _fill_from_consensus(context: ProcessingContext, consensus: ConsensusResult) -> None:
        """Use the merged consensus answer for fields the phases left empty."""
        confidences = {fc.field: fc.confidence for fc in consensus.field_consensus}
        for name, value in consensus.merged_fields.items():
            if name == "poster_type" or context.get_field(name) is not None:
                continue
            context.set_field(
                name,
                value,
                confidences.get(name, consensus.overall_confidence),
                PipelinePhase.CONSENSUS,
            )

    async def _assemble(
        self,
        context: ProcessingContext,
        entity: PosterEntity,
        statuses: dict[str, PhaseStatus],
        artist_result: ArtistPhaseResult,
        venue_result: VenuePhaseResult,
        skip_storage: bool,
        confidence: float,
    ) -> AssemblyPhaseResult:
        try:
            result = await self._assembler.assemble(
                entity,
                statuses=statuses,
                artist_result=artist_result,
                venue_result=venue_result,
                skip_storage=skip_storage,
                confidence=confidence,
            )
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("assembly_failed", error=str(exc))
            context.record_error(PipelinePhase.ASSEMBLY, str(exc))
            return AssemblyPhaseResult(
                status=PhaseStatus.FAILED,
                confidence=confidence,
                entity=entity,
                error=str(exc),
            )
        for warning in result.warnings:
            context.record_error(PipelinePhase.ASSEMBLY, warning)
        return result


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def summarize_batch(results: list[IterativeProcessingResult]) -> BatchSummary:
    by_type = {poster_type: 0 for poster_type in PosterType}
    for result in results:
        type_result = result.phases.type
        if type_result is not None and type_result.primary_type is not None:
            by_type[type_result.primary_type.type_key] += 1

    successful = sum(1 for r in results if r.success)
    return BatchSummary(
        total=len(results),
        successful=successful,
        failed=len(results) - successful,
        needs_review=sum(1 for r in results if r.fields_needing_review),
        average_confidence=(
            sum(r.overall_confidence for r in results) / len(results) if results else 0.0
        ),
        by_type=by_type,
    )


def _phase_record(context: ProcessingContext, consensus: ConsensusResult | None = None) -> PhaseRecord:
    get = context.get_phase_result
    return PhaseRecord(
        type=get("type"),
        artist=get("artist"),
        venue=get("venue"),
        event=get("event"),
        assembly=get("assembly"),
        enrichment=get("enrichment"),
        review=get("review"),
        consensus=consensus,
    )


def _finalise_metadata(
    entity: PosterEntity, started: float, confidence: float, agreement: float | None
) -> PosterEntity:
    if entity.metadata is None:
        return entity
    metadata = entity.metadata.model_copy(
        update={
            "processing_time_ms": _elapsed(started),
            "extraction_confidence": confidence,
            "consensus_agreement": agreement,
        }
    )
    return entity.model_copy(update={"metadata": metadata})


def _elapsed(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
