"""Shared machinery for the four extraction phases.

Each phase asks one vision provider one question about the poster and
turns the answer into a frozen phase result.  The base class owns the
parts every phase has in common: timing, the provider call, tolerant
JSON parsing, and the error policy.

Error policy:
    Type is the only phase whose failure ends the run, because every
    later prompt depends on the poster type.  The other phases convert
    any exception into a ``needs_review`` result with confidence 0 and
    the run carries on.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, TypeVar

import structlog

from src.interfaces.vision_provider import IVisionExtractionProvider
from src.models.phases import PhaseStatus
from src.models.pipeline import PipelinePhase, ProcessingContext
from src.utils.errors import PhaseError
from src.utils.json_parsing import extract_json_object
from src.utils.logging import get_logger

_R = TypeVar("_R")


class BasePhase(ABC, Generic[_R]):
    """Template for an extraction phase.

    Subclasses implement :meth:`_run` and :meth:`_failure_result`; callers
    only ever use :meth:`execute`.

    Parameters
    ----------
    confidence_threshold:
        Results scoring below this are marked ``needs_review``.
    """

    phase: ClassVar[PipelinePhase]
    fatal_on_error: ClassVar[bool] = False

    def __init__(self, confidence_threshold: float) -> None:
        self._threshold = confidence_threshold
        self._logger: structlog.BoundLogger = get_logger(self.__class__.__module__)

    @property
    def confidence_threshold(self) -> float:
        return self._threshold

    async def execute(
        self,
        context: ProcessingContext,
        provider: IVisionExtractionProvider,
    ) -> _R:
        """Run the phase for the poster in *context* using *provider*.

        Never raises; failures are reported in the returned result.
        """
        started = time.monotonic()
        self._logger.info(f"phase_{self.phase.value}_start", poster_type=context.poster_type.value)
        try:
            result = await self._run(context, provider, started)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                f"phase_{self.phase.value}_error",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            status = PhaseStatus.FAILED if self.fatal_on_error else PhaseStatus.NEEDS_REVIEW
            return self._failure_result(status, str(exc), elapsed_ms(started))

        self._logger.info(
            f"phase_{self.phase.value}_complete",
            status=getattr(result, "status", None),
            confidence=round(getattr(result, "confidence", 0.0), 4),
        )
        return result

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _run(
        self,
        context: ProcessingContext,
        provider: IVisionExtractionProvider,
        started: float,
    ) -> _R:
        """Do the phase's work; may raise."""

    @abstractmethod
    def _failure_result(self, status: PhaseStatus, error: str, elapsed_ms: int) -> _R:
        """Build the result reported when :meth:`_run` raised."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _ask(
        self,
        provider: IVisionExtractionProvider,
        context: ProcessingContext,
        prompt: str,
    ) -> tuple[str, dict[str, Any]]:
        """Send *prompt* with the poster image; return the raw text and parsed object.

        A response without a JSON object parses to ``{}`` so every field
        falls back to its default.
        """
        extraction = await provider.extract_from_image(context.image_path, prompt)
        parsed = extraction.structured_data or extract_json_object(extraction.extracted_text)
        if parsed is None:
            self._logger.warning(
                f"phase_{self.phase.value}_unparseable",
                provider=provider.get_provider_name(),
                preview=extraction.extracted_text[:120],
            )
            parsed = {}
        return extraction.extracted_text, parsed

    def _status_for(self, confidence: float, force_review: bool = False) -> PhaseStatus:
        if force_review or confidence < self._threshold:
            return PhaseStatus.NEEDS_REVIEW
        return PhaseStatus.COMPLETED


def elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def require_object(parsed: dict[str, Any], phase: PipelinePhase, provider_name: str) -> None:
    """Raise :class:`PhaseError` when the model returned no JSON object at all."""
    if not parsed:
        raise PhaseError(
            message=f"No JSON object in {phase.value} response",
            provider_name=provider_name,
        )
