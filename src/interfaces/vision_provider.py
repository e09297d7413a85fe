"""Abstract base class for vision extraction providers.

Defines the contract every vision-model backend (Claude, GPT-4o, a local
model server) fulfils for the pipeline.  Each phase, the review step, and
every consensus member talks to a model only through this interface, so
adding a backend means writing one adapter in ``src/providers/vision/``.

Transport concerns (HTTP retries, rate limits, backoff) live inside the
adapter.  The pipeline applies only a per-call timeout on top.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class VisionExtraction:
    """What a vision model returned for one image + prompt.

    Attributes
    ----------
    extracted_text:
        The model's raw text response (usually JSON, sometimes wrapped).
    structured_data:
        Fields the adapter already parsed out of the response, if any.
    confidence:
        Model- or adapter-reported confidence, when available.
    usage:
        Token accounting as reported by the backend.
    """

    extracted_text: str
    structured_data: dict[str, Any] | None = None
    confidence: float | None = None
    usage: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ModelInfo:
    name: str
    provider: str


# Concrete implementations: AnthropicVisionProvider, OpenAIVisionProvider
# Located in: src/providers/vision/
class IVisionExtractionProvider(ABC):
    """Contract for vision models that read poster images."""

    @abstractmethod
    async def extract_from_image(self, image_path: str, prompt: str) -> VisionExtraction:
        """Run *prompt* against the image at *image_path*.

        Parameters
        ----------
        image_path:
            Local filesystem path to the poster image.
        prompt:
            Instructions for the model; phases ask for a JSON object.

        Returns
        -------
        VisionExtraction
            Raw text plus any best-effort structured fields.

        Raises
        ------
        src.utils.errors.VisionExtractionError
            If the backend call fails or returns nothing.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` if the backend is configured and answering."""

    @abstractmethod
    def get_model_info(self) -> ModelInfo:
        """Return the model name and provider family, e.g. ``("gpt-4o", "openai")``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Short label used in logs and error messages, e.g. ``"anthropic"``."""
