"""Anthropic vision provider adapter.

Wraps the ``anthropic`` async client to implement
:class:`IVisionExtractionProvider`.

Differences from the OpenAI adapter:
    - Vision uses an "image" content block with a base64 source, not a data URI
    - The image block goes before the text prompt
    - Response content is a list of blocks; only text blocks are kept
"""

from __future__ import annotations

import asyncio
import base64
from pathlib import Path

import anthropic
import structlog

from src.config.settings import Settings
from src.interfaces.vision_provider import IVisionExtractionProvider, ModelInfo, VisionExtraction
from src.utils.errors import ProviderTimeoutError, VisionExtractionError
from src.utils.json_parsing import extract_json_object

logger = structlog.get_logger(logger_name=__name__)


def _detect_media_type(image_bytes: bytes) -> str:
    """Detect the MIME type of an image from its magic bytes.

    Same logic as openai_provider.py.
    """
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return "image/jpeg"


class AnthropicVisionProvider(IVisionExtractionProvider):
    """Vision provider backed by the Anthropic Claude API.

    Claude Sonnet reads stylised poster typography well and is the default
    model key when no ``model_key`` option is given.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        self._model = settings.anthropic_vision_model
        self._max_tokens = settings.vision_max_tokens

    # ------------------------------------------------------------------
    # IVisionExtractionProvider implementation
    # ------------------------------------------------------------------

    async def extract_from_image(self, image_path: str, prompt: str) -> VisionExtraction:
        """Send the image at *image_path* plus *prompt* to Claude."""
        try:
            image_bytes = await asyncio.to_thread(Path(image_path).read_bytes)
        except OSError as exc:
            raise VisionExtractionError(
                message=f"Cannot read image {image_path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        b64 = base64.b64encode(image_bytes).decode("utf-8")
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": _detect_media_type(image_bytes),
                                    "data": b64,
                                },
                            },
                            {"type": "text", "text": prompt},
                        ],
                    }
                ],
            )
        except anthropic.APITimeoutError as exc:
            raise ProviderTimeoutError(
                message=f"Anthropic vision request timed out: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except anthropic.APIError as exc:
            raise VisionExtractionError(
                message=f"Anthropic vision API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise VisionExtractionError(
                message="Anthropic vision returned no text content",
                provider_name=self.get_provider_name(),
            )
        text = "\n".join(text_blocks)
        usage = {
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
        }
        logger.info("anthropic_vision_extract", model=self._model, **usage)
        return VisionExtraction(
            extracted_text=text,
            structured_data=extract_json_object(text),
            usage=usage,
        )

    async def health_check(self) -> bool:
        """Send a minimal text request to verify the key and model."""
        if not self._api_key:
            return False
        try:
            await self._client.messages.create(
                model=self._model,
                max_tokens=10,
                messages=[{"role": "user", "content": "hi"}],
            )
            return True
        except anthropic.APIError:
            return False

    def get_model_info(self) -> ModelInfo:
        return ModelInfo(name=self._model, provider=self.get_provider_name())

    def get_provider_name(self) -> str:
        return "anthropic"
