"""OpenAI-compatible vision provider adapter.

Wraps the ``openai`` async client to implement
:class:`IVisionExtractionProvider`.  When ``openai_base_url`` is set the
client talks to that endpoint instead, which covers the many hosted
model services that expose an OpenAI-compatible chat API.
"""

from __future__ import annotations

import asyncio
import base64
from pathlib import Path

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.vision_provider import IVisionExtractionProvider, ModelInfo, VisionExtraction
from src.utils.errors import ProviderTimeoutError, VisionExtractionError
from src.utils.json_parsing import extract_json_object

logger = structlog.get_logger(logger_name=__name__)


def _detect_media_type(image_bytes: bytes) -> str:
    """Detect the MIME type of an image from its magic bytes.

    The data URI sent to the vision endpoint must name the right type;
    file extensions on scanned posters are not reliable.
    """
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return "image/jpeg"


class OpenAIVisionProvider(IVisionExtractionProvider):
    """Vision provider backed by an OpenAI-compatible chat completions API."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {"api_key": self._api_key}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_vision_model or "gpt-4o"
        self._max_tokens = settings.vision_max_tokens
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    # ------------------------------------------------------------------
    # IVisionExtractionProvider implementation
    # ------------------------------------------------------------------

    async def extract_from_image(self, image_path: str, prompt: str) -> VisionExtraction:
        """Send the image at *image_path* plus *prompt* as a multi-part chat message."""
        try:
            image_bytes = await asyncio.to_thread(Path(image_path).read_bytes)
        except OSError as exc:
            raise VisionExtractionError(
                message=f"Cannot read image {image_path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        b64 = base64.b64encode(image_bytes).decode("utf-8")
        media_type = _detect_media_type(image_bytes)
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:{media_type};base64,{b64}"},
                            },
                        ],
                    }
                ],
                max_tokens=self._max_tokens,
            )
        except openai.APITimeoutError as exc:
            raise ProviderTimeoutError(
                message=f"{self._provider_label} vision request timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise VisionExtractionError(
                message=f"{self._provider_label} vision API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content
        if content is None:
            raise VisionExtractionError(
                message=f"{self._provider_label} vision returned empty response",
                provider_name=self.get_provider_name(),
            )
        usage: dict[str, int] = {}
        if response.usage:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }
        logger.info(
            "openai_vision_extract",
            model=self._model,
            provider=self._provider_label,
            **usage,
        )
        return VisionExtraction(
            extracted_text=content,
            structured_data=extract_json_object(content),
            usage=usage,
        )

    async def health_check(self) -> bool:
        """List models to confirm the key is accepted without paying for inference."""
        if not self._api_key:
            return False
        try:
            await self._client.models.list()
            return True
        except openai.APIError:
            return False

    def get_model_info(self) -> ModelInfo:
        return ModelInfo(name=self._model, provider=self.get_provider_name())

    def get_provider_name(self) -> str:
        return self._provider_label
