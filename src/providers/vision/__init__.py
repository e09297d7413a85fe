"""Vision extraction provider adapters.

Two concrete implementations of IVisionExtractionProvider
(src/interfaces/vision_provider.py):
    - AnthropicVisionProvider -- Claude Sonnet via the Messages API
    - OpenAIVisionProvider    -- gpt-4o, or any OpenAI-compatible endpoint

build_processor() in src/main.py registers every provider whose API key is
configured, keyed by model key ("anthropic", "openai").  Consensus runs
address them by those keys.
"""

from src.providers.vision.anthropic_provider import AnthropicVisionProvider
from src.providers.vision.openai_provider import OpenAIVisionProvider

__all__ = ["AnthropicVisionProvider", "OpenAIVisionProvider"]
