"""Unit tests for factory functions in src/main.py.

Covers vision provider selection, consensus defaults from config, and
build_processor wiring, with mocked providers so no real network calls
or API keys are required.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from src.config.settings import Settings
from src.models.graph import GraphEntityType
from src.models.pipeline import ProcessingOptions
from src.providers.persistence.memory_graph_store import InMemoryGraphStore
from tests.conftest import CONCERT_RESPONSES, make_vision_provider


def _settings(**overrides: object) -> Settings:
    """Build a Settings instance that ignores any local .env file."""
    defaults: dict[str, object] = {
        "anthropic_api_key": "",
        "openai_api_key": "",
        "openai_base_url": "",
        "discogs_user_token": "",
        "tmdb_api_key": "",
        "app_env": "test",
        "batch_inter_image_delay_ms": 0,
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


# ======================================================================
# build_vision_providers
# ======================================================================


class TestBuildVisionProviders:
    """Only providers with credentials are built."""

    def test_no_keys(self) -> None:
        from src.main import build_vision_providers

        assert build_vision_providers(_settings()) == {}

    def test_anthropic_only(self) -> None:
        from src.main import build_vision_providers
        from src.providers.vision.anthropic_provider import AnthropicVisionProvider

        providers = build_vision_providers(_settings(anthropic_api_key="test-anthropic"))
        assert list(providers) == ["anthropic"]
        assert isinstance(providers["anthropic"], AnthropicVisionProvider)

    def test_both_keys(self) -> None:
        from src.main import build_vision_providers

        providers = build_vision_providers(_settings(anthropic_api_key="a", openai_api_key="sk-test"))
        assert sorted(providers) == ["anthropic", "openai"]

    def test_openai_compatible_endpoint(self) -> None:
        from src.main import build_vision_providers

        providers = build_vision_providers(
            _settings(openai_api_key="sk-test", openai_base_url="http://localhost:8000/v1")
        )
        assert providers["openai"].get_provider_name() == "openai-compatible"

    def test_available_providers_matches(self) -> None:
        s = _settings(openai_api_key="sk-test")
        assert s.get_available_vision_providers() == ["openai"]


# ======================================================================
# consensus_defaults / default_options
# ======================================================================


class TestConsensusDefaults:
    def test_missing_section(self) -> None:
        from src.main import consensus_defaults

        options = consensus_defaults({})
        assert options.enabled is False
        assert options.models == []
        assert options.min_agreement_ratio == 0.5

    def test_section_values(self) -> None:
        from src.main import consensus_defaults

        options = consensus_defaults(
            {
                "consensus": {
                    "enabled": True,
                    "models": ["anthropic", "openai"],
                    "min_agreement_ratio": 0.6,
                    "parallel": False,
                    "model_timeout_ms": 5000,
                }
            }
        )
        assert options.enabled is True
        assert options.models == ["anthropic", "openai"]
        assert options.min_agreement_ratio == 0.6
        assert options.parallel is False
        assert options.model_timeout_ms == 5000

    @pytest.mark.parametrize(
        "section",
        [{"min_agreement_ratio": 1.5}, {"model_timeout_ms": "soon"}, {"models": 3}],
    )
    def test_malformed_section(self, section: dict[str, object]) -> None:
        from src.main import consensus_defaults
        from src.utils.errors import ConfigurationError

        with pytest.raises(ConfigurationError, match="Invalid consensus configuration"):
            consensus_defaults({"consensus": section})

    def test_default_options_uses_model_key(self) -> None:
        from src.main import default_options

        assert default_options(_settings(default_model_key="openai")).model_key == "openai"


class TestLoadConfig:
    def test_env_overrides_yaml(self, tmp_path: Path) -> None:
        from src.config.loader import load_config

        path = tmp_path / "config.yaml"
        path.write_text("phases:\n  type:\n    confidence_threshold: 0.9\n    retry_on_low_confidence: true\n")
        config = load_config(str(path), settings=_settings(type_confidence_threshold=0.65))

        assert config["phases"]["type"] == {"confidence_threshold": 0.65, "retry_on_low_confidence": True}
        assert config["app"]["env"] == "test"

    def test_missing_file(self, tmp_path: Path) -> None:
        from src.config.loader import load_config

        config = load_config(str(tmp_path / "absent.yaml"), settings=_settings(anthropic_api_key="a"))
        assert config["vision"]["available_providers"] == ["anthropic"]


# ======================================================================
# build_processor
# ======================================================================


class TestBuildProcessor:
    """Tests for the production wiring."""

    def test_uses_supplied_providers(self) -> None:
        from src.main import build_processor
        from src.pipeline.orchestrator import IterativeProcessor

        processor = build_processor(
            custom_settings=_settings(), vision_providers={"anthropic": make_vision_provider({})}
        )
        assert isinstance(processor, IterativeProcessor)
        assert len(processor.context_store) == 0

    @pytest.mark.asyncio()
    async def test_wired_processor_writes_to_store(
        self, poster_file_factory: Callable[..., str]
    ) -> None:
        from src.main import build_processor

        store = InMemoryGraphStore()
        provider: MagicMock = make_vision_provider(CONCERT_RESPONSES)
        processor = build_processor(
            custom_settings=_settings(),
            graph_store=store,
            vision_providers={"anthropic": provider},
        )
        result = await processor.process_image(
            poster_file_factory("wired.jpg"), ProcessingOptions(skip_enrichment=True)
        )

        assert result.success is True
        assert store.count_by_type()[GraphEntityType.POSTER.value] == 1
        assert len(store.entities_of_type(GraphEntityType.POSTER_TYPE)) == 9

    @pytest.mark.asyncio()
    async def test_no_providers_reports_unconfigured_model(
        self, poster_file_factory: Callable[..., str]
    ) -> None:
        from src.main import build_processor

        processor = build_processor(custom_settings=_settings(), vision_providers={})
        result = await processor.process_image(poster_file_factory("none.jpg"))

        assert result.success is False
        assert result.error == "Vision model 'anthropic' is not configured (available: none)"
