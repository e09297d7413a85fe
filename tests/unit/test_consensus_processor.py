"""Unit tests for cross-model consensus."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.interfaces.vision_provider import VisionExtraction
from src.models.consensus import ConsensusOptions, MergeStrategy
from src.services.consensus_processor import (
    ALL_MODELS_FAILED,
    ConsensusProcessor,
    completeness,
    parse_consensus_fields,
    resolve_array,
    resolve_scalar,
)
from tests.conftest import make_vision_provider

_TIVOLI = {
    "poster_type": "concert",
    "headliner": "The Black Keys",
    "supporting_acts": ["Shannon and the Clams"],
    "venue_name": "The Tivoli",
    "city": "Brisbane",
    "event_date": "14/03/2025",
    "year": 2025,
}


@pytest.fixture()
def processor() -> ConsensusProcessor:
    return ConsensusProcessor()


@pytest.fixture()
def options() -> ConsensusOptions:
    return ConsensusOptions(enabled=True, models=["anthropic", "openai", "local"])


# ======================================================================
# Field parsing
# ======================================================================


class TestParseConsensusFields:
    def test_recognised_fields_kept(self) -> None:
        fields = parse_consensus_fields({**_TIVOLI, "mood": "loud", "door_time": None})
        assert "mood" not in fields
        assert "door_time" not in fields
        assert fields["year"] == 2025
        assert fields["supporting_acts"] == ["Shannon and the Clams"]

    def test_aliases(self) -> None:
        fields = parse_consensus_fields({"venue": "The Tivoli", "date": "14/03/2025"})
        assert fields == {"venue_name": "The Tivoli", "event_date": "14/03/2025"}

    def test_poster_type_validated(self) -> None:
        assert parse_consensus_fields({"poster_type": "Music Festival"})["poster_type"] == "festival"

    def test_non_numeric_year_dropped(self) -> None:
        assert "year" not in parse_consensus_fields({"year": "mid nineties"})

    def test_completeness(self) -> None:
        assert completeness(parse_consensus_fields(_TIVOLI)) == pytest.approx(8 / 10)
        assert completeness({}) == 0.0


# ======================================================================
# Field resolution
# ======================================================================


class TestResolveScalar:
    """Tests for resolve_scalar."""

    def test_unanimous_ignores_case(self) -> None:
        result = resolve_scalar("city", [("a", "Brisbane"), ("b", "brisbane ")], 0.5)
        assert result.strategy == MergeStrategy.UNANIMOUS
        assert result.value == "Brisbane"
        assert result.agreement == 1.0
        assert result.low_confidence is False

    def test_plurality(self) -> None:
        answers = [("a", "The Tivoli"), ("b", "The Tivoli"), ("c", "Tivoli")]
        result = resolve_scalar("venue_name", answers, 0.5)
        assert result.strategy == MergeStrategy.PLURALITY
        assert result.value == "The Tivoli"
        assert result.agreement == pytest.approx(2 / 3)
        assert result.confidence == pytest.approx(2 / 3)
        assert result.agreeing == ["a", "b"]
        assert result.responding == ["a", "b", "c"]

    def test_tie_goes_to_first_provider(self) -> None:
        result = resolve_scalar("headliner", [("a", "Artist A"), ("b", "Artist B")], 0.5)
        assert result.strategy == MergeStrategy.FIRST_PROVIDER
        assert result.value == "Artist A"
        assert result.low_confidence is True
        assert result.confidence == pytest.approx(0.5)

    def test_plurality_must_exceed_ratio(self) -> None:
        answers = [("a", "X"), ("b", "X"), ("c", "Y"), ("d", "Z")]
        result = resolve_scalar("title", answers, 0.5)
        assert result.strategy == MergeStrategy.FIRST_PROVIDER
        assert result.value == "X"
        assert result.agreeing == ["a", "b"]

    def test_first_provider_minority_answer(self) -> None:
        answers = [("a", "Y"), ("b", "X"), ("c", "X"), ("d", "Z")]
        result = resolve_scalar("title", answers, 0.5)
        assert result.value == "Y"
        assert result.confidence == pytest.approx(0.25)
        assert result.agreement == pytest.approx(0.25)
        assert result.agreeing == ["a"]

    def test_fallback_agreement_counts_selected_value(self) -> None:
        result = resolve_scalar("venue_name", [("m1", "X"), ("m2", "Y"), ("m3", "Y")], 0.7)
        assert result.strategy == MergeStrategy.FIRST_PROVIDER
        assert result.value == "X"
        assert result.agreement == pytest.approx(1 / 3)
        assert result.confidence == pytest.approx(1 / 3)


class TestResolveArray:
    def test_union_and_membership_agreement(self) -> None:
        result = resolve_array("supporting_acts", [("a", ["Opener", "Second"]), ("b", ["opener"])])
        assert result.strategy == MergeStrategy.UNION
        assert result.value == ["Opener", "Second"]
        assert result.agreement == pytest.approx(0.75)
        assert result.agreeing == ["a"]
        assert result.low_confidence is False

    def test_disjoint_lists_are_low_confidence(self) -> None:
        result = resolve_array("supporting_acts", [("a", ["One"]), ("b", ["Two"])])
        assert result.agreement == pytest.approx(0.5)
        assert result.low_confidence is True


# ======================================================================
# ConsensusProcessor.process_with_consensus
# ======================================================================


class TestConsensusProcessor:
    """Tests for the full consensus run."""

    @pytest.mark.asyncio()
    async def test_plurality_venue_across_three_models(
        self, processor: ConsensusProcessor, options: ConsensusOptions
    ) -> None:
        providers = {
            "anthropic": make_vision_provider({"consensus": _TIVOLI}, name="anthropic"),
            "openai": make_vision_provider({"consensus": _TIVOLI}, name="openai"),
            "local": make_vision_provider({"consensus": {**_TIVOLI, "venue_name": "Tivoli"}}, name="local"),
        }
        result = await processor.process_with_consensus("/tmp/p.jpg", providers, options)

        assert result.success is True
        assert result.consensus_computed is True
        assert result.models_used == ["anthropic", "openai", "local"]
        venue = result.field("venue_name")
        assert venue.strategy == MergeStrategy.PLURALITY
        assert venue.value == "The Tivoli"
        assert venue.agreement == pytest.approx(2 / 3)
        assert result.merged_fields["venue_name"] == "The Tivoli"
        assert result.field("headliner").strategy == MergeStrategy.UNANIMOUS
        assert 0.0 < result.agreement_score < 1.0

    @pytest.mark.asyncio()
    async def test_identical_answers_score_full_confidence(
        self, processor: ConsensusProcessor, options: ConsensusOptions
    ) -> None:
        providers = {
            "anthropic": make_vision_provider({"consensus": _TIVOLI}),
            "openai": make_vision_provider({"consensus": _TIVOLI}, name="openai"),
        }
        result = await processor.process_with_consensus("/tmp/p.jpg", providers, options)

        assert result.agreement_score == pytest.approx(1.0)
        assert result.overall_confidence == pytest.approx(1.0)

    @pytest.mark.asyncio()
    async def test_failed_model_is_excluded(
        self, processor: ConsensusProcessor, options: ConsensusOptions
    ) -> None:
        providers = {
            "anthropic": make_vision_provider({"consensus": _TIVOLI}),
            "openai": make_vision_provider({"consensus": RuntimeError("quota exceeded")}, name="openai"),
            "local": make_vision_provider({"consensus": {**_TIVOLI, "venue_name": "Tivoli"}}, name="local"),
        }
        result = await processor.process_with_consensus("/tmp/p.jpg", providers, options)

        assert result.models_used == ["anthropic", "local"]
        assert result.models_failed == ["openai"]
        assert result.errors == ["openai: quota exceeded"]
        venue = result.field("venue_name")
        assert venue.responding == ["anthropic", "local"]
        assert venue.strategy == MergeStrategy.FIRST_PROVIDER
        assert venue.value == "The Tivoli"

    @pytest.mark.asyncio()
    async def test_single_survivor_skips_consensus(
        self, processor: ConsensusProcessor, options: ConsensusOptions
    ) -> None:
        providers = {
            "anthropic": make_vision_provider({"consensus": _TIVOLI}),
            "openai": make_vision_provider({"consensus": "no idea, sorry"}, name="openai"),
        }
        result = await processor.process_with_consensus("/tmp/p.jpg", providers, options)

        assert result.success is True
        assert result.consensus_computed is False
        assert result.agreement_score == 1.0
        assert result.models_used == ["anthropic"]
        assert result.merged_fields["headliner"] == "The Black Keys"
        assert result.field_consensus == []

    @pytest.mark.asyncio()
    async def test_all_models_failed(self, processor: ConsensusProcessor, options: ConsensusOptions) -> None:
        providers = {
            "anthropic": make_vision_provider({"consensus": RuntimeError("down")}),
            "openai": make_vision_provider({"consensus": RuntimeError("down")}, name="openai"),
        }
        result = await processor.process_with_consensus("/tmp/p.jpg", providers, options)

        assert result.success is False
        assert result.errors == [ALL_MODELS_FAILED]
        assert result.models_failed == ["anthropic", "openai"]
        assert len(result.provider_outputs) == 2

    @pytest.mark.asyncio()
    async def test_slow_model_times_out(self, processor: ConsensusProcessor) -> None:
        slow = make_vision_provider({}, name="openai")

        async def _stall(image_path: str, prompt: str) -> VisionExtraction:
            await asyncio.sleep(1.0)
            return VisionExtraction(extracted_text="{}")

        slow.extract_from_image = AsyncMock(side_effect=_stall)
        providers = {
            "anthropic": make_vision_provider({"consensus": _TIVOLI}),
            "openai": slow,
            "local": make_vision_provider({"consensus": _TIVOLI}, name="local"),
        }
        options = ConsensusOptions(enabled=True, model_timeout_ms=50)
        result = await processor.process_with_consensus("/tmp/p.jpg", providers, options)

        assert result.models_failed == ["openai"]
        assert result.models_used == ["anthropic", "local"]
        assert result.consensus_computed is True

    @pytest.mark.asyncio()
    async def test_sequential_mode_calls_in_order(self, processor: ConsensusProcessor) -> None:
        order: list[str] = []

        def _recording(name: str) -> object:
            provider = make_vision_provider({"consensus": _TIVOLI}, name=name)
            inner = provider.extract_from_image.side_effect

            async def _extract(image_path: str, prompt: str) -> VisionExtraction:
                order.append(name)
                return await inner(image_path, prompt)

            provider.extract_from_image = AsyncMock(side_effect=_extract)
            return provider

        providers = {"anthropic": _recording("anthropic"), "openai": _recording("openai")}
        options = ConsensusOptions(enabled=True, parallel=False)
        await processor.process_with_consensus("/tmp/p.jpg", providers, options)

        assert order == ["anthropic", "openai"]
