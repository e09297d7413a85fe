"""Unit tests for the pydantic models in src/models/."""

from __future__ import annotations

import json

import pytest
from pydantic import TypeAdapter, ValidationError

from src.models.consensus import ConsensusOptions
from src.models.graph import GraphRelation, RelationLedgerEntry, RelationType
from src.models.phases import (
    ArtistMatch,
    EnrichmentPhaseResult,
    PhaseResult,
    PhaseStatus,
    VenueMatch,
    VenuePhaseResult,
)
from src.models.pipeline import BatchSummary, PipelinePhase, ProcessingContext, ProcessingOptions
from src.models.poster import DateInfo, PosterEntity, PosterImage, PosterType, TypeInference

_HASH = "0123456789abcdef" + "f" * 48


# ======================================================================
# Poster models
# ======================================================================


class TestPosterImage:
    def test_poster_id_from_hash(self) -> None:
        image = PosterImage(path="/tmp/a.jpg", image_hash=_HASH)
        assert image.poster_id == "poster_0123456789abcdef"

    def test_image_data_not_serialized(self) -> None:
        image = PosterImage(path="/tmp/a.jpg", image_hash=_HASH).with_image_data(b"\xff\xd8")
        assert image.image_data == b"\xff\xd8"
        assert "image_data" not in image.model_dump()


class TestDateInfo:
    @pytest.mark.parametrize(
        ("parts", "expected"),
        [
            ({"year": 2025, "month": 3, "day": 14}, "2025-03-14"),
            ({"year": 2025, "month": 3}, "2025-03"),
            ({"year": 2025}, "2025"),
            ({}, None),
        ],
    )
    def test_iso(self, parts: dict[str, int], expected: str | None) -> None:
        assert DateInfo(raw_value="x", **parts).iso == expected

    def test_month_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            DateInfo(raw_value="x", year=2025, month=13)


class TestPosterEntity:
    """Tests for the single-primary-type invariant."""

    def test_one_primary(self) -> None:
        entity = PosterEntity(
            name="poster_a",
            inferred_types=[
                TypeInference(type_key=PosterType.CONCERT, confidence=0.8, is_primary=True),
                TypeInference(type_key=PosterType.FESTIVAL, confidence=0.4),
            ],
        )
        assert entity.primary_type.type_key == PosterType.CONCERT

    def test_no_types_allowed(self) -> None:
        assert PosterEntity(name="poster_a").primary_type is None

    def test_zero_primaries_rejected(self) -> None:
        with pytest.raises(ValidationError, match="exactly one primary"):
            PosterEntity(name="poster_a", inferred_types=[TypeInference(type_key=PosterType.FILM)])

    def test_two_primaries_rejected(self) -> None:
        with pytest.raises(ValidationError, match="found 2"):
            PosterEntity(
                name="poster_a",
                inferred_types=[
                    TypeInference(type_key=PosterType.FILM, is_primary=True),
                    TypeInference(type_key=PosterType.ALBUM, is_primary=True),
                ],
            )

    def test_frozen(self) -> None:
        entity = PosterEntity(name="poster_a")
        with pytest.raises(ValidationError):
            entity.headliner = "Someone"  # type: ignore[misc]


# ======================================================================
# Phase results
# ======================================================================


class TestPhaseResultUnion:
    """The ``phase`` literal selects the variant when validating."""

    def test_round_trip_through_json(self) -> None:
        original = VenuePhaseResult(
            confidence=0.85,
            venue=VenueMatch(extracted_name="The Tivoli", city="Brisbane"),
        )
        payload = json.loads(original.model_dump_json())
        restored = TypeAdapter(PhaseResult).validate_python(payload)

        assert isinstance(restored, VenuePhaseResult)
        assert restored == original

    def test_unknown_phase_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TypeAdapter(PhaseResult).validate_python({"phase": "ocr"})

    def test_display_name_prefers_validated(self) -> None:
        assert ArtistMatch(extracted_name="black keys", validated_name="The Black Keys").display_name == (
            "The Black Keys"
        )
        assert ArtistMatch(extracted_name="black keys").display_name == "black keys"

    def test_artist_fields_changed(self) -> None:
        assert EnrichmentPhaseResult(enriched_fields=["record_label"]).artist_fields_changed is True
        assert EnrichmentPhaseResult(enriched_fields=["year"]).artist_fields_changed is False

    def test_default_status(self) -> None:
        assert VenuePhaseResult().status == PhaseStatus.COMPLETED


# ======================================================================
# Graph ledger
# ======================================================================


class TestGraphModels:
    def test_relation_ledger_aliases(self) -> None:
        entry = RelationLedgerEntry.model_validate(
            {"type": "HELD_AT", "from": "event_x", "to": "venue_y"}
        )
        assert entry.from_name == "event_x"
        assert entry.model_dump(by_alias=True) == {"type": RelationType.HELD_AT, "from": "event_x", "to": "venue_y"}

    def test_relation_ledger_by_field_name(self) -> None:
        entry = RelationLedgerEntry(type=RelationType.HELD_AT, from_name="a", to_name="b")
        assert entry.to_name == "b"

    def test_relation_key(self) -> None:
        relation = GraphRelation(from_name="a", to_name="b", relation_type=RelationType.STARS)
        assert relation.key == ("a", "b", "STARS")


# ======================================================================
# Pipeline models
# ======================================================================


class TestProcessingContext:
    """Tests for the per-run mutable context."""

    @pytest.fixture()
    def ctx(self) -> ProcessingContext:
        return ProcessingContext(
            session_id="s1",
            image=PosterImage(path="/tmp/a.jpg", image_hash=_HASH),
        )

    def test_empty_values_not_stored(self, ctx: ProcessingContext) -> None:
        for value in (None, "", []):
            ctx.set_field("headliner", value, 0.9, PipelinePhase.ARTIST)
        assert ctx.fields == {}

    def test_confidence_clamped(self, ctx: ProcessingContext) -> None:
        ctx.set_field("city", "Brisbane", 1.4, PipelinePhase.VENUE)
        assert ctx.fields["city"].confidence == 1.0
        assert ctx.get_field("city") == "Brisbane"
        assert ctx.get_field("state", "n/a") == "n/a"

    def test_poster_type_defaults_to_unknown(self, ctx: ProcessingContext) -> None:
        assert ctx.poster_type == PosterType.UNKNOWN

    def test_overall_confidence_counts_extraction_phases_only(self, ctx: ProcessingContext) -> None:
        ctx.store_phase_result(VenuePhaseResult(confidence=0.6))
        ctx.store_phase_result(EnrichmentPhaseResult(confidence=1.0))
        assert ctx.overall_confidence() == pytest.approx(0.6)

    def test_zero_confidence_phase_not_averaged(self, ctx: ProcessingContext) -> None:
        ctx.store_phase_result(VenuePhaseResult(confidence=0.0))
        assert ctx.overall_confidence() == 0.0

    def test_record_error(self, ctx: ProcessingContext) -> None:
        error = ctx.record_error(PipelinePhase.TYPE, "boom", recoverable=False)
        assert ctx.errors == [error]
        assert error.recoverable is False

    def test_poster_id(self, ctx: ProcessingContext) -> None:
        assert ctx.poster_id == "poster_0123456789abcdef"
        assert ctx.image_path == "/tmp/a.jpg"


class TestOptionsAndSummary:
    def test_options_defaults(self) -> None:
        options = ProcessingOptions()
        assert options.model_key is None
        assert options.consensus is None
        assert not (options.skip_storage or options.skip_enrichment or options.skip_review)

    def test_consensus_ratio_bounds(self) -> None:
        with pytest.raises(ValidationError):
            ConsensusOptions(min_agreement_ratio=1.5)

    def test_batch_summary_has_every_type(self) -> None:
        summary = BatchSummary()
        assert set(summary.by_type) == set(PosterType)
        assert all(count == 0 for count in summary.by_type.values())
