"""Unit tests for the misfiled-field heuristics and tolerant JSON parsing."""

from __future__ import annotations

import pytest

from src.utils.field_checks import (
    looks_like_date,
    looks_like_film_credit,
    looks_like_prose,
    looks_like_venue,
    suspicious_artist_name,
    suspicious_venue_name,
)
from src.utils.json_parsing import extract_json_object


# ======================================================================
# Individual detectors
# ======================================================================


class TestDetectors:
    """Tests for the looks_like_* helpers."""

    @pytest.mark.parametrize(
        "text",
        ["Sunday 27 January", "27th Jan", "March 14", "14/03/2025", "2025-03-14", "doors 8pm"],
    )
    def test_date_like(self, text: str) -> None:
        assert looks_like_date(text) is True

    @pytest.mark.parametrize("text", ["The Black Keys", "Shannon and the Clams", "Maybe Tomorrow", None])
    def test_not_date_like(self, text: str | None) -> None:
        assert looks_like_date(text) is False

    def test_venue_nouns(self) -> None:
        assert looks_like_venue("Prince of Wales Hotel") is True
        assert looks_like_venue("Artist X") is False

    def test_prose(self) -> None:
        assert looks_like_prose("The venue is not clearly visible on the poster") is True
        assert looks_like_prose("The Tivoli") is False

    def test_long_sentence_is_prose(self) -> None:
        assert looks_like_prose("This is a long sentence that goes on for more than eight words.") is True

    def test_film_credit(self) -> None:
        assert looks_like_film_credit("Directed by Greta Gerwig") is True
        assert looks_like_film_credit("Starring Margot Robbie") is True
        assert looks_like_film_credit("The Castaways") is False


# ======================================================================
# Combined verdicts
# ======================================================================


class TestSuspiciousNames:
    """Tests for suspicious_artist_name and suspicious_venue_name."""

    def test_date_and_venue_in_headliner(self) -> None:
        reason = suspicious_artist_name("Sunday 27 January Prince of Wales")
        assert reason == "contains date and venue text"

    def test_date_only_in_headliner(self) -> None:
        assert suspicious_artist_name("Friday 14 March") == "contains date text"

    def test_sentence_as_artist(self) -> None:
        assert suspicious_artist_name("The artist name appears to be unclear") == "reads like a sentence"

    def test_film_credit_as_artist(self) -> None:
        assert suspicious_artist_name("Directed by Jane Campion") == "contains film credit wording"

    def test_real_artist_passes(self) -> None:
        assert suspicious_artist_name("The Black Keys") is None

    def test_empty_passes(self) -> None:
        assert suspicious_artist_name(None) is None

    def test_explanation_as_venue(self) -> None:
        assert suspicious_venue_name("The venue is not visible on the poster") == "reads like a sentence"

    def test_real_venue_passes(self) -> None:
        assert suspicious_venue_name("Prince of Wales") is None


# ======================================================================
# extract_json_object
# ======================================================================


class TestExtractJsonObject:
    """Tests for parsing JSON out of model responses."""

    def test_bare_object(self) -> None:
        assert extract_json_object('{"poster_type": "concert"}') == {"poster_type": "concert"}

    def test_markdown_fence(self) -> None:
        text = 'Here you go:\n```json\n{"headliner": "Artist X"}\n```'
        assert extract_json_object(text) == {"headliner": "Artist X"}

    def test_preamble_and_trailing_text(self) -> None:
        text = 'Sure. {"venue_name": "The Tivoli"} Let me know.'
        assert extract_json_object(text) == {"venue_name": "The Tivoli"}

    def test_trailing_comma_repaired(self) -> None:
        assert extract_json_object('{"a": 1, "b": [1, 2,],}') == {"a": 1, "b": [1, 2]}

    def test_single_quotes_and_unquoted_keys_repaired(self) -> None:
        assert extract_json_object("{headliner: 'Artist X'}") == {"headliner": "Artist X"}

    @pytest.mark.parametrize("text", [None, "", "no json here", "[1, 2, 3]", "{not: json: at all"])
    def test_unrecoverable_returns_none(self, text: str | None) -> None:
        assert extract_json_object(text) is None
