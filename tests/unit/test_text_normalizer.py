"""Unit tests for text normalization utilities."""

from __future__ import annotations

import pytest

from src.utils.text_normalizer import (
    clean_string,
    dedupe_names,
    name_similarity,
    normalize_value,
    slugify,
    split_list_value,
)


# ======================================================================
# normalize_value
# ======================================================================


class TestNormalizeValue:
    """Tests for the comparison key used by consensus voting."""

    def test_lowercases_and_trims(self) -> None:
        assert normalize_value("  The Tivoli ") == "the tivoli"

    def test_collapses_inner_whitespace(self) -> None:
        assert normalize_value("The   Tivoli\n") == "the tivoli"

    def test_none_is_empty(self) -> None:
        assert normalize_value(None) == ""

    def test_numbers_are_stringified(self) -> None:
        assert normalize_value(2024) == "2024"

    def test_case_variants_share_a_key(self) -> None:
        assert normalize_value("THE TIVOLI") == normalize_value("the tivoli")


# ======================================================================
# slugify
# ======================================================================


class TestSlugify:
    """Tests for the identifier fragments behind deterministic node names."""

    def test_spaces_become_underscores(self) -> None:
        assert slugify("The Black Keys") == "the_black_keys"

    def test_punctuation_runs_collapse(self) -> None:
        assert slugify("Prince of Wales (Melbourne)") == "prince_of_wales_melbourne"

    def test_leading_and_trailing_separators_stripped(self) -> None:
        assert slugify("  --Tivoli--  ") == "tivoli"

    def test_none_is_empty(self) -> None:
        assert slugify(None) == ""

    def test_stable_across_calls(self) -> None:
        assert slugify("Artist X") == slugify("artist x")


# ======================================================================
# clean_string
# ======================================================================


class TestCleanString:
    """Tests for clean_string."""

    def test_trims(self) -> None:
        assert clean_string("  Brisbane ") == "Brisbane"

    @pytest.mark.parametrize("value", ["", "   ", "null", "None", "N/A", "unknown"])
    def test_placeholder_values_are_none(self, value: str) -> None:
        assert clean_string(value) is None

    @pytest.mark.parametrize("value", [None, True, ["a"], {"name": "a"}])
    def test_non_scalars_are_none(self, value: object) -> None:
        assert clean_string(value) is None

    def test_numbers_are_stringified(self) -> None:
        assert clean_string(2024) == "2024"


# ======================================================================
# dedupe_names / split_list_value
# ======================================================================


class TestSplitListValue:
    """Tests for reading list fields the models return in several shapes."""

    def test_proper_list(self) -> None:
        assert split_list_value(["A", "B"]) == ["A", "B"]

    def test_comma_separated_string(self) -> None:
        assert split_list_value("Opener, Special Guest ,Third") == ["Opener", "Special Guest", "Third"]

    def test_case_insensitive_duplicates_dropped(self) -> None:
        assert split_list_value(["The Clams", "the clams", "Other"]) == ["The Clams", "Other"]

    def test_dict_items_use_name(self) -> None:
        assert split_list_value([{"name": "A"}, {"name": "B"}]) == ["A", "B"]

    def test_empty_and_placeholder_entries_dropped(self) -> None:
        assert split_list_value(["A", "", None, "null"]) == ["A"]

    def test_none_is_empty(self) -> None:
        assert split_list_value(None) == []

    def test_unsupported_type_is_empty(self) -> None:
        assert split_list_value(42) == []

    def test_dedupe_keeps_first_spelling(self) -> None:
        assert dedupe_names(["Tivoli", "TIVOLI"]) == ["Tivoli"]


# ======================================================================
# name_similarity
# ======================================================================


class TestNameSimilarity:
    """Tests for name_similarity."""

    def test_exact_match_after_normalisation(self) -> None:
        assert name_similarity("The Tivoli", "the  tivoli") == 1.0

    def test_containment_scores_point_nine(self) -> None:
        assert name_similarity("Tivoli", "The Tivoli") == pytest.approx(0.9)

    def test_unrelated_names_score_low(self) -> None:
        assert name_similarity("Radiohead", "Metallica") < 0.5

    def test_empty_scores_zero(self) -> None:
        assert name_similarity("", "Tivoli") == 0.0

    def test_near_miss_scores_high(self) -> None:
        assert name_similarity("Tivol1 Theatre", "Tivoli Theatre") > 0.85
