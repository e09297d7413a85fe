"""Text normalization utilities for extracted poster fields.

This module handles three distinct normalization concerns:

1. **Comparison keys** -- :func:`normalize_value` lowercases, trims and
   collapses whitespace so that consensus voting treats "The  Tivoli" and
   "the tivoli" as the same answer.

2. **Deterministic identifiers** -- :func:`slugify` derives the stable
   entity names (``artist_the_tivoli_band``) that make graph assembly
   idempotent across repeated runs.

3. **Name matching** -- :func:`name_similarity` uses rapidfuzz so that a model-read "Tivol1" can still be matched to a
   known "Tivoli", and an external catalog hit can be scored against the
   name printed on the poster.
"""

import re
from typing import Any

from rapidfuzz import fuzz

_WHITESPACE_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_LIST_SEPARATOR_RE = re.compile(r"\s*,\s*")


def normalize_value(value: Any) -> str:
    """Return the comparison key for *value*: lower-cased, trimmed, single-spaced.

    ``None`` maps to the empty string so callers can treat it as "no answer".
    """
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value).strip().lower())


def slugify(value: Any) -> str:
    """Derive the identifier fragment for *value*.

    Lower-cases and replaces every run of non-alphanumerics with a single
    underscore: ``"Prince of Wales (Melbourne)"`` -> ``"prince_of_wales_melbourne"``.
    """
    if value is None:
        return ""
    return _NON_ALNUM_RE.sub("_", str(value).lower()).strip("_")


def clean_string(value: Any) -> str | None:
    """Return a trimmed string, or ``None`` for empty or non-scalar input."""
    if value is None or isinstance(value, (dict, list, tuple, set, bool)):
        return None
    text = _WHITESPACE_RE.sub(" ", str(value)).strip()
    if not text or text.lower() in {"null", "none", "n/a", "unknown"}:
        return None
    return text


def dedupe_names(values: list[Any]) -> list[str]:
    """Drop empty entries and case-insensitive duplicates, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        cleaned = clean_string(value)
        if cleaned is None:
            continue
        key = normalize_value(cleaned)
        if key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result


def split_list_value(value: Any) -> list[str]:
    """Read a model field that should be a list of names.

    Accepts a proper list or a single comma-separated string (a frequent
    model mistake), then deduplicates.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return dedupe_names(_LIST_SEPARATOR_RE.split(value))
    if isinstance(value, (list, tuple)):
        flattened: list[Any] = []
        for item in value:
            if isinstance(item, dict):
                flattened.append(item.get("name"))
            else:
                flattened.append(item)
        return dedupe_names(flattened)
    return []


def name_similarity(a: str, b: str) -> float:
    """Score how well two names match, in [0.0, 1.0].

    Exact (normalized) match scores 1.0, containment 0.9, anything else
    the rapidfuzz ratio.
    """
    left = normalize_value(a)
    right = normalize_value(b)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    if left in right or right in left:
        return 0.9
    return fuzz.ratio(left, right) / 100.0
