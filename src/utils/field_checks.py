"""Heuristics that catch the vision models' most common misfilings.

Three mistakes recur across every backend:

- **Date or venue text read as an artist** -- "Sunday 27 January Prince of
  Wales" ends up in ``headliner``.
- **Explanatory prose read as a venue** -- "The venue is not clearly
  visible on the poster" ends up in ``venue_name``.
- **Film credits read as musicians** -- "Directed by ..." or "Starring ..."
  ends up in ``supporting_acts``.

The phases use these checks to raise ``needs_review``; the review phase
uses them to flag fields the model's own critique missed.
"""

from __future__ import annotations

import re

_WEEKDAYS = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
_MONTHS = (
    r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)"
    r"(?:uary|ruary|ch|il|e|y|ust|tember|ober|ember)?"
)

_DATE_LIKE_RE = re.compile(
    rf"\b{_WEEKDAYS}\b|\b\d{{1,2}}(?:st|nd|rd|th)?\s+{_MONTHS}\b|\b{_MONTHS}\s+\d{{1,2}}\b"
    r"|\b\d{1,2}[/.\-]\d{1,2}[/.\-]\d{2,4}\b|\b\d{4}-\d{2}-\d{2}\b",
    re.IGNORECASE,
)
_TIME_LIKE_RE = re.compile(r"\b\d{1,2}(?::\d{2})?\s*(?:am|pm)\b", re.IGNORECASE)
_VENUE_WORD_RE = re.compile(
    r"\b(?:hotel|theatre|theater|hall|club|arena|stadium|tavern|pub|bar|lounge"
    r"|ballroom|centre|center|gardens|prince of wales|venue)\b",
    re.IGNORECASE,
)
_PROSE_RE = re.compile(
    r"\b(?:not (?:clearly )?(?:visible|shown|specified|mentioned|legible)|no venue"
    r"|appears to|likely|unclear|cannot be determined|the poster)\b",
    re.IGNORECASE,
)
_FILM_CREDIT_RE = re.compile(
    r"\b(?:directed by|starring|screenplay|written by|produced by|director|cast)\b",
    re.IGNORECASE,
)


def looks_like_date(text: str | None) -> bool:
    """Return True if *text* contains a weekday, day-month, numeric date, or time."""
    if not text:
        return False
    return bool(_DATE_LIKE_RE.search(text) or _TIME_LIKE_RE.search(text))


def looks_like_venue(text: str | None) -> bool:
    """Return True if *text* contains a typical venue noun."""
    if not text:
        return False
    return bool(_VENUE_WORD_RE.search(text))


def looks_like_prose(text: str | None) -> bool:
    """Return True if *text* reads like an explanation rather than a name."""
    if not text:
        return False
    if _PROSE_RE.search(text):
        return True
    return len(text.split()) > 8 and text.rstrip().endswith(".")


def looks_like_film_credit(text: str | None) -> bool:
    """Return True if *text* carries film credit wording."""
    if not text:
        return False
    return bool(_FILM_CREDIT_RE.search(text))


def suspicious_artist_name(text: str | None) -> str | None:
    """Explain why *text* is unlikely to be an artist name, or return None."""
    if not text:
        return None
    if looks_like_date(text):
        if looks_like_venue(text):
            return "contains date and venue text"
        return "contains date text"
    if looks_like_prose(text):
        return "reads like a sentence"
    if looks_like_film_credit(text):
        return "contains film credit wording"
    return None


def suspicious_venue_name(text: str | None) -> str | None:
    """Explain why *text* is unlikely to be a venue name, or return None."""
    if not text:
        return None
    if looks_like_prose(text):
        return "reads like a sentence"
    return None
