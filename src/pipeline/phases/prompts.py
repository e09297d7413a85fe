"""Prompt text for the extraction phases, the review step, and consensus.

Every prompt asks for a single JSON object.  The Artist, Venue and Event
prompts are assembled from a shared preamble plus a per-type block, so a
film poster is asked for ``director`` and ``lead_actors`` while a concert
poster is asked for ``headliner`` and ``supporting_acts``.  The phases read
back exactly the keys named here.
"""

from __future__ import annotations

from src.models.poster import PosterType

# ---------------------------------------------------------------------------
# Phase 1: Type
# ---------------------------------------------------------------------------

TYPE_CLASSIFICATION_PROMPT = """\
Classify the poster in this image into exactly one type.

Types:
- concert: live music at a named venue on a given date (doors, tickets, support acts)
- festival: many acts billed together, a festival name, often several days
- comedy: stand-up or comedians, usually a comedy club
- theater: a play or musical, run dates, playwright credits
- film: a movie poster with "directed by", "starring", rating box, "in theaters"
- album: a release announcement ("new album", "out now", streaming logos) with no show
- promo: merchandise, brand or tour announcement with no specific date and venue
- exhibition: a gallery or museum show, exhibit dates, opening reception
- hybrid: two types at once, most often an album release show
- unknown: none of the above can be determined

Return JSON only:
{
  "poster_type": "concert|festival|comedy|theater|film|album|promo|exhibition|hybrid|unknown",
  "confidence": 0.0-1.0,
  "evidence": ["short reason", "short reason"],
  "visual_cues": {
    "has_artist_photo": true|false,
    "has_album_artwork": true|false,
    "has_logo": true|false,
    "dominant_colors": ["color"],
    "style": "photographic|illustrated|typographic|mixed|other"
  },
  "extracted_text": "every piece of visible text, in reading order"
}"""

TYPE_REFINEMENT_PROMPT = """\
A first look at this poster was unsure of its type.

First answer: {previous_type} ({previous_confidence}% confidence)
Evidence given: {previous_evidence}

Check again:
1. Is there both a specific venue and a specific date? (concert, comedy, theater)
2. Is there release wording such as "out now" or streaming logos? (album)
3. Are there film credits or a rating box? (film)
4. Does it announce a release and a live show together? (hybrid)

Answer with the same JSON object as before."""


def build_refinement_prompt(previous_type: str, previous_confidence: float, evidence: list[str]) -> str:
    return TYPE_REFINEMENT_PROMPT.format(
        previous_type=previous_type,
        previous_confidence=round(previous_confidence * 100),
        previous_evidence=", ".join(evidence) or "none",
    )


# ---------------------------------------------------------------------------
# Phase 2: Artist
# ---------------------------------------------------------------------------

_ARTIST_PREAMBLE = """\
Read the people credited on this {label} poster.

Rules:
- Put every act in its own array entry; never join several names into one string.
- A band is one entry ("The Black Eyed Peas"), not one entry per member.
- Dates, times, venue names and sentences are never artist names.
- Leave a key null when the poster does not show it.
"""

_ARTIST_FIELDS: dict[PosterType, str] = {
    PosterType.CONCERT: """\
{
  "headliner": "top-billed act only",
  "supporting_acts": ["opener", "special guest"],
  "tour_name": "tour name or null",
  "record_label": "label or null",
  "confidence": 0.0-1.0
}""",
    PosterType.FESTIVAL: """\
{
  "headliner": "top-billed act only",
  "supporting_acts": ["every other act on the lineup, in billing order"],
  "tour_name": "festival name or null",
  "confidence": 0.0-1.0
}""",
    PosterType.COMEDY: """\
{
  "headliner": "main comedian only",
  "supporting_acts": ["featured comic", "host"],
  "confidence": 0.0-1.0
}""",
    PosterType.THEATER: """\
{
  "playwright": "writer or null",
  "lead_performers": ["performer"],
  "director": "stage director or null",
  "confidence": 0.0-1.0
}""",
    PosterType.FILM: """\
{
  "title": "film title",
  "director": "director or null",
  "lead_actors": ["top-billed actor"],
  "supporting_cast": ["other credited actor"],
  "confidence": 0.0-1.0
}""",
    PosterType.ALBUM: """\
{
  "headliner": "the artist who made the release",
  "album_title": "the release title (not the artist name)",
  "featured_artists": ["feat. artist"],
  "record_label": "label or null",
  "confidence": 0.0-1.0
}""",
    PosterType.PROMO: """\
{
  "headliner": "artist or brand being promoted",
  "supporting_acts": ["other artist named"],
  "confidence": 0.0-1.0
}""",
    PosterType.EXHIBITION: """\
{
  "exhibiting_artist": "artist whose work is shown",
  "title": "exhibition title or null",
  "confidence": 0.0-1.0
}""",
    PosterType.HYBRID: """\
{
  "headliner": "main artist",
  "album_title": "release being celebrated",
  "supporting_acts": ["opener"],
  "record_label": "label or null",
  "tour_name": "tour name or null",
  "confidence": 0.0-1.0
}""",
    PosterType.UNKNOWN: """\
{
  "primary_name": "most prominent name",
  "other_names": ["other name"],
  "confidence": 0.0-1.0
}""",
}


def build_artist_prompt(poster_type: PosterType, extracted_text: str | None = None) -> str:
    prompt = _ARTIST_PREAMBLE.format(label=poster_type.value.upper())
    if extracted_text:
        prompt += f"\nText already read from the poster:\n{extracted_text[:2000]}\n"
    return f"{prompt}\nReturn JSON only:\n{_ARTIST_FIELDS[poster_type]}"


# ---------------------------------------------------------------------------
# Phase 3: Venue
# ---------------------------------------------------------------------------

_VENUE_PREAMBLE = """\
Read where the event on this {label} poster takes place.

Rules:
- venue_name is a place name only.  If no venue is printed, use null;
  never write a sentence explaining that it is missing.
- Do not guess a city that is not printed.
"""

_VENUE_DEFAULT_FIELDS = """\
{
  "venue_name": "venue name or null",
  "city": "city or null",
  "state": "state/region or null",
  "country": "country or null"
}"""

_VENUE_FIELDS: dict[PosterType, str] = {
    PosterType.FILM: """\
{
  "theater_name": "cinema named on the poster or null",
  "city": "city or null"
}""",
    PosterType.ALBUM: """\
{
  "venue_name": "release-show or in-store venue, else null",
  "city": "city or null"
}""",
}


def build_venue_prompt(poster_type: PosterType, headliner: str | None = None) -> str:
    prompt = _VENUE_PREAMBLE.format(label=poster_type.value.upper())
    if headliner:
        prompt += f"\nThe headliner has already been read as: {headliner}\n"
    fields = _VENUE_FIELDS.get(poster_type, _VENUE_DEFAULT_FIELDS)
    return f"{prompt}\nReturn JSON only:\n{fields}"


# ---------------------------------------------------------------------------
# Phase 4: Event
# ---------------------------------------------------------------------------

_EVENT_PREAMBLE = """\
Read the dates and event details on this {label} poster.

Rules:
- Write dates as DD/MM/YYYY; use DD/MM when the year is not printed.
- Write times as HH:MM.
- Use null for anything not printed; never write "not specified".
"""

_EVENT_FIELDS: dict[PosterType, str] = {
    PosterType.ALBUM: """\
{
  "release_date": "DD/MM/YYYY or null",
  "year": 2024
}""",
    PosterType.FILM: """\
{
  "release_date": "DD/MM/YYYY or null",
  "year": 2024
}""",
    PosterType.THEATER: """\
{
  "opening_date": "DD/MM/YYYY or null",
  "closing_date": "DD/MM/YYYY or null",
  "year": 2024,
  "show_time": "HH:MM or null",
  "ticket_price": "price or null"
}""",
    PosterType.EXHIBITION: """\
{
  "opening_date": "DD/MM/YYYY or null",
  "closing_date": "DD/MM/YYYY or null",
  "year": 2024
}""",
    PosterType.FESTIVAL: """\
{
  "start_date": "DD/MM/YYYY or null",
  "end_date": "DD/MM/YYYY or null",
  "year": 2024,
  "door_time": "gates time or null",
  "ticket_price": "price or null",
  "age_restriction": "e.g. 18+ or null",
  "promoter": "presenting company or null"
}""",
}

_EVENT_DEFAULT_FIELDS = """\
{
  "event_date": "DD/MM/YYYY or null",
  "year": 2024,
  "door_time": "HH:MM or null",
  "show_time": "HH:MM or null",
  "ticket_price": "price with currency or null",
  "age_restriction": "e.g. 18+, All Ages, or null",
  "promoter": "presenting company or null",
  "shows": [
    {
      "event_date": "DD/MM/YYYY",
      "day_of_week": "Friday",
      "door_time": "HH:MM",
      "show_time": "HH:MM",
      "ticket_price": "price",
      "age_restriction": "18+"
    }
  ]
}
List "shows" only when the poster advertises more than one date."""


def build_event_prompt(poster_type: PosterType) -> str:
    prompt = _EVENT_PREAMBLE.format(label=poster_type.value.upper())
    fields = _EVENT_FIELDS.get(poster_type, _EVENT_DEFAULT_FIELDS)
    return f"{prompt}\nReturn JSON only:\n{fields}"


# ---------------------------------------------------------------------------
# Consensus: one combined extraction per model
# ---------------------------------------------------------------------------

CONSENSUS_EXTRACTION_PROMPT = """\
Extract the details of the poster in this image.

Rules:
- Each act is its own array entry.
- Dates as DD/MM/YYYY, times as HH:MM.
- null for anything not printed; no explanations inside values.

Return JSON only:
{
  "poster_type": "concert|festival|comedy|theater|film|album|promo|exhibition|hybrid|unknown",
  "title": "event, release or film title or null",
  "headliner": "top-billed act or null",
  "supporting_acts": ["other act"],
  "venue_name": "venue or null",
  "city": "city or null",
  "state": "state or null",
  "country": "country or null",
  "event_date": "DD/MM/YYYY or null",
  "year": 2024,
  "door_time": "HH:MM or null",
  "show_time": "HH:MM or null",
  "ticket_price": "price or null",
  "age_restriction": "age limit or null",
  "tour_name": "tour or festival name or null",
  "record_label": "label or null",
  "promoter": "promoter or null"
}"""


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

REVIEW_PROMPT = """\
You are checking data that was extracted from the poster in this image.

Extracted data:
{draft}

Known mistakes to look for:
1. Date or venue text read as an artist, e.g. headliner "Sunday 27 January Prince of Wales".
2. An explanation read as a venue, e.g. venue_name "The venue is not visible on the poster".
3. Film actors or crew read as musicians in supporting_acts.
4. Several acts joined into one headliner or supporting act string.
5. A wrong poster_type (a release announcement labelled as a concert, etc.).

Compare every field with the image.  For each wrong field give a correction;
use null as corrected_value when the field should be empty.

Return JSON only:
{{
  "passed": true|false,
  "confidence": 0.0-1.0,
  "issues": ["description of each problem"],
  "fields_to_review": ["field name"],
  "corrections": [
    {{
      "field": "headliner|supporting_acts|venue_name|city|state|country|event_date|title|poster_type|...",
      "original_value": "value as extracted",
      "corrected_value": "fixed value or null",
      "reason": "why",
      "confidence": 0.0-1.0
    }}
  ]
}}"""
