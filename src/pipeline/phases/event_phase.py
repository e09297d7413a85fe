"""Phase 4: read dates, show times, and ticket details.

Dates come back from the model in whatever shape was printed on the
poster.  :func:`parse_date` tries a fixed list of patterns and scores the
result by how much of the date it recovered:

    full date (year, month, day)   0.9
    partial date                   0.7
    year only                      0.6

Multi-night runs are read from the ``shows`` array; without one the
per-type date key (``release_date`` for albums and films, ``opening_date``
for theater and exhibitions, ``start_date`` for festivals, ``event_date``
otherwise) gives a single show, and a bare year gives a year-only show.
"""

from __future__ import annotations

import datetime
import re
from typing import Any, ClassVar

from src.interfaces.vision_provider import IVisionExtractionProvider
from src.models.phases import EventPhaseResult, PhaseStatus
from src.models.pipeline import PipelinePhase, ProcessingContext
from src.models.poster import DateInfo, PosterType, ShowInfo
from src.pipeline.phases.base import BasePhase, elapsed_ms
from src.pipeline.phases.prompts import build_event_prompt
from src.utils.confidence import calculate_confidence
from src.utils.text_normalizer import clean_string

MIN_YEAR = 1960
MAX_YEAR = 2030

FULL_DATE_CONFIDENCE = 0.9
PARTIAL_DATE_CONFIDENCE = 0.7
YEAR_ONLY_CONFIDENCE = 0.6

DATE_OPTIONAL_TYPES: frozenset[PosterType] = frozenset({PosterType.PROMO, PosterType.UNKNOWN})

DATE_KEYS: dict[PosterType, str] = {
    PosterType.ALBUM: "release_date",
    PosterType.FILM: "release_date",
    PosterType.THEATER: "opening_date",
    PosterType.EXHIBITION: "opening_date",
    PosterType.FESTIVAL: "start_date",
}

MONTH_NAMES: dict[str, int] = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

_MONTH = r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|sept?(?:ember)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
_ORD = r"(?:st|nd|rd|th)?"

# (pattern, group order, format label); first match wins.
_DATE_PATTERNS: tuple[tuple[re.Pattern[str], tuple[str, ...], str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), order, label)
    for pattern, order, label in (
        (r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b", ("year", "month", "day"), "iso"),
        (r"\b(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{2,4})\b", ("day", "month", "year"), "dmy"),
        (rf"\b(\d{{1,2}})(?!\d){_ORD}\s+(?:of\s+)?{_MONTH}\.?,?(?:\s+(\d{{4}}))?", ("day", "month_name", "year"), "day_month"),
        (rf"\b{_MONTH}\.?\s+(\d{{1,2}})(?!\d){_ORD},?(?:\s+(\d{{4}}))?", ("month_name", "day", "year"), "month_day"),
        (rf"\b{_MONTH}\.?,?\s+(\d{{4}})\b", ("month_name", "year"), "month_year"),
        (r"\b(\d{1,2})[/.\-](\d{1,2})\b", ("day", "month"), "dm"),
        (r"\b(19[6-9]\d|20[0-2]\d|2030)\b", ("year",), "year_only"),
    )
)


def expand_year(value: int) -> int:
    """Two-digit years above 30 are 19xx, the rest 20xx."""
    if value < 100:
        return value + (1900 if value > 30 else 2000)
    return value


def extract_year(value: Any) -> int | None:
    """Read a plausible year (1960-2030) from a number or string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        year = int(value)
        return year if MIN_YEAR <= year <= MAX_YEAR else None
    if isinstance(value, str):
        match = re.search(r"\b(19[6-9]\d|20[0-2]\d|2030)\b", value)
        if match:
            return int(match.group(1))
    return None


def parse_date(raw: str, fallback_year: int | None = None) -> DateInfo | None:
    """Parse *raw* into a :class:`DateInfo`, or return None if no pattern fits.

    *fallback_year* fills in the year when the date itself has none.
    Day/month pairs that are impossible as written (a 13th month) are
    swapped once before giving up on the day.
    """
    text = raw.strip()
    for pattern, order, label in _DATE_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        parts: dict[str, int] = {}
        for name, group in zip(order, match.groups(), strict=True):
            if not group:
                continue
            if name == "month_name":
                parts["month"] = MONTH_NAMES[group.lower().rstrip(".")]
            elif name == "year":
                parts["year"] = expand_year(int(group))
            else:
                parts[name] = int(group)
        return _build_date_info(raw, parts, label, fallback_year)
    return None


def _build_date_info(
    raw: str, parts: dict[str, int], label: str, fallback_year: int | None
) -> DateInfo | None:
    year = parts.get("year", fallback_year)
    month = parts.get("month")
    day = parts.get("day")

    if month is not None and month > 12 and day is not None and day <= 12:
        month, day = day, month
    if month is not None and not 1 <= month <= 12:
        month, day = None, None
    if day is not None and not 1 <= day <= 31:
        day = None
    if year is not None and not MIN_YEAR <= year <= MAX_YEAR:
        year = None

    if year is not None and month is not None and day is not None:
        try:
            datetime.date(year, month, day)
        except ValueError:
            day = None

    if year is None and month is None:
        return None
    if year is not None and month is not None and day is not None:
        confidence = FULL_DATE_CONFIDENCE
    elif month is None:
        confidence = YEAR_ONLY_CONFIDENCE
        label = "year_only"
    else:
        confidence = PARTIAL_DATE_CONFIDENCE
    return DateInfo(
        raw_value=raw,
        year=year,
        month=month,
        day=day,
        confidence=confidence,
        format=label,
    )


def year_only_date(year: int) -> DateInfo:
    return DateInfo(raw_value=str(year), year=year, confidence=YEAR_ONLY_CONFIDENCE, format="year_only")


def decade_of(year: int | None) -> str | None:
    if year is None:
        return None
    return f"{year // 10 * 10}s"


def _time_value(value: Any) -> str | None:
    if isinstance(value, (list, tuple)):
        times = [t for t in (clean_string(v) for v in value) if t]
        return ", ".join(times) or None
    return clean_string(value)


def extract_shows(
    parsed: dict[str, Any], poster_type: PosterType, shared_year: int | None
) -> tuple[list[ShowInfo], list[str]]:
    """Read the advertised shows; also return raw dates that failed to parse."""
    unparsed: list[str] = []
    shows: list[ShowInfo] = []

    raw_shows = parsed.get("shows")
    if isinstance(raw_shows, list):
        for item in raw_shows:
            if not isinstance(item, dict):
                continue
            raw_date = clean_string(item.get("event_date") or item.get("date"))
            if raw_date is None:
                continue
            date_info = parse_date(raw_date, shared_year)
            if date_info is None:
                unparsed.append(raw_date)
                continue
            shows.append(
                ShowInfo(
                    date=date_info,
                    show_number=len(shows) + 1,
                    day_of_week=clean_string(item.get("day_of_week")),
                    door_time=_time_value(item.get("door_time")),
                    show_time=_time_value(item.get("show_time")),
                    ticket_price=clean_string(item.get("ticket_price")),
                    age_restriction=clean_string(item.get("age_restriction")),
                )
            )
    if shows:
        return shows, unparsed

    raw_date = clean_string(parsed.get(DATE_KEYS.get(poster_type, "event_date")))
    date_info: DateInfo | None = None
    if raw_date is not None:
        date_info = parse_date(raw_date, shared_year)
        if date_info is None:
            unparsed.append(raw_date)
    if date_info is None and shared_year is not None:
        date_info = year_only_date(shared_year)
    if date_info is None:
        return [], unparsed

    return [
        ShowInfo(
            date=date_info,
            show_number=1,
            door_time=_time_value(parsed.get("door_time") or parsed.get("doors")),
            show_time=_time_value(parsed.get("show_time") or parsed.get("showtimes")),
            ticket_price=clean_string(parsed.get("ticket_price")),
            age_restriction=clean_string(parsed.get("age_restriction")),
        )
    ], unparsed


def event_confidence(
    date_info: DateInfo | None,
    poster_type: PosterType,
    has_details: bool,
) -> float:
    """Weighted mean of the date score (weight 2) and the detail score (weight 1).

    The detail score is 0.9 when times, price or age limit were read and a
    neutral 0.5 otherwise.  A missing date scores 0.5 for types that do
    not need one and 0 for the rest.
    """
    if date_info is not None:
        date_score = date_info.confidence
    elif poster_type in DATE_OPTIONAL_TYPES:
        date_score = 0.5
    else:
        date_score = 0.0
    detail_score = 0.9 if has_details else 0.5
    return calculate_confidence([date_score, detail_score], [2.0, 1.0])


class EventPhase(BasePhase[EventPhaseResult]):
    """Extract event dates, shows, times and pricing."""

    phase: ClassVar[PipelinePhase] = PipelinePhase.EVENT

    async def _run(
        self,
        context: ProcessingContext,
        provider: IVisionExtractionProvider,
        started: float,
    ) -> EventPhaseResult:
        poster_type = context.poster_type
        _, parsed = await self._ask(provider, context, build_event_prompt(poster_type))

        shared_year = extract_year(parsed.get("year"))
        shows, unparsed = extract_shows(parsed, poster_type, shared_year)
        primary = shows[0] if shows else None
        date_info = primary.date if primary else None
        year = (date_info.year if date_info else None) or shared_year

        door_time = _time_value(parsed.get("door_time") or parsed.get("doors"))
        show_time = _time_value(parsed.get("show_time") or parsed.get("showtimes"))
        if primary is not None:
            door_time = door_time or primary.door_time
            show_time = show_time or primary.show_time
        ticket_price = clean_string(parsed.get("ticket_price")) or (primary.ticket_price if primary else None)
        age_restriction = clean_string(parsed.get("age_restriction")) or (
            primary.age_restriction if primary else None
        )
        promoter = clean_string(parsed.get("promoter"))

        has_details = any((door_time, show_time, ticket_price, age_restriction))
        confidence = event_confidence(date_info, poster_type, has_details)

        warnings: list[str] = []
        for raw in unparsed:
            warnings.append(f"Unrecognised date format: {raw}")
        if date_info is None:
            if poster_type not in DATE_OPTIONAL_TYPES:
                warnings.append("No date information extracted")
        elif date_info.year is None:
            warnings.append("Year not identified")

        if poster_type in DATE_OPTIONAL_TYPES and date_info is None:
            status = PhaseStatus.COMPLETED
        else:
            status = self._status_for(confidence, force_review=bool(unparsed))

        iso = (date_info.iso or date_info.raw_value) if date_info else None
        context.set_field("event_date", iso, confidence, self.phase)
        context.set_field("year", year, confidence, self.phase)
        context.set_field("door_time", door_time, confidence, self.phase)
        context.set_field("show_time", show_time, confidence, self.phase)
        context.set_field("ticket_price", ticket_price, confidence, self.phase)
        context.set_field("age_restriction", age_restriction, confidence, self.phase)
        context.set_field("promoter", promoter, confidence, self.phase)

        return EventPhaseResult(
            status=status,
            confidence=confidence,
            processing_time_ms=elapsed_ms(started),
            warnings=warnings,
            poster_type=poster_type,
            event_date=date_info,
            shows=shows,
            year=year,
            decade=decade_of(year),
            door_time=door_time,
            show_time=show_time,
            ticket_price=ticket_price,
            age_restriction=age_restriction,
            promoter=promoter,
        )

    def _failure_result(self, status: PhaseStatus, error: str, elapsed_ms: int) -> EventPhaseResult:
        return EventPhaseResult(
            status=status,
            confidence=0.0,
            processing_time_ms=elapsed_ms,
            error=error,
        )
