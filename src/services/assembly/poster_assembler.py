"""Turns an assembled :class:`PosterEntity` into graph nodes and edges.

Four strategies, chosen by poster type:

    album / hybrid   Album node, CREATED_BY artists, RELEASED_BY label
                     (hybrid additionally runs the event strategy)
    film             DIRECTED_BY director, STARS cast in billing order
    concert family   Venue, Event and one Show per date, PERFORMS_IN
                     with billing order, PROMOTED_BY promoter
    everything else  artists and venue linked straight to the poster

Node names are pure functions of the poster's fields, so assembling the
same fields twice resolves to the same nodes.  Every pass also links the
poster to one ``PosterType_<key>`` node per type inference.
"""

from __future__ import annotations

import re
import time
from typing import Any

import structlog

from src.interfaces.entity_persistence import IEntityPersistence
from src.interfaces.relation_persistence import IRelationPersistence
from src.models.graph import GraphEntityType, RelationType
from src.models.phases import (
    ArtistMatch,
    ArtistPhaseResult,
    AssemblyPhaseResult,
    EventPhaseResult,
    PhaseStatus,
    TypePhaseResult,
    VenueMatch,
    VenuePhaseResult,
)
from src.models.pipeline import ProcessingContext
from src.models.poster import EVENT_FAMILY, DateInfo, PosterEntity, PosterMetadata, PosterType
from src.services.assembly.graph_builder import GraphBuilder
from src.utils.errors import AssemblyError
from src.utils.logging import get_logger
from src.utils.text_normalizer import normalize_value, slugify

_ISO_DATE_RE = re.compile(r"^\d{4}(?:-\d{2}){0,2}$")

# Phase whose NEEDS_REVIEW status puts a field on the review list.
_REVIEW_FIELD_BY_PHASE: tuple[tuple[str, str], ...] = (
    ("type", "poster_type"),
    ("artist", "headliner"),
    ("venue", "venue_name"),
    ("event", "event_date"),
)


# ---------------------------------------------------------------------------
# Deterministic node names
# ---------------------------------------------------------------------------


def artist_node(name: str) -> str:
    return f"artist_{slugify(name)}"


def venue_node(name: str) -> str:
    return f"venue_{slugify(name)}"


def org_node(name: str) -> str:
    return f"org_{slugify(name)}"


def album_node(artist: str | None, title: str) -> str:
    return f"album_{slugify(artist) or 'unknown'}_{slugify(title)}"


def event_node(venue: str | None, date_slug: str, anchor: str | None = None) -> str:
    """Event id from venue and date; *anchor* tells apart events that have neither."""
    venue_slug = slugify(venue) or "none"
    if venue_slug == "none" and date_slug == "undated" and slugify(anchor):
        return f"event_{slugify(anchor)}_none_undated"
    return f"event_{venue_slug}_{date_slug}"



def show_node(artist: str | None, venue: str | None, date_slug: str) -> str:
    return f"show_{slugify(artist) or 'unknown'}_{slugify(venue) or 'none'}_{date_slug}"


def poster_type_node(type_key: PosterType | str) -> str:
    key = type_key.value if isinstance(type_key, PosterType) else type_key
    return f"PosterType_{key}"


def date_slug(date: DateInfo | None = None, raw: str | None = None, year: int | None = None) -> str:
    """``YYYY-MM-DD`` for full dates, ``YYYY`` for a bare year, else a slug of the raw text."""
    if date is not None:
        if date.year and date.month and date.day:
            return f"{date.year:04d}-{date.month:02d}-{date.day:02d}"
        if date.year:
            return str(date.year)
        raw = raw or date.raw_value
    if raw:
        return raw if _ISO_DATE_RE.match(raw) else slugify(raw)
    if year:
        return str(year)
    return "undated"


def fields_needing_review(statuses: dict[str, PhaseStatus]) -> list[str]:
    return [
        field
        for phase, field in _REVIEW_FIELD_BY_PHASE
        if statuses.get(phase) == PhaseStatus.NEEDS_REVIEW
    ]


# ---------------------------------------------------------------------------
# Entity construction from a run's context
# ---------------------------------------------------------------------------


def build_observations(entity: PosterEntity, type_result: TypePhaseResult | None = None) -> list[str]:
    observations = [f"Poster type: {entity.poster_type.value}"]
    if type_result is not None and type_result.visual_cues.style:
        observations.append(f"Visual style: {type_result.visual_cues.style}")
    if entity.title:
        observations.append(f"Title: {entity.title}")
    if entity.headliner:
        observations.append(f"Headliner: {entity.headliner}")
    if entity.supporting_acts:
        observations.append(f"Supporting acts: {', '.join(entity.supporting_acts)}")
    if entity.tour_name:
        observations.append(f"Tour name: {entity.tour_name}")
    if entity.venue_name:
        observations.append(f"Venue: {entity.venue_name}")
    if entity.city:
        observations.append(f"City: {entity.city}")
    if entity.event_date:
        observations.append(f"Date: {entity.event_date}")
    if entity.year:
        observations.append(f"Year: {entity.year}")
    if entity.director:
        observations.append(f"Director: {entity.director}")
    return observations


def build_poster_entity(context: ProcessingContext, vision_model: str) -> PosterEntity:
    """Fold the context's field values and phase results into a :class:`PosterEntity`."""
    type_result = context.get_phase_result("type")
    event_result = context.get_phase_result("event")

    inferred = []
    if isinstance(type_result, TypePhaseResult) and type_result.primary_type is not None:
        inferred.append(type_result.primary_type.model_copy(update={"is_primary": True}))
        inferred.extend(
            t.model_copy(update={"is_primary": False})
            for t in type_result.secondary_types
            if t.type_key != type_result.primary_type.type_key
        )

    year = context.get_field("year")
    entity = PosterEntity(
        name=context.poster_id,
        poster_type=context.poster_type,
        title=context.get_field("title"),
        headliner=context.get_field("headliner"),
        supporting_acts=list(context.get_field("supporting_acts", [])),
        venue_name=context.get_field("venue_name"),
        city=context.get_field("city"),
        state=context.get_field("state"),
        country=context.get_field("country"),
        event_date=context.get_field("event_date"),
        shows=list(event_result.shows) if isinstance(event_result, EventPhaseResult) else [],
        year=int(year) if year is not None else None,
        decade=event_result.decade if isinstance(event_result, EventPhaseResult) else None,
        door_time=context.get_field("door_time"),
        show_time=context.get_field("show_time"),
        ticket_price=context.get_field("ticket_price"),
        age_restriction=context.get_field("age_restriction"),
        promoter=context.get_field("promoter"),
        tour_name=context.get_field("tour_name"),
        record_label=context.get_field("record_label"),
        director=context.get_field("director"),
        cast=list(context.get_field("cast", [])),
        extracted_text=context.get_field("extracted_text"),
        inferred_types=inferred,
        metadata=PosterMetadata(
            source_image_hash=context.image.image_hash,
            vision_model=vision_model,
            processing_time_ms=sum(
                getattr(context.get_phase_result(p), "processing_time_ms", 0)
                for p in ("type", "artist", "venue", "event")
            ),
            extraction_confidence=context.overall_confidence(),
        ),
    )
    cues_source = type_result if isinstance(type_result, TypePhaseResult) else None
    return entity.model_copy(update={"observations": build_observations(entity, cues_source)})


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------


class PosterAssembler:
    """Writes a poster and its related nodes through a :class:`GraphBuilder`.

    Parameters
    ----------
    entity_store, relation_store:
        Persistence collaborators; either may be ``None``, in which case
        only the ledger is produced.
    """

    def __init__(
        self,
        entity_store: IEntityPersistence | None = None,
        relation_store: IRelationPersistence | None = None,
    ) -> None:
        self._entity_store = entity_store
        self._relation_store = relation_store
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def assemble(
        self,
        entity: PosterEntity,
        statuses: dict[str, PhaseStatus] | None = None,
        artist_result: ArtistPhaseResult | None = None,
        venue_result: VenuePhaseResult | None = None,
        skip_storage: bool = False,
        confidence: float = 0.0,
    ) -> AssemblyPhaseResult:
        """Build the graph for *entity* and return the ledger.

        Raises
        ------
        AssemblyError
            If the entity carries no name to anchor the graph on.
        """
        if not entity.name:
            raise AssemblyError(message="Poster entity has no name")

        started = time.monotonic()
        builder = GraphBuilder(self._entity_store, self._relation_store, skip_storage=skip_storage)
        pass_ = _AssemblyPass(builder, entity, artist_result, venue_result)

        poster = await builder.add_entity(
            entity.name,
            GraphEntityType.POSTER,
            observations=entity.observations,
            properties=entity.model_dump(
                mode="json", exclude={"name", "observations", "inferred_types", "shows"}
            ),
        )
        if poster is not None:
            poster_type = entity.poster_type
            if poster_type in (PosterType.ALBUM, PosterType.HYBRID):
                await pass_.album()
                if poster_type == PosterType.HYBRID:
                    await pass_.event()
            elif poster_type == PosterType.FILM:
                await pass_.film()
            elif poster_type in EVENT_FAMILY:
                await pass_.event()
            else:
                await pass_.basic()
            await pass_.type_links()

        review_fields = fields_needing_review(statuses or {})
        if builder.errors:
            status = PhaseStatus.PARTIAL
        elif review_fields:
            status = PhaseStatus.NEEDS_REVIEW
        else:
            status = PhaseStatus.COMPLETED

        self._logger.info(
            "assembly_complete",
            poster_id=entity.name,
            poster_type=entity.poster_type.value,
            entities=len(builder.entities),
            new_entities=sum(1 for e in builder.entities if e.is_new),
            relations=len(builder.relations),
            skip_storage=skip_storage,
        )
        return AssemblyPhaseResult(
            status=status,
            confidence=confidence,
            processing_time_ms=int((time.monotonic() - started) * 1000),
            warnings=builder.errors,
            entity=entity,
            entities_created=builder.entities,
            relationships_created=builder.relations,
            fields_needing_review=review_fields,
        )


class _AssemblyPass:
    """Strategy bodies for one :meth:`PosterAssembler.assemble` call."""

    def __init__(
        self,
        builder: GraphBuilder,
        entity: PosterEntity,
        artist_result: ArtistPhaseResult | None,
        venue_result: VenuePhaseResult | None,
    ) -> None:
        self.builder = builder
        self.entity = entity
        self.poster = entity.name
        self._matches: dict[str, ArtistMatch] = {}
        if artist_result is not None:
            for match in (
                artist_result.headliner,
                artist_result.director,
                *artist_result.supporting_acts,
                *artist_result.cast,
            ):
                if match is not None:
                    self._matches.setdefault(normalize_value(match.extracted_name), match)
                    self._matches.setdefault(normalize_value(match.display_name), match)
        self._venue: VenueMatch | None = venue_result.venue if venue_result is not None else None

    # -- shared node helpers ------------------------------------------------

    def canonical_artist(self, name: str | None) -> str | None:
        if not name:
            return None
        match = self._matches.get(normalize_value(name))
        return match.display_name if match is not None else name

    async def artist(self, name: str | None, role: str | None = None) -> str | None:
        canonical = self.canonical_artist(name)
        if not canonical:
            return None
        match = self._matches.get(normalize_value(canonical))
        external_id = match.external_id if match is not None else None
        properties: dict[str, Any] = {"name": canonical}
        if external_id:
            properties["external_id"] = external_id
        return await self.builder.add_entity(
            artist_node(canonical),
            GraphEntityType.ARTIST,
            observations=[
                f"Name: {canonical}",
                f"External ID: {external_id}" if external_id else "",
                f"Role: {role}" if role else "",
            ],
            properties=properties,
        )

    def canonical_venue(self) -> str | None:
        name = self.entity.venue_name
        if not name:
            return None
        venue = self._venue
        if venue is not None and normalize_value(name) in (
            normalize_value(venue.extracted_name),
            normalize_value(venue.display_name),
        ):
            return venue.display_name
        return name

    async def venue(self) -> str | None:
        name = self.canonical_venue()
        if not name:
            return None
        node = venue_node(name)
        if self._venue is not None and self._venue.existing_venue_id and name == self._venue.display_name:
            node = self._venue.existing_venue_id
        entity = self.entity
        return await self.builder.add_entity(
            node,
            GraphEntityType.VENUE,
            observations=[
                f"Name: {name}",
                f"City: {entity.city}" if entity.city else "",
                f"State: {entity.state}" if entity.state else "",
                f"Country: {entity.country}" if entity.country else "",
            ],
            properties={"name": name, "city": entity.city, "state": entity.state, "country": entity.country},
        )

    async def organization(self, name: str, org_type: str) -> str | None:
        return await self.builder.add_entity(
            org_node(name),
            GraphEntityType.ORGANIZATION,
            observations=[f"Name: {name}", f"Type: {org_type}"],
            properties={"name": name, "org_type": org_type},
        )

    async def year_show(self, artist_name: str, artist: str | None, kind: str) -> None:
        """A venue-less Show anchoring a release in time."""
        entity = self.entity
        if not entity.year or not artist:
            return
        show = await self.builder.add_entity(
            show_node(artist_name, None, str(entity.year)),
            GraphEntityType.SHOW,
            observations=[
                f"Year: {entity.year}",
                f"Release Date: {entity.event_date}" if entity.event_date else "",
                f"Artist: {artist_name}",
                f"Type: {kind} release",
                f"Title: {entity.title}" if entity.title else "",
            ],
        )
        await self.builder.add_relation(self.poster, show, RelationType.ADVERTISES_SHOW)
        await self.builder.add_relation(
            artist, show, RelationType.PERFORMS_IN, properties={"is_headliner": True, "billing_order": 1}
        )

    # -- strategies ----------------------------------------------------------

    async def album(self) -> None:
        entity = self.entity
        b = self.builder
        headliner_name = self.canonical_artist(entity.headliner)
        headliner = await self.artist(entity.headliner)

        title = entity.title or entity.name
        album = await b.add_entity(
            album_node(headliner_name, title),
            GraphEntityType.ALBUM,
            observations=[
                f"Title: {title}",
                f"Artist: {headliner_name}" if headliner_name else "",
                f"Release Year: {entity.year}" if entity.year else "",
                f"Record Label: {entity.record_label}" if entity.record_label else "",
                f"Release Date: {entity.event_date}" if entity.event_date else "",
            ],
            properties={"title": title, "year": entity.year},
        )
        await b.add_relation(self.poster, album, RelationType.ADVERTISES_ALBUM)
        await b.add_relation(album, headliner, RelationType.CREATED_BY, properties={"role": "primary"})
        await b.add_relation(headliner, self.poster, RelationType.HEADLINED_ON)

        if entity.record_label:
            label = await self.organization(entity.record_label, "record_label")
            await b.add_relation(album, label, RelationType.RELEASED_BY)

        for name in entity.supporting_acts:
            featured = await self.artist(name)
            await b.add_relation(album, featured, RelationType.CREATED_BY, properties={"role": "featured"})

        if headliner_name:
            await self.year_show(headliner_name, headliner, "album")

    async def film(self) -> None:
        entity = self.entity
        b = self.builder
        director = await self.artist(entity.director, role="director")
        await b.add_relation(self.poster, director, RelationType.DIRECTED_BY)

        for order, name in enumerate(entity.cast, start=1):
            actor = await self.artist(name, role="actor")
            await b.add_relation(self.poster, actor, RelationType.STARS, properties={"billing_order": order})

        headliner = None
        if not entity.cast and entity.headliner:
            headliner = await self.artist(entity.headliner)
            await b.add_relation(self.poster, headliner, RelationType.STARS, properties={"billing_order": 1})

        primary_name = self.canonical_artist(entity.director) or self.canonical_artist(entity.headliner)
        if primary_name:
            await self.year_show(primary_name, director or headliner, "film")

    async def event(self) -> None:
        entity = self.entity
        b = self.builder
        venue_name = self.canonical_venue()
        venue = await self.venue()
        await b.add_relation(self.poster, venue, RelationType.ADVERTISES_VENUE)

        headliner_name = self.canonical_artist(entity.headliner)
        headliner = await self.artist(entity.headliner)
        await b.add_relation(headliner, self.poster, RelationType.HEADLINED_ON)

        dates = self._show_dates()
        event_name = entity.tour_name or (f"{headliner_name} Live" if headliner_name else entity.title or entity.name)
        event = await b.add_entity(
            event_node(
                venue_name,
                dates[0][0] if dates else "undated",
                anchor=headliner_name or entity.title or entity.name,
            ),
            GraphEntityType.EVENT,
            observations=[
                f"Event Name: {event_name}",
                f"Event Type: {entity.poster_type.value}",
                f"Date: {entity.event_date}" if entity.event_date else "",
                f"Year: {entity.year}" if entity.year else "",
                f"Door Time: {entity.door_time}" if entity.door_time else "",
                f"Show Time: {entity.show_time}" if entity.show_time else "",
                f"Ticket Price: {entity.ticket_price}" if entity.ticket_price else "",
                f"Age Restriction: {entity.age_restriction}" if entity.age_restriction else "",
                f"Tour: {entity.tour_name}" if entity.tour_name else "",
            ],
            properties={"name": event_name, "event_type": entity.poster_type.value},
        )
        await b.add_relation(self.poster, event, RelationType.ADVERTISES_EVENT)
        await b.add_relation(event, venue, RelationType.HELD_AT)
        await b.add_relation(headliner, event, RelationType.HEADLINED)

        support: list[str | None] = []
        for name in entity.supporting_acts:
            act = await self.artist(name)
            support.append(act)
            await b.add_relation(act, self.poster, RelationType.PERFORMED_ON)
            await b.add_relation(act, event, RelationType.PERFORMED_AT)

        for index, (slug, raw) in enumerate(dates, start=1):
            show = await b.add_entity(
                show_node(headliner_name, venue_name, slug),
                GraphEntityType.SHOW,
                observations=[
                    f"Date: {raw}",
                    f"Show {index} of {len(dates)}" if len(dates) > 1 else "",
                    f"Headliner: {headliner_name}" if headliner_name else "",
                    f"Venue: {venue_name}" if venue_name else "",
                    f"City: {entity.city}" if entity.city else "",
                ],
            )
            await b.add_relation(self.poster, show, RelationType.ADVERTISES_SHOW)
            await b.add_relation(show, venue, RelationType.HELD_AT)
            await b.add_relation(
                headliner, show, RelationType.PERFORMS_IN, properties={"is_headliner": True, "billing_order": 1}
            )
            for order, act in enumerate(support, start=2):
                await b.add_relation(
                    act, show, RelationType.PERFORMS_IN, properties={"is_headliner": False, "billing_order": order}
                )
            await b.add_relation(show, event, RelationType.PART_OF_EVENT)

        if entity.promoter:
            promoter = await self.organization(entity.promoter, "promoter")
            await b.add_relation(event, promoter, RelationType.PROMOTED_BY)

    async def basic(self) -> None:
        b = self.builder
        headliner = await self.artist(self.entity.headliner)
        await b.add_relation(headliner, self.poster, RelationType.HEADLINED_ON)
        for name in self.entity.supporting_acts:
            act = await self.artist(name)
            await b.add_relation(act, self.poster, RelationType.PERFORMED_ON)
        venue = await self.venue()
        await b.add_relation(self.poster, venue, RelationType.ADVERTISES_VENUE)

    async def type_links(self) -> None:
        for inference in self.entity.inferred_types:
            key = inference.type_key.value
            node = await self.builder.add_entity(
                poster_type_node(key),
                GraphEntityType.POSTER_TYPE,
                observations=[f"Type: {key}"],
                properties={"type_key": key},
            )
            await self.builder.add_relation(
                self.poster,
                node,
                RelationType.HAS_TYPE,
                confidence=inference.confidence,
                properties={
                    "source": inference.source,
                    "evidence": list(inference.evidence),
                    "is_primary": inference.is_primary,
                },
            )

    def _show_dates(self) -> list[tuple[str, str]]:
        """``(date slug, raw text)`` per advertised show; one entry per distinct slug."""
        entity = self.entity
        dates: list[tuple[str, str]] = []
        if entity.shows:
            for show in entity.shows:
                dates.append((date_slug(show.date), show.date.raw_value))
        elif entity.event_date:
            dates.append((date_slug(raw=entity.event_date), entity.event_date))
        elif entity.year:
            dates.append((str(entity.year), str(entity.year)))

        unique: dict[str, str] = {}
        for slug, raw in dates:
            unique.setdefault(slug, raw)
        return list(unique.items())
