"""Abstract base class for external reference catalogs used by enrichment.

Enrichment asks a catalog (MusicBrainz, Discogs, TMDB) whether the names
read off a poster correspond to real artists, releases, or films, and
borrows missing facts (release year, label, director, cast) from the
best match.  Every lookup is best-effort: if no catalog is configured the
enrichment phase is skipped, and a failing catalog only adds an error
string to the phase result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ReferenceArtist:
    """An artist record in an external catalog."""

    id: str
    name: str
    disambiguation: str | None = None
    score: float = 0.0


@dataclass(frozen=True)
class ReferenceRelease:
    """A release (album, EP, single) in an external catalog.

    Attributes
    ----------
    date:
        Release date as the catalog returns it: ``YYYY``, ``YYYY-MM`` or
        ``YYYY-MM-DD``.
    """

    id: str
    title: str
    artist: str | None = None
    date: str | None = None
    year: int | None = None
    labels: list[str] = field(default_factory=list)
    country: str | None = None
    genres: list[str] = field(default_factory=list)
    styles: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReferenceFilm:
    id: str
    title: str
    release_date: str | None = None
    director: str | None = None
    cast: list[str] = field(default_factory=list)


# Concrete implementations: MusicBrainzLookup, DiscogsLookup, TMDBLookup
# Located in: src/providers/reference/
class IReferenceLookup(ABC):
    """Contract for best-effort catalog queries.

    A catalog that does not cover a category (TMDB has no record labels,
    MusicBrainz has no films) returns an empty list for it.
    """

    @abstractmethod
    async def search_artist(self, name: str) -> list[ReferenceArtist]:
        """Artists matching *name*, best first."""

    @abstractmethod
    async def search_release(self, title: str, artist: str | None = None) -> list[ReferenceRelease]:
        """Releases matching *title* (optionally by *artist*), best first."""

    @abstractmethod
    async def search_film(self, title: str, year: int | None = None) -> list[ReferenceFilm]:
        """Films matching *title*, best first, with director and cast filled in."""

    @abstractmethod
    def get_source_name(self) -> str:
        """Short identifier used in enrichment provenance, e.g. ``"musicbrainz"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the catalog is configured (credentials present)."""
