"""MusicBrainz lookup implementing IReferenceLookup.

Uses the musicbrainzngs library.  MusicBrainz needs no API key but asks
clients to identify themselves with a user agent and stay under one
request per second, which :meth:`_throttle` enforces.  The library is
synchronous, so each call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import musicbrainzngs
import structlog

from src.config.settings import Settings
from src.interfaces.reference_lookup import (
    IReferenceLookup,
    ReferenceArtist,
    ReferenceFilm,
    ReferenceRelease,
)
from src.utils.errors import EnrichmentError

logger = structlog.get_logger(logger_name=__name__)

_MAX_RESULTS = 5


class MusicBrainzLookup(IReferenceLookup):
    """MusicBrainz artist/release lookup with built-in rate limiting."""

    _MIN_REQUEST_INTERVAL: float = 1.0

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._last_request_time: float = 0.0

        musicbrainzngs.set_useragent(
            settings.musicbrainz_app_name,
            settings.musicbrainz_app_version,
            settings.musicbrainz_contact or None,
        )

    async def _throttle(self) -> None:
        elapsed = time.monotonic() - self._last_request_time
        if elapsed < self._MIN_REQUEST_INTERVAL:
            await asyncio.sleep(self._MIN_REQUEST_INTERVAL - elapsed)
        self._last_request_time = time.monotonic()

    # ------------------------------------------------------------------
    # IReferenceLookup implementation
    # ------------------------------------------------------------------

    async def search_artist(self, name: str) -> list[ReferenceArtist]:
        await self._throttle()
        try:
            response = await asyncio.to_thread(
                musicbrainzngs.search_artists, query=name, limit=_MAX_RESULTS
            )
        except musicbrainzngs.WebServiceError as exc:
            raise EnrichmentError(
                message=f"MusicBrainz artist search failed for '{name}': {exc}",
                provider_name=self.get_source_name(),
            ) from exc

        results = [
            ReferenceArtist(
                id=artist["id"],
                name=artist.get("name", ""),
                disambiguation=artist.get("disambiguation"),
                score=int(artist.get("ext:score", 0)) / 100.0,
            )
            for artist in response.get("artist-list", [])
        ]
        logger.debug("musicbrainz_artist_search", query=name, result_count=len(results))
        return results

    async def search_release(self, title: str, artist: str | None = None) -> list[ReferenceRelease]:
        await self._throttle()
        kwargs: dict[str, Any] = {"release": title, "limit": _MAX_RESULTS}
        if artist:
            kwargs["artist"] = artist
        try:
            response = await asyncio.to_thread(musicbrainzngs.search_releases, **kwargs)
        except musicbrainzngs.WebServiceError as exc:
            raise EnrichmentError(
                message=f"MusicBrainz release search failed for '{title}': {exc}",
                provider_name=self.get_source_name(),
            ) from exc

        results = [self._map_release(rel) for rel in response.get("release-list", [])]
        logger.debug("musicbrainz_release_search", query=title, result_count=len(results))
        return results

    async def search_film(self, title: str, year: int | None = None) -> list[ReferenceFilm]:
        return []

    def get_source_name(self) -> str:
        return "musicbrainz"

    def is_available(self) -> bool:
        """MusicBrainz needs no credentials."""
        return True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _map_release(rel: dict) -> ReferenceRelease:
        labels: list[str] = []
        for info in rel.get("label-info-list", []):
            label = info.get("label") or {}
            if label.get("name"):
                labels.append(label["name"])

        year: int | None = None
        date_str = rel.get("date", "") or ""
        if len(date_str) >= 4 and date_str[:4].isdigit():
            year = int(date_str[:4])

        return ReferenceRelease(
            id=rel.get("id", ""),
            title=rel.get("title", ""),
            artist=rel.get("artist-credit-phrase"),
            date=date_str or None,
            year=year,
            labels=labels,
            country=rel.get("country"),
        )
