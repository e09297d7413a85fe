"""Discogs lookup implementing IReferenceLookup via python3-discogs-client.

The client is built lazily on first use with the personal user token and
every call is offloaded to a worker thread, since the library is
synchronous.  Requests are spaced at least one second apart to stay under
the 60 requests/minute ceiling.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import discogs_client
from discogs_client.exceptions import DiscogsAPIError

from src.config.settings import Settings
from src.interfaces.reference_lookup import (
    IReferenceLookup,
    ReferenceArtist,
    ReferenceFilm,
    ReferenceRelease,
)
from src.utils.errors import EnrichmentError
from src.utils.logging import get_logger

_MIN_REQUEST_INTERVAL = 1.0
_MAX_SEARCH_RESULTS = 5


class DiscogsLookup(IReferenceLookup):
    """Release lookup backed by the Discogs database API."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: discogs_client.Client | None = None
        self._last_request_time: float = 0.0
        self._logger = get_logger(__name__)
        self._user_agent = f"{settings.musicbrainz_app_name}/{settings.musicbrainz_app_version}"

    # -- Private helpers -------------------------------------------------------

    def _get_client(self) -> discogs_client.Client:
        if self._client is None:
            self._client = discogs_client.Client(
                self._user_agent, user_token=self._settings.discogs_user_token
            )
        return self._client

    async def _throttle(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_request_time
        if self._last_request_time > 0 and elapsed < _MIN_REQUEST_INTERVAL:
            await asyncio.sleep(_MIN_REQUEST_INTERVAL - elapsed)
        self._last_request_time = time.monotonic()

    @staticmethod
    def _split_title(raw_title: str) -> tuple[str | None, str]:
        """Discogs search titles read ``"Artist - Title"``."""
        if " - " in raw_title:
            artist, title = raw_title.split(" - ", 1)
            return artist.strip(), title.strip()
        return None, raw_title.strip()

    # -- Sync helpers (executed via asyncio.to_thread) -------------------------

    def _search_sync(self, query: str, **filters: Any) -> list[dict[str, Any]]:
        client = self._get_client()
        results = client.search(query, **filters)
        items: list[dict[str, Any]] = []
        for i, item in enumerate(results):
            if i >= _MAX_SEARCH_RESULTS:
                break
            data = dict(item.data)
            data.setdefault("id", item.id)
            items.append(data)
        return items

    async def _search(self, query: str, **filters: Any) -> list[dict[str, Any]]:
        await self._throttle()
        try:
            return await asyncio.to_thread(self._search_sync, query, **filters)
        except DiscogsAPIError as exc:
            raise EnrichmentError(
                message=f"Discogs search failed for '{query}': {exc}",
                provider_name=self.get_source_name(),
            ) from exc

    # -- IReferenceLookup implementation ---------------------------------------

    async def search_artist(self, name: str) -> list[ReferenceArtist]:
        items = await self._search(name, type="artist")
        return [
            ReferenceArtist(id=str(item["id"]), name=item.get("title", ""))
            for item in items
        ]

    async def search_release(self, title: str, artist: str | None = None) -> list[ReferenceRelease]:
        filters: dict[str, Any] = {"type": "release", "release_title": title}
        if artist:
            filters["artist"] = artist
        items = await self._search(title, **filters)

        releases: list[ReferenceRelease] = []
        for item in items:
            release_artist, release_title = self._split_title(item.get("title", ""))
            year_raw = item.get("year")
            year = int(year_raw) if str(year_raw or "").isdigit() else None
            releases.append(
                ReferenceRelease(
                    id=str(item["id"]),
                    title=release_title,
                    artist=release_artist,
                    date=str(year) if year else None,
                    year=year,
                    labels=list(item.get("label") or []),
                    country=item.get("country"),
                    genres=list(item.get("genre") or []),
                    styles=list(item.get("style") or []),
                )
            )
        self._logger.debug("discogs_release_search", query=title, result_count=len(releases))
        return releases

    async def search_film(self, title: str, year: int | None = None) -> list[ReferenceFilm]:
        return []

    def get_source_name(self) -> str:
        return "discogs"

    def is_available(self) -> bool:
        return bool(self._settings.discogs_user_token)
