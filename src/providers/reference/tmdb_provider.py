"""TMDB (The Movie Database) lookup implementing IReferenceLookup.

Talks to the v3 REST API over an injected ``httpx.AsyncClient``.  A film
search is followed by one credits request for the best hit so the result
carries the director and top-billed cast.
"""

from __future__ import annotations

from typing import Any

import httpx

from src.interfaces.reference_lookup import (
    IReferenceLookup,
    ReferenceArtist,
    ReferenceFilm,
    ReferenceRelease,
)
from src.utils.errors import EnrichmentError
from src.utils.logging import get_logger

_BASE_URL = "https://api.themoviedb.org/3"
_MAX_CAST = 5


class TMDBLookup(IReferenceLookup):
    """Film lookup backed by TMDB.

    Parameters
    ----------
    http_client:
        Shared async client; injected so tests can mount a mock transport.
    api_key:
        TMDB v3 API key.  Without one the lookup reports itself unavailable.
    """

    def __init__(self, http_client: httpx.AsyncClient, api_key: str) -> None:
        self._http = http_client
        self._api_key = api_key
        self._logger = get_logger(__name__)

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._http.get(
                f"{_BASE_URL}{path}", params={"api_key": self._api_key, **params}
            )
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise EnrichmentError(
                message=f"TMDB request {path} failed: {exc}",
                provider_name=self.get_source_name(),
            ) from exc

    # -- IReferenceLookup implementation ---------------------------------------

    async def search_artist(self, name: str) -> list[ReferenceArtist]:
        return []

    async def search_release(self, title: str, artist: str | None = None) -> list[ReferenceRelease]:
        return []

    async def search_film(self, title: str, year: int | None = None) -> list[ReferenceFilm]:
        params: dict[str, Any] = {"query": title}
        if year:
            params["year"] = year
        payload = await self._get("/search/movie", params)
        hits = payload.get("results") or []
        if not hits:
            return []

        films: list[ReferenceFilm] = []
        for index, hit in enumerate(hits[:_MAX_CAST]):
            director: str | None = None
            cast: list[str] = []
            # Credits for the best hit only.
            if index == 0:
                credits = await self._get(f"/movie/{hit['id']}/credits", {})
                director = next(
                    (
                        member.get("name")
                        for member in credits.get("crew", [])
                        if member.get("job") == "Director"
                    ),
                    None,
                )
                ordered = sorted(credits.get("cast", []), key=lambda c: c.get("order", 0))
                cast = [member["name"] for member in ordered[:_MAX_CAST] if member.get("name")]
            films.append(
                ReferenceFilm(
                    id=str(hit["id"]),
                    title=hit.get("title", ""),
                    release_date=hit.get("release_date") or None,
                    director=director,
                    cast=cast,
                )
            )
        self._logger.debug("tmdb_film_search", query=title, result_count=len(films))
        return films

    def get_source_name(self) -> str:
        return "tmdb"

    def is_available(self) -> bool:
        return bool(self._api_key)
