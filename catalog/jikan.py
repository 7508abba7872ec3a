import logging
from typing import Any
from urllib.parse import urlencode

import requests
from django.conf import settings
from django.core.cache import cache

from .exceptions import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10


class JikanClient:
    """Thin client for the public Jikan (MyAnimeList) v4 API."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.JIKAN_API_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    def _get(self, path: str, params: dict | None = None) -> dict[str, Any]:
        cache_key = f"jikan:{path}?{urlencode(sorted((params or {}).items()))}"
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        logger.debug("Jikan GET %s %s", path, params or {})
        try:
            resp = requests.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError("Failed to fetch data from Jikan API", original_error=e) from e
        if not resp.ok:
            raise UpstreamError(
                "Failed to fetch data from Jikan API",
                details={"status_code": resp.status_code, "body": resp.text[:2000]},
            )
        data = resp.json()
        cache.set(cache_key, data, settings.JIKAN_CACHE_SECONDS)
        return data

    def search(self, query: str, limit: int = SEARCH_LIMIT) -> dict[str, Any]:
        if not query:
            raise ValidationError('Search query "q" is required.')
        return self._get("/anime", {"q": query, "limit": limit})

    def get_anime(self, mal_id: int) -> dict[str, Any]:
        return self._get(f"/anime/{mal_id}").get("data") or {}

    def get_characters(self, mal_id: int) -> dict[str, Any]:
        return self._get(f"/anime/{mal_id}/characters")


def series_fields(anime: dict[str, Any]) -> dict[str, Any]:
    """Map a Jikan anime record onto AnimeSeries fields."""
    images = (anime.get("images") or {}).get("jpg") or {}
    year = anime.get("year")
    if not year:
        # Older entries only carry aired.prop.from.year
        year = (((anime.get("aired") or {}).get("prop") or {}).get("from") or {}).get("year")
    return {
        "mal_id": anime.get("mal_id"),
        "title_english": anime.get("title_english") or anime.get("title") or "",
        "title_romaji": anime.get("title") or "",
        "synopsis": anime.get("synopsis") or "",
        "poster_url": images.get("large_image_url") or images.get("image_url") or "",
        "status": anime.get("status") or "",
        "release_year": year,
        "score": anime.get("score"),
        "episodes_total": anime.get("episodes"),
    }


def genre_names(anime: dict[str, Any]) -> list[str]:
    names = []
    for g in (anime.get("genres") or []) + (anime.get("themes") or []):
        name = (g.get("name") or "").strip()
        if name and name not in names:
            names.append(name)
    return names
