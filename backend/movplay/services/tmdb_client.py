"""
TMDB Catalog Client
───────────────────
Wraps the TMDB v3 REST API. Two roles:

  1. Catalog provider for the movie gateway: get_movie_details() returns a
     normalized snapshot that movie_service copies into a local Movie row.
  2. Pass-through for the discovery endpoints (search, discover, popular,
     trending, trailers, …).
     Those payloads are returned as-is apart from absolute image URLs.

Failure mapping:
  404                        → None from get_movie_details(), TMDBNotFoundError elsewhere
  401 / 429 / 5xx / network  → TMDBUpstreamError (503 at the HTTP boundary)
  missing API key            → TMDBConfigError   (503 at the HTTP boundary)
"""
import logging
from typing import Any, Protocol

import httpx

from movplay.core.config import settings
from movplay.core.errors import DependencyUnavailableError, NotFoundError

logger = logging.getLogger(__name__)

LIST_CATEGORIES = ("popular", "top_rated", "now_playing", "upcoming")
TRENDING_WINDOWS = ("day", "week")
DISCOVER_SORTS = (
    "popularity.desc",
    "popularity.asc",
    "vote_average.desc",
    "vote_average.asc",
    "primary_release_date.desc",
    "primary_release_date.asc",
    "revenue.desc",
    "title.asc",
)
DEFAULT_DISCOVER_SORT = "popularity.desc"
DEFAULT_DISCOVER_MIN_VOTES = 10
DEFAULT_REGION = "US"
DETAIL_APPENDS = "credits,videos,keywords"
CAST_LIMIT = 20
CREW_LIMIT = 20


class TMDBConfigError(DependencyUnavailableError):
    """Raised when the TMDB client is used without an API key."""

    code = "TMDB_NOT_CONFIGURED"


class TMDBUpstreamError(DependencyUnavailableError):
    """Raised when TMDB is unreachable, rate limited or returns garbage."""

    code = "TMDB_UNAVAILABLE"


class TMDBNotFoundError(NotFoundError):
    """Raised when TMDB has no record for the requested id."""

    code = "TMDB_NOT_FOUND"


class CatalogProvider(Protocol):
    """Anything that can produce a movie snapshot for a catalog id."""

    async def get_movie_details(self, tmdb_id: str) -> dict[str, Any] | None:
        ...


def image_url(path: str | None, size: str = "w500") -> str | None:
    """Prefix the TMDB image base URL onto an image path."""
    if not path:
        return None
    return f"{settings.TMDB_IMAGE_BASE_URL}/{size}{path}"


class TMDBClient:
    """
    Thin async wrapper around TMDB v3.

    A new httpx.AsyncClient is opened per call; *transport* lets tests swap
    in httpx.MockTransport.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.TMDB_API_KEY
        if not self.api_key:
            raise TMDBConfigError(
                "TMDB_API_KEY is not set. "
                "Add it to your .env file or pass it explicitly."
            )
        self._transport = transport

    # ── HTTP plumbing ─────────────────────────────────────────────────────────

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=settings.TMDB_BASE_URL,
            timeout=settings.TMDB_TIMEOUT_SECONDS,
            transport=self._transport,
        )

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        query: dict[str, Any] = {"api_key": self.api_key, "language": settings.TMDB_LANGUAGE}
        for key, value in (params or {}).items():
            if value is not None:
                query[key] = value

        try:
            async with self._client() as client:
                response = await client.get(path, params=query)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            if status_code == 404:
                raise TMDBNotFoundError(f"TMDB has no resource at {path}") from exc
            logger.warning("TMDB %s failed with status %s", path, status_code)
            if status_code == 401:
                raise TMDBUpstreamError("TMDB rejected the configured API key") from exc
            if status_code == 429:
                raise TMDBUpstreamError("TMDB rate limit exceeded") from exc
            raise TMDBUpstreamError(f"TMDB request failed with status {status_code}") from exc
        except httpx.RequestError as exc:
            logger.warning("TMDB %s request error: %s", path, exc)
            raise TMDBUpstreamError("TMDB request failed") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise TMDBUpstreamError("TMDB returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise TMDBUpstreamError("TMDB returned an unexpected payload")
        return payload

    # ── Catalog provider ──────────────────────────────────────────────────────

    async def get_movie_details(self, tmdb_id: str) -> dict[str, Any] | None:
        """
        Fetch one movie with credits, videos and keywords.

        Returns None if TMDB does not know the id.
        """
        try:
            raw = await self._get(f"/movie/{tmdb_id}", {"append_to_response": DETAIL_APPENDS})
        except TMDBNotFoundError:
            return None
        return map_movie_details(raw)

    # ── Discovery pass-through ────────────────────────────────────────────────

    async def search_movies(
        self,
        query: str,
        page: int = 1,
        *,
        year: int | None = None,
        include_adult: bool = False,
        region: str | None = None,
    ) -> dict[str, Any]:
        cleaned_query = query.strip()
        if not cleaned_query:
            return _empty_page(page)
        payload = await self._get(
            "/search/movie",
            {
                "query": cleaned_query,
                "page": page,
                "year": year,
                "include_adult": str(include_adult).lower(),
                "region": region,
            },
        )
        return _shape_page(payload)

    async def list_movies(self, category: str, page: int = 1, region: str | None = None) -> dict[str, Any]:
        """One of the curated TMDB lists: popular, top_rated, now_playing, upcoming."""
        if category not in LIST_CATEGORIES:
            raise ValueError(f"Unknown TMDB list {category!r}")
        payload = await self._get(f"/movie/{category}", {"page": page, "region": region})
        return _shape_page(payload)

    async def trending(self, time_window: str = "day", page: int = 1) -> dict[str, Any]:
        if time_window not in TRENDING_WINDOWS:
            raise ValueError(f"Unknown trending window {time_window!r}")
        payload = await self._get(f"/trending/movie/{time_window}", {"page": page})
        return _shape_page(payload)

    async def genres(self) -> list[dict[str, Any]]:
        payload = await self._get("/genre/movie/list")
        return list(payload.get("genres", []))

    async def recommendations(self, tmdb_id: str, page: int = 1) -> dict[str, Any]:
        payload = await self._get(f"/movie/{tmdb_id}/recommendations", {"page": page})
        return _shape_page(payload)

    async def similar(self, tmdb_id: str, page: int = 1) -> dict[str, Any]:
        payload = await self._get(f"/movie/{tmdb_id}/similar", {"page": page})
        return _shape_page(payload)

    async def discover(self, filters: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        TMDB /discover/movie.

        *filters* uses snake_case keys (genres, exclude_genres, min_rating,
        max_rating, min_votes, from_date, to_date, year, min_runtime,
        max_runtime, sort_by, region, page); unset or blank values are not sent.
        """
        filters = {key: value for key, value in (filters or {}).items() if value not in (None, "")}
        sort_by = filters.get("sort_by", DEFAULT_DISCOVER_SORT)
        if sort_by not in DISCOVER_SORTS:
            raise ValueError(f"Unknown discover sort {sort_by!r}")

        params = {
            "page": filters.get("page", 1),
            "sort_by": sort_by,
            "include_adult": "false",
            "include_video": "false",
            "with_genres": filters.get("genres"),
            "without_genres": filters.get("exclude_genres"),
            "vote_average.gte": filters.get("min_rating"),
            "vote_average.lte": filters.get("max_rating"),
            "vote_count.gte": filters.get("min_votes", DEFAULT_DISCOVER_MIN_VOTES),
            "primary_release_date.gte": filters.get("from_date"),
            "primary_release_date.lte": filters.get("to_date"),
            "primary_release_year": filters.get("year"),
            "with_runtime.gte": filters.get("min_runtime"),
            "with_runtime.lte": filters.get("max_runtime"),
            "region": filters.get("region", DEFAULT_REGION),
        }
        payload = await self._get("/discover/movie", params)
        return _shape_page(payload)

    async def trailers(self, tmdb_id: str) -> list[dict[str, Any]]:
        """YouTube trailers only; teasers, clips and other hosts are dropped."""
        payload = await self._get(f"/movie/{tmdb_id}/videos")
        return [
            video
            for video in payload.get("results") or []
            if isinstance(video, dict) and video.get("site") == "YouTube" and video.get("type") == "Trailer"
        ]


# ── Response shaping ──────────────────────────────────────────────────────────

def _empty_page(page: int) -> dict[str, Any]:
    return {"results": [], "page": page, "total_pages": 0, "total_results": 0}


def _with_images(item: dict[str, Any]) -> dict[str, Any]:
    shaped = dict(item)
    shaped["poster_url"] = image_url(item.get("poster_path"))
    shaped["backdrop_url"] = image_url(item.get("backdrop_path"), "w1280")
    return shaped


def _shape_page(payload: dict[str, Any]) -> dict[str, Any]:
    results = payload.get("results") or []
    return {
        "results": [_with_images(item) for item in results if isinstance(item, dict)],
        "page": payload.get("page", 1),
        "total_pages": payload.get("total_pages", 0),
        "total_results": payload.get("total_results", 0),
    }


def map_movie_details(raw: dict[str, Any]) -> dict[str, Any]:
    """Normalize a TMDB /movie/{id} payload into the snapshot stored on Movie."""
    if raw.get("id") is None or not raw.get("title"):
        raise TMDBUpstreamError("TMDB movie payload is missing id or title")

    credits = raw.get("credits") or {}
    cast = [
        {
            "id": person.get("id"),
            "name": person.get("name"),
            "character": person.get("character"),
            "order": person.get("order"),
            "profile_url": image_url(person.get("profile_path"), "w185"),
        }
        for person in (credits.get("cast") or [])[:CAST_LIMIT]
    ]
    crew = [
        {
            "id": person.get("id"),
            "name": person.get("name"),
            "job": person.get("job"),
            "department": person.get("department"),
            "profile_url": image_url(person.get("profile_path"), "w185"),
        }
        for person in (credits.get("crew") or [])[:CREW_LIMIT]
    ]
    companies = [
        {
            "id": company.get("id"),
            "name": company.get("name"),
            "origin_country": company.get("origin_country"),
            "logo_url": image_url(company.get("logo_path"), "w185"),
        }
        for company in raw.get("production_companies") or []
    ]

    return {
        "tmdb_id": str(raw["id"]),
        "title": raw["title"],
        "original_title": raw.get("original_title"),
        "genres": [
            {"id": genre.get("id"), "name": genre.get("name")}
            for genre in raw.get("genres") or []
            if genre.get("name")
        ],
        "release_date": raw.get("release_date") or None,
        "runtime": raw.get("runtime"),
        "vote_average": raw.get("vote_average"),
        "vote_count": raw.get("vote_count"),
        "poster_path": raw.get("poster_path"),
        "poster_url": image_url(raw.get("poster_path")),
        "backdrop_path": raw.get("backdrop_path"),
        "backdrop_url": image_url(raw.get("backdrop_path"), "w1280"),
        "overview": raw.get("overview"),
        "tagline": raw.get("tagline"),
        "status": raw.get("status"),
        "budget": raw.get("budget"),
        "revenue": raw.get("revenue"),
        "popularity": raw.get("popularity"),
        "adult": bool(raw.get("adult", False)),
        "attributes": {
            "spoken_languages": raw.get("spoken_languages") or [],
            "production_companies": companies,
            "production_countries": raw.get("production_countries") or [],
            "credits": {"cast": cast, "crew": crew},
            "videos": (raw.get("videos") or {}).get("results") or [],
            "keywords": (raw.get("keywords") or {}).get("keywords") or [],
        },
    }
