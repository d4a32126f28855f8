"""
Movies API — /movies
─────────────────────
Catalog discovery is proxied to TMDB; a movie only becomes a local record
the first time someone opens, rates, favorites or lists it.

Endpoints:
  GET /movies/search                      — TMDB title search
  GET /movies/discover                    — TMDB discover with filters
  GET /movies/popular                     — TMDB popular list
  GET /movies/top-rated                   — TMDB top rated list
  GET /movies/now-playing                 — TMDB now playing list
  GET /movies/upcoming                    — TMDB upcoming list
  GET /movies/trending                    — TMDB trending (day | week)
  GET /movies/genres                      — TMDB genre list
  GET /movies/{tmdb_id}                   — Local movie record (created on first view)
  GET /movies/{tmdb_id}/reviews           — Visible reviews for a movie
  GET /movies/{tmdb_id}/recommendations   — TMDB recommendations
  GET /movies/{tmdb_id}/similar           — TMDB similar movies
  GET /movies/{tmdb_id}/trailers          — YouTube trailers
"""
import re
from datetime import date
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from movplay.db.models import User
from movplay.db.session import get_db
from movplay.deps.auth import get_optional_user
from movplay.deps.catalog import get_catalog
from movplay.schemas.movies import CatalogPage, Genre, MovieResponse
from movplay.schemas.reviews import ReviewPage
from movplay.services.movie_service import get_movie_detail, normalize_tmdb_id
from movplay.services.review_service import list_movie_reviews
from movplay.services.tmdb_client import (
    DEFAULT_DISCOVER_MIN_VOTES,
    DEFAULT_DISCOVER_SORT,
    DEFAULT_REGION,
    DISCOVER_SORTS,
    TMDBClient,
)

router = APIRouter()

DISCOVER_SORT_PATTERN = "^(" + "|".join(re.escape(sort) for sort in DISCOVER_SORTS) + ")$"


# ── Discovery (TMDB pass-through) ─────────────────────────────────────────────

@router.get("/search", response_model=CatalogPage)
async def search_movies(
    query: str = Query(..., min_length=1, max_length=200, description="Search query"),
    page: int = Query(1, ge=1, le=500),
    year: int | None = Query(None, ge=1870, le=2100),
    catalog: TMDBClient = Depends(get_catalog),
) -> dict:
    return await catalog.search_movies(query, page, year=year)


@router.get("/discover", response_model=CatalogPage)
async def discover_movies(
    genres: str | None = Query(None, pattern=r"^\d+([,|]\d+)*$", description="Genre ids, ',' = all, '|' = any"),
    exclude_genres: str | None = Query(None, pattern=r"^\d+([,|]\d+)*$"),
    min_rating: float | None = Query(None, ge=0, le=10),
    max_rating: float | None = Query(None, ge=0, le=10),
    min_votes: int = Query(DEFAULT_DISCOVER_MIN_VOTES, ge=0),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    year: int | None = Query(None, ge=1870, le=2100),
    min_runtime: int | None = Query(None, ge=0),
    max_runtime: int | None = Query(None, ge=0),
    sort_by: str = Query(DEFAULT_DISCOVER_SORT, pattern=DISCOVER_SORT_PATTERN),
    region: str = Query(DEFAULT_REGION, min_length=2, max_length=2),
    page: int = Query(1, ge=1, le=500),
    catalog: TMDBClient = Depends(get_catalog),
) -> dict:
    """Filtered browse over the whole catalog, most popular first by default."""
    return await catalog.discover(
        {
            "genres": genres,
            "exclude_genres": exclude_genres,
            "min_rating": min_rating,
            "max_rating": max_rating,
            "min_votes": min_votes,
            "from_date": from_date.isoformat() if from_date else None,
            "to_date": to_date.isoformat() if to_date else None,
            "year": year,
            "min_runtime": min_runtime,
            "max_runtime": max_runtime,
            "sort_by": sort_by,
            "region": region.upper(),
            "page": page,
        }
    )


@router.get("/popular", response_model=CatalogPage)
async def popular_movies(
    page: int = Query(1, ge=1, le=500),
    region: str | None = Query(None, min_length=2, max_length=2),
    catalog: TMDBClient = Depends(get_catalog),
) -> dict:
    return await catalog.list_movies("popular", page, region)


@router.get("/top-rated", response_model=CatalogPage)
async def top_rated_movies(
    page: int = Query(1, ge=1, le=500),
    region: str | None = Query(None, min_length=2, max_length=2),
    catalog: TMDBClient = Depends(get_catalog),
) -> dict:
    return await catalog.list_movies("top_rated", page, region)


@router.get("/now-playing", response_model=CatalogPage)
async def now_playing_movies(
    page: int = Query(1, ge=1, le=500),
    region: str | None = Query(None, min_length=2, max_length=2),
    catalog: TMDBClient = Depends(get_catalog),
) -> dict:
    return await catalog.list_movies("now_playing", page, region)


@router.get("/upcoming", response_model=CatalogPage)
async def upcoming_movies(
    page: int = Query(1, ge=1, le=500),
    region: str | None = Query(None, min_length=2, max_length=2),
    catalog: TMDBClient = Depends(get_catalog),
) -> dict:
    return await catalog.list_movies("upcoming", page, region)


@router.get("/trending", response_model=CatalogPage)
async def trending_movies(
    time_window: Literal["day", "week"] = Query("day"),
    page: int = Query(1, ge=1, le=500),
    catalog: TMDBClient = Depends(get_catalog),
) -> dict:
    return await catalog.trending(time_window, page)


@router.get("/genres", response_model=list[Genre])
async def movie_genres(catalog: TMDBClient = Depends(get_catalog)) -> list[dict]:
    return await catalog.genres()


# ── Local movie record ────────────────────────────────────────────────────────

@router.get("/{tmdb_id}", response_model=MovieResponse)
async def get_movie(
    tmdb_id: str,
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> dict:
    """
    Resolve a movie by TMDB id, creating the local record on first access.

    Every call counts as a view.
    """
    viewer_id = current_user.id if current_user is not None else None
    return await get_movie_detail(db, tmdb_id, viewer_id)


@router.get("/{tmdb_id}/reviews", response_model=ReviewPage)
def get_movie_reviews(
    tmdb_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    sort_by: Literal["newest", "oldest", "highest", "lowest", "helpful"] = Query("newest"),
    db: Session = Depends(get_db),
) -> dict:
    return list_movie_reviews(db, tmdb_id, page=page, limit=limit, sort_by=sort_by)


@router.get("/{tmdb_id}/recommendations", response_model=CatalogPage)
async def movie_recommendations(
    tmdb_id: str,
    page: int = Query(1, ge=1, le=500),
    catalog: TMDBClient = Depends(get_catalog),
) -> dict:
    return await catalog.recommendations(normalize_tmdb_id(tmdb_id), page)


@router.get("/{tmdb_id}/similar", response_model=CatalogPage)
async def similar_movies(
    tmdb_id: str,
    page: int = Query(1, ge=1, le=500),
    catalog: TMDBClient = Depends(get_catalog),
) -> dict:
    return await catalog.similar(normalize_tmdb_id(tmdb_id), page)


@router.get("/{tmdb_id}/trailers", response_model=list[dict[str, Any]])
async def movie_trailers(
    tmdb_id: str,
    catalog: TMDBClient = Depends(get_catalog),
) -> list[dict]:
    return await catalog.trailers(normalize_tmdb_id(tmdb_id))
