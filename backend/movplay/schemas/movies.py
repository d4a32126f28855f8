"""
Movie request/response schemas.

Catalog pages and credits are passed through from TMDB untouched, so they
are typed loosely as dicts.
"""
from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class RatingSummary(BaseModel):
    average: float
    count: int


class LocalData(BaseModel):
    """Engagement counters kept by MovPlay."""

    view_count: int
    favorite_count: int
    watchlist_count: int


class MovieSummary(BaseModel):
    """Compact movie shape embedded in other resources."""

    id: UUID
    tmdb_id: str
    title: str
    year: int | None = None
    poster_url: str | None = None
    local_rating: RatingSummary


class MovieResponse(MovieSummary):
    """Full local movie record."""

    original_title: str | None = None
    genres: list[dict[str, Any]] = []
    release_date: date | None = None
    runtime: int | None = None
    overview: str | None = None
    tagline: str | None = None
    status: str | None = None
    budget: int | None = None
    revenue: int | None = None
    popularity: float | None = None
    adult: bool = False
    backdrop_url: str | None = None
    tmdb_rating: RatingSummary
    local_data: LocalData
    attributes: dict[str, Any] = {}
    is_favorited: bool = False
    created_at: datetime
    updated_at: datetime


class CatalogPage(BaseModel):
    """One page of TMDB results."""

    results: list[dict[str, Any]]
    page: int
    total_pages: int
    total_results: int


class Genre(BaseModel):
    id: int
    name: str
