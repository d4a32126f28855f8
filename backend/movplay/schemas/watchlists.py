"""
Watchlist request/response schemas.
"""
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from movplay.schemas.movies import MovieSummary


class CreateWatchlistRequest(BaseModel):
    """Create a new watchlist."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default="", max_length=500)
    is_public: bool = False
    is_default: bool = False
    tags: list[str] = []


class UpdateWatchlistRequest(BaseModel):
    """Partial update; omitted fields stay as they are."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_public: bool | None = None
    is_default: bool | None = None
    tags: list[str] | None = None


class AddMovieRequest(BaseModel):
    """Add a movie to a watchlist."""

    tmdb_id: str | int


class MarkWatchedRequest(BaseModel):
    rating: float | None = Field(default=None, ge=0.5, le=10)
    notes: str | None = Field(default=None, max_length=1000)


class AddCollaboratorRequest(BaseModel):
    user_id: UUID
    permission: Literal["view", "edit", "admin"] = "view"


class WatchlistEntryResponse(BaseModel):
    """One movie in a watchlist."""

    id: UUID
    tmdb_id: str
    movie: MovieSummary
    added_at: datetime
    watched: bool = False
    watched_at: datetime | None = None
    personal_rating: float | None = None
    personal_notes: str = ""


class CollaboratorResponse(BaseModel):
    user_id: UUID
    username: str
    permission: str
    added_at: datetime


class WatchlistSummaryResponse(BaseModel):
    """Watchlist header with derived counts."""

    id: UUID
    user_id: UUID
    owner_username: str
    name: str
    description: str = ""
    is_public: bool
    is_default: bool
    tags: list[str] = []
    views: int = 0
    movie_count: int = 0
    watched_count: int = 0
    like_count: int = 0
    is_liked: bool = False
    completion_percentage: int = 0
    created_at: datetime
    updated_at: datetime


class WatchlistDetailResponse(WatchlistSummaryResponse):
    """Watchlist with its movies and collaborators."""

    movies: list[WatchlistEntryResponse] = []
    collaborators: list[CollaboratorResponse] = []


class WatchlistPage(BaseModel):
    results: list[WatchlistSummaryResponse]
    page: int
    total_pages: int
    total_results: int


class LikeResponse(BaseModel):
    watchlist_id: UUID
    like_count: int
    is_liked: bool
