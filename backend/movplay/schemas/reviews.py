"""
Review request/response schemas.
"""
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from movplay.schemas.movies import MovieSummary, RatingSummary


class CreateReviewRequest(BaseModel):
    """Review a movie by its TMDB id."""

    tmdb_id: str | int
    rating: float = Field(..., ge=0.5, le=10)
    title: str | None = Field(default=None, max_length=200)
    comment: str | None = Field(default=None, max_length=2000)
    spoiler_warning: bool = False


class UpdateReviewRequest(BaseModel):
    """Partial update; omitted fields stay as they are."""

    rating: float | None = Field(default=None, ge=0.5, le=10)
    title: str | None = Field(default=None, max_length=200)
    comment: str | None = Field(default=None, max_length=2000)
    spoiler_warning: bool | None = None


class HelpfulRequest(BaseModel):
    is_helpful: bool


class ReportRequest(BaseModel):
    reason: Literal["spam", "inappropriate", "spoiler", "offensive", "other"]


class VisibilityRequest(BaseModel):
    is_visible: bool


class ReviewResponse(BaseModel):
    """A single review."""

    id: UUID
    user_id: UUID
    username: str
    avatar_url: str | None = None
    movie: MovieSummary
    tmdb_id: str
    rating: float
    title: str | None = None
    comment: str | None = None
    spoiler_warning: bool = False
    is_visible: bool = True
    helpful_score: int = 0
    total_votes: int = 0
    edited_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    movie_rating: RatingSummary | None = None


class ReviewPage(BaseModel):
    """Paginated list of reviews."""

    results: list[ReviewResponse]
    page: int
    total_pages: int
    total_results: int


class HelpfulVoteResponse(BaseModel):
    review_id: UUID
    helpful_score: int
    total_votes: int
    viewer_vote: bool | None = None


class ReportResponse(BaseModel):
    review_id: UUID
    reason: str
    reported_at: datetime
    created: bool
