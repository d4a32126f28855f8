"""
Favorites request/response schemas.
"""
from pydantic import BaseModel

from movplay.schemas.movies import MovieSummary


class AddFavoriteRequest(BaseModel):
    tmdb_id: str | int


class FavoritesPage(BaseModel):
    """Paginated favorites of the current user."""

    results: list[MovieSummary]
    page: int
    total_pages: int
    total_results: int
