"""
Movie gateway — lazy local caching of TMDB movies.

Every feature that references a movie by its TMDB id (details, favorites,
reviews, watchlists) resolves it through ensure_movie(), which creates the
local row from a catalog snapshot on first reference.
"""
import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from movplay.core.errors import InvalidInputError, NotFoundError
from movplay.db.models import Movie, UserFavorite
from movplay.services.tmdb_client import CatalogProvider, TMDBClient

logger = logging.getLogger(__name__)

TMDB_ID_MAX_LENGTH = 32
COUNTER_COLUMNS = ("view_count", "favorite_count", "watchlist_count")


class MovieNotFoundError(NotFoundError):
    """Raised when a movie exists neither locally nor in the catalog."""

    code = "MOVIE_NOT_FOUND"


class InvalidTmdbIdError(InvalidInputError):
    """Raised when a catalog id is empty or malformed."""

    code = "INVALID_TMDB_ID"


def normalize_tmdb_id(tmdb_id: Any) -> str:
    """Catalog ids are stored as strings; accept ints from JSON bodies too."""
    if tmdb_id is None or isinstance(tmdb_id, bool):
        raise InvalidTmdbIdError("Movie TMDB ID is required")
    value = str(tmdb_id).strip()
    if not value:
        raise InvalidTmdbIdError("Movie TMDB ID is required")
    if len(value) > TMDB_ID_MAX_LENGTH:
        raise InvalidTmdbIdError("Movie TMDB ID is too long")
    return value


def _parse_release_date(value: Any) -> date | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def build_movie(tmdb_id: str, snapshot: dict[str, Any]) -> Movie:
    """Construct an unsaved Movie from a catalog snapshot with zeroed local state."""
    release_date = _parse_release_date(snapshot.get("release_date"))
    return Movie(
        tmdb_id=tmdb_id,
        title=snapshot.get("title") or "Untitled",
        original_title=snapshot.get("original_title"),
        genres=list(snapshot.get("genres") or []),
        year=release_date.year if release_date else None,
        release_date=release_date,
        runtime=snapshot.get("runtime"),
        overview=snapshot.get("overview"),
        tagline=snapshot.get("tagline"),
        status=snapshot.get("status"),
        budget=snapshot.get("budget"),
        revenue=snapshot.get("revenue"),
        popularity=snapshot.get("popularity"),
        adult=bool(snapshot.get("adult", False)),
        poster_path=snapshot.get("poster_path"),
        poster_url=snapshot.get("poster_url"),
        backdrop_path=snapshot.get("backdrop_path"),
        backdrop_url=snapshot.get("backdrop_url"),
        attributes=dict(snapshot.get("attributes") or {}),
        tmdb_rating_average=snapshot.get("vote_average"),
        tmdb_rating_count=snapshot.get("vote_count"),
        local_rating_average=0.0,
        local_rating_count=0,
        view_count=0,
        favorite_count=0,
        watchlist_count=0,
    )


def get_movie_by_tmdb_id(db: Session, tmdb_id: str) -> Movie | None:
    return db.query(Movie).filter(Movie.tmdb_id == tmdb_id).first()


def get_movie_or_raise(db: Session, movie_id: UUID) -> Movie:
    movie = db.query(Movie).filter(Movie.id == movie_id).first()
    if movie is None:
        raise MovieNotFoundError(f"Movie {movie_id} not found")
    return movie


async def ensure_movie(
    db: Session,
    tmdb_id: Any,
    catalog: CatalogProvider | None = None,
) -> Movie:
    """
    Return the local Movie for *tmdb_id*, creating it from the catalog if needed.

    An existing row is returned untouched (no refresh of catalog fields).
    Concurrent first references race on the unique tmdb_id index; the loser's
    IntegrityError is turned into a re-read of the winner's row.

    Raises MovieNotFoundError when the catalog has no such movie and
    DependencyUnavailableError subclasses when the catalog cannot be reached.
    """
    tmdb_id = normalize_tmdb_id(tmdb_id)

    movie = get_movie_by_tmdb_id(db, tmdb_id)
    if movie is not None:
        return movie

    provider = catalog if catalog is not None else TMDBClient()
    snapshot = await provider.get_movie_details(tmdb_id)
    if snapshot is None:
        raise MovieNotFoundError(f"Movie {tmdb_id} not found in catalog")

    movie = build_movie(tmdb_id, snapshot)
    db.add(movie)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        existing = get_movie_by_tmdb_id(db, tmdb_id)
        if existing is None:
            raise
        logger.warning("Concurrent insert for tmdb_id=%s; using the committed row", tmdb_id)
        return existing

    db.commit()
    db.refresh(movie)
    logger.info("Cached movie tmdb_id=%s title=%r", tmdb_id, movie.title)
    return movie


def adjust_movie_counter(db: Session, movie_id: UUID, counter: str, delta: int) -> None:
    """
    Atomically add *delta* to one of the movie's counters.

    Decrements only apply while the counter can absorb them, so a counter
    never drops below zero. The caller commits.
    """
    if counter not in COUNTER_COLUMNS:
        raise ValueError(f"Unknown movie counter {counter!r}")
    column = getattr(Movie, counter)
    query = db.query(Movie).filter(Movie.id == movie_id)
    if delta < 0:
        query = query.filter(column >= -delta)
    query.update({column: column + delta}, synchronize_session="fetch")


def is_favorited(db: Session, user_id: UUID | None, movie_id: UUID) -> bool:
    if user_id is None:
        return False
    return (
        db.query(UserFavorite)
        .filter(UserFavorite.user_id == user_id, UserFavorite.movie_id == movie_id)
        .first()
        is not None
    )


async def get_movie_detail(
    db: Session,
    tmdb_id: Any,
    viewer_id: UUID | None = None,
    catalog: CatalogProvider | None = None,
) -> dict:
    """Resolve a movie, count the view, and return its detail payload."""
    movie = await ensure_movie(db, tmdb_id, catalog)
    adjust_movie_counter(db, movie.id, "view_count", 1)
    db.commit()
    db.refresh(movie)

    payload = movie_to_dict(movie)
    payload["is_favorited"] = is_favorited(db, viewer_id, movie.id)
    return payload


def movie_summary(movie: Movie) -> dict:
    """Compact movie shape embedded in favorites, reviews and watchlists."""
    return {
        "id": movie.id,
        "tmdb_id": movie.tmdb_id,
        "title": movie.title,
        "year": movie.year,
        "poster_url": movie.poster_url,
        "local_rating": {
            "average": movie.local_rating_average,
            "count": movie.local_rating_count,
        },
    }


def movie_to_dict(movie: Movie) -> dict:
    attrs = movie.attributes or {}
    return {
        **movie_summary(movie),
        "original_title": movie.original_title,
        "genres": movie.genres or [],
        "release_date": movie.release_date,
        "runtime": movie.runtime,
        "overview": movie.overview,
        "tagline": movie.tagline,
        "status": movie.status,
        "budget": movie.budget,
        "revenue": movie.revenue,
        "popularity": movie.popularity,
        "adult": bool(movie.adult),
        "backdrop_url": movie.backdrop_url,
        "tmdb_rating": {
            "average": movie.tmdb_rating_average,
            "count": movie.tmdb_rating_count,
        },
        "local_data": {
            "view_count": movie.view_count,
            "favorite_count": movie.favorite_count,
            "watchlist_count": movie.watchlist_count,
        },
        "attributes": attrs,
        "created_at": movie.created_at,
        "updated_at": movie.updated_at,
    }
