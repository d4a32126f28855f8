"""
Favorites — a per-user set of movies.

Adding twice or removing a non-member is a silent no-op. The movie's
favorite_count moves only on real membership transitions.
"""
import logging
import math
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from movplay.db.models import Movie, UserFavorite
from movplay.services.movie_service import (
    adjust_movie_counter,
    ensure_movie,
    get_movie_by_tmdb_id,
    movie_summary,
    normalize_tmdb_id,
)
from movplay.services.social_service import active_user_or_raise
from movplay.services.tmdb_client import CatalogProvider

logger = logging.getLogger(__name__)


def _favorites_query(db: Session, user_id: UUID):
    return (
        db.query(Movie)
        .join(UserFavorite, UserFavorite.movie_id == Movie.id)
        .filter(UserFavorite.user_id == user_id)
        .order_by(UserFavorite.created_at.asc(), Movie.title.asc())
    )


def list_favorites(db: Session, user_id: UUID) -> list[dict]:
    """The user's whole favorites set, oldest addition first."""
    return [movie_summary(movie) for movie in _favorites_query(db, user_id).all()]


def get_favorites_page(db: Session, user_id: UUID, page: int = 1, limit: int = 20) -> dict:
    query = _favorites_query(db, user_id)
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "results": [movie_summary(movie) for movie in rows],
        "page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total_results": total,
    }


def _is_favorite(db: Session, user_id: UUID, movie_id: UUID) -> bool:
    return (
        db.query(UserFavorite.movie_id)
        .filter(UserFavorite.user_id == user_id, UserFavorite.movie_id == movie_id)
        .first()
        is not None
    )


async def add_favorite(
    db: Session,
    user_id: UUID,
    tmdb_id: Any,
    catalog: CatalogProvider | None = None,
) -> list[dict]:
    """Add a movie to the user's favorites if it is not already there."""
    active_user_or_raise(db, user_id)
    movie = await ensure_movie(db, tmdb_id, catalog)

    if not _is_favorite(db, user_id, movie.id):
        db.add(UserFavorite(user_id=user_id, movie_id=movie.id))
        try:
            db.flush()
        except IntegrityError:
            # A concurrent add won; the set already holds the movie.
            db.rollback()
        else:
            adjust_movie_counter(db, movie.id, "favorite_count", 1)
            db.commit()
            logger.debug("User %s favorited %s", user_id, movie.tmdb_id)

    return list_favorites(db, user_id)


def remove_favorite(db: Session, user_id: UUID, tmdb_id: Any) -> list[dict]:
    """Remove a movie from the user's favorites; absent movies are ignored."""
    active_user_or_raise(db, user_id)
    movie = get_movie_by_tmdb_id(db, normalize_tmdb_id(tmdb_id))
    if movie is None:
        return list_favorites(db, user_id)

    removed = (
        db.query(UserFavorite)
        .filter(UserFavorite.user_id == user_id, UserFavorite.movie_id == movie.id)
        .delete(synchronize_session="fetch")
    )
    if removed:
        adjust_movie_counter(db, movie.id, "favorite_count", -1)
        logger.debug("User %s unfavorited %s", user_id, movie.tmdb_id)
    db.commit()

    return list_favorites(db, user_id)
