"""
Local rating aggregation.

A movie's local rating is a plain mean over its visible reviews, recomputed
from scratch after every change to that set. Helpfulness votes are stored on
reviews but never weight the mean.
"""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from movplay.db.models import Review
from movplay.services.movie_service import get_movie_or_raise

logger = logging.getLogger(__name__)


def compute_rating(ratings: list[float]) -> dict:
    """Unweighted mean and count; an empty set yields zeros."""
    count = len(ratings)
    if count == 0:
        return {"average": 0.0, "count": 0}
    return {"average": sum(ratings) / count, "count": count}


def recompute_local_rating(db: Session, movie_id: UUID) -> dict:
    """
    Recompute and persist the local rating of one movie.

    Raises MovieNotFoundError if the movie row is gone. The review change that
    triggered the call is already committed and is not rolled back.
    """
    movie = get_movie_or_raise(db, movie_id)

    ratings = [
        row.rating
        for row in (
            db.query(Review.rating)
            .filter(Review.movie_id == movie_id, Review.is_visible.is_(True))
            .all()
        )
    ]
    result = compute_rating(ratings)

    movie.local_rating_average = result["average"]
    movie.local_rating_count = result["count"]
    db.add(movie)
    db.commit()

    logger.debug(
        "Local rating for movie %s is now %.3f over %d reviews",
        movie_id,
        result["average"],
        result["count"],
    )
    return result
