"""
Review business logic.

Ownership rules: only the author edits or deletes a review; only other users
vote on its helpfulness or report it; only admins change its visibility.
Every change to the visible rating set ends with recompute_local_rating().
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from movplay.core.errors import ConflictError, InvalidInputError, NotFoundError, PermissionDeniedError
from movplay.db.models import ReportReasonEnum, Review, ReviewHelpfulVote, ReviewReport, User
from movplay.services.movie_service import ensure_movie, get_movie_by_tmdb_id, movie_summary, normalize_tmdb_id
from movplay.services.rating_service import recompute_local_rating
from movplay.services.tmdb_client import CatalogProvider

logger = logging.getLogger(__name__)

RATING_MIN = 0.5
RATING_MAX = 10.0
TITLE_MAX_LENGTH = 200
COMMENT_MAX_LENGTH = 2000
SORT_OPTIONS = ("newest", "oldest", "highest", "lowest", "helpful")


class ReviewNotFoundError(NotFoundError):
    """Raised when a review does not exist."""

    code = "REVIEW_NOT_FOUND"


class NotReviewOwnerError(PermissionDeniedError):
    """Raised when a user tries to modify another user's review."""

    code = "NOT_REVIEW_OWNER"


class OwnReviewActionError(PermissionDeniedError):
    """Raised when an author votes on or reports their own review."""

    code = "OWN_REVIEW"


class DuplicateReviewError(ConflictError):
    """Raised when a user already reviewed this movie."""

    code = "ALREADY_REVIEWED"


class InvalidRatingError(InvalidInputError):
    """Raised for ratings outside 0.5–10 or not on a half step."""

    code = "INVALID_RATING"


class InvalidReviewError(InvalidInputError):
    """Raised for over-long review text or unknown report reasons."""

    code = "INVALID_REVIEW"


# ── Validation ────────────────────────────────────────────────────────────────

def validate_rating(rating: Any) -> float:
    """Return *rating* as a float, or raise InvalidRatingError."""
    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        raise InvalidRatingError("Rating must be a number")
    value = float(rating)
    if math.isnan(value) or value < RATING_MIN or value > RATING_MAX:
        raise InvalidRatingError("Rating must be between 0.5 and 10")
    if not (value * 2).is_integer():
        raise InvalidRatingError("Rating must be in 0.5 increments")
    return value


def _clean_text(value: str | None, max_length: int, label: str) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if len(cleaned) > max_length:
        raise InvalidReviewError(f"Review {label} cannot exceed {max_length} characters")
    return cleaned or None


def _parse_reason(reason: Any) -> ReportReasonEnum:
    try:
        return ReportReasonEnum(reason)
    except ValueError as exc:
        allowed = ", ".join(r.value for r in ReportReasonEnum)
        raise InvalidReviewError(f"Report reason must be one of: {allowed}") from exc


# ── Lookups ───────────────────────────────────────────────────────────────────

def _get_review_or_raise(db: Session, review_id: UUID) -> Review:
    review = db.query(Review).filter(Review.id == review_id).first()
    if review is None:
        raise ReviewNotFoundError(f"Review {review_id} not found")
    return review


def _owned_review_or_raise(db: Session, user_id: UUID, review_id: UUID) -> Review:
    review = _get_review_or_raise(db, review_id)
    if review.user_id != user_id:
        raise NotReviewOwnerError("You can only modify your own reviews")
    return review


def _foreign_review_or_raise(db: Session, user_id: UUID, review_id: UUID) -> Review:
    review = _get_review_or_raise(db, review_id)
    if review.user_id == user_id:
        raise OwnReviewActionError("You cannot vote on or report your own review")
    return review


def review_to_dict(review: Review) -> dict:
    user = review.user
    return {
        "id": review.id,
        "user_id": review.user_id,
        "username": user.username if user else "unknown",
        "avatar_url": user.avatar_url if user else None,
        "movie": movie_summary(review.movie),
        "tmdb_id": review.tmdb_id,
        "rating": review.rating,
        "title": review.title,
        "comment": review.comment,
        "spoiler_warning": review.spoiler_warning,
        "is_visible": review.is_visible,
        "helpful_score": review.helpful_score,
        "total_votes": review.total_votes,
        "edited_at": review.edited_at,
        "created_at": review.created_at,
        "updated_at": review.updated_at,
    }


def _reload(db: Session, review_id: UUID) -> Review:
    return (
        db.query(Review)
        .options(
            joinedload(Review.user),
            joinedload(Review.movie),
            selectinload(Review.helpful_votes),
        )
        .filter(Review.id == review_id)
        .populate_existing()
        .one()
    )


# ── Author operations ─────────────────────────────────────────────────────────

def _find_review(db: Session, user_id: UUID, movie_id: UUID) -> Review | None:
    return db.query(Review).filter(Review.user_id == user_id, Review.movie_id == movie_id).first()


async def create_review(
    db: Session,
    user_id: UUID,
    tmdb_id: Any,
    rating: Any,
    title: str | None = None,
    comment: str | None = None,
    spoiler_warning: bool = False,
    catalog: CatalogProvider | None = None,
) -> dict:
    """
    Create the caller's review of a movie and refresh the movie's local rating.

    The pre-check gives a friendly error; the unique (user, movie) constraint
    still decides concurrent duplicates, which surface the same way.
    """
    rating = validate_rating(rating)
    title = _clean_text(title, TITLE_MAX_LENGTH, "title")
    comment = _clean_text(comment, COMMENT_MAX_LENGTH, "comment")

    movie = await ensure_movie(db, tmdb_id, catalog)

    if _find_review(db, user_id, movie.id) is not None:
        raise DuplicateReviewError("You have already reviewed this movie")

    review = Review(
        user_id=user_id,
        movie_id=movie.id,
        tmdb_id=movie.tmdb_id,
        rating=rating,
        title=title,
        comment=comment,
        spoiler_warning=bool(spoiler_warning),
    )
    db.add(review)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateReviewError("You have already reviewed this movie") from exc
    db.commit()

    local_rating = recompute_local_rating(db, movie.id)
    logger.info("User %s reviewed movie %s with %.1f", user_id, movie.tmdb_id, rating)

    payload = review_to_dict(_reload(db, review.id))
    payload["movie_rating"] = local_rating
    return payload


def update_review(db: Session, user_id: UUID, review_id: UUID, updates: dict) -> dict:
    """Apply a partial update from the author; keys absent from *updates* are untouched."""
    review = _owned_review_or_raise(db, user_id, review_id)

    if updates.get("rating") is not None:
        review.rating = validate_rating(updates["rating"])
    if "title" in updates:
        review.title = _clean_text(updates["title"], TITLE_MAX_LENGTH, "title")
    if "comment" in updates:
        review.comment = _clean_text(updates["comment"], COMMENT_MAX_LENGTH, "comment")
    if updates.get("spoiler_warning") is not None:
        review.spoiler_warning = bool(updates["spoiler_warning"])
    review.edited_at = datetime.now(timezone.utc)

    db.add(review)
    db.commit()

    local_rating = recompute_local_rating(db, review.movie_id)
    payload = review_to_dict(_reload(db, review.id))
    payload["movie_rating"] = local_rating
    return payload


def delete_review(db: Session, user_id: UUID, review_id: UUID) -> dict:
    """Delete the author's review. Returns the movie's recomputed local rating."""
    review = _owned_review_or_raise(db, user_id, review_id)
    movie_id = review.movie_id

    db.delete(review)
    db.commit()

    return recompute_local_rating(db, movie_id)


# ── Moderation ────────────────────────────────────────────────────────────────

def set_review_visibility(db: Session, review_id: UUID, is_visible: bool) -> dict:
    """Hide or restore a review. Hidden reviews drop out of the local rating."""
    review = _get_review_or_raise(db, review_id)
    review.is_visible = bool(is_visible)
    db.add(review)
    db.commit()

    local_rating = recompute_local_rating(db, review.movie_id)
    logger.info("Review %s visibility set to %s", review_id, review.is_visible)

    payload = review_to_dict(_reload(db, review.id))
    payload["movie_rating"] = local_rating
    return payload


# ── Votes & reports ───────────────────────────────────────────────────────────

def _vote_summary(db: Session, review_id: UUID, user_id: UUID) -> dict:
    helpful, not_helpful = (
        db.query(
            func.coalesce(func.sum(case((ReviewHelpfulVote.is_helpful.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(case((ReviewHelpfulVote.is_helpful.is_(False), 1), else_=0)), 0),
        )
        .filter(ReviewHelpfulVote.review_id == review_id)
        .one()
    )
    own_vote = db.get(ReviewHelpfulVote, (review_id, user_id))
    return {
        "review_id": review_id,
        "helpful_score": int(helpful) - int(not_helpful),
        "total_votes": int(helpful) + int(not_helpful),
        "viewer_vote": own_vote.is_helpful if own_vote is not None else None,
    }


def mark_helpful(db: Session, user_id: UUID, review_id: UUID, is_helpful: bool) -> dict:
    """Record the caller's helpfulness vote; a later vote replaces the earlier one."""
    _foreign_review_or_raise(db, user_id, review_id)

    vote = db.get(ReviewHelpfulVote, (review_id, user_id))
    if vote is None:
        db.add(ReviewHelpfulVote(review_id=review_id, user_id=user_id, is_helpful=bool(is_helpful)))
        try:
            db.flush()
        except IntegrityError:
            # Another request from the same user inserted first; overwrite it.
            db.rollback()
            vote = db.get(ReviewHelpfulVote, (review_id, user_id))
            vote.is_helpful = bool(is_helpful)
    else:
        vote.is_helpful = bool(is_helpful)
    db.commit()

    return _vote_summary(db, review_id, user_id)


def remove_helpful_vote(db: Session, user_id: UUID, review_id: UUID) -> dict:
    _get_review_or_raise(db, review_id)
    (
        db.query(ReviewHelpfulVote)
        .filter(ReviewHelpfulVote.review_id == review_id, ReviewHelpfulVote.user_id == user_id)
        .delete(synchronize_session="fetch")
    )
    db.commit()
    return _vote_summary(db, review_id, user_id)


def report_review(db: Session, user_id: UUID, review_id: UUID, reason: Any) -> dict:
    """File one report per user per review; repeat reports are ignored."""
    parsed = _parse_reason(reason)
    _foreign_review_or_raise(db, user_id, review_id)

    report = db.get(ReviewReport, (review_id, user_id))
    created = False
    if report is None:
        report = ReviewReport(review_id=review_id, user_id=user_id, reason=parsed)
        db.add(report)
        try:
            db.commit()
            created = True
        except IntegrityError:
            db.rollback()
            report = db.get(ReviewReport, (review_id, user_id))
        else:
            logger.info("Review %s reported by %s for %s", review_id, user_id, parsed.value)

    return {
        "review_id": review_id,
        "reason": report.reason.value if hasattr(report.reason, "value") else str(report.reason),
        "reported_at": report.reported_at,
        "created": created,
    }


# ── Listings ──────────────────────────────────────────────────────────────────

def _helpful_score_expr():
    return (
        select(
            func.coalesce(
                func.sum(case((ReviewHelpfulVote.is_helpful.is_(True), 1), else_=-1)),
                0,
            )
        )
        .where(ReviewHelpfulVote.review_id == Review.id)
        .correlate(Review)
        .scalar_subquery()
    )


def _order_clauses(sort_by: str) -> list:
    if sort_by == "oldest":
        return [Review.created_at.asc()]
    if sort_by == "highest":
        return [Review.rating.desc(), Review.created_at.desc()]
    if sort_by == "lowest":
        return [Review.rating.asc(), Review.created_at.desc()]
    if sort_by == "helpful":
        return [_helpful_score_expr().desc(), Review.created_at.desc()]
    return [Review.created_at.desc()]


def _page(query, page: int, limit: int, sort_by: str) -> dict:
    total = query.count()
    rows = (
        query.options(
            joinedload(Review.user),
            joinedload(Review.movie),
            selectinload(Review.helpful_votes),
        )
        .order_by(*_order_clauses(sort_by), Review.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "results": [review_to_dict(review) for review in rows],
        "page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total_results": total,
    }


def list_movie_reviews(
    db: Session,
    tmdb_id: Any,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "newest",
) -> dict:
    """Visible reviews for a movie. A movie nobody has touched yet has none."""
    if sort_by not in SORT_OPTIONS:
        raise InvalidReviewError(f"sort_by must be one of: {', '.join(SORT_OPTIONS)}")
    movie = get_movie_by_tmdb_id(db, normalize_tmdb_id(tmdb_id))
    if movie is None:
        return {"results": [], "page": 1, "total_pages": 0, "total_results": 0}

    query = db.query(Review).filter(Review.movie_id == movie.id, Review.is_visible.is_(True))
    return _page(query, page, limit, sort_by)


def list_user_reviews(
    db: Session,
    target_user_id: UUID,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """Visible reviews written by one user, newest first."""
    exists = db.query(User.id).filter(User.id == target_user_id).first()
    if exists is None:
        return {"results": [], "page": 1, "total_pages": 0, "total_results": 0}

    query = db.query(Review).filter(Review.user_id == target_user_id, Review.is_visible.is_(True))
    return _page(query, page, limit, "newest")
