"""
Reviews API — /reviews
──────────────────────
A review carries a 0.5–10 rating; every change to the set of visible
reviews refreshes the movie's local rating.

Endpoints:
  POST   /reviews                         — Review a movie (by TMDB id)
  PATCH  /reviews/{review_id}             — Edit own review
  DELETE /reviews/{review_id}             — Delete own review
  GET    /reviews/user/{user_id}          — Visible reviews by a user
  POST   /reviews/{review_id}/helpful     — Vote helpful / not helpful
  DELETE /reviews/{review_id}/helpful     — Withdraw own vote
  POST   /reviews/{review_id}/report      — Report a review
  PATCH  /reviews/{review_id}/visibility  — Hide or restore (admin)

Movie-scoped listing lives at GET /movies/{tmdb_id}/reviews.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from movplay.db.models import User
from movplay.db.session import get_db
from movplay.deps.auth import get_admin_user, get_current_user
from movplay.schemas.movies import RatingSummary
from movplay.schemas.reviews import (
    CreateReviewRequest,
    HelpfulRequest,
    HelpfulVoteResponse,
    ReportRequest,
    ReportResponse,
    ReviewPage,
    ReviewResponse,
    UpdateReviewRequest,
    VisibilityRequest,
)
from movplay.services.review_service import (
    create_review,
    delete_review,
    list_user_reviews,
    mark_helpful,
    remove_helpful_vote,
    report_review,
    set_review_visibility,
    update_review,
)

router = APIRouter()


@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review_endpoint(
    payload: CreateReviewRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return await create_review(
        db,
        current_user.id,
        payload.tmdb_id,
        payload.rating,
        title=payload.title,
        comment=payload.comment,
        spoiler_warning=payload.spoiler_warning,
    )


@router.get("/user/{user_id}", response_model=ReviewPage)
def get_user_reviews(
    user_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
) -> dict:
    return list_user_reviews(db, user_id, page=page, limit=limit)


@router.patch("/{review_id}", response_model=ReviewResponse)
def update_review_endpoint(
    review_id: UUID,
    payload: UpdateReviewRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return update_review(db, current_user.id, review_id, payload.model_dump(exclude_unset=True))


@router.delete("/{review_id}", response_model=RatingSummary)
def delete_review_endpoint(
    review_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Returns the movie's local rating after the review is gone."""
    return delete_review(db, current_user.id, review_id)


@router.post("/{review_id}/helpful", response_model=HelpfulVoteResponse)
def vote_helpful(
    review_id: UUID,
    payload: HelpfulRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return mark_helpful(db, current_user.id, review_id, payload.is_helpful)


@router.delete("/{review_id}/helpful", response_model=HelpfulVoteResponse)
def withdraw_helpful_vote(
    review_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return remove_helpful_vote(db, current_user.id, review_id)


@router.post("/{review_id}/report", response_model=ReportResponse)
def report_review_endpoint(
    review_id: UUID,
    payload: ReportRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return report_review(db, current_user.id, review_id, payload.reason)


@router.patch("/{review_id}/visibility", response_model=ReviewResponse)
def set_visibility(
    review_id: UUID,
    payload: VisibilityRequest,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> dict:
    return set_review_visibility(db, review_id, payload.is_visible)
