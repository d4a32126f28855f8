"""
Social API — /social
────────────────────
Follow graph + public profiles.

Endpoints:
  POST   /social/follow/{user_id}     — Follow a user
  DELETE /social/follow/{user_id}     — Unfollow
  GET    /social/following            — Users I follow
  GET    /social/followers            — Users who follow me
  GET    /social/profile/{user_id}    — Profile summary for a user
"""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from movplay.db.models import User
from movplay.db.session import get_db
from movplay.deps.auth import get_current_user, get_optional_user
from movplay.schemas.social import FollowListItem, FollowRelationResponse, ProfileResponse
from movplay.services.social_service import (
    follow_user,
    get_profile,
    list_followers,
    list_following,
    unfollow_user,
)

router = APIRouter()


@router.post(
    "/follow/{user_id}",
    response_model=FollowRelationResponse,
    status_code=status.HTTP_201_CREATED,
)
def follow(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return follow_user(db, current_user.id, user_id)


@router.delete("/follow/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def unfollow(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    unfollow_user(db, current_user.id, user_id)


@router.get("/following", response_model=list[FollowListItem])
def get_following(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[dict]:
    return list_following(db, current_user.id)


@router.get("/followers", response_model=list[FollowListItem])
def get_followers(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[dict]:
    return list_followers(db, current_user.id)


@router.get("/profile/{user_id}", response_model=ProfileResponse)
def get_profile_endpoint(
    user_id: UUID,
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> dict:
    viewer_id = current_user.id if current_user is not None else None
    return get_profile(db, viewer_id, user_id)
