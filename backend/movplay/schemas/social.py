"""
Social request/response schemas.
"""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class FollowRelationResponse(BaseModel):
    """Returned after a successful follow action."""

    follower_id: UUID
    following_id: UUID
    following_username: str
    created_at: datetime


class FollowListItem(BaseModel):
    """One user in followers/following lists."""

    user_id: UUID
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    followed_at: datetime


class ProfileResponse(BaseModel):
    """Public profile header with activity counts."""

    user_id: UUID
    username: str
    display_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    followers_count: int
    following_count: int
    favorites_count: int
    reviews_count: int
    watchlists_count: int
    is_self: bool = False
    is_following: bool = False
    is_followed_by: bool = False
    is_mutual: bool = False
    joined_at: datetime
