"""
Social business logic: follows and public profiles.
"""
from urllib.parse import quote_plus
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from movplay.core.errors import ConflictError, InvalidInputError, NotFoundError
from movplay.db.models import Follow, Review, User, UserFavorite, Watchlist


class UserNotFoundError(NotFoundError):
    """Raised when the target user does not exist."""

    code = "USER_NOT_FOUND"


class SelfFollowError(InvalidInputError):
    """Raised when a user tries to follow themselves."""

    code = "SELF_FOLLOW"


class AlreadyFollowingError(ConflictError):
    """Raised when a follow relationship already exists."""

    code = "ALREADY_FOLLOWING"


class NotFollowingError(NotFoundError):
    """Raised when unfollowing someone who is not followed."""

    code = "NOT_FOLLOWING"


def avatar_for(user: User) -> str:
    if user.avatar_url:
        return user.avatar_url
    return f"https://api.dicebear.com/8.x/thumbs/svg?seed={quote_plus(user.username)}"


def active_user_or_raise(db: Session, user_id: UUID) -> User:
    user = (
        db.query(User)
        .filter(User.id == user_id, User.is_active.is_(True))
        .first()
    )
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


def follow_user(db: Session, follower_id: UUID, following_id: UUID) -> dict:
    """Follow another user. One row serves both sides of the relationship."""
    if follower_id == following_id:
        raise SelfFollowError("You cannot follow yourself")

    target = active_user_or_raise(db, following_id)

    existing = (
        db.query(Follow)
        .filter(Follow.follower_id == follower_id, Follow.following_id == following_id)
        .first()
    )
    if existing is not None:
        raise AlreadyFollowingError("You already follow this user")

    follow = Follow(follower_id=follower_id, following_id=following_id)
    db.add(follow)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise AlreadyFollowingError("You already follow this user") from exc
    db.commit()
    db.refresh(follow)

    return {
        "follower_id": follow.follower_id,
        "following_id": follow.following_id,
        "following_username": target.username,
        "created_at": follow.created_at,
    }


def unfollow_user(db: Session, follower_id: UUID, following_id: UUID) -> None:
    active_user_or_raise(db, following_id)
    count = (
        db.query(Follow)
        .filter(Follow.follower_id == follower_id, Follow.following_id == following_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if count == 0:
        raise NotFollowingError("You do not follow this user")


def _follow_entry(follow: Follow, other: User) -> dict:
    return {
        "user_id": other.id,
        "username": other.username,
        "display_name": other.display_name,
        "avatar_url": avatar_for(other),
        "followed_at": follow.created_at,
    }


def list_following(db: Session, user_id: UUID) -> list[dict]:
    rows = (
        db.query(Follow, User)
        .join(User, Follow.following_id == User.id)
        .filter(Follow.follower_id == user_id)
        .order_by(User.username.asc())
        .all()
    )
    return [_follow_entry(follow, target) for follow, target in rows]


def list_followers(db: Session, user_id: UUID) -> list[dict]:
    rows = (
        db.query(Follow, User)
        .join(User, Follow.follower_id == User.id)
        .filter(Follow.following_id == user_id)
        .order_by(User.username.asc())
        .all()
    )
    return [_follow_entry(follow, follower) for follow, follower in rows]


def get_profile(db: Session, viewer_id: UUID | None, target_id: UUID) -> dict:
    """Public profile header: activity counts plus follow state relative to the viewer."""
    target = active_user_or_raise(db, target_id)

    followers_count = db.query(Follow).filter(Follow.following_id == target_id).count()
    following_count = db.query(Follow).filter(Follow.follower_id == target_id).count()
    favorites_count = db.query(UserFavorite).filter(UserFavorite.user_id == target_id).count()
    reviews_count = (
        db.query(Review)
        .filter(Review.user_id == target_id, Review.is_visible.is_(True))
        .count()
    )
    watchlists_query = db.query(Watchlist).filter(Watchlist.user_id == target_id)
    if viewer_id != target_id:
        watchlists_query = watchlists_query.filter(Watchlist.is_public.is_(True))
    watchlists_count = watchlists_query.count()

    is_following = False
    is_followed_by = False
    if viewer_id is not None and viewer_id != target_id:
        is_following = (
            db.query(Follow)
            .filter(Follow.follower_id == viewer_id, Follow.following_id == target_id)
            .first()
            is not None
        )
        is_followed_by = (
            db.query(Follow)
            .filter(Follow.follower_id == target_id, Follow.following_id == viewer_id)
            .first()
            is not None
        )

    return {
        "user_id": target.id,
        "username": target.username,
        "display_name": target.display_name,
        "bio": target.bio,
        "avatar_url": avatar_for(target),
        "followers_count": followers_count,
        "following_count": following_count,
        "favorites_count": favorites_count,
        "reviews_count": reviews_count,
        "watchlists_count": watchlists_count,
        "is_self": viewer_id == target_id,
        "is_following": is_following,
        "is_followed_by": is_followed_by,
        "is_mutual": is_following and is_followed_by,
        "joined_at": target.created_at,
    }


def update_profile(db: Session, user_id: UUID, updates: dict) -> User:
    """Apply a partial profile update; blank strings clear the field."""
    user = active_user_or_raise(db, user_id)
    for field in ("display_name", "bio", "avatar_url"):
        if field in updates:
            value = updates[field]
            if isinstance(value, str):
                value = value.strip() or None
            setattr(user, field, value)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
