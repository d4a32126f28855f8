"""
Watchlist business logic.

Unlike favorites, a watchlist entry carries its own state (watched flag,
personal rating, notes), so adding a movie that is already listed fails
loudly instead of silently doing nothing.

Access:
  view    owner, any collaborator, anyone when the list is public
  edit    owner, collaborators with edit/admin  (entries)
  manage  owner, collaborators with admin       (collaborators)
  owner   rename, flag as default, delete
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from movplay.core.errors import ConflictError, InvalidInputError, NotFoundError, PermissionDeniedError
from movplay.db.models import (
    CollaboratorPermissionEnum,
    User,
    Watchlist,
    WatchlistCollaborator,
    WatchlistLike,
    WatchlistMovie,
)
from movplay.services.movie_service import (
    adjust_movie_counter,
    ensure_movie,
    movie_summary,
    normalize_tmdb_id,
)
from movplay.services.social_service import active_user_or_raise
from movplay.services.tmdb_client import CatalogProvider

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
TAG_MAX_LENGTH = 30
NOTES_MAX_LENGTH = 1000
PERSONAL_RATING_MIN = 0.5
PERSONAL_RATING_MAX = 10.0
PUBLIC_SORT_OPTIONS = ("popular", "newest", "updated")

_EDIT_PERMISSIONS = {"owner", CollaboratorPermissionEnum.EDIT.value, CollaboratorPermissionEnum.ADMIN.value}
_MANAGE_PERMISSIONS = {"owner", CollaboratorPermissionEnum.ADMIN.value}


class WatchlistNotFoundError(NotFoundError):
    code = "WATCHLIST_NOT_FOUND"


class WatchlistEntryNotFoundError(NotFoundError):
    """Raised when a movie is not in the watchlist."""

    code = "WATCHLIST_ENTRY_NOT_FOUND"


class MovieAlreadyInWatchlistError(ConflictError):
    code = "ALREADY_IN_WATCHLIST"


class DefaultWatchlistConflictError(ConflictError):
    """Raised when a user would end up with two default watchlists."""

    code = "DEFAULT_WATCHLIST_EXISTS"


class WatchlistPermissionError(PermissionDeniedError):
    code = "WATCHLIST_FORBIDDEN"


class InvalidWatchlistError(InvalidInputError):
    code = "INVALID_WATCHLIST"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Validation ────────────────────────────────────────────────────────────────

def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidWatchlistError("Watchlist name is required")
    if len(cleaned) > NAME_MAX_LENGTH:
        raise InvalidWatchlistError(f"Watchlist name cannot exceed {NAME_MAX_LENGTH} characters")
    return cleaned


def _clean_description(description: str | None) -> str:
    cleaned = (description or "").strip()
    if len(cleaned) > DESCRIPTION_MAX_LENGTH:
        raise InvalidWatchlistError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
    return cleaned


def _clean_tags(tags: list[str] | None) -> list[str]:
    cleaned: list[str] = []
    for tag in tags or []:
        value = str(tag).strip()
        if not value:
            continue
        if len(value) > TAG_MAX_LENGTH:
            raise InvalidWatchlistError(f"Tag cannot exceed {TAG_MAX_LENGTH} characters")
        if value not in cleaned:
            cleaned.append(value)
    return cleaned


def _validate_personal_rating(rating: Any) -> float:
    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        raise InvalidWatchlistError("Personal rating must be a number")
    value = float(rating)
    if math.isnan(value) or value < PERSONAL_RATING_MIN or value > PERSONAL_RATING_MAX:
        raise InvalidWatchlistError("Personal rating must be between 0.5 and 10")
    return value


# ── Access helpers ────────────────────────────────────────────────────────────

def _get_watchlist_or_raise(db: Session, watchlist_id: UUID) -> Watchlist:
    wl = db.query(Watchlist).filter(Watchlist.id == watchlist_id).first()
    if wl is None:
        raise WatchlistNotFoundError(f"Watchlist {watchlist_id} not found")
    return wl


def _permission_for(db: Session, wl: Watchlist, user_id: UUID | None) -> str | None:
    if user_id is None:
        return None
    if wl.user_id == user_id:
        return "owner"
    collaborator = db.get(WatchlistCollaborator, (wl.id, user_id))
    if collaborator is None:
        return None
    permission = collaborator.permission
    return permission.value if hasattr(permission, "value") else str(permission)


def _assert_can_view(db: Session, wl: Watchlist, user_id: UUID | None) -> None:
    if wl.is_public:
        return
    if _permission_for(db, wl, user_id) is None:
        raise WatchlistPermissionError("This watchlist is private")


def _assert_can_edit(db: Session, wl: Watchlist, user_id: UUID) -> None:
    if _permission_for(db, wl, user_id) not in _EDIT_PERMISSIONS:
        raise WatchlistPermissionError("You cannot edit this watchlist")


def _assert_can_manage(db: Session, wl: Watchlist, user_id: UUID) -> None:
    if _permission_for(db, wl, user_id) not in _MANAGE_PERMISSIONS:
        raise WatchlistPermissionError("You cannot manage collaborators on this watchlist")


def _assert_owner(wl: Watchlist, user_id: UUID) -> None:
    if wl.user_id != user_id:
        raise WatchlistPermissionError("Only the owner can change this watchlist")


def _find_entry(db: Session, watchlist_id: UUID, tmdb_id: str) -> WatchlistMovie | None:
    return (
        db.query(WatchlistMovie)
        .filter(WatchlistMovie.watchlist_id == watchlist_id, WatchlistMovie.tmdb_id == tmdb_id)
        .first()
    )


# ── Serialization ─────────────────────────────────────────────────────────────

def _completion_percentage(watched: int, total: int) -> int:
    if total == 0:
        return 0
    return math.floor(watched / total * 100 + 0.5)


def watchlist_to_dict(
    db: Session,
    wl: Watchlist,
    viewer_id: UUID | None = None,
    include_entries: bool = True,
) -> dict:
    entries = (
        db.query(WatchlistMovie)
        .filter(WatchlistMovie.watchlist_id == wl.id)
        .order_by(WatchlistMovie.added_at.asc(), WatchlistMovie.id.asc())
        .all()
    )
    like_count = db.query(WatchlistLike).filter(WatchlistLike.watchlist_id == wl.id).count()
    is_liked = (
        viewer_id is not None
        and db.get(WatchlistLike, (wl.id, viewer_id)) is not None
    )
    owner = db.query(User).filter(User.id == wl.user_id).first()
    watched_count = sum(1 for entry in entries if entry.watched)

    payload = {
        "id": wl.id,
        "user_id": wl.user_id,
        "owner_username": owner.username if owner else "unknown",
        "name": wl.name,
        "description": wl.description or "",
        "is_public": wl.is_public,
        "is_default": wl.is_default,
        "tags": list(wl.tags or []),
        "views": wl.views,
        "movie_count": len(entries),
        "watched_count": watched_count,
        "like_count": like_count,
        "is_liked": is_liked,
        "completion_percentage": _completion_percentage(watched_count, len(entries)),
        "created_at": wl.created_at,
        "updated_at": wl.updated_at,
    }
    if include_entries:
        payload["movies"] = [
            {
                "id": entry.id,
                "tmdb_id": entry.tmdb_id,
                "movie": movie_summary(entry.movie),
                "added_at": entry.added_at,
                "watched": entry.watched,
                "watched_at": entry.watched_at,
                "personal_rating": entry.personal_rating,
                "personal_notes": entry.personal_notes or "",
            }
            for entry in entries
        ]
        collaborators = (
            db.query(WatchlistCollaborator, User)
            .join(User, WatchlistCollaborator.user_id == User.id)
            .filter(WatchlistCollaborator.watchlist_id == wl.id)
            .order_by(WatchlistCollaborator.added_at.asc())
            .all()
        )
        payload["collaborators"] = [_collaborator_dict(c, user) for c, user in collaborators]
    return payload


def _collaborator_dict(collaborator: WatchlistCollaborator, user: User) -> dict:
    permission = collaborator.permission
    return {
        "user_id": user.id,
        "username": user.username,
        "permission": permission.value if hasattr(permission, "value") else str(permission),
        "added_at": collaborator.added_at,
    }


# ── Watchlist CRUD ────────────────────────────────────────────────────────────

def create_watchlist(
    db: Session,
    user_id: UUID,
    name: str,
    description: str | None = "",
    is_public: bool = False,
    is_default: bool = False,
    tags: list[str] | None = None,
) -> dict:
    """Create a watchlist. A second default watchlist for the same user is a conflict."""
    active_user_or_raise(db, user_id)
    wl = Watchlist(
        user_id=user_id,
        name=_clean_name(name),
        description=_clean_description(description),
        is_public=bool(is_public),
        is_default=bool(is_default),
        tags=_clean_tags(tags),
    )
    db.add(wl)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise DefaultWatchlistConflictError("You already have a default watchlist") from exc
    db.commit()
    db.refresh(wl)
    return watchlist_to_dict(db, wl, viewer_id=user_id)


def update_watchlist(db: Session, watchlist_id: UUID, user_id: UUID, updates: dict) -> dict:
    """Owner-only partial update of name, description, visibility, default flag and tags."""
    wl = _get_watchlist_or_raise(db, watchlist_id)
    _assert_owner(wl, user_id)

    if updates.get("name") is not None:
        wl.name = _clean_name(updates["name"])
    if "description" in updates:
        wl.description = _clean_description(updates["description"])
    if updates.get("is_public") is not None:
        wl.is_public = bool(updates["is_public"])
    if updates.get("is_default") is not None:
        wl.is_default = bool(updates["is_default"])
    if "tags" in updates:
        wl.tags = _clean_tags(updates["tags"])

    db.add(wl)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise DefaultWatchlistConflictError("You already have a default watchlist") from exc
    db.commit()
    db.refresh(wl)
    return watchlist_to_dict(db, wl, viewer_id=user_id)


def delete_watchlist(db: Session, watchlist_id: UUID, user_id: UUID) -> None:
    """Delete a watchlist; its movies each lose one watchlist count."""
    wl = _get_watchlist_or_raise(db, watchlist_id)
    _assert_owner(wl, user_id)

    movie_ids = [
        row.movie_id
        for row in db.query(WatchlistMovie.movie_id).filter(WatchlistMovie.watchlist_id == wl.id).all()
    ]
    for movie_id in movie_ids:
        adjust_movie_counter(db, movie_id, "watchlist_count", -1)

    db.delete(wl)
    db.commit()


def get_watchlist(db: Session, watchlist_id: UUID, viewer_id: UUID | None) -> dict:
    """Fetch a watchlist. Views by anyone but the owner bump its view counter."""
    wl = _get_watchlist_or_raise(db, watchlist_id)
    _assert_can_view(db, wl, viewer_id)

    if wl.user_id != viewer_id:
        (
            db.query(Watchlist)
            .filter(Watchlist.id == wl.id)
            .update({Watchlist.views: Watchlist.views + 1}, synchronize_session="fetch")
        )
        db.commit()
        db.refresh(wl)

    return watchlist_to_dict(db, wl, viewer_id=viewer_id)


def list_my_watchlists(db: Session, user_id: UUID) -> list[dict]:
    """Watchlists the user owns, default first."""
    rows = (
        db.query(Watchlist)
        .filter(Watchlist.user_id == user_id)
        .order_by(Watchlist.is_default.desc(), Watchlist.created_at.asc())
        .all()
    )
    return [watchlist_to_dict(db, wl, viewer_id=user_id, include_entries=False) for wl in rows]


def list_public_watchlists(
    db: Session,
    page: int = 1,
    limit: int = 20,
    sort_by: str = "popular",
    q: str | None = None,
    viewer_id: UUID | None = None,
) -> dict:
    """Public watchlists, optionally matched against name, description or tags."""
    if sort_by not in PUBLIC_SORT_OPTIONS:
        raise InvalidWatchlistError(f"sort_by must be one of: {', '.join(PUBLIC_SORT_OPTIONS)}")

    query = db.query(Watchlist).filter(Watchlist.is_public.is_(True))
    term = (q or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(
            or_(
                Watchlist.name.ilike(pattern),
                Watchlist.description.ilike(pattern),
                cast(Watchlist.tags, String).ilike(pattern),
            )
        )

    if sort_by == "newest":
        order = [Watchlist.created_at.desc()]
    elif sort_by == "updated":
        order = [Watchlist.updated_at.desc()]
    else:
        like_count = (
            select(func.count())
            .select_from(WatchlistLike)
            .where(WatchlistLike.watchlist_id == Watchlist.id)
            .correlate(Watchlist)
            .scalar_subquery()
        )
        order = [like_count.desc(), Watchlist.views.desc()]

    total = query.count()
    rows = query.order_by(*order, Watchlist.id.asc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "results": [watchlist_to_dict(db, wl, viewer_id=viewer_id, include_entries=False) for wl in rows],
        "page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total_results": total,
    }


# ── Membership ────────────────────────────────────────────────────────────────

async def add_to_watchlist(
    db: Session,
    watchlist_id: UUID,
    user_id: UUID,
    tmdb_id: Any,
    catalog: CatalogProvider | None = None,
) -> dict:
    """
    Append a movie to a watchlist.

    Raises MovieAlreadyInWatchlistError when the movie is already listed;
    the unique (watchlist, tmdb_id) constraint settles concurrent adds.
    """
    wl = _get_watchlist_or_raise(db, watchlist_id)
    _assert_can_edit(db, wl, user_id)

    movie = await ensure_movie(db, tmdb_id, catalog)
    if _find_entry(db, wl.id, movie.tmdb_id) is not None:
        raise MovieAlreadyInWatchlistError("Movie already in watchlist")

    db.add(
        WatchlistMovie(
            watchlist_id=wl.id,
            movie_id=movie.id,
            tmdb_id=movie.tmdb_id,
            added_at=_utcnow(),
        )
    )
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise MovieAlreadyInWatchlistError("Movie already in watchlist") from exc

    adjust_movie_counter(db, movie.id, "watchlist_count", 1)
    wl.updated_at = _utcnow()
    db.add(wl)
    db.commit()
    db.refresh(wl)
    logger.debug("Added %s to watchlist %s", movie.tmdb_id, wl.id)
    return watchlist_to_dict(db, wl, viewer_id=user_id)


def remove_from_watchlist(db: Session, watchlist_id: UUID, user_id: UUID, tmdb_id: Any) -> dict:
    """Remove a movie by catalog id; removing an unlisted movie changes nothing."""
    wl = _get_watchlist_or_raise(db, watchlist_id)
    _assert_can_edit(db, wl, user_id)

    entry = _find_entry(db, wl.id, normalize_tmdb_id(tmdb_id))
    if entry is not None:
        movie_id = entry.movie_id
        db.delete(entry)
        adjust_movie_counter(db, movie_id, "watchlist_count", -1)
        wl.updated_at = _utcnow()
        db.add(wl)
        db.commit()
        db.refresh(wl)

    return watchlist_to_dict(db, wl, viewer_id=user_id)


def mark_watched(
    db: Session,
    watchlist_id: UUID,
    user_id: UUID,
    tmdb_id: Any,
    rating: float | None = None,
    notes: str | None = None,
) -> dict:
    """Flag an entry as watched now, optionally recording a personal rating and notes."""
    wl = _get_watchlist_or_raise(db, watchlist_id)
    _assert_can_edit(db, wl, user_id)

    personal_rating = _validate_personal_rating(rating) if rating is not None else None
    if notes is not None and len(notes.strip()) > NOTES_MAX_LENGTH:
        raise InvalidWatchlistError(f"Personal notes cannot exceed {NOTES_MAX_LENGTH} characters")

    entry = _find_entry(db, wl.id, normalize_tmdb_id(tmdb_id))
    if entry is None:
        raise WatchlistEntryNotFoundError("Movie not found in watchlist")

    entry.watched = True
    entry.watched_at = _utcnow()
    if personal_rating is not None:
        entry.personal_rating = personal_rating
    if notes is not None:
        entry.personal_notes = notes.strip()
    wl.updated_at = _utcnow()

    db.add_all([entry, wl])
    db.commit()
    db.refresh(wl)
    return watchlist_to_dict(db, wl, viewer_id=user_id)


# ── Collaboration & likes ─────────────────────────────────────────────────────

def add_collaborator(
    db: Session,
    watchlist_id: UUID,
    requester_id: UUID,
    target_user_id: UUID,
    permission: str = CollaboratorPermissionEnum.VIEW.value,
) -> dict:
    """Grant or change a collaborator's permission."""
    wl = _get_watchlist_or_raise(db, watchlist_id)
    _assert_can_manage(db, wl, requester_id)

    try:
        level = CollaboratorPermissionEnum(permission)
    except ValueError as exc:
        raise InvalidWatchlistError("Permission must be one of: view, edit, admin") from exc

    target = active_user_or_raise(db, target_user_id)
    if target.id == wl.user_id:
        raise InvalidWatchlistError("The owner cannot be added as a collaborator")

    collaborator = db.get(WatchlistCollaborator, (wl.id, target.id))
    if collaborator is None:
        collaborator = WatchlistCollaborator(watchlist_id=wl.id, user_id=target.id, permission=level)
        db.add(collaborator)
    else:
        collaborator.permission = level
    db.commit()
    db.refresh(collaborator)

    return _collaborator_dict(collaborator, target)


def toggle_like(db: Session, watchlist_id: UUID, user_id: UUID) -> dict:
    """Like or unlike a watchlist the user can see."""
    wl = _get_watchlist_or_raise(db, watchlist_id)
    _assert_can_view(db, wl, user_id)

    existing = db.get(WatchlistLike, (wl.id, user_id))
    if existing is not None:
        db.delete(existing)
        is_liked = False
    else:
        db.add(WatchlistLike(watchlist_id=wl.id, user_id=user_id))
        is_liked = True
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        is_liked = True

    like_count = db.query(WatchlistLike).filter(WatchlistLike.watchlist_id == wl.id).count()
    return {"watchlist_id": wl.id, "like_count": like_count, "is_liked": is_liked}
