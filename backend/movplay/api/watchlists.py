"""
Watchlists API — /watchlists
─────────────────────────────
Endpoints:
  POST   /watchlists                                  — Create a watchlist
  GET    /watchlists/mine                             — My watchlists
  GET    /watchlists/public                           — Browse public watchlists
  GET    /watchlists/{watchlist_id}                   — Detail (public, owner or collaborator)
  PATCH  /watchlists/{watchlist_id}                   — Edit (owner)
  DELETE /watchlists/{watchlist_id}                   — Delete (owner)
  POST   /watchlists/{watchlist_id}/movies            — Add a movie (by TMDB id)
  DELETE /watchlists/{watchlist_id}/movies/{tmdb_id}  — Remove a movie
  PATCH  /watchlists/{watchlist_id}/movies/{tmdb_id}/watched — Mark watched
  POST   /watchlists/{watchlist_id}/collaborators     — Grant access
  POST   /watchlists/{watchlist_id}/like              — Toggle like
"""
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from movplay.db.models import User
from movplay.db.session import get_db
from movplay.deps.auth import get_current_user, get_optional_user
from movplay.schemas.watchlists import (
    AddCollaboratorRequest,
    AddMovieRequest,
    CollaboratorResponse,
    CreateWatchlistRequest,
    LikeResponse,
    MarkWatchedRequest,
    UpdateWatchlistRequest,
    WatchlistDetailResponse,
    WatchlistPage,
    WatchlistSummaryResponse,
)
from movplay.services.watchlist_service import (
    add_collaborator,
    add_to_watchlist,
    create_watchlist,
    delete_watchlist,
    get_watchlist,
    list_my_watchlists,
    list_public_watchlists,
    mark_watched,
    remove_from_watchlist,
    toggle_like,
    update_watchlist,
)

router = APIRouter()


@router.post("", response_model=WatchlistDetailResponse, status_code=status.HTTP_201_CREATED)
def create_watchlist_endpoint(
    payload: CreateWatchlistRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return create_watchlist(
        db,
        current_user.id,
        payload.name,
        description=payload.description,
        is_public=payload.is_public,
        is_default=payload.is_default,
        tags=payload.tags,
    )


@router.get("/mine", response_model=list[WatchlistSummaryResponse])
def get_my_watchlists(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[dict]:
    return list_my_watchlists(db, current_user.id)


@router.get("/public", response_model=WatchlistPage)
def browse_public_watchlists(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    sort_by: Literal["popular", "newest", "updated"] = Query("popular"),
    q: str | None = Query(None, max_length=100),
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> dict:
    viewer_id = current_user.id if current_user is not None else None
    return list_public_watchlists(db, page=page, limit=limit, sort_by=sort_by, q=q, viewer_id=viewer_id)


@router.get("/{watchlist_id}", response_model=WatchlistDetailResponse)
def get_watchlist_endpoint(
    watchlist_id: UUID,
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> dict:
    viewer_id = current_user.id if current_user is not None else None
    return get_watchlist(db, watchlist_id, viewer_id)


@router.patch("/{watchlist_id}", response_model=WatchlistDetailResponse)
def update_watchlist_endpoint(
    watchlist_id: UUID,
    payload: UpdateWatchlistRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return update_watchlist(db, watchlist_id, current_user.id, payload.model_dump(exclude_unset=True))


@router.delete("/{watchlist_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_watchlist_endpoint(
    watchlist_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    delete_watchlist(db, watchlist_id, current_user.id)


@router.post("/{watchlist_id}/movies", response_model=WatchlistDetailResponse, status_code=status.HTTP_201_CREATED)
async def add_movie(
    watchlist_id: UUID,
    payload: AddMovieRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return await add_to_watchlist(db, watchlist_id, current_user.id, payload.tmdb_id)


@router.delete("/{watchlist_id}/movies/{tmdb_id}", response_model=WatchlistDetailResponse)
def remove_movie(
    watchlist_id: UUID,
    tmdb_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return remove_from_watchlist(db, watchlist_id, current_user.id, tmdb_id)


@router.patch("/{watchlist_id}/movies/{tmdb_id}/watched", response_model=WatchlistDetailResponse)
def mark_movie_watched(
    watchlist_id: UUID,
    tmdb_id: str,
    payload: MarkWatchedRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return mark_watched(
        db,
        watchlist_id,
        current_user.id,
        tmdb_id,
        rating=payload.rating,
        notes=payload.notes,
    )


@router.post("/{watchlist_id}/collaborators", response_model=CollaboratorResponse, status_code=status.HTTP_201_CREATED)
def add_collaborator_endpoint(
    watchlist_id: UUID,
    payload: AddCollaboratorRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return add_collaborator(db, watchlist_id, current_user.id, payload.user_id, payload.permission)


@router.post("/{watchlist_id}/like", response_model=LikeResponse)
def toggle_like_endpoint(
    watchlist_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return toggle_like(db, watchlist_id, current_user.id)
