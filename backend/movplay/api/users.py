"""
Users API — /users
───────────────────
The authenticated user's own profile and favorites.

Endpoints:
  GET    /users/me/profile              — Own account
  PATCH  /users/me/profile              — Edit display name, bio, avatar
  GET    /users/me/favorites            — Favorites, oldest first
  POST   /users/me/favorites            — Add a movie (by TMDB id)
  DELETE /users/me/favorites/{tmdb_id}  — Remove a movie
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from movplay.db.models import User
from movplay.db.session import get_db
from movplay.deps.auth import get_current_user
from movplay.schemas.auth import UpdateProfileRequest, UserResponse
from movplay.schemas.favorites import AddFavoriteRequest, FavoritesPage
from movplay.schemas.movies import MovieSummary
from movplay.services.favorite_service import add_favorite, get_favorites_page, remove_favorite
from movplay.services.social_service import update_profile

router = APIRouter()


@router.get("/me/profile", response_model=UserResponse)
def get_my_profile(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch("/me/profile", response_model=UserResponse)
def update_my_profile(
    payload: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    user = update_profile(db, current_user.id, payload.model_dump(exclude_unset=True))
    return UserResponse.model_validate(user)


@router.get("/me/favorites", response_model=FavoritesPage)
def get_my_favorites(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return get_favorites_page(db, current_user.id, page=page, limit=limit)


@router.post(
    "/me/favorites",
    response_model=list[MovieSummary],
    status_code=status.HTTP_201_CREATED,
)
async def add_my_favorite(
    payload: AddFavoriteRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[dict]:
    """Adding a movie that is already a favorite leaves the set unchanged."""
    return await add_favorite(db, current_user.id, payload.tmdb_id)


@router.delete("/me/favorites/{tmdb_id}", response_model=list[MovieSummary])
def remove_my_favorite(
    tmdb_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[dict]:
    return remove_favorite(db, current_user.id, tmdb_id)
