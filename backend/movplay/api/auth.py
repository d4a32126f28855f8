"""
Auth API — /auth
─────────────────
Endpoints:
  POST /auth/register — Create account, return own profile (201)
  POST /auth/login    — Exchange username/email + password for a JWT
  GET  /auth/me       — Current account (requires bearer token)

Failures use the shared error envelope: 409 DUPLICATE_USER on register,
401 INVALID_CREDENTIALS on login.
"""
from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from movplay.db.models import User
from movplay.db.session import get_db
from movplay.deps.auth import get_current_user
from movplay.schemas.auth import RegisterRequest, TokenResponse, UserResponse
from movplay.services.auth_service import (
    InvalidCredentialsError,
    authenticate_user,
    create_user,
    issue_access_token,
)

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)) -> UserResponse:
    user = create_user(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        display_name=payload.display_name,
    )
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
def login(
    form: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
) -> TokenResponse:
    """
    OAuth2 password form, so the Swagger /docs Authorize button works.

    The ``username`` field also accepts an email address.
    """
    user = authenticate_user(db, username=form.username, password=form.password)
    if user is None:
        raise InvalidCredentialsError()
    return TokenResponse(access_token=issue_access_token(user))


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)
