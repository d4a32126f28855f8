"""
Auth dependencies shared across protected endpoints.

Usage in any route:
    from movplay.deps.auth import get_current_user
    from movplay.db.models import User

    @router.get("/protected")
    def protected(user: User = Depends(get_current_user)):
        ...

get_optional_user resolves to None for anonymous callers instead of
failing, for endpoints that only personalise their response.
"""
from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from movplay.core.errors import AuthenticationError, PermissionDeniedError
from movplay.core.security import decode_access_token
from movplay.db.models import User
from movplay.db.session import get_db

# auto_error=False: a missing header is reported through the error envelope
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


class NotAuthenticatedError(AuthenticationError):
    """Not authenticated"""

    code = "NOT_AUTHENTICATED"


class InvalidTokenError(AuthenticationError):
    """Invalid or expired token"""

    code = "INVALID_TOKEN"


class AdminRequiredError(PermissionDeniedError):
    """Admin privileges required"""

    code = "ADMIN_REQUIRED"


def _user_from_token(token: str, db: Session) -> User:
    sub = decode_access_token(token)
    if sub is None:
        raise InvalidTokenError()

    try:
        user_id = UUID(sub)
    except (ValueError, AttributeError):
        raise InvalidTokenError()

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise InvalidTokenError()
    if not user.is_active:
        raise InvalidTokenError("Account is deactivated")
    return user


def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Decode the bearer JWT and return the corresponding active User.

    A missing header raises NotAuthenticatedError; anything else (bad
    signature, expired, unknown or deactivated user) raises InvalidTokenError.
    """
    if not token:
        raise NotAuthenticatedError()
    return _user_from_token(token, db)


def get_optional_user(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User | None:
    """Like get_current_user, but anonymous requests yield None. A bad token still fails."""
    if not token:
        return None
    return _user_from_token(token, db)


def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise AdminRequiredError()
    return current_user
