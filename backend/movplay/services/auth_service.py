"""
Auth business logic: registration, login, token issuance.

All DB writes go through this layer (not directly in routes).
"""
import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from movplay.core.errors import AuthenticationError, ConflictError
from movplay.core.security import create_access_token, hash_password, verify_password
from movplay.db.models import User

logger = logging.getLogger(__name__)


class DuplicateUserError(ConflictError):
    """Raised when registration conflicts with an existing username or email."""

    code = "DUPLICATE_USER"

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"A user with that {field} already exists")


class InvalidCredentialsError(AuthenticationError):
    """Incorrect username or password"""

    code = "INVALID_CREDENTIALS"


def create_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    display_name: str | None = None,
) -> User:
    """
    Register a new user.

    - Keeps the username as typed but compares it case-insensitively.
    - Normalises email (lowercase strip).
    - Hashes the password with bcrypt.
    - Raises DuplicateUserError on a taken username or email.
    """
    cleaned_username = username.strip()
    normalised_email = email.strip().lower()

    taken = (
        db.query(User)
        .filter(
            (func.lower(User.username) == cleaned_username.lower())
            | (User.email == normalised_email)
        )
        .first()
    )
    if taken is not None:
        field = "email" if taken.email == normalised_email else "username"
        raise DuplicateUserError(field)

    user = User(
        username=cleaned_username,
        email=normalised_email,
        display_name=(display_name or "").strip() or cleaned_username,
        password_hash=hash_password(password),
    )
    db.add(user)

    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        error_str = str(exc.orig).lower()
        if "username" in error_str:
            raise DuplicateUserError("username") from exc
        if "email" in error_str:
            raise DuplicateUserError("email") from exc
        raise DuplicateUserError("username or email") from exc

    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.username)
    return user


def authenticate_user(
    db: Session,
    username: str,
    password: str,
) -> User | None:
    """
    Verify credentials and return the User, or None on failure.

    Accepts either the username (case-insensitive) or the email address.
    Deactivated accounts cannot log in.
    """
    login = username.strip()
    user = (
        db.query(User)
        .filter(
            (func.lower(User.username) == login.lower())
            | (User.email == login.lower())
        )
        .first()
    )
    if user is None or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user


def issue_access_token(user: User) -> str:
    """Create a signed JWT with the user's ID as the subject claim."""
    return create_access_token(subject=str(user.id))


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    """Fetch a single user by primary key."""
    return db.query(User).filter(User.id == user_id).first()
