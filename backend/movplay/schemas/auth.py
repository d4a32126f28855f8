"""
Account request/response schemas (auth and own profile).
"""
import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,30}$")
MIN_PASSWORD_LENGTH = 6


class RegisterRequest(BaseModel):
    """Payload for POST /auth/register."""

    username: str
    email: EmailStr
    password: str
    display_name: str | None = Field(default=None, max_length=60)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if not USERNAME_RE.match(v):
            raise ValueError("Username must be 3-30 letters, digits or underscores")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        return v

    @field_validator("display_name")
    @classmethod
    def blank_display_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    """The authenticated user's own account, password hash excluded."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    display_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    is_admin: bool = False
    created_at: datetime


class UpdateProfileRequest(BaseModel):
    """Partial update; blank strings clear a field."""

    display_name: str | None = Field(default=None, max_length=60)
    bio: str | None = Field(default=None, max_length=280)
    avatar_url: str | None = Field(default=None, max_length=500)
