"""
User schemas.

Request and response models for user-related operations.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .module import ModuleView


class UserBase(BaseModel):
    """Base user fields."""

    email: EmailStr
    name: str


class UserResponse(UserBase):
    """User response model."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    image: str | None = None
    role: str
    auth_provider: str
    email_verified: bool
    created_at: datetime
    last_login_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class CurrentUser(UserResponse):
    """
    Authenticated caller.

    auth_method tells whether the request carried a session token or an
    API key; scopes are only set for API-key callers.
    """

    auth_method: Literal["session", "api-key"] = "session"
    scopes: list[str] | None = None
    api_key_id: str | None = None


class UserCreate(BaseModel):
    """User creation request (for internal use)."""

    email: EmailStr
    name: str
    password: str | None = None
    role: str = "user"
    auth_provider: str = "local"


class UserUpdate(BaseModel):
    """User profile update request."""

    name: str | None = Field(None, min_length=1, max_length=100)
    image: str | None = Field(None, max_length=500, pattern=r"^(/|https?://).+")


class ProfileStats(BaseModel):
    """Counters shown on a public profile."""

    modules_submitted: int
    published_modules: int
    reviews_written: int


class PublicProfile(BaseModel):
    """Public user profile."""

    id: str
    name: str
    image: str | None
    role: str
    joined_at: datetime
    stats: ProfileStats
    modules: list[ModuleView] | None = None
    is_own_profile: bool = False
