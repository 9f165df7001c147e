"""
User model definition.

This module defines the User model for marketplace accounts.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UTCDateTime, generate_uuid


class UserRole(str, Enum):
    """User role enumeration."""

    USER = "user"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    """
    User account model.

    Attributes:
        id: Unique user identifier (UUID).
        email: User email address (unique, indexed).
        name: Display name.
        email_verified: Whether the email address has been verified.
        image: Avatar image URL.
        role: Account role ("user" or "admin").
        auth_provider: Provider the account was created with (local, github, google).
        password_hash: Bcrypt hash for local accounts.
        last_login_at: Timestamp of most recent login.
    """

    __tablename__ = "users"

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Identity
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    image: Mapped[str | None] = mapped_column(String(500))

    # Access
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER.value, nullable=False)
    auth_provider: Mapped[str] = mapped_column(String(50), default="local", nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255))
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    # Relationships
    api_keys = relationship(
        "ApiKey",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="ApiKey.user_id",
    )
    ratings = relationship("Rating", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        """Whether the user holds the admin role."""
        return self.role == UserRole.ADMIN.value
