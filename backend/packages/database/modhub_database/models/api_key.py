"""
API key model definition.

This module defines the ApiKey model for long-lived programmatic
credentials with read/write/admin scopes.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType, TimestampMixin, UTCDateTime


class ApiKey(Base, TimestampMixin):
    """
    API key for programmatic access.

    Only the SHA-256 hash of the key is stored; the first 8 characters are
    kept for display. Revocation is one-way: once revoked_at is set it is
    never cleared.

    Attributes:
        id: Key identifier ("apikey_" + 32 hex characters).
        user_id: Owner of the key (foreign key to users).
        name: User-defined name for the key.
        key_hash: SHA-256 hex digest of the key (unique).
        key_prefix: First 8 characters for display (e.g., "mk_AbCdE").
        scopes: Granted scopes, subset of read/write/admin.
        last_used_at: Timestamp of most recent usage.
        last_used_ip: Client IP of most recent usage.
        expires_at: Expiration timestamp (null = never expires).
        revoked_at: Revocation timestamp.
        revoked_by: User who revoked the key.
    """

    __tablename__ = "api_keys"

    # Primary key
    id: Mapped[str] = mapped_column(String(50), primary_key=True)

    # Foreign key
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Key metadata
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    key_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    key_prefix: Mapped[str] = mapped_column(String(20), nullable=False)
    scopes: Mapped[list[Any]] = mapped_column(JSONType, default=lambda: ["read"], nullable=False)

    # Usage tracking
    last_used_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    last_used_ip: Mapped[str | None] = mapped_column(String(64))
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    # Revocation
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    revoked_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL")
    )

    # Relationships
    user = relationship("User", back_populates="api_keys", foreign_keys=[user_id])

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None
