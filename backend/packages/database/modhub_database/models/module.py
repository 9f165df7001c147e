"""
Module model definition.

This module defines the Module model: a root-modification package
listed in the marketplace.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType, TimestampMixin, UTCDateTime, generate_module_id, utcnow


class ModuleStatus(str, Enum):
    """Module review status enumeration."""

    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class Module(Base, TimestampMixin):
    """
    Marketplace module.

    Created by a submission with status "pending" and unpublished. Admin
    review moves it to "approved" (published) or "declined". Derived
    statistics (downloads, rating, review count) are computed from
    releases and ratings, never stored here.

    Attributes:
        id: Short random identifier (12 characters).
        name: Module name.
        slug: URL slug derived from author and name (unique).
        description: Long description.
        short_description: One-line summary.
        author: Module author as displayed.
        category: Category key (security, performance, ...).
        last_updated: Last update timestamp reported for the module.
        icon: Icon URL or site-relative path.
        images: Screenshot URLs.
        is_open_source: Whether the source is public.
        license: License identifier.
        compatibility: {"android_versions": [...], "root_methods": [...]}.
        warnings: Moderation warnings [{"type", "message"}].
        review_notes: Admin review history [{"type", "message", "reviewed_by", "reviewed_at"}].
        features: Feature bullet list.
        source_url: Source code URL.
        community_url: Community/support URL.
        github_repo: GitHub repository ("owner/repo" or URL) used for release sync.
        is_featured: Featured flag.
        is_recommended: Recommended flag.
        is_published: Publicly visible flag.
        status: Review status.
        last_sync_at: Last GitHub release sync.
        submitted_by: Submitting user (nullable, kept when the user is deleted).
    """

    __tablename__ = "modules"

    # Primary key
    id: Mapped[str] = mapped_column(String(21), primary_key=True, default=generate_module_id)

    # Descriptive metadata
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    slug: Mapped[str | None] = mapped_column(String(200), unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    short_description: Mapped[str] = mapped_column(String(200), nullable=False)
    author: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    last_updated: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    icon: Mapped[str | None] = mapped_column(String(500))
    images: Mapped[list[Any] | None] = mapped_column(JSONType, default=list)
    is_open_source: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    license: Mapped[str] = mapped_column(String(100), nullable=False)
    compatibility: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    features: Mapped[list[Any]] = mapped_column(JSONType, default=list, nullable=False)
    source_url: Mapped[str | None] = mapped_column(String(500))
    community_url: Mapped[str | None] = mapped_column(String(500))
    github_repo: Mapped[str | None] = mapped_column(String(500))

    # Moderation
    warnings: Mapped[list[Any]] = mapped_column(JSONType, default=list, nullable=False)
    review_notes: Mapped[list[Any]] = mapped_column(JSONType, default=list, nullable=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_recommended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), default=ModuleStatus.PENDING.value, nullable=False, index=True
    )

    # Sync tracking
    last_sync_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    # Foreign key
    submitted_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), index=True
    )

    # Relationships
    releases = relationship(
        "Release", back_populates="module", cascade="all, delete-orphan", passive_deletes=True
    )
    ratings = relationship(
        "Rating", back_populates="module", cascade="all, delete-orphan", passive_deletes=True
    )
    github_sync = relationship(
        "ModuleGithubSync",
        back_populates="module",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )
    submitter = relationship("User", foreign_keys=[submitted_by])
