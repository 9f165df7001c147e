"""
Release model definition.
"""

from typing import Any

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType, TimestampMixin


class Release(Base, TimestampMixin):
    """
    Versioned downloadable build of a module.

    At most one release per module carries is_latest=True. The services
    clear the previous latest release before flagging a new one.

    Attributes:
        id: Auto-increment identifier.
        module_id: Owning module.
        version: Version string without a leading "v".
        download_url: Direct download URL of the main asset.
        size: Human readable size (e.g. "1.5 MB").
        changelog: Release notes.
        downloads: Download counter.
        is_latest: Latest release flag.
        github_release_id: GitHub release id when imported by sync.
        github_tag_name: Original GitHub tag.
        assets: All assets [{"name", "download_url", "size", "content_type"}].
    """

    __tablename__ = "releases"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign key
    module_id: Mapped[str] = mapped_column(
        String(21), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Release metadata
    version: Mapped[str] = mapped_column(String(100), nullable=False)
    download_url: Mapped[str] = mapped_column(String(500), nullable=False)
    size: Mapped[str] = mapped_column(String(50), nullable=False)
    changelog: Mapped[str | None] = mapped_column(Text)
    downloads: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_latest: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # GitHub import tracking
    github_release_id: Mapped[int | None] = mapped_column(BigInteger, index=True)
    github_tag_name: Mapped[str | None] = mapped_column(String(200))
    assets: Mapped[list[Any] | None] = mapped_column(JSONType)

    # Relationships
    module = relationship("Module", back_populates="releases")
