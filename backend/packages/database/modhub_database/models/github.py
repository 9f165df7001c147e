"""
GitHub integration models.

Per-module release sync configuration, stored personal access tokens
and the global release polling schedule.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType, TimestampMixin, UTCDateTime

# Maximum number of sync errors retained per module
MAX_SYNC_ERRORS = 10


class ModuleGithubSync(Base, TimestampMixin):
    """
    Release sync configuration for one module.

    Attributes:
        id: Auto-increment identifier.
        module_id: Synced module (unique).
        github_repo: Repository as "owner/repo".
        enabled: Whether the scheduler should poll this repository.
        last_sync_at: Last successful sync.
        last_release_id: Newest GitHub release id imported.
        sync_errors: Most recent errors [{"error", "timestamp", "retry_count"}].
    """

    __tablename__ = "module_github_sync"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign key
    module_id: Mapped[str] = mapped_column(
        String(21),
        ForeignKey("modules.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    # Sync configuration
    github_repo: Mapped[str] = mapped_column(String(200), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Sync status
    last_sync_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    last_release_id: Mapped[int | None] = mapped_column(BigInteger)
    sync_errors: Mapped[list[Any]] = mapped_column(JSONType, default=list, nullable=False)

    # Relationships
    module = relationship("Module", back_populates="github_sync")


class GithubToken(Base, TimestampMixin):
    """
    Stored GitHub personal access token.

    The token itself is never stored: only a salted PBKDF2-SHA512 hash.
    """

    __tablename__ = "github_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    hashed_token: Mapped[str] = mapped_column(String(128), nullable=False)
    salt: Mapped[str] = mapped_column(String(64), nullable=False)


class ReleaseSchedule(Base, TimestampMixin):
    """
    Global release polling schedule (single row).

    Attributes:
        enabled: Whether scheduled polling runs.
        interval_hours: Hours between runs.
        batch_size: Maximum modules synced per run.
        next_run_at: When the next run is due.
        last_run_at: When the last run started.
    """

    __tablename__ = "release_schedule"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    interval_hours: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    batch_size: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    next_run_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    last_run_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
