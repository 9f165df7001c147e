"""
Admin models.

Background job records and the admin audit log.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, TimestampMixin, UTCDateTime


class JobType(str, Enum):
    """Admin job type enumeration."""

    SCRAPE_RELEASES = "scrape_releases"
    CLEANUP = "cleanup"
    SYNC_GITHUB_CONFIGS = "sync_github_configs"
    GENERATE_SLUGS = "generate_slugs"


class JobStatus(str, Enum):
    """Admin job status enumeration."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class AdminJob(Base, TimestampMixin):
    """
    Admin-triggered background job.

    Lifecycle: pending -> running -> completed | failed. Pending and
    running jobs may be cancelled.

    Attributes:
        id: Auto-increment identifier.
        type: Job type.
        name: Display name.
        description: Optional description.
        status: Current status.
        progress: Progress percentage (0-100).
        started_by: Admin who created the job, or "SYSTEM".
        started_at: Execution start.
        completed_at: Execution end (completed, failed or cancelled).
        duration: Execution duration in seconds.
        parameters: Job parameters.
        results: {"success", "processed_count", "error_count", "errors", "summary"}.
        logs: [{"timestamp", "level", "message"}].
    """

    __tablename__ = "admin_jobs"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Job definition
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    parameters: Mapped[dict[str, Any] | None] = mapped_column(JSONType)

    # Execution state
    status: Mapped[str] = mapped_column(
        String(20), default=JobStatus.PENDING.value, nullable=False, index=True
    )
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    started_by: Mapped[str] = mapped_column(String(36), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    duration: Mapped[int | None] = mapped_column(Integer)

    # Output
    results: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    logs: Mapped[list[Any]] = mapped_column(JSONType, default=list, nullable=False)


class AdminAction(Base, TimestampMixin):
    """
    Audit log entry for an admin (or system) action.

    Attributes:
        id: Auto-increment identifier.
        admin_id: Acting admin, or "SYSTEM" for automated actions.
        action: Short action label (e.g. "Module Approved").
        details: Human readable description.
        target_type: module, user, system, review or api_key.
        target_id: Identifier of the affected object.
        old_values: Values before the change.
        new_values: Values after the change.
    """

    __tablename__ = "admin_actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Not a foreign key: "SYSTEM" is a valid actor
    admin_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False)
    target_type: Mapped[str | None] = mapped_column(String(20))
    target_id: Mapped[str | None] = mapped_column(String(100))
    old_values: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    new_values: Mapped[dict[str, Any] | None] = mapped_column(JSONType)

