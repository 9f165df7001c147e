"""
Admin job schemas.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

JobTypeName = Literal["scrape_releases", "cleanup", "sync_github_configs", "generate_slugs"]


class JobCreate(BaseModel):
    """Create and enqueue an admin job."""

    type: JobTypeName
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    parameters: dict[str, Any] = Field(default_factory=dict)


class JobResponse(BaseModel):
    """Admin job response model."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    name: str
    description: str | None
    status: str
    progress: int
    started_by: str
    started_at: datetime | None
    completed_at: datetime | None
    duration: int | None
    parameters: dict[str, Any] | None
    results: dict[str, Any] | None
    logs: list[dict[str, Any]]
    created_at: datetime
    updated_at: datetime


class JobListResponse(BaseModel):
    """Job list."""

    jobs: list[JobResponse]
    total: int
    limit: int
    offset: int


class JobCreatedResponse(BaseModel):
    """Created job with its queue id."""

    job: JobResponse
    queue_job_id: str


class JobStats(BaseModel):
    """Job counters."""

    total: int
    pending: int
    running: int
    completed: int
    failed: int
    cancelled: int
    average_duration: float | None
