"""
GitHub integration schemas.

Sync configuration, release schedule, sync results and PAT management.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SyncConfigResponse(BaseModel):
    """Module GitHub sync configuration."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    module_id: str
    module_name: str | None = None
    github_repo: str
    enabled: bool
    last_sync_at: datetime | None
    last_release_id: int | None
    sync_errors: list[dict[str, Any]]
    created_at: datetime
    updated_at: datetime


class SyncConfigListResponse(BaseModel):
    """All sync configurations."""

    items: list[SyncConfigResponse]
    total: int


class SyncConfigUpdate(BaseModel):
    """Create or update a module's sync configuration."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    github_repo: str | None = Field(None, alias="githubRepo", max_length=300)
    enabled: bool | None = None


class SyncStats(BaseModel):
    """Sync overview counters."""

    total_configs: int
    enabled_configs: int
    configs_with_errors: int
    synced_last_24h: int
    never_synced: int


class SyncResult(BaseModel):
    """Outcome of syncing one module."""

    success: bool
    module_id: str
    new_releases: int = 0
    errors: list[str] = Field(default_factory=list)


class ReleaseScheduleResponse(BaseModel):
    """Release polling schedule."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    enabled: bool
    interval_hours: int
    batch_size: int
    next_run_at: datetime | None
    last_run_at: datetime | None
    updated_at: datetime


class ReleaseScheduleUpdate(BaseModel):
    """Update the release polling schedule."""

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool | None = None
    interval_hours: int | None = Field(None, ge=1, le=168, alias="intervalHours")
    batch_size: int | None = Field(None, ge=1, le=100, alias="batchSize")


class GithubPatRequest(BaseModel):
    """Store a GitHub personal access token."""

    token: str = Field(..., min_length=1, max_length=255)


class GithubPatStatus(BaseModel):
    """Whether the caller has a stored PAT."""

    has_token: bool
    updated_at: datetime | None = None


class GithubPatValidation(BaseModel):
    """Result of validating a PAT against GitHub."""

    valid: bool
    login: str | None = None
    scopes: list[str] = Field(default_factory=list)
    error: str | None = None
