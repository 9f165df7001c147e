"""
Admin schemas.

Dashboard statistics, user management and the audit log.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .user import UserResponse


class DashboardStats(BaseModel):
    """Admin dashboard statistics."""

    total_modules: int
    published_modules: int
    pending_modules: int
    declined_modules: int
    featured_modules: int
    recommended_modules: int
    total_users: int
    total_downloads: int
    total_reviews: int
    active_api_keys: int
    running_jobs: int


class AdminUserItem(UserResponse):
    """User row in the admin list."""

    module_count: int = 0
    review_count: int = 0


class AdminUserListResponse(BaseModel):
    """Paginated admin user list."""

    items: list[AdminUserItem]
    total: int
    page: int
    per_page: int
    total_pages: int


class AdminUserUpdate(BaseModel):
    """Admin update of a user account."""

    name: str | None = Field(None, min_length=1, max_length=100)
    email: EmailStr | None = None
    role: Literal["user", "admin"] | None = None


class UserRoleUpdate(BaseModel):
    """Change a user's role."""

    role: Literal["user", "admin"]


class UserStats(BaseModel):
    """User counters for the admin dashboard."""

    total_users: int
    admins: int
    new_this_month: int
    by_provider: dict[str, int]


class AuditActionResponse(BaseModel):
    """Audit log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    admin_id: str
    admin_name: str | None = None
    action: str
    details: str
    target_type: str | None
    target_id: str | None
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    created_at: datetime


class AuditListResponse(BaseModel):
    """Paginated audit log."""

    items: list[AuditActionResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


