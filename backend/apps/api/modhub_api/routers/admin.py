"""
Admin router.

Provides endpoints for administrative operations: module vetting, users,
review moderation, API keys, jobs, GitHub sync, the release schedule and
the audit log.
"""

from datetime import datetime
from math import ceil
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, status

from modhub_core.schemas import (
    AdminApiKeyCreate,
    AdminApiKeyItem,
    AdminApiKeyListResponse,
    AdminModuleListResponse,
    AdminReviewListResponse,
    AdminUserListResponse,
    AdminUserUpdate,
    ApiKeyCreateResponse,
    AuditActionResponse,
    AuditListResponse,
    CurrentUser,
    DashboardStats,
    JobCreate,
    JobCreatedResponse,
    JobListResponse,
    JobResponse,
    JobStats,
    ModuleEditRequest,
    ModuleFlagUpdate,
    ModuleStatusUpdate,
    ModuleSubmission,
    ReleaseScheduleResponse,
    ReleaseScheduleUpdate,
    ReviewStats,
    SubmissionView,
    SyncConfigListResponse,
    SyncConfigResponse,
    SyncConfigUpdate,
    SyncStats,
    UserResponse,
    UserRoleUpdate,
    UserStats,
    WarningsUpdate,
)
from modhub_core.services import (
    ADMIN_OPERATIONS,
    AdminModuleService,
    ApiKeyService,
    AuditService,
    GithubSyncService,
    JobService,
    RatingService,
    UserService,
)

from ..dependencies import (
    get_admin_module_service,
    get_api_key_service,
    get_audit_service,
    get_current_admin,
    get_github_sync_service,
    get_job_service,
    get_rating_service,
    get_user_service,
    rate_limit,
)
from ..errors import to_http_exception

router = APIRouter()

AdminUser = Annotated[CurrentUser, Depends(get_current_admin)]


@router.get("/stats")
async def get_dashboard_stats(
    current_admin: AdminUser,
    module_service: Annotated[AdminModuleService, Depends(get_admin_module_service)],
) -> DashboardStats:
    """
    Get dashboard statistics.

    Args:
        current_admin: Current authenticated admin.
        module_service: Admin module service instance.

    Returns:
        Dashboard statistics.
    """
    return await module_service.get_admin_stats()


# Modules


@router.get("/modules", dependencies=[Depends(rate_limit(ADMIN_OPERATIONS))])
async def list_modules(
    current_admin: AdminUser,
    module_service: Annotated[AdminModuleService, Depends(get_admin_module_service)],
    status_filter: Annotated[Literal["pending", "approved", "declined"] | None, Query(alias="status")] = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
) -> AdminModuleListResponse:
    """
    List every module regardless of status.

    Args:
        current_admin: Current authenticated admin.
        module_service: Admin module service instance.
        status_filter: pending, approved or declined.
        search: Search in name, author or description.
        page: Page number.
        per_page: Items per page.

    Returns:
        Paginated module list.
    """
    return await module_service.list_all(status=status_filter, search=search, page=page, per_page=per_page)


@router.get("/modules/pending")
async def list_pending_modules(
    current_admin: AdminUser,
    module_service: Annotated[AdminModuleService, Depends(get_admin_module_service)],
) -> list[SubmissionView]:
    """Modules awaiting review, oldest first."""
    return await module_service.list_pending()


@router.post(
    "/modules", status_code=status.HTTP_201_CREATED, dependencies=[Depends(rate_limit(ADMIN_OPERATIONS))]
)
async def create_module(
    data: ModuleSubmission,
    current_admin: AdminUser,
    module_service: Annotated[AdminModuleService, Depends(get_admin_module_service)],
) -> SubmissionView:
    """Create a module that is published immediately."""
    try:
        return await module_service.create_module(current_admin, data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/modules/{module_id}")
async def get_module(
    module_id: str,
    current_admin: AdminUser,
    module_service: Annotated[AdminModuleService, Depends(get_admin_module_service)],
) -> SubmissionView:
    """Module detail with releases, warnings and review notes."""
    try:
        return await module_service.get_module(module_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.patch("/modules/{module_id}/status")
async def set_module_status(
    module_id: str,
    data: ModuleStatusUpdate,
    current_admin: AdminUser,
    module_service: Annotated[AdminModuleService, Depends(get_admin_module_service)],
) -> SubmissionView:
    """
    Approve or decline a module.

    Args:
        module_id: Module identifier.
        data: Decision and optional review notes.
        current_admin: Current authenticated admin.
        module_service: Admin module service instance.

    Returns:
        Updated module.

    Raises:
        HTTPException: If module not found.
    """
    try:
        return await module_service.set_status(current_admin, module_id, data.is_published, data.notes)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.patch("/modules/{module_id}")
async def edit_module(
    module_id: str,
    data: ModuleEditRequest,
    current_admin: AdminUser,
    module_service: Annotated[AdminModuleService, Depends(get_admin_module_service)],
) -> SubmissionView:
    """Partially update any module field."""
    try:
        return await module_service.edit_module(current_admin, module_id, data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.put("/modules/{module_id}/featured")
async def set_module_featured(
    module_id: str,
    data: ModuleFlagUpdate,
    current_admin: AdminUser,
    module_service: Annotated[AdminModuleService, Depends(get_admin_module_service)],
) -> SubmissionView:
    """Feature or unfeature a module."""
    try:
        return await module_service.set_featured(current_admin, module_id, data.enabled)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.put("/modules/{module_id}/recommended")
async def set_module_recommended(
    module_id: str,
    data: ModuleFlagUpdate,
    current_admin: AdminUser,
    module_service: Annotated[AdminModuleService, Depends(get_admin_module_service)],
) -> SubmissionView:
    """Recommend or unrecommend a module."""
    try:
        return await module_service.set_recommended(current_admin, module_id, data.enabled)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.put("/modules/{module_id}/warnings")
async def update_module_warnings(
    module_id: str,
    data: WarningsUpdate,
    current_admin: AdminUser,
    module_service: Annotated[AdminModuleService, Depends(get_admin_module_service)],
) -> SubmissionView:
    """Replace a module's moderation warnings."""
    try:
        return await module_service.update_warnings(current_admin, module_id, data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.delete("/modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_module(
    module_id: str,
    current_admin: AdminUser,
    module_service: Annotated[AdminModuleService, Depends(get_admin_module_service)],
) -> None:
    """
    Delete a module with its releases and reviews.

    Raises:
        HTTPException: If module not found.
    """
    try:
        await module_service.delete_module(current_admin, module_id)
    except ValueError as e:
        raise to_http_exception(e) from e


# Users


@router.get("/users")
async def list_users(
    current_admin: AdminUser,
    user_service: Annotated[UserService, Depends(get_user_service)],
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    search: str | None = None,
    role: Literal["user", "admin"] | None = None,
    provider: str | None = None,
) -> AdminUserListResponse:
    """
    Get paginated list of users.

    Args:
        current_admin: Current authenticated admin.
        user_service: User service instance.
        page: Page number.
        per_page: Items per page.
        search: Search in name or email.
        role: Filter by role.
        provider: Filter by auth provider.

    Returns:
        Paginated user list.
    """
    return await user_service.list_users(page=page, per_page=per_page, query=search, role=role, provider=provider)


@router.get("/users/stats")
async def get_user_stats(
    current_admin: AdminUser,
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> UserStats:
    """User counters."""
    return await user_service.get_user_stats()


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    data: AdminUserUpdate,
    current_admin: AdminUser,
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """Update a user's name, email or role."""
    try:
        return await user_service.admin_update_user(current_admin, user_id, data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.put("/users/{user_id}/role")
async def set_user_role(
    user_id: str,
    data: UserRoleUpdate,
    current_admin: AdminUser,
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """Promote or demote a user."""
    try:
        return await user_service.set_role(current_admin, user_id, data.role)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    current_admin: AdminUser,
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> None:
    """
    Delete a user account.

    Raises:
        HTTPException: If user not found or the admin targets themselves.
    """
    try:
        await user_service.delete_user(current_admin, user_id)
    except ValueError as e:
        raise to_http_exception(e) from e


# Reviews


@router.get("/reviews")
async def list_reviews(
    current_admin: AdminUser,
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    search: str | None = None,
    rating: int | None = Query(None, ge=1, le=5),
    date_from: Annotated[datetime | None, Query(alias="dateFrom")] = None,
    date_to: Annotated[datetime | None, Query(alias="dateTo")] = None,
    min_helpful: Annotated[int | None, Query(alias="minHelpful", ge=0)] = None,
    module_id: Annotated[str | None, Query(alias="moduleId")] = None,
) -> AdminReviewListResponse:
    """
    List reviews for moderation.

    Args:
        current_admin: Current authenticated admin.
        rating_service: Rating service instance.
        page: Page number.
        per_page: Items per page.
        search: Search in comment, module name or reviewer.
        rating: Exact star rating.
        date_from: Created on or after.
        date_to: Created on or before.
        min_helpful: Minimum helpful votes.
        module_id: Only reviews of this module.

    Returns:
        Paginated review list.
    """
    return await rating_service.list_reviews(
        page=page,
        per_page=per_page,
        query=search,
        rating=rating,
        date_from=date_from,
        date_to=date_to,
        min_helpful=min_helpful,
        module_id=module_id,
    )


@router.get("/reviews/stats")
async def get_review_stats(
    current_admin: AdminUser,
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
) -> ReviewStats:
    """Review counters and rating distribution."""
    return await rating_service.get_review_stats()


@router.delete("/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: int,
    current_admin: AdminUser,
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
) -> None:
    """Delete a review with its replies."""
    try:
        await rating_service.delete_review(current_admin, review_id)
    except ValueError as e:
        raise to_http_exception(e) from e


# API keys


@router.get("/api-keys")
async def list_api_keys(
    current_admin: AdminUser,
    key_service: Annotated[ApiKeyService, Depends(get_api_key_service)],
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status_filter: Annotated[Literal["active", "expired", "revoked"] | None, Query(alias="status")] = None,
    search: str | None = None,
    user_id: Annotated[str | None, Query(alias="userId")] = None,
) -> AdminApiKeyListResponse:
    """Every API key with owner information."""
    return await key_service.admin_list_keys(
        page=page, per_page=per_page, status=status_filter, search=search, user_id=user_id
    )


@router.post("/api-keys", status_code=status.HTTP_201_CREATED)
async def create_api_key(
    data: AdminApiKeyCreate,
    current_admin: AdminUser,
    key_service: Annotated[ApiKeyService, Depends(get_api_key_service)],
) -> ApiKeyCreateResponse:
    """Create a key on behalf of any user."""
    try:
        return await key_service.admin_create_key(current_admin, data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/api-keys/{key_id}")
async def get_api_key(
    key_id: str,
    current_admin: AdminUser,
    key_service: Annotated[ApiKeyService, Depends(get_api_key_service)],
) -> AdminApiKeyItem:
    """API key detail."""
    try:
        return await key_service.admin_get_key(key_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.delete("/api-keys/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_api_key(
    key_id: str,
    current_admin: AdminUser,
    key_service: Annotated[ApiKeyService, Depends(get_api_key_service)],
) -> None:
    """Revoke any API key."""
    try:
        await key_service.admin_revoke_key(current_admin, key_id)
    except ValueError as e:
        raise to_http_exception(e) from e


# Jobs


@router.get("/jobs")
async def list_jobs(
    current_admin: AdminUser,
    job_service: Annotated[JobService, Depends(get_job_service)],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    job_type: Annotated[str | None, Query(alias="type")] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> JobListResponse:
    """
    List admin jobs, newest first.

    Args:
        current_admin: Current authenticated admin.
        job_service: Job service instance.
        status_filter: Job status, or "all".
        job_type: Job type, or "all".
        limit: Page size.
        offset: Rows to skip.

    Returns:
        Jobs with the total count.
    """
    return await job_service.list_jobs(status=status_filter, job_type=job_type, limit=limit, offset=offset)


@router.post("/jobs", status_code=status.HTTP_201_CREATED)
async def create_job(
    data: JobCreate,
    current_admin: AdminUser,
    job_service: Annotated[JobService, Depends(get_job_service)],
) -> JobCreatedResponse:
    """
    Create a job and queue it for the worker.

    Args:
        data: Job type, name, description and parameters.
        current_admin: Current authenticated admin.
        job_service: Job service instance.

    Returns:
        Created job and its queue id.
    """
    return await job_service.create_job(current_admin.id, data)


@router.get("/jobs/stats")
async def get_job_stats(
    current_admin: AdminUser,
    job_service: Annotated[JobService, Depends(get_job_service)],
) -> JobStats:
    """Job counts by status and average duration."""
    return await job_service.get_job_stats()


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: int,
    current_admin: AdminUser,
    job_service: Annotated[JobService, Depends(get_job_service)],
) -> JobResponse:
    """Job detail with logs and results."""
    try:
        return await job_service.get_job(job_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/jobs/{job_id}/cancel")
async def cancel_job(
    job_id: int,
    current_admin: AdminUser,
    job_service: Annotated[JobService, Depends(get_job_service)],
) -> JobResponse:
    """
    Cancel a pending or running job.

    Raises:
        HTTPException: If the job is missing or already finished.
    """
    try:
        return await job_service.cancel_job(current_admin.id, job_id)
    except ValueError as e:
        raise to_http_exception(e) from e


# GitHub sync


@router.get("/module-sync")
async def list_sync_configs(
    current_admin: AdminUser,
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
) -> SyncConfigListResponse:
    """Every sync configuration with module names and recent errors."""
    return await sync_service.list_configs()


@router.get("/module-sync/{module_id}")
async def get_sync_config(
    module_id: str,
    current_admin: AdminUser,
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
) -> SyncConfigResponse:
    """Sync configuration of a module."""
    try:
        return await sync_service.get_config(module_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.put("/module-sync/{module_id}")
async def upsert_sync_config(
    module_id: str,
    data: SyncConfigUpdate,
    current_admin: AdminUser,
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
) -> SyncConfigResponse:
    """Create or update a module's sync configuration."""
    try:
        return await sync_service.upsert_config(current_admin, module_id, data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.delete("/module-sync/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sync_config(
    module_id: str,
    current_admin: AdminUser,
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
) -> None:
    """Remove a module's sync configuration."""
    try:
        await sync_service.delete_config(current_admin, module_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/module-sync/{module_id}/sync", status_code=status.HTTP_202_ACCEPTED)
async def trigger_module_sync(
    module_id: str,
    current_admin: AdminUser,
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
    job_service: Annotated[JobService, Depends(get_job_service)],
) -> JobCreatedResponse:
    """
    Queue a release scrape for a single module.

    Raises:
        HTTPException: If the module has no sync configuration.
    """
    try:
        config = await sync_service.get_config(module_id)
    except ValueError as e:
        raise to_http_exception(e) from e

    return await job_service.create_job(
        current_admin.id,
        JobCreate(
            type="scrape_releases",
            name=f"Manual Sync - {config.module_name or module_id}",
            description=f"Manually triggered release sync for {config.github_repo}",
            parameters={"moduleId": module_id, "scope": "single", "manual": True},
        ),
    )


@router.get("/sync-stats")
async def get_sync_stats(
    current_admin: AdminUser,
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
) -> SyncStats:
    """Sync configuration counters."""
    return await sync_service.get_sync_stats()


# Release schedule


@router.get("/release-schedule")
async def get_release_schedule(
    current_admin: AdminUser,
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
) -> ReleaseScheduleResponse:
    """Periodic release polling schedule."""
    return await sync_service.get_schedule()


@router.put("/release-schedule")
async def update_release_schedule(
    data: ReleaseScheduleUpdate,
    current_admin: AdminUser,
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
) -> ReleaseScheduleResponse:
    """Enable or disable the schedule, or change its interval and batch size."""
    return await sync_service.update_schedule(current_admin, data)


@router.post("/release-schedule/manual-run", status_code=status.HTTP_202_ACCEPTED)
async def run_release_schedule(
    current_admin: AdminUser,
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
    job_service: Annotated[JobService, Depends(get_job_service)],
) -> JobCreatedResponse:
    """Queue a release scrape of every synced module now."""
    schedule = await sync_service.get_schedule()
    return await job_service.create_job(
        current_admin.id,
        JobCreate(
            type="scrape_releases",
            name="Manual Release Check",
            description="Manually triggered release check for all synced modules",
            parameters={"scope": "all", "limit": schedule.batch_size, "manual": True},
        ),
    )


# Audit log


@router.get("/audit")
async def list_audit_actions(
    current_admin: AdminUser,
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    admin_id: Annotated[str | None, Query(alias="adminId")] = None,
    target_type: Annotated[str | None, Query(alias="targetType")] = None,
    search: str | None = None,
) -> AuditListResponse:
    """
    Get paginated audit log.

    Args:
        current_admin: Current authenticated admin.
        audit_service: Audit service instance.
        page: Page number.
        per_page: Items per page.
        admin_id: Only actions by this admin.
        target_type: Only actions on this target type.
        search: Search in action and details.

    Returns:
        Paginated audit entries.
    """
    rows, total = await audit_service.list_actions(
        page=page, per_page=per_page, admin_id=admin_id, target_type=target_type, search=search
    )
    items = [
        AuditActionResponse.model_validate(action).model_copy(update={"admin_name": admin_name})
        for action, admin_name in rows
    ]
    return AuditListResponse(
        items=items,
        total=total,
        page=page,
        per_page=per_page,
        total_pages=ceil(total / per_page) if total > 0 else 1,
    )


@router.get("/recent-actions")
async def recent_actions(
    current_admin: AdminUser,
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
    limit: int = Query(10, ge=1, le=50),
) -> list[AuditActionResponse]:
    """Latest audit entries for the dashboard feed."""
    rows, _ = await audit_service.list_actions(page=1, per_page=limit)
    return [
        AuditActionResponse.model_validate(action).model_copy(update={"admin_name": admin_name})
        for action, admin_name in rows
    ]
