"""
Admin module service.

Vetting workflow (approve/decline), admin edits and flags, admin-authored
modules and the dashboard counters.
"""

from math import ceil
from typing import Any

from arq.connections import ArqRedis
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_core.schemas import (
    AdminModuleListResponse,
    CurrentUser,
    DashboardStats,
    JobCreate,
    ModuleEditRequest,
    ModuleSubmission,
    SubmissionView,
    WarningsUpdate,
)
from modhub_database.models import AdminJob, ApiKey, JobStatus, Module, ModuleStatus, Rating, Release, User
from modhub_database.models.base import utcnow
from modhub_github import extract_github_repo, parse_github_repo

from .audit_service import AuditService, describe_changes
from .github_sync_service import GithubSyncService
from .job_service import JobService
from .module_service import ModuleService
from .submission_service import check_source_requirement, unique_slug

logger = get_logger(__name__)

# Fields an admin edit may change, in audit order.
_EDITABLE = (
    "name",
    "short_description",
    "description",
    "author",
    "category",
    "license",
    "is_open_source",
    "source_url",
    "community_url",
    "github_repo",
    "features",
    "compatibility",
    "icon",
    "images",
    "is_featured",
    "is_recommended",
)


def module_github_repo(module: Module) -> str | None:
    """Repository to sync: the GitHub source URL, else the github_repo field."""
    repo = extract_github_repo(module.source_url)
    if repo:
        return repo
    parsed = parse_github_repo(module.github_repo)
    return parsed.full_name if parsed else None


class AdminModuleService:
    """Admin module management service."""

    def __init__(self, session: AsyncSession, redis: ArqRedis | None = None):
        """
        Initialize admin module service.

        Args:
            session: Database session.
            redis: arq connection used to enqueue sync jobs on approval.
        """
        self.session = session
        self.redis = redis
        self.modules = ModuleService(session)

    async def _view(self, module: Module) -> SubmissionView:
        views = await self.modules.transform_modules([module], include_releases=True, view=SubmissionView)
        return views[0]

    async def list_pending(self) -> list[SubmissionView]:
        """Modules waiting for review, oldest first."""
        result = await self.session.execute(
            select(Module).where(Module.status == ModuleStatus.PENDING.value).order_by(Module.created_at.asc())
        )
        return await self.modules.transform_modules(list(result.scalars().all()), view=SubmissionView)

    async def list_all(
        self,
        status: str | None = None,
        search: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> AdminModuleListResponse:
        """
        List every module regardless of status.

        Args:
            status: pending, approved or declined.
            search: Substring match on name, author or description.
            page: Page number (1-based).
            per_page: Page size.

        Returns:
            Paginated module views including review notes.
        """
        conditions = []
        if status and status != "all":
            conditions.append(Module.status == status)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(Module.name.ilike(pattern), Module.author.ilike(pattern), Module.short_description.ilike(pattern))
            )

        total = await self.session.scalar(select(func.count(Module.id)).where(*conditions)) or 0
        result = await self.session.execute(
            select(Module)
            .where(*conditions)
            .order_by(Module.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        items = await self.modules.transform_modules(list(result.scalars().all()), view=SubmissionView)
        return AdminModuleListResponse(
            items=items,
            total=total,
            page=page,
            per_page=per_page,
            total_pages=ceil(total / per_page) if total > 0 else 1,
        )

    async def get_module(self, module_id: str) -> SubmissionView:
        """
        Raises:
            NotFoundError: If the module does not exist.
        """
        return await self._view(await self.modules.get_module_row(module_id))

    async def set_status(
        self, admin: CurrentUser, module_id: str, is_published: bool, notes: str | None = None
    ) -> SubmissionView:
        """
        Approve or decline a module.

        Approval of a module hosted on GitHub creates or re-enables its sync
        configuration and, when that changed, queues a single-module
        release scrape. Decline disables an enabled configuration.

        Args:
            admin: Acting admin.
            module_id: Module identifier.
            is_published: True to approve, False to decline.
            notes: Review note appended to the module's history.

        Returns:
            Updated module.

        Raises:
            NotFoundError: If the module does not exist.
        """
        module = await self.modules.get_module_row(module_id)

        module.is_published = is_published
        module.status = ModuleStatus.APPROVED.value if is_published else ModuleStatus.DECLINED.value
        if notes:
            module.review_notes = list(module.review_notes or []) + [
                {
                    "type": "approved" if is_published else "rejected",
                    "message": notes,
                    "reviewed_by": admin.name or admin.email or "Admin",
                    "reviewed_at": utcnow().isoformat(),
                }
            ]

        await AuditService(self.session).log_action(
            admin.id,
            "Module Approved" if is_published else "Module Rejected",
            notes or ("Module approved for publication" if is_published else "Module rejected"),
            target_type="module",
            target_id=module.id,
        )

        trigger_sync = False
        repo = module_github_repo(module)
        sync = GithubSyncService(self.session)
        if repo:
            if is_published:
                _, trigger_sync = await sync.ensure_config(module.id, repo)
            else:
                await sync.disable_config(module.id)

        await self.session.commit()
        logger.info(
            "Module status changed",
            extra={"module_id": module.id, "admin_id": admin.id, "is_published": is_published},
        )

        if trigger_sync:
            await JobService(self.session, self.redis).create_job(
                admin.id,
                JobCreate(
                    type="scrape_releases",
                    name="Auto Sync - Module Approved",
                    description=f"Automatically triggered GitHub release sync for approved module {module.name}",
                    parameters={"moduleId": module.id, "scope": "single", "manual": False, "autoTriggered": True},
                ),
            )

        await self.session.refresh(module)
        return await self._view(module)

    async def edit_module(self, admin: CurrentUser, module_id: str, edit: ModuleEditRequest) -> SubmissionView:
        """
        Partially update a module.

        When a published module's GitHub source changes, its sync
        configuration follows.

        Raises:
            NotFoundError: If the module does not exist.
            ValueError: If license is Custom without a custom license name.
        """
        module = await self.modules.get_module_row(module_id)

        changes: dict[str, Any] = edit.model_dump(include=set(_EDITABLE), exclude_unset=True)
        if changes.get("license") == "Custom":
            if not edit.custom_license:
                raise ValueError("Custom license name is required when license is Custom")
            changes["license"] = edit.custom_license
        if "images" in changes and changes["images"] is None:
            changes["images"] = []
        check_source_requirement(module, changes)

        old_values = {field: getattr(module, field) for field in changes}
        old_repo = module_github_repo(module)
        for field, value in changes.items():
            setattr(module, field, value)
        new_values = {field: getattr(module, field) for field in changes}

        changed = {field: value for field, value in new_values.items() if old_values[field] != value}
        if changed:
            module.last_updated = utcnow()
            await AuditService(self.session).log_action(
                admin.id,
                "Module Edited",
                f"Edited module {module.name}: {describe_changes(old_values, new_values)}",
                target_type="module",
                target_id=module.id,
                old_values={field: old_values[field] for field in changed},
                new_values=changed,
            )

        new_repo = module_github_repo(module)
        if module.is_published and new_repo != old_repo:
            sync = GithubSyncService(self.session)
            if new_repo:
                await sync.ensure_config(module.id, new_repo)
            else:
                await sync.disable_config(module.id)

        await self.session.commit()
        await self.session.refresh(module)
        return await self._view(module)

    async def create_module(self, admin: CurrentUser, data: ModuleSubmission) -> SubmissionView:
        """Create an admin-authored module, published immediately."""
        module = Module(
            name=data.name,
            slug=await unique_slug(self.session, data.name, data.author),
            short_description=data.short_description,
            description=data.description,
            author=data.author,
            category=data.category,
            last_updated=utcnow(),
            icon=data.icon,
            images=data.images or None,
            is_open_source=data.is_open_source,
            license=data.effective_license(),
            compatibility=data.compatibility.model_dump(),
            warnings=[],
            review_notes=[],
            features=data.features,
            source_url=data.source_url,
            community_url=data.community_url,
            github_repo=data.github_repo,
            is_featured=False,
            is_recommended=False,
            is_published=True,
            status=ModuleStatus.APPROVED.value,
            submitted_by=admin.id,
        )
        self.session.add(module)
        await self.session.flush()

        await AuditService(self.session).log_action(
            admin.id,
            "Module Created",
            f"Created module {module.name}",
            target_type="module",
            target_id=module.id,
            new_values={"name": module.name, "author": module.author, "category": module.category},
        )
        await self.session.commit()
        await self.session.refresh(module)
        return await self._view(module)

    async def _set_flag(self, admin: CurrentUser, module_id: str, field: str, value: bool, labels: tuple[str, str]) -> SubmissionView:
        module = await self.modules.get_module_row(module_id)
        old = getattr(module, field)
        setattr(module, field, value)
        if old != value:
            await AuditService(self.session).log_action(
                admin.id,
                labels[0] if value else labels[1],
                f"{labels[0] if value else labels[1]}: {module.name}",
                target_type="module",
                target_id=module.id,
                old_values={field: old},
                new_values={field: value},
            )
        await self.session.commit()
        await self.session.refresh(module)
        return await self._view(module)

    async def set_featured(self, admin: CurrentUser, module_id: str, featured: bool) -> SubmissionView:
        return await self._set_flag(admin, module_id, "is_featured", featured, ("Module Featured", "Module Unfeatured"))

    async def set_recommended(self, admin: CurrentUser, module_id: str, recommended: bool) -> SubmissionView:
        return await self._set_flag(
            admin, module_id, "is_recommended", recommended, ("Module Recommended", "Module Unrecommended")
        )

    async def update_warnings(self, admin: CurrentUser, module_id: str, data: WarningsUpdate) -> SubmissionView:
        """Replace a module's moderation warnings."""
        module = await self.modules.get_module_row(module_id)
        old_warnings = list(module.warnings or [])
        module.warnings = [warning.model_dump() for warning in data.warnings]

        await AuditService(self.session).log_action(
            admin.id,
            "Module Warnings Updated",
            f"Updated warnings for {module.name}: {describe_changes({'warnings': old_warnings}, {'warnings': module.warnings})}",
            target_type="module",
            target_id=module.id,
            old_values={"warnings": old_warnings},
            new_values={"warnings": module.warnings},
        )
        await self.session.commit()
        await self.session.refresh(module)
        return await self._view(module)

    async def delete_module(self, admin: CurrentUser, module_id: str) -> None:
        """
        Hard-delete a module with its releases, ratings and sync config.

        Raises:
            NotFoundError: If the module does not exist.
        """
        module = await self.modules.get_module_row(module_id)
        await AuditService(self.session).log_action(
            admin.id,
            "Module Deleted",
            f"Deleted module {module.name} by {module.author}",
            target_type="module",
            target_id=module.id,
            old_values={"name": module.name, "author": module.author, "status": module.status},
        )
        await self.session.execute(delete(Module).where(Module.id == module_id))
        await self.session.commit()
        logger.info("Module deleted", extra={"module_id": module_id, "admin_id": admin.id})

    async def get_admin_stats(self) -> DashboardStats:
        """Counters for the admin dashboard."""

        async def count(model: Any, *conditions: Any) -> int:
            return await self.session.scalar(select(func.count(model.id)).where(*conditions)) or 0

        now = utcnow()
        total_downloads = await self.session.scalar(select(func.coalesce(func.sum(Release.downloads), 0)))
        return DashboardStats(
            total_modules=await count(Module),
            published_modules=await count(Module, Module.is_published.is_(True)),
            pending_modules=await count(Module, Module.status == ModuleStatus.PENDING.value),
            declined_modules=await count(Module, Module.status == ModuleStatus.DECLINED.value),
            featured_modules=await count(Module, Module.is_featured.is_(True)),
            recommended_modules=await count(Module, Module.is_recommended.is_(True)),
            total_users=await count(User),
            total_downloads=int(total_downloads or 0),
            total_reviews=await count(Rating),
            active_api_keys=await count(
                ApiKey,
                ApiKey.revoked_at.is_(None),
                or_(ApiKey.expires_at.is_(None), ApiKey.expires_at >= now),
            ),
            running_jobs=await count(AdminJob, AdminJob.status == JobStatus.RUNNING.value),
        )
