"""
GitHub sync service.

Per-module release sync configuration, release import from the GitHub
REST API, stored personal access tokens and the release polling schedule.
"""

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_core.auth.github_pat import hash_pat, is_valid_pat_format
from modhub_core.config import IntegrationConfig, integration_config
from modhub_core.exceptions import NotFoundError
from modhub_core.schemas import (
    CurrentUser,
    GithubPatStatus,
    GithubPatValidation,
    ReleaseScheduleResponse,
    ReleaseScheduleUpdate,
    SyncConfigListResponse,
    SyncConfigResponse,
    SyncConfigUpdate,
    SyncResult,
    SyncStats,
)
from modhub_database.models import (
    MAX_SYNC_ERRORS,
    GithubToken,
    Module,
    ModuleGithubSync,
    Release,
    ReleaseSchedule,
)
from modhub_database.models.base import utcnow
from modhub_github import (
    GitHubClient,
    GitHubError,
    find_main_asset,
    format_file_size,
    latest_version,
    parse_github_repo,
)

from .audit_service import AuditService

logger = get_logger(__name__)


def normalize_repo(value: str) -> str:
    """
    Normalize a repository reference to "owner/repo".

    Raises:
        ValueError: If the value is not a recognizable GitHub repository.
    """
    repo = parse_github_repo(value)
    if repo is None:
        raise ValueError(f"Invalid GitHub repository format: {value}")
    return repo.full_name


class GithubSyncService:
    """GitHub release sync, PAT and schedule service."""

    def __init__(
        self,
        session: AsyncSession,
        config: IntegrationConfig | None = None,
        client: GitHubClient | None = None,
    ):
        """
        Initialize GitHub sync service.

        Args:
            session: Database session.
            config: Integration configuration (token, API URL).
            client: Preconfigured GitHub client. When omitted a client is
                created per sync from the configuration.
        """
        self.session = session
        self.config = config or integration_config
        self.client = client

    def _new_client(self, token: str | None = None) -> GitHubClient:
        return GitHubClient(
            token=token or self.config.github_token or None,
            base_url=self.config.github_api_url,
            timeout=self.config.github_timeout_seconds,
        )

    # Sync configuration

    def _config_response(self, sync: ModuleGithubSync, module_name: str | None) -> SyncConfigResponse:
        data = {column: getattr(sync, column) for column in SyncConfigResponse.model_fields if hasattr(sync, column)}
        data["module_name"] = module_name
        data["sync_errors"] = list(sync.sync_errors or [])
        return SyncConfigResponse.model_validate(data)

    async def _get_config_row(self, module_id: str) -> ModuleGithubSync | None:
        result = await self.session.execute(select(ModuleGithubSync).where(ModuleGithubSync.module_id == module_id))
        return result.scalar_one_or_none()

    async def list_configs(self) -> SyncConfigListResponse:
        """All sync configurations with module names, most recently updated first."""
        stmt = (
            select(ModuleGithubSync, Module.name)
            .join(Module, Module.id == ModuleGithubSync.module_id)
            .order_by(ModuleGithubSync.updated_at.desc())
        )
        rows = (await self.session.execute(stmt)).all()
        items = [self._config_response(sync, name) for sync, name in rows]
        return SyncConfigListResponse(items=items, total=len(items))

    async def get_config(self, module_id: str) -> SyncConfigResponse:
        """
        Raises:
            NotFoundError: If the module has no sync configuration.
        """
        sync = await self._get_config_row(module_id)
        if not sync:
            raise NotFoundError("Sync configuration not found")
        module = await self.session.get(Module, module_id)
        return self._config_response(sync, module.name if module else None)

    async def ensure_config(self, module_id: str, github_repo: str) -> tuple[ModuleGithubSync, bool]:
        """
        Create or re-enable the sync configuration of a module.

        Does not commit.

        Args:
            module_id: Module identifier.
            github_repo: Repository reference.

        Returns:
            Tuple of (configuration, whether anything changed).
        """
        repo = normalize_repo(github_repo)
        sync = await self._get_config_row(module_id)
        if sync is None:
            sync = ModuleGithubSync(module_id=module_id, github_repo=repo, enabled=True, sync_errors=[])
            self.session.add(sync)
            await self.session.flush()
            return sync, True

        changed = not sync.enabled or sync.github_repo != repo
        sync.github_repo = repo
        sync.enabled = True
        return sync, changed

    async def disable_config(self, module_id: str) -> bool:
        """Disable an enabled sync configuration. Does not commit."""
        sync = await self._get_config_row(module_id)
        if sync is None or not sync.enabled:
            return False
        sync.enabled = False
        return True

    async def _check_repository(self, full_name: str) -> None:
        owner, name = full_name.split("/", 1)
        if self.client is not None:
            exists = await self.client.repository_exists(owner, name)
        else:
            async with self._new_client() as client:
                exists = await client.repository_exists(owner, name)
        if not exists:
            raise ValueError(f"GitHub repository not found or not accessible: {full_name}")

    async def upsert_config(self, admin: CurrentUser, module_id: str, data: SyncConfigUpdate) -> SyncConfigResponse:
        """
        Create or update a module's sync configuration.

        A new or changed repository must be reachable on GitHub.

        Raises:
            NotFoundError: If the module does not exist.
            ValueError: If the repository is invalid, unreachable, or
                missing on create.
        """
        module = await self.session.get(Module, module_id)
        if not module:
            raise NotFoundError("Module not found")

        repo = normalize_repo(data.github_repo) if data.github_repo else None
        sync = await self._get_config_row(module_id)
        if sync is None and repo is None:
            raise ValueError("GitHub repository is required")
        if repo is not None and (sync is None or sync.github_repo != repo):
            await self._check_repository(repo)

        if sync is None:
            sync = ModuleGithubSync(
                module_id=module_id,
                github_repo=repo,
                enabled=True if data.enabled is None else data.enabled,
                sync_errors=[],
            )
            self.session.add(sync)
            action = "Sync Config Created"
        else:
            if repo is not None:
                sync.github_repo = repo
            if data.enabled is not None:
                sync.enabled = data.enabled
            action = "Sync Config Updated"

        await AuditService(self.session).log_action(
            admin.id,
            action,
            f"GitHub sync for {module.name}: {sync.github_repo} ({'enabled' if sync.enabled else 'disabled'})",
            target_type="module",
            target_id=module_id,
            new_values={"github_repo": sync.github_repo, "enabled": sync.enabled},
        )
        await self.session.commit()
        await self.session.refresh(sync)
        return self._config_response(sync, module.name)

    async def delete_config(self, admin: CurrentUser, module_id: str) -> None:
        """
        Raises:
            NotFoundError: If the module has no sync configuration.
        """
        sync = await self._get_config_row(module_id)
        if not sync:
            raise NotFoundError("Sync configuration not found")

        await AuditService(self.session).log_action(
            admin.id,
            "Sync Config Deleted",
            f"Removed GitHub sync for {sync.github_repo}",
            target_type="module",
            target_id=module_id,
            old_values={"github_repo": sync.github_repo, "enabled": sync.enabled},
        )
        await self.session.delete(sync)
        await self.session.commit()

    async def get_sync_stats(self) -> SyncStats:
        """Sync overview counters."""
        configs = (await self.session.execute(select(ModuleGithubSync))).scalars().all()
        since = utcnow() - timedelta(hours=24)
        return SyncStats(
            total_configs=len(configs),
            enabled_configs=sum(1 for sync in configs if sync.enabled),
            configs_with_errors=sum(1 for sync in configs if sync.sync_errors),
            synced_last_24h=sum(1 for sync in configs if sync.last_sync_at and sync.last_sync_at >= since),
            never_synced=sum(1 for sync in configs if sync.last_sync_at is None),
        )

    # Release import

    async def sync_module_releases(self, module_id: str, github_repo: str) -> SyncResult:
        """
        Import new GitHub releases of a module.

        Releases already imported (by GitHub release id) are skipped, as
        are releases without assets. The highest version among all of the
        module's releases becomes the only latest release. GitHub errors are
        reported in the result, never raised.

        Args:
            module_id: Module identifier.
            github_repo: Repository reference.

        Returns:
            Sync outcome; success means no errors occurred.
        """
        result = SyncResult(success=False, module_id=module_id)

        repo = parse_github_repo(github_repo)
        if repo is None:
            result.errors.append(f"Invalid GitHub repository format: {github_repo}")
            return result

        try:
            if self.client is not None:
                releases = await self.client.list_releases(repo.owner, repo.repo)
            else:
                async with self._new_client() as client:
                    releases = await client.list_releases(repo.owner, repo.repo)
        except GitHubError as e:
            logger.warning("GitHub sync failed", extra={"module_id": module_id, "repo": repo.full_name, "error": str(e)})
            result.errors.append(f"Sync failed: {e}")
            return result

        existing = await self.session.execute(
            select(Release.github_release_id, Release.version).where(Release.module_id == module_id)
        )
        existing_rows = existing.all()
        known_ids = {release_id for release_id, _ in existing_rows if release_id is not None}

        new_releases: list[Release] = []
        for github_release in releases:
            if github_release.id in known_ids:
                continue
            main_asset = find_main_asset(github_release.assets)
            if main_asset is None:
                result.errors.append(f"No suitable assets found for release {github_release.tag_name}")
                continue
            new_releases.append(
                Release(
                    module_id=module_id,
                    version=github_release.version,
                    download_url=main_asset.browser_download_url,
                    size=format_file_size(github_release.total_size),
                    changelog=github_release.body or None,
                    is_latest=False,
                    github_release_id=github_release.id,
                    github_tag_name=github_release.tag_name,
                    assets=[
                        {
                            "name": asset.name,
                            "download_url": asset.browser_download_url,
                            "size": format_file_size(asset.size),
                            "content_type": asset.content_type,
                        }
                        for asset in github_release.assets
                    ],
                )
            )

        now = utcnow()
        if new_releases:
            newest = latest_version([version for _, version in existing_rows] + [r.version for r in new_releases])
            await self.session.execute(
                update(Release).where(Release.module_id == module_id).values(is_latest=False)
            )
            latest_new = next((r for r in new_releases if r.version == newest), None)
            if latest_new is not None:
                latest_new.is_latest = True
            self.session.add_all(new_releases)
            await self.session.flush()
            if latest_new is None:
                # Highest version was already imported; restore its flag.
                first = await self.session.execute(
                    select(Release.id)
                    .where(Release.module_id == module_id, Release.version == newest)
                    .order_by(Release.id.asc())
                    .limit(1)
                )
                await self.session.execute(
                    update(Release).where(Release.id == first.scalar_one()).values(is_latest=True)
                )
            result.new_releases = len(new_releases)

        values: dict[str, Any] = {"last_sync_at": now}
        if result.new_releases:
            values["last_updated"] = now
        await self.session.execute(update(Module).where(Module.id == module_id).values(**values))

        if new_releases:
            newest_id = max(r.github_release_id for r in new_releases if r.github_release_id is not None)
            await self.session.execute(
                update(ModuleGithubSync)
                .where(ModuleGithubSync.module_id == module_id)
                .values(last_release_id=newest_id)
            )

        await self.session.commit()

        result.success = not result.errors
        logger.info(
            "GitHub sync completed",
            extra={"module_id": module_id, "new_releases": result.new_releases, "errors": len(result.errors)},
        )
        return result

    async def record_sync_result(self, module_id: str, result: SyncResult) -> None:
        """
        Store the outcome of a sync on the module's configuration.

        A successful sync clears the error list; a failed one appends its
        errors, keeping only the most recent MAX_SYNC_ERRORS entries.
        """
        sync = await self._get_config_row(module_id)
        if sync is None:
            return

        now = utcnow()
        sync.last_sync_at = now
        if result.success:
            sync.sync_errors = []
        else:
            entries = [{"error": error, "timestamp": now.isoformat(), "retry_count": 0} for error in result.errors]
            sync.sync_errors = (list(sync.sync_errors or []) + entries)[-MAX_SYNC_ERRORS:]
        await self.session.commit()

    async def modules_for_sync(self, scope: str, module_id: str | None = None, limit: int | None = None) -> list[tuple[Module, ModuleGithubSync]]:
        """
        Select modules a scrape job should process.

        Args:
            scope: all (enabled syncs of published modules), outdated (not
                synced within 24 hours) or single.
            module_id: Module for the single scope.
            limit: Maximum number of modules.

        Raises:
            ValueError: If the scope is unknown, or single has no module id
                or no enabled configuration.
        """
        stmt = (
            select(Module, ModuleGithubSync)
            .join(ModuleGithubSync, ModuleGithubSync.module_id == Module.id)
            .where(ModuleGithubSync.enabled.is_(True))
        )
        if scope == "all":
            stmt = stmt.where(Module.is_published.is_(True))
        elif scope == "outdated":
            cutoff = utcnow() - timedelta(hours=24)
            stmt = stmt.where(or_(ModuleGithubSync.last_sync_at.is_(None), ModuleGithubSync.last_sync_at < cutoff))
        elif scope == "single":
            if not module_id:
                raise ValueError("moduleId parameter is required for single module sync")
            stmt = stmt.where(Module.id == module_id)
        else:
            raise ValueError(f"Unknown scrape scope: {scope}")

        stmt = stmt.order_by(ModuleGithubSync.last_sync_at.asc().nulls_first(), Module.id)
        if limit:
            stmt = stmt.limit(limit)
        rows = [(module, sync) for module, sync in (await self.session.execute(stmt)).all()]

        if scope == "single" and not rows:
            raise ValueError(f"Module {module_id} not found or GitHub sync not enabled")
        return rows

    # Personal access tokens

    async def save_pat(self, user_id: str, token: str) -> GithubPatStatus:
        """
        Store a PAT as a salted hash, replacing any previous token.

        Raises:
            ValueError: If the token format is invalid.
        """
        token = token.strip()
        if not is_valid_pat_format(token):
            raise ValueError("Invalid GitHub token format")

        hashed, salt = hash_pat(token)
        stored = await self.session.execute(select(GithubToken).where(GithubToken.user_id == user_id))
        row = stored.scalar_one_or_none()
        if row is None:
            row = GithubToken(user_id=user_id, hashed_token=hashed, salt=salt)
            self.session.add(row)
        else:
            row.hashed_token = hashed
            row.salt = salt
            row.updated_at = utcnow()

        await self.session.commit()
        await self.session.refresh(row)
        logger.info("GitHub token saved", extra={"user_id": user_id})
        return GithubPatStatus(has_token=True, updated_at=row.updated_at)

    async def get_pat_status(self, user_id: str) -> GithubPatStatus:
        stored = await self.session.execute(select(GithubToken).where(GithubToken.user_id == user_id))
        row = stored.scalar_one_or_none()
        if row is None:
            return GithubPatStatus(has_token=False)
        return GithubPatStatus(has_token=True, updated_at=row.updated_at)

    async def delete_pat(self, user_id: str) -> None:
        """
        Raises:
            NotFoundError: If the user has no stored token.
        """
        result = await self.session.execute(delete(GithubToken).where(GithubToken.user_id == user_id))
        if not result.rowcount:
            raise NotFoundError("No GitHub token found")
        await self.session.commit()
        logger.info("GitHub token deleted", extra={"user_id": user_id})

    async def validate_pat(self, token: str) -> GithubPatValidation:
        """Check a PAT against the GitHub API without storing it."""
        token = token.strip()
        if not is_valid_pat_format(token):
            return GithubPatValidation(valid=False, error="Invalid GitHub token format")

        try:
            if self.client is not None:
                user, scopes = await self.client.get_authenticated_user()
            else:
                async with self._new_client(token) as client:
                    user, scopes = await client.get_authenticated_user()
        except GitHubError as e:
            return GithubPatValidation(valid=False, error=str(e))

        return GithubPatValidation(valid=True, login=user.get("login"), scopes=scopes)

    # Release schedule

    async def _schedule_row(self) -> ReleaseSchedule:
        result = await self.session.execute(select(ReleaseSchedule).order_by(ReleaseSchedule.id).limit(1))
        schedule = result.scalar_one_or_none()
        if schedule is None:
            schedule = ReleaseSchedule(enabled=True, interval_hours=1, batch_size=10)
            schedule.next_run_at = utcnow() + timedelta(hours=schedule.interval_hours)
            self.session.add(schedule)
            await self.session.commit()
            await self.session.refresh(schedule)
        return schedule

    async def get_schedule(self) -> ReleaseScheduleResponse:
        """Release polling schedule; the default row is created on first access."""
        return ReleaseScheduleResponse.model_validate(await self._schedule_row())

    async def update_schedule(self, admin: CurrentUser, data: ReleaseScheduleUpdate) -> ReleaseScheduleResponse:
        """Update the schedule and recompute the next run."""
        schedule = await self._schedule_row()
        old_values = {
            "enabled": schedule.enabled,
            "interval_hours": schedule.interval_hours,
            "batch_size": schedule.batch_size,
        }

        if data.enabled is not None:
            schedule.enabled = data.enabled
        if data.interval_hours is not None:
            schedule.interval_hours = data.interval_hours
        if data.batch_size is not None:
            schedule.batch_size = data.batch_size
        schedule.next_run_at = utcnow() + timedelta(hours=schedule.interval_hours) if schedule.enabled else None

        new_values = {
            "enabled": schedule.enabled,
            "interval_hours": schedule.interval_hours,
            "batch_size": schedule.batch_size,
        }
        await AuditService(self.session).log_action(
            admin.id,
            "Release Schedule Updated",
            "Updated release polling schedule",
            target_type="system",
            target_id="release_schedule",
            old_values=old_values,
            new_values=new_values,
        )
        await self.session.commit()
        await self.session.refresh(schedule)
        return ReleaseScheduleResponse.model_validate(schedule)

    async def claim_due_run(self, now: datetime | None = None) -> ReleaseSchedule | None:
        """
        Advance the schedule when a run is due.

        Args:
            now: Current time.

        Returns:
            The schedule when a run is due (last_run_at and next_run_at
            already advanced and committed), else None.
        """
        now = now or utcnow()
        schedule = await self._schedule_row()
        if not schedule.enabled:
            return None
        if schedule.next_run_at is not None and schedule.next_run_at > now:
            return None

        schedule.last_run_at = now
        schedule.next_run_at = now + timedelta(hours=schedule.interval_hours)
        await self.session.commit()
        return schedule
