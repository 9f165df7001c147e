"""
Admin job tasks.

Executes jobs created from the admin panel (or by the release schedule):
release scrapes, cleanup, sync configuration refresh and slug generation.
"""

from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_core.services import AuditService, GithubSyncService, JobService
from modhub_core.services.admin_module_service import module_github_repo
from modhub_core.services.submission_service import unique_slug
from modhub_database.models import AdminJob, JobStatus, Module, ModuleGithubSync
from modhub_database.models.base import utcnow
from modhub_database.session import get_session_context

logger = get_logger(__name__)

DEFAULT_CLEANUP_DAYS = 30

JobHandler = Callable[[dict[str, Any], AsyncSession, JobService, AdminJob], Awaitable[dict[str, Any]]]


def job_results(processed: int, errors: list[str], summary: str, **extra: Any) -> dict[str, Any]:
    """Result payload stored on a finished job."""
    return {
        "success": not errors,
        "processed_count": processed,
        "error_count": len(errors),
        "errors": errors,
        "summary": summary,
        **extra,
    }


async def scrape_releases(
    ctx: dict[str, Any], session: AsyncSession, jobs: JobService, job: AdminJob
) -> dict[str, Any]:
    """
    Import new GitHub releases for the modules selected by the job scope.

    Parameters: ``scope`` (all, outdated or single), ``moduleId`` for the
    single scope, and an optional ``limit``. A failing module is recorded on
    its sync configuration and does not stop the batch.
    """
    params = job.parameters or {}
    sync_service = GithubSyncService(session, client=ctx.get("github_client"))
    audit = AuditService(session)

    targets = await sync_service.modules_for_sync(
        params.get("scope", "all"), module_id=params.get("moduleId"), limit=params.get("limit")
    )
    await jobs.add_log(job, "info", f"Found {len(targets)} modules to sync")

    processed = 0
    new_releases = 0
    errors: list[str] = []

    for index, (module, sync) in enumerate(targets, start=1):
        if await jobs.is_cancelled(job):
            logger.info("Release scrape cancelled", extra={"job_id": job.id, "processed": processed})
            break

        result = await sync_service.sync_module_releases(module.id, sync.github_repo)
        await sync_service.record_sync_result(module.id, result)
        processed += 1

        if result.success:
            new_releases += result.new_releases
            if result.new_releases:
                await audit.log_action(
                    job.started_by,
                    "GitHub Scrape Successful",
                    f"Imported {result.new_releases} new release(s) for {module.name} from {sync.github_repo}",
                    target_type="module",
                    target_id=module.id,
                    new_values={"new_releases": result.new_releases, "github_repo": sync.github_repo},
                )
        else:
            errors.extend(f"{module.name}: {error}" for error in result.errors)
            await audit.log_action(
                job.started_by,
                "GitHub Scrape Failed",
                f"Release sync failed for {module.name} ({sync.github_repo})",
                target_type="module",
                target_id=module.id,
                new_values={"errors": list(result.errors)},
            )
            await jobs.add_log(job, "warn", f"Sync failed for {module.name}: {'; '.join(result.errors)}")

        await jobs.set_progress(job, index * 100 // len(targets))

    summary = f"Synced {processed} modules, found {new_releases} new releases, {len(errors)} errors"
    await audit.log_action(
        job.started_by,
        "GitHub Scrape Job Completed",
        summary,
        target_type="system",
        target_id=f"job-{job.id}",
        new_values={"processed": processed, "new_releases": new_releases, "errors": len(errors)},
    )
    await session.commit()
    return job_results(processed, errors, summary, new_releases=new_releases)


async def cleanup(ctx: dict[str, Any], session: AsyncSession, jobs: JobService, job: AdminJob) -> dict[str, Any]:
    """
    Delete old data. Parameters: ``target`` (failed_jobs) and ``days``.

    Raises:
        ValueError: If the cleanup target is unknown.
    """
    params = job.parameters or {}
    target = params.get("target", "failed_jobs")
    days = int(params.get("days", DEFAULT_CLEANUP_DAYS))

    if target != "failed_jobs":
        raise ValueError(f"Unknown cleanup target: {target}")

    cutoff = utcnow() - timedelta(days=days)
    result = await session.execute(
        delete(AdminJob).where(AdminJob.status == JobStatus.FAILED.value, AdminJob.created_at < cutoff)
    )
    await session.commit()

    removed = result.rowcount or 0
    await jobs.add_log(job, "info", f"Removed {removed} failed jobs older than {days} days")
    return job_results(removed, [], f"Removed {removed} failed jobs older than {days} days")


async def sync_github_configs(
    ctx: dict[str, Any], session: AsyncSession, jobs: JobService, job: AdminJob
) -> dict[str, Any]:
    """
    Align sync configurations with modules.

    Published modules hosted on GitHub get an enabled configuration;
    configurations of unpublished modules are disabled.
    """
    sync_service = GithubSyncService(session)

    published = (await session.execute(select(Module).where(Module.is_published.is_(True)))).scalars().all()
    created_or_updated = 0
    errors: list[str] = []
    for module in published:
        repo = module_github_repo(module)
        if not repo:
            continue
        try:
            _, changed = await sync_service.ensure_config(module.id, repo)
        except ValueError as e:
            errors.append(f"{module.name}: {e}")
            continue
        if changed:
            created_or_updated += 1

    stale = await session.execute(
        select(Module.id)
        .join(ModuleGithubSync, ModuleGithubSync.module_id == Module.id)
        .where(Module.is_published.is_(False), ModuleGithubSync.enabled.is_(True))
    )
    disabled = 0
    for module_id in stale.scalars().all():
        if await sync_service.disable_config(module_id):
            disabled += 1

    summary = f"Created or updated {created_or_updated} sync configs, disabled {disabled}"
    await AuditService(session).log_action(
        job.started_by,
        "GitHub Config Sync Completed",
        summary,
        target_type="system",
        target_id=f"job-{job.id}",
        new_values={"created_or_updated": created_or_updated, "disabled": disabled, "errors": len(errors)},
    )
    await session.commit()
    return job_results(len(published), errors, summary, created_or_updated=created_or_updated, disabled=disabled)


async def generate_slugs(
    ctx: dict[str, Any], session: AsyncSession, jobs: JobService, job: AdminJob
) -> dict[str, Any]:
    """Fill in missing module slugs, resolving conflicts with numeric suffixes."""
    modules = (
        await session.execute(select(Module).where(Module.slug.is_(None)).order_by(Module.created_at))
    ).scalars().all()

    for module in modules:
        module.slug = await unique_slug(session, module.name, module.author)
        # Flush so the next module sees this slug as taken.
        await session.flush()
    await session.commit()

    summary = f"Generated slugs for {len(modules)} modules"
    await jobs.add_log(job, "info", summary)
    return job_results(len(modules), [], summary)


JOB_HANDLERS: dict[str, JobHandler] = {
    "scrape_releases": scrape_releases,
    "cleanup": cleanup,
    "sync_github_configs": sync_github_configs,
    "generate_slugs": generate_slugs,
}


async def execute_admin_job(ctx: dict[str, Any], job_id: int) -> dict[str, Any]:
    """
    Run an admin job.

    Only pending jobs are executed. The job moves to running, its handler
    runs, and it ends completed or failed. A job cancelled while running
    keeps its cancelled status.

    Args:
        ctx: Worker context.
        job_id: Job identifier.

    Returns:
        Dictionary with the execution outcome.
    """
    async with get_session_context() as session:
        jobs = JobService(session)
        job = await jobs.start(job_id)
        if job is None:
            logger.info("Skipping job that is not pending", extra={"job_id": job_id})
            return {"status": "skipped", "job_id": job_id}

        logger.info("Admin job started", extra={"job_id": job_id, "type": job.type})
        handler = JOB_HANDLERS.get(job.type)

        try:
            if handler is None:
                raise ValueError(f"Unknown job type: {job.type}")
            results = await handler(ctx, session, jobs, job)
        except Exception as e:
            logger.exception("Admin job failed", extra={"job_id": job_id, "type": job.type})
            await session.rollback()
            await session.refresh(job)
            await jobs.fail(job, str(e))
            return {"status": "failed", "job_id": job_id, "error": str(e)}

        if await jobs.is_cancelled(job):
            logger.info("Admin job was cancelled", extra={"job_id": job_id})
            return {"status": "cancelled", "job_id": job_id}

        await jobs.complete(job, results)
        logger.info("Admin job completed", extra={"job_id": job_id, "summary": results.get("summary")})
        return {"status": "completed", "job_id": job_id, "results": results}
