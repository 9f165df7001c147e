"""
Release schedule task.

Periodic check that queues a release scrape of every synced module when
the admin-configured schedule is due.
"""

from typing import Any

from modhub_core import get_logger
from modhub_core.schemas import JobCreate
from modhub_core.services import SYSTEM_ACTOR, GithubSyncService, JobService
from modhub_database.session import get_session_context

logger = get_logger(__name__)


async def check_release_schedule(ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Create a scheduled release scrape when one is due.

    Args:
        ctx: Worker context with the arq Redis connection.

    Returns:
        Dictionary with the created job id, or the reason nothing ran.
    """
    async with get_session_context() as session:
        schedule = await GithubSyncService(session).claim_due_run()
        if schedule is None:
            return {"status": "not_due"}

        created = await JobService(session, ctx.get("redis")).create_job(
            SYSTEM_ACTOR,
            JobCreate(
                type="scrape_releases",
                name="Scheduled Release Check",
                description=f"Automatic release check (every {schedule.interval_hours}h)",
                parameters={"scope": "all", "limit": schedule.batch_size, "scheduled": True},
            ),
        )

    logger.info(
        "Scheduled release check queued",
        extra={"job_id": created.job.id, "batch_size": schedule.batch_size},
    )
    return {"status": "queued", "job_id": created.job.id}
