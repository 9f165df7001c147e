"""
ModHub worker - arq entry point.

Run with ``arq modhub_worker.main.WorkerSettings``.
"""

from typing import Any

from arq import cron
from arq.connections import RedisSettings

from modhub_core import get_logger, init_logging
from modhub_core.config import integration_config
from modhub_database.session import close_database, init_database
from modhub_github import GitHubClient

from .config import settings
from .tasks import check_release_schedule, execute_admin_job

logger = get_logger(__name__)


async def startup(ctx: dict[str, Any]) -> None:
    """
    Worker startup: logging, database and a shared GitHub client.

    Args:
        ctx: Worker context.
    """
    init_logging(settings.log_level, settings.log_json)
    init_database(settings.database_url)
    ctx["github_client"] = GitHubClient(
        token=integration_config.github_token or None,
        base_url=integration_config.github_api_url,
        timeout=integration_config.github_timeout_seconds,
    )
    logger.info("ModHub worker started")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Release the GitHub client and the database engine."""
    client = ctx.pop("github_client", None)
    if client is not None:
        await client.close()
    await close_database()
    logger.info("ModHub worker stopped")


class WorkerSettings:
    """arq worker configuration."""

    functions = [execute_admin_job]
    cron_jobs = [cron(check_release_schedule, minute=set(range(60)), run_at_startup=False)]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    max_jobs = settings.max_jobs
    job_timeout = settings.job_timeout_seconds
