"""
Job service.

Admin job records: creation and enqueueing, listing, cancellation and the
state transitions the worker drives.
"""

from typing import Any

from arq.connections import ArqRedis
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_core.exceptions import NotFoundError
from modhub_core.redis_keys import RedisKeys
from modhub_core.schemas import JobCreate, JobCreatedResponse, JobListResponse, JobResponse, JobStats
from modhub_database.models import AdminJob, JobStatus
from modhub_database.models.base import utcnow

from .audit_service import AuditService

logger = get_logger(__name__)

EXECUTE_JOB_TASK = "execute_admin_job"

_CANCELLABLE = (JobStatus.PENDING.value, JobStatus.RUNNING.value)


def log_entry(level: str, message: str) -> dict[str, str]:
    return {"timestamp": utcnow().isoformat(), "level": level, "message": message}


def _duration(job: AdminJob) -> int:
    if job.started_at is None:
        return 0
    return max(0, int((utcnow() - job.started_at).total_seconds()))


class JobService:
    """Admin job service."""

    def __init__(self, session: AsyncSession, redis: ArqRedis | None = None):
        """
        Initialize job service.

        Args:
            session: Database session.
            redis: arq connection used to enqueue jobs.
        """
        self.session = session
        self.redis = redis

    async def _get_job_row(self, job_id: int) -> AdminJob:
        job = await self.session.get(AdminJob, job_id)
        if not job:
            raise NotFoundError("Job not found")
        return job

    async def list_jobs(
        self,
        status: str | None = None,
        job_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> JobListResponse:
        """
        List jobs, newest first.

        Args:
            status: Filter by status.
            job_type: Filter by job type.
            limit: Page size.
            offset: Rows to skip.

        Returns:
            Jobs with the total matching count.
        """
        conditions = []
        if status and status != "all":
            conditions.append(AdminJob.status == status)
        if job_type and job_type != "all":
            conditions.append(AdminJob.type == job_type)

        total = await self.session.scalar(select(func.count(AdminJob.id)).where(*conditions)) or 0
        stmt = (
            select(AdminJob)
            .where(*conditions)
            .order_by(AdminJob.created_at.desc(), AdminJob.id.desc())
            .limit(limit)
            .offset(offset)
        )
        jobs = (await self.session.execute(stmt)).scalars().all()
        return JobListResponse(
            jobs=[JobResponse.model_validate(job) for job in jobs], total=total, limit=limit, offset=offset
        )

    async def create_job(self, started_by: str, data: JobCreate) -> JobCreatedResponse:
        """
        Create a pending job and enqueue it for the worker.

        Args:
            started_by: Admin id, or "SYSTEM" for scheduled jobs.
            data: Job type, name, description and parameters.

        Returns:
            Created job and its queue id.
        """
        job = AdminJob(
            type=data.type,
            name=data.name,
            description=data.description,
            parameters=dict(data.parameters),
            status=JobStatus.PENDING.value,
            progress=0,
            started_by=started_by,
            logs=[log_entry("info", "Job created")],
        )
        self.session.add(job)
        await self.session.flush()

        await AuditService(self.session).log_action(
            started_by,
            "Job Started",
            f"Started {data.type} job: {data.name}",
            target_type="system",
            target_id=f"job-{job.id}",
            new_values={"type": data.type, "parameters": dict(data.parameters)},
        )
        await self.session.commit()
        await self.session.refresh(job)

        queue_job_id = RedisKeys.admin_job(job.id)
        if self.redis is not None:
            await self.redis.enqueue_job(EXECUTE_JOB_TASK, job.id, _job_id=queue_job_id)

        logger.info("Admin job created", extra={"job_id": job.id, "type": job.type, "started_by": started_by})
        return JobCreatedResponse(job=JobResponse.model_validate(job), queue_job_id=queue_job_id)

    async def get_job(self, job_id: int) -> JobResponse:
        """
        Raises:
            NotFoundError: If the job does not exist.
        """
        return JobResponse.model_validate(await self._get_job_row(job_id))

    async def cancel_job(self, admin_id: str, job_id: int) -> JobResponse:
        """
        Cancel a pending or running job.

        A running job stops at the next module boundary.

        Raises:
            NotFoundError: If the job does not exist.
            ValueError: If the job already finished.
        """
        job = await self._get_job_row(job_id)
        if job.status not in _CANCELLABLE:
            raise ValueError("Only pending or running jobs can be cancelled")

        job.status = JobStatus.CANCELLED.value
        job.completed_at = utcnow()
        job.duration = _duration(job)
        job.logs = list(job.logs or []) + [log_entry("warn", "Job cancelled by admin")]

        await AuditService(self.session).log_action(
            admin_id,
            "Job Cancelled",
            f"Cancelled job: {job.name}",
            target_type="system",
            target_id=f"job-{job.id}",
        )
        await self.session.commit()
        await self.session.refresh(job)
        logger.info("Admin job cancelled", extra={"job_id": job_id, "admin_id": admin_id})
        return JobResponse.model_validate(job)

    async def get_job_stats(self) -> JobStats:
        """Job counts by status and average duration of finished jobs."""
        rows = await self.session.execute(select(AdminJob.status, func.count(AdminJob.id)).group_by(AdminJob.status))
        counts = {status: int(count) for status, count in rows.all()}
        average = await self.session.scalar(
            select(func.avg(AdminJob.duration)).where(AdminJob.status == JobStatus.COMPLETED.value)
        )
        return JobStats(
            total=sum(counts.values()),
            pending=counts.get(JobStatus.PENDING.value, 0),
            running=counts.get(JobStatus.RUNNING.value, 0),
            completed=counts.get(JobStatus.COMPLETED.value, 0),
            failed=counts.get(JobStatus.FAILED.value, 0),
            cancelled=counts.get(JobStatus.CANCELLED.value, 0),
            average_duration=round(float(average), 2) if average is not None else None,
        )

    # Worker-side transitions

    async def start(self, job_id: int) -> AdminJob | None:
        """
        Move a pending job to running.

        Returns:
            The job, or None when it is missing or not pending.
        """
        job = await self.session.get(AdminJob, job_id)
        if job is None or job.status != JobStatus.PENDING.value:
            return None
        job.status = JobStatus.RUNNING.value
        job.started_at = utcnow()
        job.logs = list(job.logs or []) + [log_entry("info", "Job execution started")]
        await self.session.commit()
        return job

    async def _append_log(self, job: AdminJob, entry: dict[str, Any]) -> None:
        # Entries written by other sessions (an admin cancel) must survive
        await self.session.refresh(job, attribute_names=["logs"])
        job.logs = list(job.logs or []) + [entry]

    async def add_log(self, job: AdminJob, level: str, message: str) -> None:
        await self._append_log(job, log_entry(level, message))
        await self.session.commit()

    async def set_progress(self, job: AdminJob, progress: int) -> None:
        job.progress = max(0, min(100, progress))
        await self.session.commit()

    async def is_cancelled(self, job: AdminJob) -> bool:
        """Re-read the job status; an admin may have cancelled it meanwhile."""
        await self.session.refresh(job, attribute_names=["status"])
        return job.status == JobStatus.CANCELLED.value

    async def complete(self, job: AdminJob, results: dict[str, Any]) -> None:
        await self._append_log(
            job, log_entry("info", f"Job completed successfully. {results.get('summary', '')}".strip())
        )
        job.status = JobStatus.COMPLETED.value
        job.progress = 100
        job.completed_at = utcnow()
        job.duration = _duration(job)
        job.results = results
        await self.session.commit()

    async def fail(self, job: AdminJob, error: str) -> None:
        await self._append_log(job, log_entry("error", f"Job failed: {error}"))
        job.status = JobStatus.FAILED.value
        job.completed_at = utcnow()
        job.duration = _duration(job)
        job.results = {
            "success": False,
            "processed_count": 0,
            "error_count": 1,
            "errors": [error],
            "summary": f"Job failed: {error}",
        }
        await self.session.commit()
