"""Tests for worker-side admin job transitions."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from modhub_core.schemas import JobCreate
from modhub_core.services import JobService
from modhub_database.models import AdminJob


async def _running_job(db_session, started_by: str) -> AdminJob:
    created = await JobService(db_session).create_job(
        started_by, JobCreate(type="generate_slugs", name="Slug backfill", parameters={})
    )
    return await JobService(db_session).start(created.job.id)


def _messages(job: AdminJob) -> list[str]:
    return [entry["message"] for entry in job.logs]


class TestJobLogs:
    """Test log appends racing an admin cancel."""

    @pytest.mark.asyncio
    async def test_add_log_keeps_cancel_entry(self, db_session, test_engine, admin_user):
        """A worker log written after a cancel from another session keeps the cancel entry."""
        job = await _running_job(db_session, admin_user.id)

        admin_sessions = async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)
        async with admin_sessions() as admin_session:
            await JobService(admin_session).cancel_job(admin_user.id, job.id)

        await JobService(db_session).add_log(job, "info", "Found 3 modules to sync")

        assert _messages(job) == [
            "Job created",
            "Job execution started",
            "Job cancelled by admin",
            "Found 3 modules to sync",
        ]

    @pytest.mark.asyncio
    async def test_fail_appends_to_current_logs(self, db_session, test_engine, admin_user):
        """Failure entries are appended to logs written by other sessions."""
        job = await _running_job(db_session, admin_user.id)

        other_sessions = async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)
        async with other_sessions() as other_session:
            await JobService(other_session).add_log(await other_session.get(AdminJob, job.id), "warn", "Slow module")

        await JobService(db_session).fail(job, "boom")

        assert job.status == "failed"
        assert _messages(job)[-2:] == ["Slow module", "Job failed: boom"]
