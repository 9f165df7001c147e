"""
Submission service.

User-facing module submission workflow: submit, list own submissions,
edit and resubmit.
"""

from datetime import timedelta
from typing import Any

from arq.connections import ArqRedis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_core.auth.api_keys import SCOPE_WRITE
from modhub_core.config import IntegrationConfig, integration_config
from modhub_core.exceptions import (
    CaptchaError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitExceededError,
)
from modhub_core.redis_keys import RedisKeys
from modhub_core.schemas import (
    CurrentUser,
    ModuleSubmissionRequest,
    SubmissionCreatedResponse,
    SubmissionListResponse,
    SubmissionUpdateRequest,
    SubmissionView,
)
from modhub_core.utils.slug import generate_slug, resolve_slug_conflict
from modhub_database.models import Module, ModuleStatus
from modhub_database.models.base import utcnow

from .api_key_service import require_scope
from .module_service import ModuleService
from .rate_limit_service import RateLimiter
from .turnstile_service import TurnstileVerifier

logger = get_logger(__name__)

SUBMITTED_MESSAGE = "Module submitted successfully! It will be reviewed by our team."

# Fields an owner may change on their own submission.
_OWNER_EDITABLE = (
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
)


async def unique_slug(session: AsyncSession, name: str, author: str) -> str:
    """
    Generate a slug for a module and resolve conflicts with existing slugs.

    Args:
        session: Database session.
        name: Module name.
        author: Module author.

    Returns:
        Slug not used by any other module.
    """
    base = generate_slug(name, author)
    result = await session.execute(select(Module.slug).where(Module.slug.like(f"{base}%")))
    existing = {slug for slug in result.scalars().all() if slug}
    return resolve_slug_conflict(base, existing)


def check_source_requirement(module: Module, changes: dict[str, Any]) -> None:
    """
    Apply the open source rule to a module as it would be after an edit.

    Raises:
        ValueError: If the edited module is open source without a source URL.
    """
    is_open_source = changes.get("is_open_source", module.is_open_source)
    source_url = changes["source_url"] if "source_url" in changes else module.source_url
    if is_open_source and not source_url:
        raise ValueError("Source URL is required for open source modules")


class SubmissionService:
    """Module submission service."""

    def __init__(
        self,
        session: AsyncSession,
        redis: ArqRedis,
        captcha: TurnstileVerifier,
        config: IntegrationConfig | None = None,
    ):
        """
        Initialize submission service.

        Args:
            session: Database session.
            redis: Redis connection used for rate-limit counters.
            captcha: Turnstile verifier.
            config: Integration configuration.
        """
        self.session = session
        self.redis = redis
        self.captcha = captcha
        self.config = config or integration_config

    async def _check_rate_limit(self, user_id: str) -> None:
        counter = await RateLimiter(self.redis).hit(
            RedisKeys.submit_rate_limit(user_id),
            self.config.submit_rate_limit,
            self.config.submit_rate_window_seconds,
        )
        if counter.exceeded:
            reset_at = counter.reset_at
            logger.warning("Submission rate limit exceeded", extra={"user_id": user_id, "count": counter.count})
            raise RateLimitExceededError(
                f"Rate limit exceeded. You can submit again at {reset_at.strftime('%H:%M:%S')} UTC.",
                reset_at=reset_at,
                retry_after=counter.retry_after,
                limit=counter.limit,
            )

    async def _verify_captcha(self, token: str | None, client_ip: str | None) -> None:
        result = await self.captcha.verify(token, client_ip)
        if not result.success:
            raise CaptchaError(result.error or "Captcha verification failed")

    async def submit(
        self, user: CurrentUser, request: ModuleSubmissionRequest, client_ip: str | None = None
    ) -> SubmissionCreatedResponse:
        """
        Submit a new module for review.

        Args:
            user: Submitting user.
            request: Module, optional first release and captcha token.
            client_ip: Client IP forwarded to the captcha check.

        Returns:
            Id and slug of the pending module.

        Raises:
            PermissionDeniedError: If an API key lacks the write scope.
            RateLimitExceededError: If the user submitted too often.
            CaptchaError: If captcha verification fails.
            ConflictError: If the same user submitted the same name in the
                duplicate window.
        """
        require_scope(user, SCOPE_WRITE)
        await self._check_rate_limit(user.id)
        await self._verify_captcha(request.turnstile_token, client_ip)

        data = request.module
        window_start = utcnow() - timedelta(hours=self.config.duplicate_submission_window_hours)
        result = await self.session.execute(
            select(Module.id).where(
                Module.submitted_by == user.id,
                Module.name == data.name,
                Module.created_at >= window_start,
            )
        )
        existing_id = result.scalars().first()
        if existing_id:
            raise ConflictError(
                "You have already submitted a module with this name in the last 24 hours.",
                existing_id=existing_id,
            )

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
            is_published=False,
            status=ModuleStatus.PENDING.value,
            submitted_by=user.id,
        )
        self.session.add(module)
        await self.session.flush()

        if request.release is not None:
            release = request.release.model_copy(update={"is_latest": True})
            await ModuleService(self.session).add_release(module.id, release, commit=False)

        await self.session.commit()

        logger.info(
            "Module submitted",
            extra={"module_id": module.id, "user_id": user.id, "has_release": request.release is not None},
        )
        return SubmissionCreatedResponse(id=module.id, slug=module.slug, message=SUBMITTED_MESSAGE, pending=True)

    async def list_my_submissions(self, user: CurrentUser) -> SubmissionListResponse:
        """
        List every module the user submitted, newest first.

        Args:
            user: Current user.

        Returns:
            Submissions with status, warnings and review notes.
        """
        result = await self.session.execute(
            select(Module).where(Module.submitted_by == user.id).order_by(Module.created_at.desc())
        )
        modules = list(result.scalars().all())
        views = await ModuleService(self.session).transform_modules(modules, view=SubmissionView)
        return SubmissionListResponse(items=views, total=len(views))

    async def update_submission(
        self,
        user: CurrentUser,
        module_id: str,
        update: SubmissionUpdateRequest,
        client_ip: str | None = None,
    ) -> SubmissionView:
        """
        Edit or resubmit the user's own module.

        Args:
            user: Current user.
            module_id: Module identifier.
            update: Changed fields, optionally with status "pending".
            client_ip: Client IP forwarded to the captcha check.

        Returns:
            Updated submission.

        Raises:
            NotFoundError: If the module does not exist or is not the user's.
            PermissionDeniedError: If the module is published and the update
                carries no status reset.
            CaptchaError: If a resubmission fails captcha verification.
        """
        require_scope(user, SCOPE_WRITE)

        result = await self.session.execute(
            select(Module).where(Module.id == module_id, Module.submitted_by == user.id)
        )
        module = result.scalar_one_or_none()
        if not module:
            raise NotFoundError("Module not found or you don't have permission to edit it")

        if module.is_published and update.status is None:
            raise PermissionDeniedError("Cannot edit published modules")

        if update.status == ModuleStatus.PENDING.value:
            await self._verify_captcha(update.turnstile_token, client_ip)

        changes: dict[str, Any] = update.model_dump(include=set(_OWNER_EDITABLE), exclude_unset=True)
        if "license" in changes and changes["license"] == "Custom":
            if not update.custom_license:
                raise ValueError("Custom license name is required when license is Custom")
            changes["license"] = update.custom_license
        check_source_requirement(module, changes)
        for field, value in changes.items():
            setattr(module, field, value)

        if update.status == ModuleStatus.PENDING.value:
            module.status = ModuleStatus.PENDING.value
            module.is_published = False

        await self.session.commit()
        await self.session.refresh(module)

        logger.info(
            "Submission updated",
            extra={"module_id": module.id, "user_id": user.id, "resubmitted": update.status is not None},
        )
        views = await ModuleService(self.session).transform_modules([module], view=SubmissionView)
        return views[0]
