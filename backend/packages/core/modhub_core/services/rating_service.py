"""
Rating service.

Module reviews, threaded replies, helpful votes and admin moderation.
"""

from datetime import datetime, timedelta
from math import ceil

from sqlalchemy import Select, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_core.auth.api_keys import SCOPE_WRITE
from modhub_core.exceptions import CaptchaError, ConflictError, NotFoundError
from modhub_core.schemas import (
    AdminReviewItem,
    AdminReviewListResponse,
    CurrentUser,
    HelpfulVoteResponse,
    RatingCreate,
    RatingListResponse,
    RatingResponse,
    RatingUpdate,
    ReplyCreate,
    ReplyListResponse,
    ReplyResponse,
    ReviewStats,
    UserHelpfulVotes,
)
from modhub_database.models import HelpfulVote, Module, Rating, Reply, User
from modhub_database.models.base import utcnow

from .api_key_service import require_scope
from .audit_service import AuditService
from .module_service import can_view_module
from .turnstile_service import TurnstileVerifier

logger = get_logger(__name__)

HELPFUL_THRESHOLD = 5


def _rating_query() -> Select:
    reply_counts = (
        select(Reply.rating_id.label("rating_id"), func.count(Reply.id).label("count"))
        .group_by(Reply.rating_id)
        .subquery()
    )
    return (
        select(Rating, User.name, User.image, reply_counts.c.count)
        .join(User, User.id == Rating.user_id)
        .outerjoin(reply_counts, reply_counts.c.rating_id == Rating.id)
    )


def _rating_response(rating: Rating, user_name: str | None, user_image: str | None, replies: int | None) -> RatingResponse:
    return RatingResponse.model_validate(
        {
            **{column: getattr(rating, column) for column in RatingResponse.model_fields if hasattr(rating, column)},
            "user_name": user_name,
            "user_image": user_image,
            "reply_count": replies or 0,
        }
    )


class RatingService:
    """Review, reply and helpful vote service."""

    def __init__(self, session: AsyncSession, captcha: TurnstileVerifier | None = None):
        """
        Initialize rating service.

        Args:
            session: Database session.
            captcha: Turnstile verifier for review and reply creation.
        """
        self.session = session
        self.captcha = captcha

    async def _verify_captcha(self, token: str | None, client_ip: str | None) -> None:
        if self.captcha is None:
            return
        result = await self.captcha.verify(token, client_ip)
        if not result.success:
            raise CaptchaError(result.error or "Captcha verification failed")

    async def _visible_module(self, module_id: str, viewer: CurrentUser | None) -> Module:
        module = await self.session.get(Module, module_id)
        if not module or not can_view_module(module, viewer):
            raise NotFoundError("Module not found")
        return module

    async def _get_rating_row(self, rating_id: int) -> Rating:
        rating = await self.session.get(Rating, rating_id)
        if not rating:
            raise NotFoundError("Rating not found")
        return rating

    async def _load_rating(self, rating_id: int) -> RatingResponse:
        row = (await self.session.execute(_rating_query().where(Rating.id == rating_id))).one()
        return _rating_response(*row)

    async def list_ratings(self, module_id: str, viewer: CurrentUser | None = None) -> RatingListResponse:
        """
        List a module's ratings, newest first, plus the viewer's own rating.

        Raises:
            NotFoundError: If the module does not exist or is not visible.
        """
        await self._visible_module(module_id, viewer)

        stmt = _rating_query().where(Rating.module_id == module_id).order_by(Rating.created_at.desc(), Rating.id.desc())
        ratings = [_rating_response(*row) for row in (await self.session.execute(stmt)).all()]

        user_rating = None
        if viewer is not None:
            user_rating = next((rating for rating in ratings if rating.user_id == viewer.id), None)

        return RatingListResponse(ratings=ratings, user_rating=user_rating)

    async def create_rating(
        self, user: CurrentUser, module_id: str, data: RatingCreate, client_ip: str | None = None
    ) -> RatingResponse:
        """
        Review a module. Each user may review a module once.

        Raises:
            PermissionDeniedError: If an API key lacks the write scope.
            CaptchaError: If captcha verification fails.
            NotFoundError: If the module does not exist or is not visible.
            ConflictError: If the user already reviewed the module.
        """
        require_scope(user, SCOPE_WRITE)
        await self._verify_captcha(data.turnstile_token, client_ip)
        await self._visible_module(module_id, user)

        existing = await self.session.execute(
            select(Rating.id).where(Rating.module_id == module_id, Rating.user_id == user.id)
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("You have already reviewed this module")

        rating = Rating(module_id=module_id, user_id=user.id, rating=data.rating, comment=data.comment)
        self.session.add(rating)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("You have already reviewed this module") from e

        logger.info("Rating created", extra={"module_id": module_id, "user_id": user.id, "rating": data.rating})
        return await self._load_rating(rating.id)

    async def update_rating(self, user: CurrentUser, module_id: str, data: RatingUpdate) -> RatingResponse:
        """
        Update the user's own rating of a module.

        Raises:
            NotFoundError: If the user has not reviewed the module.
        """
        require_scope(user, SCOPE_WRITE)
        result = await self.session.execute(
            select(Rating).where(Rating.module_id == module_id, Rating.user_id == user.id)
        )
        rating = result.scalar_one_or_none()
        if not rating:
            raise NotFoundError("Rating not found")

        rating.rating = data.rating
        rating.comment = data.comment
        await self.session.commit()
        return await self._load_rating(rating.id)

    async def list_replies(self, rating_id: int) -> ReplyListResponse:
        """
        List replies of a rating, oldest first.

        Raises:
            NotFoundError: If the rating does not exist.
        """
        await self._get_rating_row(rating_id)
        stmt = (
            select(Reply, User.name, User.image)
            .join(User, User.id == Reply.user_id)
            .where(Reply.rating_id == rating_id)
            .order_by(Reply.created_at.asc(), Reply.id.asc())
        )
        rows = (await self.session.execute(stmt)).all()
        return ReplyListResponse(
            replies=[
                ReplyResponse(
                    id=reply.id,
                    rating_id=reply.rating_id,
                    user_id=reply.user_id,
                    user_name=name,
                    user_image=image,
                    comment=reply.comment,
                    helpful=reply.helpful,
                    created_at=reply.created_at,
                )
                for reply, name, image in rows
            ]
        )

    async def create_reply(
        self, user: CurrentUser, rating_id: int, data: ReplyCreate, client_ip: str | None = None
    ) -> ReplyResponse:
        """
        Reply to a rating.

        Raises:
            CaptchaError: If captcha verification fails.
            NotFoundError: If the rating does not exist.
        """
        require_scope(user, SCOPE_WRITE)
        await self._verify_captcha(data.turnstile_token, client_ip)
        await self._get_rating_row(rating_id)

        reply = Reply(rating_id=rating_id, user_id=user.id, comment=data.comment)
        self.session.add(reply)
        await self.session.commit()
        await self.session.refresh(reply)

        return ReplyResponse(
            id=reply.id,
            rating_id=reply.rating_id,
            user_id=reply.user_id,
            user_name=user.name,
            user_image=user.image,
            comment=reply.comment,
            helpful=reply.helpful,
            created_at=reply.created_at,
        )

    async def mark_helpful(
        self, user: CurrentUser, rating_id: int | None = None, reply_id: int | None = None
    ) -> HelpfulVoteResponse:
        """
        Vote a rating or a reply helpful. One vote per user per target.

        Args:
            user: Voting user.
            rating_id: Rating to vote for.
            reply_id: Reply to vote for.

        Returns:
            New helpful count of the target.

        Raises:
            NotFoundError: If the target does not exist.
            PermissionDeniedError: If an API key lacks the write scope.
            ValueError: If the user already voted for the target, or not
                exactly one target was given.
        """
        require_scope(user, SCOPE_WRITE)
        if (rating_id is None) == (reply_id is None):
            raise ValueError("Provide exactly one of rating_id or reply_id")

        if rating_id is not None:
            target = await self._get_rating_row(rating_id)
            model, vote_column, label = Rating, HelpfulVote.rating_id, "review"
        else:
            target = await self.session.get(Reply, reply_id)
            if not target:
                raise NotFoundError("Reply not found")
            model, vote_column, label = Reply, HelpfulVote.reply_id, "reply"

        duplicate_message = f"You have already marked this {label} as helpful"
        existing = await self.session.execute(
            select(HelpfulVote.id).where(HelpfulVote.user_id == user.id, vote_column == target.id)
        )
        if existing.scalar_one_or_none() is not None:
            raise ValueError(duplicate_message)

        self.session.add(HelpfulVote(user_id=user.id, rating_id=rating_id, reply_id=reply_id))
        await self.session.execute(update(model).where(model.id == target.id).values(helpful=model.helpful + 1))
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ValueError(duplicate_message) from e

        await self.session.refresh(target)
        return HelpfulVoteResponse(helpful=target.helpful)

    async def get_user_helpful_votes(self, user_id: str, module_id: str) -> UserHelpfulVotes:
        """Ratings and replies of a module the user already voted helpful."""
        rating_votes = await self.session.execute(
            select(HelpfulVote.rating_id)
            .join(Rating, Rating.id == HelpfulVote.rating_id)
            .where(HelpfulVote.user_id == user_id, Rating.module_id == module_id)
        )
        reply_votes = await self.session.execute(
            select(HelpfulVote.reply_id)
            .join(Reply, Reply.id == HelpfulVote.reply_id)
            .join(Rating, Rating.id == Reply.rating_id)
            .where(HelpfulVote.user_id == user_id, Rating.module_id == module_id)
        )
        return UserHelpfulVotes(
            ratings=[rid for rid in rating_votes.scalars().all() if rid is not None],
            replies=[rid for rid in reply_votes.scalars().all() if rid is not None],
        )

    # Admin moderation

    async def list_reviews(
        self,
        page: int = 1,
        per_page: int = 20,
        query: str | None = None,
        rating: int | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        min_helpful: int | None = None,
        module_id: str | None = None,
    ) -> AdminReviewListResponse:
        """
        List reviews for moderation, newest first.

        Args:
            page: Page number (1-based).
            per_page: Page size.
            query: Substring match on comment, reviewer name or module name.
            rating: Exact star rating.
            date_from: Created at or after.
            date_to: Created at or before.
            min_helpful: Minimum helpful count.
            module_id: Only reviews of this module.

        Returns:
            Paginated reviews.
        """
        conditions = []
        if query:
            pattern = f"%{query}%"
            conditions.append(or_(Rating.comment.ilike(pattern), User.name.ilike(pattern), Module.name.ilike(pattern)))
        if rating is not None:
            conditions.append(Rating.rating == rating)
        if date_from is not None:
            conditions.append(Rating.created_at >= date_from)
        if date_to is not None:
            conditions.append(Rating.created_at <= date_to)
        if min_helpful is not None:
            conditions.append(Rating.helpful >= min_helpful)
        if module_id:
            conditions.append(Rating.module_id == module_id)

        base = (
            select(Rating.id)
            .join(User, User.id == Rating.user_id)
            .join(Module, Module.id == Rating.module_id)
            .where(*conditions)
        )
        total = await self.session.scalar(select(func.count()).select_from(base.subquery())) or 0

        stmt = (
            _rating_query()
            .add_columns(Module.name, User.email)
            .join(Module, Module.id == Rating.module_id)
            .where(*conditions)
            .order_by(Rating.created_at.desc(), Rating.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        items = []
        for rating_row, name, image, replies, module_name, email in (await self.session.execute(stmt)).all():
            data = _rating_response(rating_row, name, image, replies).model_dump()
            items.append(AdminReviewItem(**data, module_name=module_name, user_email=email))

        return AdminReviewListResponse(
            items=items,
            total=total,
            page=page,
            per_page=per_page,
            total_pages=ceil(total / per_page) if total > 0 else 1,
        )

    async def get_review_stats(self) -> ReviewStats:
        """Aggregate review counters."""
        total = await self.session.scalar(select(func.count(Rating.id))) or 0
        average = await self.session.scalar(select(func.avg(Rating.rating)))
        helpful = (
            await self.session.scalar(select(func.count(Rating.id)).where(Rating.helpful >= HELPFUL_THRESHOLD)) or 0
        )
        recent = (
            await self.session.scalar(
                select(func.count(Rating.id)).where(Rating.created_at >= utcnow() - timedelta(days=30))
            )
            or 0
        )
        replies = await self.session.scalar(select(func.count(Reply.id))) or 0

        distribution = {value: 0 for value in range(1, 6)}
        rows = await self.session.execute(select(Rating.rating, func.count(Rating.id)).group_by(Rating.rating))
        for value, count in rows.all():
            distribution[int(value)] = int(count)

        return ReviewStats(
            total_reviews=total,
            average_rating=round(float(average or 0), 2),
            helpful_reviews=helpful,
            recent_reviews=recent,
            total_replies=replies,
            rating_distribution=distribution,
        )

    async def delete_review(self, admin: CurrentUser, review_id: int) -> None:
        """
        Delete a review and its replies (audited).

        Raises:
            NotFoundError: If the review does not exist.
        """
        rating = await self.session.get(Rating, review_id)
        if not rating:
            raise NotFoundError("Review not found")

        module = await self.session.get(Module, rating.module_id)
        await AuditService(self.session).log_action(
            admin.id,
            "Review Deleted",
            f"Deleted {rating.rating}-star review on {module.name if module else rating.module_id}",
            target_type="review",
            target_id=rating.id,
            old_values={
                "rating": rating.rating,
                "comment": rating.comment,
                "user_id": rating.user_id,
                "module_id": rating.module_id,
            },
        )
        await self.session.execute(delete(Rating).where(Rating.id == review_id))
        await self.session.commit()
        logger.info("Review deleted", extra={"review_id": review_id, "admin_id": admin.id})
