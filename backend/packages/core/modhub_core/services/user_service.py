"""
User service.

Handles user profile management and admin user administration.
"""

from datetime import timedelta
from math import ceil

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_core.auth.password import hash_password
from modhub_core.exceptions import NotFoundError
from modhub_core.schemas import (
    AdminUserItem,
    AdminUserListResponse,
    AdminUserUpdate,
    CurrentUser,
    ProfileStats,
    PublicProfile,
    UserCreate,
    UserResponse,
    UserStats,
    UserUpdate,
)
from modhub_database.models import Module, Rating, User
from modhub_database.models.base import utcnow

from .audit_service import AuditService, describe_changes
from .module_service import ModuleService

logger = get_logger(__name__)


class UserService:
    """User management service."""

    def __init__(self, session: AsyncSession):
        """
        Initialize user service.

        Args:
            session: Database session.
        """
        self.session = session

    async def _get_user_row(self, user_id: str) -> User:
        stmt = select(User).where(User.id == user_id)
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()

        if not user:
            raise NotFoundError("User not found")
        return user

    async def create_user(self, user_create: UserCreate) -> User:
        """
        Create a new user.

        Args:
            user_create: User creation data.

        Returns:
            Created user instance.
        """
        user = User(
            email=user_create.email,
            name=user_create.name,
            password_hash=hash_password(user_create.password) if user_create.password else None,
            role=user_create.role,
            auth_provider=user_create.auth_provider,
        )

        self.session.add(user)
        await self.session.flush()
        return user

    async def get_user(self, user_id: str) -> UserResponse:
        """
        Get user by ID.

        Raises:
            NotFoundError: If user not found.
        """
        return UserResponse.model_validate(await self._get_user_row(user_id))

    async def update_profile(self, user_id: str, update: UserUpdate) -> UserResponse:
        """
        Update the caller's profile.

        Args:
            user_id: User identifier.
            update: Update data.

        Returns:
            Updated user response.

        Raises:
            NotFoundError: If user not found.
        """
        user = await self._get_user_row(user_id)

        if update.name is not None:
            user.name = update.name
        if update.image is not None:
            user.image = update.image

        await self.session.commit()
        await self.session.refresh(user)

        return UserResponse.model_validate(user)

    async def get_public_profile(
        self, user_id: str, viewer: CurrentUser | None = None, include_modules: bool = True, limit: int = 10
    ) -> PublicProfile:
        """
        Build a user's public profile.

        Visitors only see published modules; the owner sees all of theirs.

        Args:
            user_id: Profile owner.
            viewer: Current caller.
            include_modules: Attach the module list.
            limit: Maximum number of modules.

        Returns:
            Public profile.

        Raises:
            NotFoundError: If user not found.
        """
        user = await self._get_user_row(user_id)
        is_own = viewer is not None and viewer.id == user.id

        modules_submitted = await self.session.scalar(
            select(func.count(Module.id)).where(Module.submitted_by == user.id)
        )
        published_modules = await self.session.scalar(
            select(func.count(Module.id)).where(Module.submitted_by == user.id, Module.is_published.is_(True))
        )
        reviews_written = await self.session.scalar(select(func.count(Rating.id)).where(Rating.user_id == user.id))

        modules = None
        if include_modules:
            stmt = select(Module).where(Module.submitted_by == user.id)
            if not is_own:
                stmt = stmt.where(Module.is_published.is_(True))
            stmt = stmt.order_by(Module.created_at.desc()).limit(limit)
            rows = list((await self.session.execute(stmt)).scalars().all())
            modules = await ModuleService(self.session).transform_modules(rows)

        return PublicProfile(
            id=user.id,
            name=user.name,
            image=user.image,
            role=user.role,
            joined_at=user.created_at,
            stats=ProfileStats(
                modules_submitted=modules_submitted or 0,
                published_modules=published_modules or 0,
                reviews_written=reviews_written or 0,
            ),
            modules=modules,
            is_own_profile=is_own,
        )

    # Admin operations

    async def list_users(
        self,
        page: int = 1,
        per_page: int = 20,
        query: str | None = None,
        role: str | None = None,
        provider: str | None = None,
    ) -> AdminUserListResponse:
        """
        List users for the admin panel.

        Args:
            page: Page number (1-based).
            per_page: Page size.
            query: Substring match on name or email.
            role: user or admin.
            provider: Authentication provider.

        Returns:
            Paginated users with module and review counts.
        """
        conditions = []
        if query:
            pattern = f"%{query}%"
            conditions.append(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
        if role and role != "all":
            conditions.append(User.role == role)
        if provider and provider != "all":
            conditions.append(User.auth_provider == provider)

        total = await self.session.scalar(select(func.count(User.id)).where(*conditions)) or 0

        module_counts = (
            select(Module.submitted_by.label("user_id"), func.count(Module.id).label("count"))
            .group_by(Module.submitted_by)
            .subquery()
        )
        review_counts = (
            select(Rating.user_id.label("user_id"), func.count(Rating.id).label("count"))
            .group_by(Rating.user_id)
            .subquery()
        )
        stmt = (
            select(User, module_counts.c.count, review_counts.c.count)
            .outerjoin(module_counts, module_counts.c.user_id == User.id)
            .outerjoin(review_counts, review_counts.c.user_id == User.id)
            .where(*conditions)
            .order_by(User.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        rows = (await self.session.execute(stmt)).all()

        items = [
            AdminUserItem.model_validate(
                {
                    **UserResponse.model_validate(user).model_dump(),
                    "module_count": module_count or 0,
                    "review_count": review_count or 0,
                }
            )
            for user, module_count, review_count in rows
        ]
        return AdminUserListResponse(
            items=items,
            total=total,
            page=page,
            per_page=per_page,
            total_pages=ceil(total / per_page) if total > 0 else 1,
        )

    async def admin_update_user(self, admin: CurrentUser, user_id: str, update: AdminUserUpdate) -> UserResponse:
        """
        Update a user's name, email or role.

        Args:
            admin: Acting admin.
            user_id: Target user.
            update: Changed fields.

        Returns:
            Updated user.

        Raises:
            NotFoundError: If user not found.
            ValueError: If an admin demotes themselves, the name is too short,
                or the email is taken.
        """
        user = await self._get_user_row(user_id)

        if user.id == admin.id and update.role is not None and update.role != "admin":
            raise ValueError("Cannot change your own admin role")

        if update.name is not None and len(update.name.strip()) < 2:
            raise ValueError("Name must be at least 2 characters")

        if update.email is not None and update.email != user.email:
            taken = await self.session.execute(select(User.id).where(User.email == update.email, User.id != user.id))
            if taken.scalar_one_or_none():
                raise ValueError("Email is already taken")

        old_values = {"name": user.name, "email": user.email, "role": user.role}
        if update.name is not None:
            user.name = update.name.strip()
        if update.email is not None:
            user.email = update.email
        if update.role is not None:
            user.role = update.role
        new_values = {"name": user.name, "email": user.email, "role": user.role}

        if old_values != new_values:
            action = "User Role Changed" if old_values["role"] != new_values["role"] else "User Edited"
            await AuditService(self.session).log_action(
                admin.id,
                action,
                f"Updated user {user.email}: {describe_changes(old_values, new_values)}",
                target_type="user",
                target_id=user.id,
                old_values=old_values,
                new_values=new_values,
            )

        await self.session.commit()
        await self.session.refresh(user)
        return UserResponse.model_validate(user)

    async def set_role(self, admin: CurrentUser, user_id: str, role: str) -> UserResponse:
        """Change a user's role (audited)."""
        return await self.admin_update_user(admin, user_id, AdminUserUpdate(role=role))

    async def delete_user(self, admin: CurrentUser, user_id: str) -> None:
        """
        Delete a user account.

        Raises:
            NotFoundError: If user not found.
            ValueError: If an admin tries to delete their own account.
        """
        if user_id == admin.id:
            raise ValueError("Cannot delete your own account")

        user = await self._get_user_row(user_id)
        await AuditService(self.session).log_action(
            admin.id,
            "User Deleted",
            f"Deleted user: {user.name} ({user.email})",
            target_type="user",
            target_id=user.id,
            old_values={"name": user.name, "email": user.email, "role": user.role},
        )
        await self.session.execute(delete(User).where(User.id == user.id))
        await self.session.commit()
        logger.info("User deleted", extra={"user_id": user_id, "admin_id": admin.id})

    async def get_user_stats(self) -> UserStats:
        """User counters for the admin dashboard."""
        total = await self.session.scalar(select(func.count(User.id))) or 0
        admins = await self.session.scalar(select(func.count(User.id)).where(User.role == "admin")) or 0
        new_this_month = (
            await self.session.scalar(
                select(func.count(User.id)).where(User.created_at >= utcnow() - timedelta(days=30))
            )
            or 0
        )
        rows = await self.session.execute(select(User.auth_provider, func.count(User.id)).group_by(User.auth_provider))
        return UserStats(
            total_users=total,
            admins=admins,
            new_this_month=new_this_month,
            by_provider={provider: int(count) for provider, count in rows.all()},
        )
