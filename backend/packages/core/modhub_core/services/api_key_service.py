"""
API key service.

Per-user API keys with read/write/admin scopes, one-way revocation and
admin oversight. Also hosts the scope guards shared by every service.
"""

from datetime import datetime
from math import ceil

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_core.auth.api_keys import (
    SCOPE_ADMIN,
    compute_expiration,
    generate_api_key,
    generate_key_id,
    has_required_scope,
    hash_api_key,
)
from modhub_core.config import IntegrationConfig, integration_config
from modhub_core.exceptions import AuthenticationError, NotFoundError, PermissionDeniedError
from modhub_core.schemas import (
    AdminApiKeyCreate,
    AdminApiKeyItem,
    AdminApiKeyListResponse,
    ApiKeyCreate,
    ApiKeyCreateResponse,
    ApiKeyResponse,
    CurrentUser,
)
from modhub_database.models import ApiKey, User
from modhub_database.models.base import utcnow

from .audit_service import AuditService

logger = get_logger(__name__)


def require_auth(user: CurrentUser | None) -> CurrentUser:
    """
    Raises:
        AuthenticationError: If there is no authenticated caller.
    """
    if user is None:
        raise AuthenticationError("Authentication required")
    return user


def require_admin(user: CurrentUser | None) -> CurrentUser:
    """
    Raises:
        AuthenticationError: If there is no authenticated caller.
        PermissionDeniedError: If the caller is not an admin.
    """
    user = require_auth(user)
    if not user.is_admin:
        raise PermissionDeniedError("Admin access required")
    return user


def require_scope(user: CurrentUser, scope: str) -> None:
    """
    Enforce an API key scope.

    Session callers are not restricted by scopes; only API-key callers are.

    Raises:
        PermissionDeniedError: If the key does not grant the scope.
    """
    if user.auth_method != "api-key":
        return
    if not has_required_scope(user.scopes, scope):
        raise PermissionDeniedError(f"API key requires '{scope}' scope")


def key_status(key: ApiKey, now: datetime | None = None) -> str:
    """active, expired or revoked."""
    if key.revoked_at is not None:
        return "revoked"
    if key.expires_at is not None and key.expires_at < (now or utcnow()):
        return "expired"
    return "active"


class ApiKeyService:
    """API key management service."""

    def __init__(self, session: AsyncSession, config: IntegrationConfig | None = None):
        """
        Initialize API key service.

        Args:
            session: Database session.
            config: Integration configuration (key limits).
        """
        self.session = session
        self.config = config or integration_config

    async def _active_key_count(self, user_id: str) -> int:
        stmt = select(func.count(ApiKey.id)).where(ApiKey.user_id == user_id, ApiKey.revoked_at.is_(None))
        return await self.session.scalar(stmt) or 0

    async def _insert_key(self, user_id: str, data: ApiKeyCreate) -> ApiKeyCreateResponse:
        active = await self._active_key_count(user_id)
        if active >= self.config.max_api_keys_per_user:
            raise ValueError(
                f"Maximum of {self.config.max_api_keys_per_user} active API keys allowed per user"
            )

        key, key_hash, prefix = generate_api_key()
        api_key = ApiKey(
            id=generate_key_id(),
            user_id=user_id,
            name=data.name,
            key_hash=key_hash,
            key_prefix=prefix,
            scopes=list(data.scopes),
            expires_at=compute_expiration(data.expires_in),
        )
        self.session.add(api_key)
        await self.session.flush()

        response = ApiKeyCreateResponse(**ApiKeyResponse.model_validate(api_key).model_dump(), key=key)
        logger.info(
            "API key created",
            extra={"user_id": user_id, "key_id": api_key.id, "scopes": api_key.scopes},
        )
        return response

    async def create_key(self, user: CurrentUser, data: ApiKeyCreate) -> ApiKeyCreateResponse:
        """
        Create an API key for the caller.

        The plain key is only returned here; only its hash is stored.

        Args:
            user: Current user.
            data: Key name, expiration and scopes.

        Returns:
            Created key including the plain key.

        Raises:
            PermissionDeniedError: If a non-admin requests the admin scope.
            ValueError: If the user already has the maximum number of active keys.
        """
        if SCOPE_ADMIN in data.scopes and not user.is_admin:
            raise PermissionDeniedError("Only admins can create API keys with admin scope")

        response = await self._insert_key(user.id, data)

        if SCOPE_ADMIN in data.scopes:
            await AuditService(self.session).log_action(
                user.id,
                "create_admin_api_key",
                f'Admin created admin-scoped API key "{data.name}" for their own account',
                target_type="api_key",
                target_id=response.id,
                new_values={"name": data.name, "scopes": list(data.scopes), "expires_in": data.expires_in},
            )

        await self.session.commit()
        return response

    async def list_keys(self, user_id: str) -> list[ApiKeyResponse]:
        """
        List a user's active (not revoked) keys, newest first.

        Args:
            user_id: User identifier.

        Returns:
            Key metadata without secrets.
        """
        stmt = (
            select(ApiKey)
            .where(ApiKey.user_id == user_id, ApiKey.revoked_at.is_(None))
            .order_by(ApiKey.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [ApiKeyResponse.model_validate(key) for key in result.scalars().all()]

    async def revoke_key(self, key_id: str, user_id: str) -> None:
        """
        Revoke one of the user's keys.

        Revocation is permanent: revoked_at is never cleared.

        Args:
            key_id: Key identifier.
            user_id: Owner of the key.

        Raises:
            NotFoundError: If the key does not exist, is not owned by the
                user, or is already revoked.
        """
        stmt = select(ApiKey).where(ApiKey.id == key_id, ApiKey.user_id == user_id, ApiKey.revoked_at.is_(None))
        result = await self.session.execute(stmt)
        api_key = result.scalar_one_or_none()

        if not api_key:
            raise NotFoundError("API key not found")

        api_key.revoked_at = utcnow()
        api_key.revoked_by = user_id
        await self.session.commit()
        logger.info("API key revoked", extra={"key_id": key_id, "user_id": user_id})

    async def verify_key(self, raw_key: str, client_ip: str | None = None) -> tuple[User, ApiKey]:
        """
        Resolve a plain API key to its owner.

        Args:
            raw_key: Plain key from the request.
            client_ip: Caller IP, recorded as last use.

        Returns:
            Tuple of (owner, key).

        Raises:
            AuthenticationError: If the key is unknown, revoked or expired.
        """
        stmt = select(ApiKey).where(ApiKey.key_hash == hash_api_key(raw_key), ApiKey.revoked_at.is_(None))
        result = await self.session.execute(stmt)
        api_key = result.scalar_one_or_none()

        if not api_key:
            raise AuthenticationError("Invalid API key")

        if api_key.expires_at is not None and api_key.expires_at < utcnow():
            raise AuthenticationError("API key has expired")

        user = await self.session.get(User, api_key.user_id)
        if not user:
            raise AuthenticationError("Invalid API key")

        api_key.last_used_at = utcnow()
        api_key.last_used_ip = client_ip
        await self.session.commit()

        return user, api_key

    # Admin operations

    def _admin_item(self, api_key: ApiKey, user: User | None) -> AdminApiKeyItem:
        data = ApiKeyResponse.model_validate(api_key).model_dump()
        data.update(
            user_id=api_key.user_id,
            user_name=user.name if user else None,
            user_email=user.email if user else None,
            last_used_ip=api_key.last_used_ip,
            revoked_by=api_key.revoked_by,
            status=key_status(api_key),
        )
        return AdminApiKeyItem.model_validate(data)

    async def admin_list_keys(
        self,
        page: int = 1,
        per_page: int = 20,
        status: str | None = None,
        search: str | None = None,
        user_id: str | None = None,
    ) -> AdminApiKeyListResponse:
        """
        List every API key with owner information.

        Args:
            page: Page number (1-based).
            per_page: Page size.
            status: active, expired or revoked.
            search: Substring match on key name, prefix, or owner name/email.
            user_id: Only keys of this user.

        Returns:
            Paginated key list.
        """
        now = utcnow()
        conditions = []
        if user_id:
            conditions.append(ApiKey.user_id == user_id)
        if status == "revoked":
            conditions.append(ApiKey.revoked_at.is_not(None))
        elif status == "expired":
            conditions.extend([ApiKey.revoked_at.is_(None), ApiKey.expires_at.is_not(None), ApiKey.expires_at < now])
        elif status == "active":
            conditions.extend(
                [ApiKey.revoked_at.is_(None), or_(ApiKey.expires_at.is_(None), ApiKey.expires_at >= now)]
            )
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    ApiKey.name.ilike(pattern),
                    ApiKey.key_prefix.ilike(pattern),
                    User.name.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )

        count_stmt = select(func.count(ApiKey.id)).join(User, User.id == ApiKey.user_id).where(*conditions)
        total = await self.session.scalar(count_stmt) or 0

        stmt = (
            select(ApiKey, User)
            .join(User, User.id == ApiKey.user_id)
            .where(*conditions)
            .order_by(ApiKey.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        rows = (await self.session.execute(stmt)).all()
        items = [self._admin_item(api_key, user) for api_key, user in rows]

        total_pages = ceil(total / per_page) if total > 0 else 1
        return AdminApiKeyListResponse(
            items=items, total=total, page=page, per_page=per_page, total_pages=total_pages
        )

    async def admin_get_key(self, key_id: str) -> AdminApiKeyItem:
        """
        Raises:
            NotFoundError: If the key does not exist.
        """
        api_key = await self.session.get(ApiKey, key_id)
        if not api_key:
            raise NotFoundError("API key not found")
        user = await self.session.get(User, api_key.user_id)
        return self._admin_item(api_key, user)

    async def admin_create_key(self, admin: CurrentUser, data: AdminApiKeyCreate) -> ApiKeyCreateResponse:
        """
        Create a key on behalf of any user.

        Raises:
            NotFoundError: If the target user does not exist.
            ValueError: If the user already has the maximum number of active keys.
        """
        owner = await self.session.get(User, data.user_id)
        if not owner:
            raise NotFoundError("User not found")

        response = await self._insert_key(owner.id, data)
        await AuditService(self.session).log_action(
            admin.id,
            "create_api_key",
            f'Created API key "{data.name}" for user {owner.email}',
            target_type="api_key",
            target_id=response.id,
            new_values={"user_id": owner.id, "scopes": list(data.scopes), "expires_in": data.expires_in},
        )
        await self.session.commit()
        return response

    async def admin_revoke_key(self, admin: CurrentUser, key_id: str) -> None:
        """
        Revoke any key.

        Raises:
            NotFoundError: If the key does not exist or is already revoked.
        """
        result = await self.session.execute(
            select(ApiKey).where(ApiKey.id == key_id, ApiKey.revoked_at.is_(None))
        )
        api_key = result.scalar_one_or_none()
        if not api_key:
            raise NotFoundError("API key not found")

        api_key.revoked_at = utcnow()
        api_key.revoked_by = admin.id
        await AuditService(self.session).log_action(
            admin.id,
            "revoke_api_key",
            f'Revoked API key "{api_key.name}" ({api_key.key_prefix}...) for user {api_key.user_id}',
            target_type="api_key",
            target_id=api_key.id,
        )
        await self.session.commit()
        logger.info("API key revoked by admin", extra={"key_id": key_id, "admin_id": admin.id})
