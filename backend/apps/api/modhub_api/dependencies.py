"""
FastAPI dependencies.

Provides dependency injection for database sessions, the task queue,
caller resolution (session JWT or API key), and services.
"""

import hashlib
from collections.abc import Awaitable, Callable
from typing import Annotated

from arq.connections import ArqRedis
from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_core.auth import SCOPE_READ, JWTConfig, is_api_key
from modhub_core.exceptions import AuthenticationError, RateLimitExceededError
from modhub_core.redis_keys import RedisKeys
from modhub_core.schemas import CurrentUser, UserResponse
from modhub_core.services import (
    AdminModuleService,
    ApiKeyService,
    AuditService,
    AuthService,
    GithubSyncService,
    JobService,
    ModuleService,
    RateLimiter,
    RatingService,
    SearchService,
    SubmissionService,
    TurnstileVerifier,
    UserService,
    get_client_ip,
    require_admin,
    require_auth,
    require_scope,
    tier_limit,
)
from modhub_database.session import get_session

from .config import settings
from .errors import to_http_exception

logger = get_logger(__name__)

# Bearer scheme; optional so public endpoints accept anonymous callers
security = HTTPBearer(auto_error=False)

# Global Redis connection pool for the task queue, set by the app lifespan
redis_pool: ArqRedis | None = None


async def get_redis_pool() -> ArqRedis:
    """
    Get the global Redis connection pool for arq.

    Returns:
        ArqRedis connection pool.

    Raises:
        RuntimeError: If Redis pool not initialized.
    """
    if redis_pool is None:
        raise RuntimeError("Redis pool not initialized")
    return redis_pool


def get_jwt_config() -> JWTConfig:
    """
    Get JWT configuration.

    Returns:
        JWT configuration instance.
    """
    return JWTConfig(
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        access_token_expire_minutes=settings.jwt_access_token_expire_minutes,
        refresh_token_expire_days=settings.jwt_refresh_token_expire_days,
    )


def get_request_ip(request: Request) -> str | None:
    """Client IP from proxy headers, falling back to the socket peer."""
    return get_client_ip(request.headers, request.client.host if request.client else None)


def rate_limit_identifier(request: Request) -> str:
    """
    Identify the caller for request counting.

    API-key callers are counted per key; everyone else per client address
    and user agent.
    """
    authorization = request.headers.get("authorization", "")
    bearer = authorization[7:].strip() if authorization.lower().startswith("bearer ") else None
    raw_key = request.headers.get("x-api-key") or (bearer if is_api_key(bearer) else None)
    if raw_key:
        return f"api_key:{hashlib.sha256(raw_key.encode()).hexdigest()[:16]}"

    user_agent = request.headers.get("user-agent", "")
    agent_digest = hashlib.sha256(user_agent.encode()).hexdigest()[:8]
    return f"ip:{get_request_ip(request) or 'unknown'}:{agent_digest}"


def rate_limit(tier: str) -> Callable[..., Awaitable[None]]:
    """
    Build a route dependency that counts requests in a rate limit tier.

    Args:
        tier: PUBLIC_READ, DOWNLOAD_TRACKING or ADMIN_OPERATIONS.

    Returns:
        Dependency raising 429 with Retry-After once the tier limit is hit.
    """
    # Unknown tiers fail when the router is built
    tier_limit(tier)

    async def enforce(request: Request, redis: Annotated[ArqRedis, Depends(get_redis_pool)]) -> None:
        current_limit, current_window = tier_limit(tier)
        identifier = rate_limit_identifier(request)
        counter = await RateLimiter(redis).hit(
            RedisKeys.request_rate_limit(tier, identifier), current_limit, current_window
        )
        if counter.exceeded:
            logger.warning(
                "Rate limit exceeded",
                extra={"tier": tier, "identifier": identifier, "path": request.url.path},
            )
            raise to_http_exception(
                RateLimitExceededError(
                    "Rate limit exceeded. Please try again later.",
                    reset_at=counter.reset_at,
                    retry_after=counter.retry_after,
                    limit=counter.limit,
                )
            )

    return enforce


async def get_current_user_optional(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    session: Annotated[AsyncSession, Depends(get_session)],
    jwt_config: Annotated[JWTConfig, Depends(get_jwt_config)],
    x_api_key: Annotated[str | None, Header()] = None,
) -> CurrentUser | None:
    """
    Resolve the caller, if any.

    An API key (``X-API-Key`` header, or a bearer token starting with the
    key prefix) takes precedence over a session JWT. An invalid API key is
    rejected even when the request also carries a valid session; an
    invalid session token only makes the caller anonymous.

    Raises:
        HTTPException: If an API key is present but invalid or expired.
    """
    bearer = credentials.credentials if credentials else None
    raw_key = x_api_key or (bearer if is_api_key(bearer) else None)

    if raw_key:
        try:
            user, api_key = await ApiKeyService(session).verify_key(raw_key, get_request_ip(request))
        except ValueError as e:
            raise to_http_exception(e) from e
        return CurrentUser.model_validate(
            {
                **UserResponse.model_validate(user).model_dump(),
                "auth_method": "api-key",
                "scopes": list(api_key.scopes or []),
                "api_key_id": api_key.id,
            }
        )

    if not bearer:
        return None

    try:
        user = await AuthService(session, jwt_config).get_user_from_token(bearer)
    except AuthenticationError:
        return None
    return CurrentUser.model_validate(
        {**UserResponse.model_validate(user).model_dump(), "auth_method": "session"}
    )


async def get_current_user(
    user: Annotated[CurrentUser | None, Depends(get_current_user_optional)],
) -> CurrentUser:
    """
    Get the authenticated caller.

    Raises:
        HTTPException: 401 when there is no authenticated caller.
    """
    try:
        return require_auth(user)
    except ValueError as e:
        raise to_http_exception(e) from e


async def get_current_admin(
    user: Annotated[CurrentUser | None, Depends(get_current_user_optional)],
) -> CurrentUser:
    """
    Get the authenticated admin.

    Raises:
        HTTPException: 401 without a caller, 403 for non-admins.
    """
    try:
        return require_admin(user)
    except ValueError as e:
        raise to_http_exception(e) from e


async def get_reader_optional(
    user: Annotated[CurrentUser | None, Depends(get_current_user_optional)],
) -> CurrentUser | None:
    """
    Resolve the caller of a public read route.

    Anonymous callers are allowed; API-key callers need the read scope.

    Raises:
        HTTPException: 401 for an invalid API key, 403 without read scope.
    """
    if user is not None:
        try:
            require_scope(user, SCOPE_READ)
        except ValueError as e:
            raise to_http_exception(e) from e
    return user


def get_turnstile_verifier() -> TurnstileVerifier:
    """Get the captcha verifier."""
    return TurnstileVerifier()


# Service dependencies
def get_auth_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    jwt_config: Annotated[JWTConfig, Depends(get_jwt_config)],
) -> AuthService:
    """Get authentication service instance."""
    return AuthService(session, jwt_config)


def get_user_service(session: Annotated[AsyncSession, Depends(get_session)]) -> UserService:
    """Get user service instance."""
    return UserService(session)


def get_module_service(session: Annotated[AsyncSession, Depends(get_session)]) -> ModuleService:
    """Get module service instance."""
    return ModuleService(session)


def get_search_service(session: Annotated[AsyncSession, Depends(get_session)]) -> SearchService:
    """Get search service instance."""
    return SearchService(session)


def get_submission_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    redis: Annotated[ArqRedis, Depends(get_redis_pool)],
    captcha: Annotated[TurnstileVerifier, Depends(get_turnstile_verifier)],
) -> SubmissionService:
    """Get submission service instance."""
    return SubmissionService(session, redis, captcha)


def get_rating_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    captcha: Annotated[TurnstileVerifier, Depends(get_turnstile_verifier)],
) -> RatingService:
    """Get rating service instance."""
    return RatingService(session, captcha)


def get_api_key_service(session: Annotated[AsyncSession, Depends(get_session)]) -> ApiKeyService:
    """Get API key service instance."""
    return ApiKeyService(session)


def get_github_sync_service(session: Annotated[AsyncSession, Depends(get_session)]) -> GithubSyncService:
    """Get GitHub sync service instance."""
    return GithubSyncService(session)


def get_job_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    redis: Annotated[ArqRedis, Depends(get_redis_pool)],
) -> JobService:
    """Get job service instance."""
    return JobService(session, redis)


def get_admin_module_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    redis: Annotated[ArqRedis, Depends(get_redis_pool)],
) -> AdminModuleService:
    """Get admin module service instance."""
    return AdminModuleService(session, redis)


def get_audit_service(session: Annotated[AsyncSession, Depends(get_session)]) -> AuditService:
    """Get audit service instance."""
    return AuditService(session)
