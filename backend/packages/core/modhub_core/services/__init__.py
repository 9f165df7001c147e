"""
Service layer.

Business logic services for the application.
"""

from .admin_module_service import AdminModuleService
from .api_key_service import ApiKeyService, require_admin, require_auth, require_scope
from .audit_service import SYSTEM_ACTOR, AuditService, describe_changes
from .auth_service import AuthService
from .github_sync_service import GithubSyncService
from .job_service import JobService
from .module_service import ModuleService, check_download_url
from .rating_service import RatingService
from .rate_limit_service import (
    ADMIN_OPERATIONS,
    DOWNLOAD_TRACKING,
    PUBLIC_READ,
    RateLimiter,
    RateLimitStatus,
    tier_limit,
)
from .search_service import SearchService
from .submission_service import SubmissionService
from .turnstile_service import TurnstileResult, TurnstileVerifier, get_client_ip
from .user_service import UserService

__all__ = [
    "AuthService",
    "UserService",
    "ModuleService",
    "SearchService",
    "SubmissionService",
    "RatingService",
    "ApiKeyService",
    "RateLimiter",
    "RateLimitStatus",
    # Admin services
    "AdminModuleService",
    "AuditService",
    "JobService",
    "GithubSyncService",
    # Captcha
    "TurnstileVerifier",
    "TurnstileResult",
    "get_client_ip",
    # Helpers
    "SYSTEM_ACTOR",
    "check_download_url",
    "describe_changes",
    "require_admin",
    "require_auth",
    "require_scope",
    "tier_limit",
    # Rate limit tiers
    "PUBLIC_READ",
    "DOWNLOAD_TRACKING",
    "ADMIN_OPERATIONS",
]
