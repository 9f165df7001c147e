"""
Pydantic schemas for API requests and responses.
"""

from .admin import (
    AdminUserItem,
    AdminUserListResponse,
    AdminUserUpdate,
    AuditActionResponse,
    AuditListResponse,
    DashboardStats,
    UserRoleUpdate,
    UserStats,
)
from .api_key import (
    AdminApiKeyCreate,
    AdminApiKeyItem,
    AdminApiKeyListResponse,
    ApiKeyCreate,
    ApiKeyCreateResponse,
    ApiKeyListResponse,
    ApiKeyResponse,
)
from .auth import AuthResponse, LoginRequest, RefreshTokenRequest, RegisterRequest, TokenResponse
from .github import (
    GithubPatRequest,
    GithubPatStatus,
    GithubPatValidation,
    ReleaseScheduleResponse,
    ReleaseScheduleUpdate,
    SyncConfigListResponse,
    SyncConfigResponse,
    SyncConfigUpdate,
    SyncResult,
    SyncStats,
)
from .job import JobCreate, JobCreatedResponse, JobListResponse, JobResponse, JobStats
from .module import (
    AdminModuleListResponse,
    CategoryStat,
    DownloadResponse,
    ModuleEditRequest,
    ModuleFlagUpdate,
    ModuleListResponse,
    ModuleStats,
    ModuleStatusUpdate,
    ModuleSubmission,
    ModuleSubmissionRequest,
    ModuleView,
    ReleaseInput,
    ReleaseResponse,
    SiteStats,
    SubmissionCreatedResponse,
    SubmissionListResponse,
    SubmissionUpdateRequest,
    SubmissionView,
    WarningsUpdate,
)
from .rating import (
    AdminReviewItem,
    AdminReviewListResponse,
    HelpfulVoteRequest,
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
from .search import (
    AdvancedSearchResponse,
    SearchFilters,
    SearchOptions,
    SearchResponse,
    Suggestion,
    SuggestionRequest,
    SuggestionResponse,
)
from .user import CurrentUser, ProfileStats, PublicProfile, UserCreate, UserResponse, UserUpdate

__all__ = [
    # Auth
    "LoginRequest",
    "RefreshTokenRequest",
    "RegisterRequest",
    "TokenResponse",
    "AuthResponse",
    # User
    "UserResponse",
    "UserCreate",
    "UserUpdate",
    "CurrentUser",
    "ProfileStats",
    "PublicProfile",
    # Module
    "ModuleSubmission",
    "ModuleSubmissionRequest",
    "ModuleEditRequest",
    "SubmissionUpdateRequest",
    "ModuleStatusUpdate",
    "ModuleFlagUpdate",
    "WarningsUpdate",
    "ReleaseInput",
    "ReleaseResponse",
    "ModuleView",
    "SubmissionView",
    "ModuleListResponse",
    "SubmissionListResponse",
    "AdminModuleListResponse",
    "SubmissionCreatedResponse",
    "CategoryStat",
    "SiteStats",
    "ModuleStats",
    "DownloadResponse",
    # Search
    "SearchFilters",
    "SearchOptions",
    "SearchResponse",
    "AdvancedSearchResponse",
    "Suggestion",
    "SuggestionRequest",
    "SuggestionResponse",
    # Reviews
    "RatingCreate",
    "RatingUpdate",
    "RatingResponse",
    "RatingListResponse",
    "ReplyCreate",
    "ReplyResponse",
    "ReplyListResponse",
    "HelpfulVoteRequest",
    "HelpfulVoteResponse",
    "UserHelpfulVotes",
    "AdminReviewItem",
    "AdminReviewListResponse",
    "ReviewStats",
    # API keys
    "ApiKeyCreate",
    "AdminApiKeyCreate",
    "ApiKeyResponse",
    "ApiKeyCreateResponse",
    "ApiKeyListResponse",
    "AdminApiKeyItem",
    "AdminApiKeyListResponse",
    # GitHub
    "SyncConfigResponse",
    "SyncConfigListResponse",
    "SyncConfigUpdate",
    "SyncStats",
    "SyncResult",
    "ReleaseScheduleResponse",
    "ReleaseScheduleUpdate",
    "GithubPatRequest",
    "GithubPatStatus",
    "GithubPatValidation",
    # Jobs
    "JobCreate",
    "JobResponse",
    "JobListResponse",
    "JobCreatedResponse",
    "JobStats",
    # Admin
    "DashboardStats",
    "AdminUserItem",
    "AdminUserListResponse",
    "AdminUserUpdate",
    "UserRoleUpdate",
    "UserStats",
    "AuditActionResponse",
    "AuditListResponse",
]
