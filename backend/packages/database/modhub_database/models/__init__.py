"""
Database models package.

This module exports all SQLAlchemy models for the ModHub application.
"""

from .admin import AdminAction, AdminJob, JobStatus, JobType
from .api_key import ApiKey
from .base import Base, TimestampMixin
from .github import MAX_SYNC_ERRORS, GithubToken, ModuleGithubSync, ReleaseSchedule
from .module import Module, ModuleStatus
from .rating import HelpfulVote, Rating, Reply
from .release import Release
from .user import User, UserRole

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "UserRole",
    # Catalog
    "Module",
    "ModuleStatus",
    "Release",
    # Reviews
    "Rating",
    "Reply",
    "HelpfulVote",
    # Access
    "ApiKey",
    # GitHub sync
    "ModuleGithubSync",
    "GithubToken",
    "ReleaseSchedule",
    "MAX_SYNC_ERRORS",
    # Admin
    "AdminJob",
    "AdminAction",
    "JobStatus",
    "JobType",
]
