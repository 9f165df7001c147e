"""
API router modules.

This package contains all API route handlers organized by domain.
"""

from . import admin, api_keys, auth, catalog, github_settings, modules, ratings, search, submissions, users

__all__ = [
    "auth",
    "modules",
    "submissions",
    "catalog",
    "ratings",
    "search",
    "api_keys",
    "users",
    "github_settings",
    "admin",
]
