"""
GitHub integration package.

Provides the GitHub REST client, repository reference parsing and the
release helpers used by release sync.
"""

from .client import GitHubClient, GitHubError
from .releases import (
    GitHubAsset,
    GitHubRelease,
    compare_versions,
    find_main_asset,
    format_file_size,
    latest_version,
)
from .repo import GitHubRepo, extract_github_repo, parse_github_repo

__all__ = [
    "GitHubClient",
    "GitHubError",
    "GitHubAsset",
    "GitHubRelease",
    "GitHubRepo",
    "compare_versions",
    "extract_github_repo",
    "find_main_asset",
    "format_file_size",
    "latest_version",
    "parse_github_repo",
]
