"""
GitHub repository reference parsing.
"""

import re
from dataclasses import dataclass
from urllib.parse import urlparse

_REPO_PATTERNS = (
    re.compile(r"^https?://(?:www\.)?github\.com/([^/]+)/([^/]+?)(?:\.git)?(?:/.*)?$", re.IGNORECASE),
    re.compile(r"^git@github\.com:([^/]+)/([^/]+?)(?:\.git)?$", re.IGNORECASE),
    re.compile(r"^([^/\s:]+)/([^/\s]+)$"),
)


@dataclass(frozen=True)
class GitHubRepo:
    """Repository coordinates."""

    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_github_repo(value: str | None) -> GitHubRepo | None:
    """
    Parse a repository reference.

    Accepts https URLs (with optional .git suffix and trailing path),
    git@github.com SSH URLs and plain "owner/repo".

    Args:
        value: Repository reference.

    Returns:
        Parsed repository, or None if the value is not recognized.
    """
    if not value:
        return None
    value = value.strip()
    for pattern in _REPO_PATTERNS:
        match = pattern.match(value)
        if match:
            return GitHubRepo(owner=match.group(1), repo=match.group(2))
    return None


def extract_github_repo(source_url: str | None) -> str | None:
    """
    Extract "owner/repo" from a source URL hosted on github.com.

    Args:
        source_url: Module source URL.

    Returns:
        "owner/repo", or None when the URL is not a GitHub repository URL.
    """
    if not source_url:
        return None
    try:
        parsed = urlparse(source_url)
    except ValueError:
        return None
    if parsed.hostname not in ("github.com", "www.github.com"):
        return None
    parts = [part for part in parsed.path.split("/") if part]
    if len(parts) < 2:
        return None
    repo = parts[1].removesuffix(".git")
    return f"{parts[0]}/{repo}"
