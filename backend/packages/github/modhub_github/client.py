"""
GitHub REST API client.

Thin async wrapper over httpx for the few endpoints release sync needs.
"""

from typing import Any

import httpx

from modhub_core import get_logger

from .releases import GitHubRelease

logger = get_logger(__name__)

USER_AGENT = "ModHub/1.0"
DEFAULT_API_URL = "https://api.github.com"


class GitHubError(Exception):
    """GitHub API request failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubClient:
    """
    GitHub REST API client.

    A client can be used as an async context manager, which closes the
    underlying connection pool on exit. Passing an httpx.AsyncClient lets
    callers (and tests) control transport and lifetime.
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the client.

        Args:
            token: Optional personal access token (raises rate limits).
            base_url: API base URL.
            timeout: Request timeout in seconds.
            http_client: Preconfigured httpx client.
        """
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout, headers=headers, follow_redirects=True
        )
        if http_client is not None:
            self._client.headers.update(headers)

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            raise GitHubError(f"GitHub request failed: {e}") from e

        if response.status_code >= 400:
            message = response.reason_phrase or "error"
            try:
                message = response.json().get("message", message)
            except ValueError:
                pass
            raise GitHubError(f"GitHub API error {response.status_code}: {message}", response.status_code)
        return response

    async def list_releases(self, owner: str, repo: str, per_page: int = 10) -> list[GitHubRelease]:
        """
        List the most recent releases of a repository.

        Args:
            owner: Repository owner.
            repo: Repository name.
            per_page: Number of releases to fetch.

        Returns:
            Parsed releases, newest first (as returned by GitHub).

        Raises:
            GitHubError: If the request fails.
        """
        logger.info("Fetching GitHub releases", extra={"repo": f"{owner}/{repo}", "per_page": per_page})
        try:
            response = await self._get(f"/repos/{owner}/{repo}/releases", params={"per_page": per_page})
        except GitHubError as e:
            raise GitHubError(f"Failed to fetch releases for {owner}/{repo}: {e}", e.status_code) from e

        releases = [GitHubRelease.from_api(item) for item in response.json()]
        return [release for release in releases if not release.draft]

    async def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        """
        Fetch repository metadata.

        Raises:
            GitHubError: If the repository does not exist or is not accessible.
        """
        response = await self._get(f"/repos/{owner}/{repo}")
        return response.json()

    async def repository_exists(self, owner: str, repo: str) -> bool:
        """Whether a repository is reachable with the current credentials."""
        try:
            await self.get_repository(owner, repo)
        except GitHubError as e:
            logger.warning(
                "GitHub repository validation failed",
                extra={"repo": f"{owner}/{repo}", "error": str(e)},
            )
            return False
        return True

    async def get_authenticated_user(self) -> tuple[dict[str, Any], list[str]]:
        """
        Fetch the user the token belongs to.

        Returns:
            Tuple of (user payload, granted OAuth scopes).

        Raises:
            GitHubError: If the token is invalid.
        """
        response = await self._get("/user")
        scopes_header = response.headers.get("x-oauth-scopes", "")
        scopes = [scope.strip() for scope in scopes_header.split(",") if scope.strip()]
        return response.json(), scopes
