"""Tests for the GitHub REST client."""

import httpx
import pytest

from modhub_github import GitHubClient, GitHubError


def _client(handler) -> GitHubClient:
    http_client = httpx.AsyncClient(base_url="https://api.github.test", transport=httpx.MockTransport(handler))
    return GitHubClient(token="ghp_test", http_client=http_client)


def _release(release_id: int, tag: str, draft: bool = False) -> dict:
    return {
        "id": release_id,
        "tag_name": tag,
        "name": tag,
        "body": "Changes",
        "created_at": "2024-05-01T00:00:00Z",
        "published_at": "2024-05-01T00:00:00Z",
        "draft": draft,
        "prerelease": False,
        "assets": [],
    }


class TestListReleases:
    """Test GitHubClient.list_releases."""

    @pytest.mark.asyncio
    async def test_drafts_filtered(self):
        """Draft releases are not returned."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[_release(2, "v1.1", draft=True), _release(1, "v1.0")])

        client = _client(handler)
        releases = await client.list_releases("owner", "repo", per_page=5)

        assert [r.tag_name for r in releases] == ["v1.0"]
        assert seen[0].url.path == "/repos/owner/repo/releases"
        assert seen[0].url.params["per_page"] == "5"
        assert seen[0].headers["Authorization"] == "Bearer ghp_test"
        assert seen[0].headers["Accept"] == "application/vnd.github+json"

    @pytest.mark.asyncio
    async def test_api_error(self):
        """Error responses raise with the status code and GitHub's message."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Not Found"})

        client = _client(handler)

        with pytest.raises(GitHubError) as exc_info:
            await client.list_releases("owner", "missing")

        assert exc_info.value.status_code == 404
        assert "owner/missing" in str(exc_info.value)
        assert "Not Found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Network failures are wrapped."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)

        with pytest.raises(GitHubError) as exc_info:
            await client.list_releases("owner", "repo")

        assert exc_info.value.status_code is None


class TestRepositoryAndUser:
    """Test repository and token owner lookups."""

    @pytest.mark.asyncio
    async def test_repository_exists(self):
        """Reachable repositories exist, failures do not."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/repos/owner/repo":
                return httpx.Response(200, json={"full_name": "owner/repo"})
            return httpx.Response(404, json={"message": "Not Found"})

        client = _client(handler)

        assert await client.repository_exists("owner", "repo") is True
        assert await client.repository_exists("owner", "gone") is False

    @pytest.mark.asyncio
    async def test_authenticated_user_scopes(self):
        """Granted scopes are read from the response header."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"login": "octocat"}, headers={"X-OAuth-Scopes": "repo, read:user"})

        client = _client(handler)
        user, scopes = await client.get_authenticated_user()

        assert user["login"] == "octocat"
        assert scopes == ["repo", "read:user"]

    @pytest.mark.asyncio
    async def test_context_manager_keeps_injected_client_open(self):
        """An injected httpx client is owned by the caller."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        http_client = httpx.AsyncClient(base_url="https://api.github.test", transport=httpx.MockTransport(handler))
        async with GitHubClient(http_client=http_client):
            pass

        assert http_client.is_closed is False
        await http_client.aclose()
