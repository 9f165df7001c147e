"""Tests for GitHub release import and sync bookkeeping."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from modhub_core.schemas import SyncConfigUpdate, SyncResult
from modhub_core.services import GithubSyncService
from modhub_database.models import MAX_SYNC_ERRORS, Module, ModuleGithubSync, Release
from modhub_database.models.base import utcnow
from modhub_github import GitHubAsset, GitHubError, GitHubRelease


def _release(release_id: int, tag: str, asset_names: tuple[str, ...] = ("module.zip",)) -> GitHubRelease:
    return GitHubRelease(
        id=release_id,
        tag_name=tag,
        name=tag,
        body=f"Changes in {tag}",
        created_at="2024-05-01T00:00:00Z",
        published_at="2024-05-01T00:00:00Z",
        assets=[
            GitHubAsset(
                id=release_id * 10 + index,
                name=name,
                browser_download_url=f"https://github.com/owner/repo/releases/download/{tag}/{name}",
                size=1536,
            )
            for index, name in enumerate(asset_names)
        ],
    )


class _FakeGitHubClient:
    def __init__(
        self,
        releases: list[GitHubRelease] | None = None,
        error: GitHubError | None = None,
        repositories: tuple[str, ...] = ("owner/repo",),
    ):
        self.releases = releases or []
        self.error = error
        self.repositories = repositories
        self.calls: list[tuple[str, str]] = []
        self.checked: list[str] = []

    async def list_releases(self, owner: str, repo: str, per_page: int = 10) -> list[GitHubRelease]:
        self.calls.append((owner, repo))
        if self.error:
            raise self.error
        return self.releases

    async def repository_exists(self, owner: str, repo: str) -> bool:
        self.checked.append(f"{owner}/{repo}")
        return f"{owner}/{repo}" in self.repositories


async def _releases_of(db_session, module_id: str) -> list[Release]:
    db_session.expire_all()
    result = await db_session.execute(select(Release).where(Release.module_id == module_id).order_by(Release.id))
    return list(result.scalars().all())


class TestSyncModuleReleases:
    """Test GithubSyncService.sync_module_releases."""

    @pytest.mark.asyncio
    async def test_imports_new_releases(self, db_session, module_factory):
        """New releases are imported and the highest version is the only latest."""
        module = await module_factory()
        client = _FakeGitHubClient([_release(2, "v1.10.0"), _release(1, "v1.9.0", ("module.zip", "module.apk"))])
        service = GithubSyncService(db_session, client=client)

        result = await service.sync_module_releases(module.id, "https://github.com/owner/repo")

        assert result.success is True
        assert result.new_releases == 2
        assert client.calls == [("owner", "repo")]
        releases = await _releases_of(db_session, module.id)
        assert {r.version: r.is_latest for r in releases} == {"1.10.0": True, "1.9.0": False}
        imported = next(r for r in releases if r.version == "1.9.0")
        assert imported.size == "3 KB"
        assert imported.download_url.endswith("/module.zip")
        assert [a["name"] for a in imported.assets] == ["module.zip", "module.apk"]
        assert imported.github_tag_name == "v1.9.0"

    @pytest.mark.asyncio
    async def test_skips_known_and_assetless_releases(self, db_session, module_factory):
        """Already imported ids are skipped and releases without assets are reported."""
        module = await module_factory()
        db_session.add(
            Release(
                module_id=module.id,
                version="1.0.0",
                download_url="https://github.com/owner/repo/releases/download/v1.0.0/module.zip",
                size="1 KB",
                is_latest=True,
                github_release_id=1,
            )
        )
        await db_session.commit()
        client = _FakeGitHubClient([_release(3, "v1.2.0", ()), _release(1, "v1.0.0")])

        result = await GithubSyncService(db_session, client=client).sync_module_releases(module.id, "owner/repo")

        assert result.success is False
        assert result.new_releases == 0
        assert result.errors == ["No suitable assets found for release v1.2.0"]
        assert [r.version for r in await _releases_of(db_session, module.id)] == ["1.0.0"]

    @pytest.mark.asyncio
    async def test_existing_higher_version_stays_latest(self, db_session, module_factory):
        """Importing an older release keeps the newer existing release latest."""
        module = await module_factory(release_version="2.0.0")
        client = _FakeGitHubClient([_release(5, "v1.5.0")])

        result = await GithubSyncService(db_session, client=client).sync_module_releases(module.id, "owner/repo")

        assert result.new_releases == 1
        releases = await _releases_of(db_session, module.id)
        assert [r.version for r in releases if r.is_latest] == ["2.0.0"]

    @pytest.mark.asyncio
    async def test_updates_module_and_sync_markers(self, db_session, module_factory):
        """Imports bump the module's update time and the newest release id."""
        module = await module_factory()
        db_session.add(ModuleGithubSync(module_id=module.id, github_repo="owner/repo", enabled=True, sync_errors=[]))
        await db_session.commit()
        client = _FakeGitHubClient([_release(41, "v1.0.1"), _release(40, "v1.0.0")])

        await GithubSyncService(db_session, client=client).sync_module_releases(module.id, "owner/repo")

        db_session.expire_all()
        sync = (await db_session.execute(select(ModuleGithubSync))).scalar_one()
        refreshed = await db_session.get(Module, module.id)
        assert sync.last_release_id == 41
        assert refreshed.last_sync_at is not None
        assert refreshed.last_updated is not None

    @pytest.mark.asyncio
    async def test_github_error_reported(self, db_session, module_factory):
        """Client errors end up in the result instead of raising."""
        module = await module_factory()
        client = _FakeGitHubClient(error=GitHubError("GitHub API error 404: Not Found", 404))

        result = await GithubSyncService(db_session, client=client).sync_module_releases(module.id, "owner/repo")

        assert result.success is False
        assert result.errors == ["Sync failed: GitHub API error 404: Not Found"]

    @pytest.mark.asyncio
    async def test_invalid_repository(self, db_session, module_factory):
        """Unparseable repositories are reported without calling GitHub."""
        module = await module_factory()
        client = _FakeGitHubClient()

        result = await GithubSyncService(db_session, client=client).sync_module_releases(module.id, "not a repo")

        assert result.errors == ["Invalid GitHub repository format: not a repo"]
        assert client.calls == []


class TestUpsertConfig:
    """Test GithubSyncService.upsert_config."""

    @pytest.mark.asyncio
    async def test_creates_config_for_existing_repository(self, db_session, module_factory, current_admin):
        """A reachable repository is saved in normalized form."""
        module = await module_factory()
        client = _FakeGitHubClient()
        service = GithubSyncService(db_session, client=client)

        response = await service.upsert_config(
            current_admin, module.id, SyncConfigUpdate(github_repo="https://github.com/owner/repo")
        )

        assert response.github_repo == "owner/repo"
        assert response.enabled is True
        assert client.checked == ["owner/repo"]

    @pytest.mark.asyncio
    async def test_rejects_missing_repository(self, db_session, module_factory, current_admin):
        """Repositories GitHub does not know are not saved."""
        module = await module_factory()
        service = GithubSyncService(db_session, client=_FakeGitHubClient(repositories=()))

        with pytest.raises(ValueError, match="not found or not accessible: owner/gone"):
            await service.upsert_config(current_admin, module.id, SyncConfigUpdate(github_repo="owner/gone"))

        result = await db_session.execute(select(ModuleGithubSync).where(ModuleGithubSync.module_id == module.id))
        assert result.scalar_one_or_none() is None

    @pytest.mark.asyncio
    async def test_toggle_skips_repository_check(self, db_session, module_factory, current_admin):
        """Changing only the enabled flag does not call GitHub."""
        module = await module_factory()
        client = _FakeGitHubClient()
        service = GithubSyncService(db_session, client=client)
        await service.upsert_config(current_admin, module.id, SyncConfigUpdate(github_repo="owner/repo"))

        response = await service.upsert_config(
            current_admin, module.id, SyncConfigUpdate(github_repo="owner/repo", enabled=False)
        )

        assert response.enabled is False
        assert client.checked == ["owner/repo"]


class TestSyncBookkeeping:
    """Test sync result recording and module selection."""

    @pytest.mark.asyncio
    async def test_record_errors_are_capped(self, db_session, module_factory):
        """Failures append errors up to the cap and success clears them."""
        module = await module_factory()
        db_session.add(ModuleGithubSync(module_id=module.id, github_repo="owner/repo", enabled=True, sync_errors=[]))
        await db_session.commit()
        service = GithubSyncService(db_session)

        for index in range(MAX_SYNC_ERRORS + 2):
            await service.record_sync_result(
                module.id, SyncResult(success=False, module_id=module.id, errors=[f"error {index}"])
            )

        config = await service.get_config(module.id)
        assert len(config.sync_errors) == MAX_SYNC_ERRORS
        assert config.sync_errors[-1]["error"] == f"error {MAX_SYNC_ERRORS + 1}"

        await service.record_sync_result(module.id, SyncResult(success=True, module_id=module.id))
        assert (await service.get_config(module.id)).sync_errors == []

    @pytest.mark.asyncio
    async def test_modules_for_sync_scopes(self, db_session, module_factory):
        """Scopes select enabled configurations."""
        fresh = await module_factory()
        stale = await module_factory()
        unpublished = await module_factory(is_published=False, status="pending")
        disabled = await module_factory()
        db_session.add_all(
            [
                ModuleGithubSync(module_id=fresh.id, github_repo="o/fresh", enabled=True, last_sync_at=utcnow()),
                ModuleGithubSync(
                    module_id=stale.id, github_repo="o/stale", enabled=True, last_sync_at=utcnow() - timedelta(days=2)
                ),
                ModuleGithubSync(module_id=unpublished.id, github_repo="o/unpub", enabled=True),
                ModuleGithubSync(module_id=disabled.id, github_repo="o/off", enabled=False),
            ]
        )
        await db_session.commit()
        service = GithubSyncService(db_session)

        all_ids = {module.id for module, _ in await service.modules_for_sync("all")}
        outdated_ids = {module.id for module, _ in await service.modules_for_sync("outdated")}

        assert all_ids == {fresh.id, stale.id}
        assert outdated_ids == {stale.id, unpublished.id}

        with pytest.raises(ValueError, match="not found or GitHub sync not enabled"):
            await service.modules_for_sync("single", module_id=disabled.id)
        with pytest.raises(ValueError, match="Unknown scrape scope"):
            await service.modules_for_sync("everything")
