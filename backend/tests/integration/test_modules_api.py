"""Integration tests for public module browsing, releases and downloads."""

import pytest
from httpx import AsyncClient


class TestModuleList:
    """Test module listing endpoints."""

    @pytest.mark.asyncio
    async def test_list_only_published(self, client: AsyncClient, module_factory):
        """Unpublished modules never appear in listings."""
        published = await module_factory(release_version="1.0.0")
        await module_factory(is_published=False, status="pending")

        response = await client.get("/api/modules")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert [item["id"] for item in data["items"]] == [published.id]
        assert data["has_more"] is False

    @pytest.mark.asyncio
    async def test_list_derives_release_fields(self, client: AsyncClient, module_factory):
        """Version, size and download URL come from the latest release."""
        await module_factory(release_version="2.1.0", downloads=7)

        response = await client.get("/api/modules")

        item = response.json()["items"][0]
        assert item["version"] == "2.1.0"
        assert item["size"] == "1.5 MB"
        assert item["downloads"] == 7
        assert item["download_url"].endswith("/v2.1.0/mod.zip")
        assert item["latest_release"]["is_latest"] is True

    @pytest.mark.asyncio
    async def test_list_defaults_without_release(self, client: AsyncClient, module_factory):
        """Modules without releases report default version and size."""
        await module_factory()

        response = await client.get("/api/modules")

        item = response.json()["items"][0]
        assert item["version"] == "1.0.0"
        assert item["size"] == "0 MB"
        assert item["download_url"] is None
        assert item["rating"] == 0
        assert item["review_count"] == 0

    @pytest.mark.asyncio
    async def test_list_filters_and_sorts(self, client: AsyncClient, module_factory):
        """Category filter, text search and sort parameters are applied."""
        await module_factory(name="Alpha Boost", release_version="1.0", downloads=5)
        await module_factory(name="Zeta Boost", release_version="1.0", downloads=50)
        await module_factory(name="Audio Fix", category="media")

        response = await client.get(
            "/api/modules", params={"category": "performance", "search": "boost", "sort": "downloads"}
        )

        names = [item["name"] for item in response.json()["items"]]
        assert names == ["Zeta Boost", "Alpha Boost"]

        response = await client.get("/api/modules", params={"sort": "name", "order": "asc"})
        names = [item["name"] for item in response.json()["items"]]
        assert names == ["Alpha Boost", "Audio Fix", "Zeta Boost"]

    @pytest.mark.asyncio
    async def test_list_pagination(self, client: AsyncClient, module_factory):
        """limit and offset page through results."""
        for _ in range(3):
            await module_factory()

        response = await client.get("/api/modules", params={"limit": 2, "offset": 0})

        data = response.json()
        assert len(data["items"]) == 2
        assert data["total"] == 3
        assert data["has_more"] is True

    @pytest.mark.asyncio
    async def test_featured_and_recommended(self, client: AsyncClient, module_factory):
        """Featured and recommended lists only contain flagged modules."""
        featured = await module_factory(is_featured=True)
        recommended = await module_factory(is_recommended=True)
        await module_factory()

        featured_response = await client.get("/api/modules/featured")
        recommended_response = await client.get("/api/modules/recommended")

        assert [m["id"] for m in featured_response.json()] == [featured.id]
        assert [m["id"] for m in recommended_response.json()] == [recommended.id]

    @pytest.mark.asyncio
    async def test_recent_requires_recent_release(self, client: AsyncClient, module_factory):
        """Only modules with a release in the last 30 days are recent."""
        with_release = await module_factory(release_version="1.0")
        await module_factory()

        response = await client.get("/api/modules/recent")

        assert [m["id"] for m in response.json()] == [with_release.id]
        assert response.json()[0]["is_recently_updated"] is True


class TestModuleDetail:
    """Test module detail endpoint."""

    @pytest.mark.asyncio
    async def test_get_by_id_and_slug(self, client: AsyncClient, module_factory):
        """A module can be fetched by id or by slug."""
        module = await module_factory(release_version="1.0")

        by_id = await client.get(f"/api/modules/{module.id}")
        by_slug = await client.get(f"/api/modules/{module.slug}")

        assert by_id.status_code == 200
        assert by_slug.status_code == 200
        assert by_slug.json()["id"] == module.id
        assert by_id.json()["releases"] is None

    @pytest.mark.asyncio
    async def test_include_releases(self, client: AsyncClient, module_factory):
        """includeReleases attaches the release list."""
        module = await module_factory(release_version="1.0")

        response = await client.get(f"/api/modules/{module.id}", params={"includeReleases": "true"})

        releases = response.json()["releases"]
        assert len(releases) == 1
        assert releases[0]["version"] == "1.0"

    @pytest.mark.asyncio
    async def test_unpublished_hidden_from_anonymous(self, client: AsyncClient, module_factory):
        """Unpublished modules are 404 for anonymous callers."""
        module = await module_factory(is_published=False, status="pending")

        response = await client.get(f"/api/modules/{module.id}")

        assert response.status_code == 404
        assert response.json()["error"] == "Module not found"

    @pytest.mark.asyncio
    async def test_unpublished_visible_to_submitter(
        self, client: AsyncClient, module_factory, test_user, auth_headers
    ):
        """The submitter can see their own pending module."""
        module = await module_factory(is_published=False, status="pending", submitted_by=test_user.id)

        response = await client.get(f"/api/modules/{module.id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "pending"

    @pytest.mark.asyncio
    async def test_unpublished_visible_to_admin(self, client: AsyncClient, module_factory, admin_headers):
        """Admins can see any module."""
        module = await module_factory(is_published=False, status="pending")

        response = await client.get(f"/api/modules/{module.id}", headers=admin_headers)

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_module_stats(self, client: AsyncClient, module_factory):
        """Stats sum downloads over releases and report a full distribution."""
        module = await module_factory(release_version="1.0", downloads=12)

        response = await client.get(f"/api/modules/{module.id}/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["downloads"] == 12
        assert data["release_count"] == 1
        assert data["rating_distribution"] == {"1": 0, "2": 0, "3": 0, "4": 0, "5": 0}


class TestReleases:
    """Test release endpoints."""

    @pytest.mark.asyncio
    async def test_latest_release(self, client: AsyncClient, module_factory):
        """The latest release endpoint returns the flagged release."""
        module = await module_factory(release_version="3.0")

        response = await client.get(f"/api/modules/{module.id}/releases/latest")

        assert response.status_code == 200
        assert response.json()["version"] == "3.0"

    @pytest.mark.asyncio
    async def test_latest_release_missing(self, client: AsyncClient, module_factory):
        """Modules without releases give 404."""
        module = await module_factory()

        response = await client.get(f"/api/modules/{module.id}/releases/latest")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_owner_creates_release_and_latest_moves(
        self, client: AsyncClient, module_factory, test_user, auth_headers
    ):
        """A new latest release clears the flag on the previous one."""
        module = await module_factory(release_version="1.0", submitted_by=test_user.id)

        response = await client.post(
            f"/api/modules/{module.id}/releases",
            json={
                "version": "v1.1",
                "downloadUrl": "https://github.com/tester/mod/releases/download/v1.1/mod.zip",
                "size": "2 MB",
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        assert response.json()["version"] == "1.1"

        releases = (await client.get(f"/api/modules/{module.id}/releases")).json()
        assert [r["version"] for r in releases if r["is_latest"]] == ["1.1"]
        assert len(releases) == 2

    @pytest.mark.asyncio
    async def test_non_owner_cannot_create_release(
        self, client: AsyncClient, module_factory, other_user, auth_headers
    ):
        """Only the submitter or an admin may add releases."""
        module = await module_factory(submitted_by=other_user.id)

        response = await client.post(
            f"/api/modules/{module.id}/releases",
            json={"version": "1.0", "downloadUrl": "https://github.com/a/b/releases/download/1.0/b.zip"},
            headers=auth_headers,
        )

        assert response.status_code == 403


class TestDownloads:
    """Test download tracking and redirects."""

    @pytest.mark.asyncio
    async def test_track_download(self, client: AsyncClient, module_factory):
        """Tracking increments the latest release's counter."""
        module = await module_factory(release_version="1.0", downloads=4)

        response = await client.post(f"/api/modules/{module.id}/download")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["downloads"] == 5

    @pytest.mark.asyncio
    async def test_track_unknown_release(self, client: AsyncClient, module_factory):
        """A release id of another module is rejected."""
        module = await module_factory(release_version="1.0")

        response = await client.post(f"/api/modules/{module.id}/download", params={"releaseId": 9999})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_download_redirect(self, client: AsyncClient, module_factory):
        """The download endpoint redirects to a trusted host and counts."""
        module = await module_factory(release_version="1.0")

        response = await client.get(f"/api/modules/{module.id}/download")

        assert response.status_code == 302
        assert response.headers["location"] == "https://github.com/tester/mod/releases/download/v1.0/mod.zip"

        stats = await client.get(f"/api/modules/{module.id}/stats")
        assert stats.json()["downloads"] == 1

    @pytest.mark.asyncio
    async def test_download_untrusted_host(self, client: AsyncClient, module_factory, db_session):
        """Redirects to hosts outside the allow-list are refused."""
        from sqlalchemy import update

        from modhub_database.models import Release

        module = await module_factory(release_version="1.0")
        await db_session.execute(
            update(Release)
            .where(Release.module_id == module.id)
            .values(download_url="https://evil.example.com/mod.zip")
        )
        await db_session.commit()

        response = await client.get(f"/api/modules/{module.id}/download")

        assert response.status_code == 400
        assert response.json()["error"] == "Download URL points to an untrusted source"

    @pytest.mark.asyncio
    async def test_unpublished_download_not_counted(self, client: AsyncClient, module_factory, db_session):
        """Anonymous downloads of a pending module look missing and leave the counter alone."""
        from sqlalchemy import select

        from modhub_database.models import Release

        module = await module_factory(release_version="1.0", downloads=3, is_published=False, status="pending")

        tracked = await client.post(f"/api/modules/{module.id}/download")
        redirected = await client.get(f"/api/modules/{module.id}/download")

        assert tracked.status_code == 404
        assert redirected.status_code == 404
        downloads = await db_session.scalar(select(Release.downloads).where(Release.module_id == module.id))
        assert downloads == 3

    @pytest.mark.asyncio
    async def test_submitter_downloads_own_pending_module(
        self, client: AsyncClient, module_factory, auth_headers, test_user
    ):
        """The submitter can still fetch a module under review."""
        module = await module_factory(
            release_version="1.0", is_published=False, status="pending", submitted_by=test_user.id
        )

        response = await client.post(f"/api/modules/{module.id}/download", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["downloads"] == 1


class TestCatalog:
    """Test category, site statistics and trending endpoints."""

    @pytest.mark.asyncio
    async def test_categories(self, client: AsyncClient, module_factory):
        """Only non-empty categories are listed by default."""
        await module_factory()
        await module_factory()
        await module_factory(category="media")

        response = await client.get("/api/categories", params={"sort": "count", "order": "desc"})

        assert response.json() == [
            {"id": "performance", "name": "Performance", "count": 2},
            {"id": "media", "name": "Media & Audio", "count": 1},
        ]

        with_empty = await client.get("/api/categories", params={"includeEmpty": "true"})
        assert len(with_empty.json()) == 8

    @pytest.mark.asyncio
    async def test_site_stats(self, client: AsyncClient, module_factory):
        """Site counters only include published modules."""
        await module_factory(release_version="1.0", downloads=3, is_featured=True)
        await module_factory(category="security")
        await module_factory(is_published=False, status="pending")

        response = await client.get("/api/stats")

        data = response.json()
        assert data["total_modules"] == 2
        assert data["featured_count"] == 1
        assert data["total_downloads"] == 3
        assert data["security_modules"] == 1
        assert data["performance_modules"] == 1
        assert data["updated_this_week"] == 1

    @pytest.mark.asyncio
    async def test_trending_by_downloads(self, client: AsyncClient, module_factory):
        """The downloads algorithm ranks by release downloads."""
        low = await module_factory(release_version="1.0", downloads=1)
        high = await module_factory(release_version="1.0", downloads=100)

        response = await client.get("/api/trending", params={"algorithm": "downloads", "range": "all"})

        assert [m["id"] for m in response.json()] == [high.id, low.id]

    @pytest.mark.asyncio
    async def test_trending_rejects_unknown_algorithm(self, client: AsyncClient):
        """Unknown algorithms fail validation."""
        response = await client.get("/api/trending", params={"algorithm": "random"})

        assert response.status_code == 400
