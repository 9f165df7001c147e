"""Integration tests for search endpoints."""

import pytest
from httpx import AsyncClient


class TestTextSearch:
    """Test GET /api/search."""

    @pytest.mark.asyncio
    async def test_search_matches_name_and_features(self, client: AsyncClient, module_factory):
        """Text matches name, description, author and features case-insensitively."""
        by_name = await module_factory(name="Ad Blocker")
        by_feature = await module_factory(name="Privacy Pack", features=["Blocks ads system-wide"])
        await module_factory(name="Font Changer", features=["Custom fonts"])

        response = await client.get("/api/search", params={"q": "BLOCK", "sort": "name", "order": "asc"})

        assert response.status_code == 200
        data = response.json()
        assert [m["id"] for m in data["results"]] == [by_name.id, by_feature.id]
        assert data["total_count"] == 2
        assert data["search_options"]["sort"] == "name"

    @pytest.mark.asyncio
    async def test_query_parameter_alias(self, client: AsyncClient, module_factory):
        """The text may be sent as ``query`` instead of ``q``."""
        await module_factory(name="Ad Blocker")

        response = await client.get("/api/search", params={"query": "blocker"})

        assert response.json()["query"] == "blocker"
        assert response.json()["total_count"] == 1

    @pytest.mark.asyncio
    async def test_blank_query_rejected(self, client: AsyncClient):
        """A missing or blank query is a 400."""
        missing = await client.get("/api/search")
        blank = await client.get("/api/search", params={"q": "   "})

        assert missing.status_code == 400
        assert blank.status_code == 400
        assert blank.json()["error"] == "Search query is required"

    @pytest.mark.asyncio
    async def test_unpublished_not_searchable(self, client: AsyncClient, module_factory):
        """Pending modules never appear in search results."""
        await module_factory(name="Hidden Tweak", is_published=False, status="pending")

        response = await client.get("/api/search", params={"q": "hidden"})

        assert response.json()["results"] == []

    @pytest.mark.asyncio
    async def test_pagination(self, client: AsyncClient, module_factory):
        """limit and offset slice the results."""
        for index in range(3):
            await module_factory(name=f"Tweak {index}")

        response = await client.get("/api/search", params={"q": "tweak", "limit": 2, "offset": 2})

        data = response.json()
        assert len(data["results"]) == 1
        assert data["has_more"] is False


class TestAdvancedSearch:
    """Test POST /api/search/advanced."""

    @pytest.mark.asyncio
    async def test_no_filters_returns_everything(self, client: AsyncClient, module_factory):
        """An empty filter matches every published module."""
        await module_factory()
        await module_factory()

        response = await client.post("/api/search/advanced", json={})

        data = response.json()
        assert data["total"] == 2
        assert data["active_filters"] == 0
        assert data["page"] == 1
        assert data["total_pages"] == 1

    @pytest.mark.asyncio
    async def test_combined_filters(self, client: AsyncClient, module_factory):
        """Categories and root methods narrow the results together."""
        match = await module_factory(compatibility={"android_versions": ["13+"], "root_methods": ["KernelSU"]})
        await module_factory(compatibility={"android_versions": ["13+"], "root_methods": ["Magisk"]})
        await module_factory(
            category="media", compatibility={"android_versions": ["13+"], "root_methods": ["KernelSU"]}
        )

        response = await client.post(
            "/api/search/advanced",
            json={"categories": ["performance"], "rootMethods": ["KernelSU", "APatch"]},
        )

        data = response.json()
        assert [m["id"] for m in data["items"]] == [match.id]
        assert data["active_filters"] == 2

    @pytest.mark.asyncio
    async def test_min_rating_excludes_unrated(self, client: AsyncClient, module_factory):
        """Modules without ratings have a rating of zero."""
        await module_factory()

        response = await client.post("/api/search/advanced", json={"minRating": 3})

        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_max_size_filter(self, client: AsyncClient, module_factory):
        """Releases above the size cap are excluded."""
        await module_factory(release_version="1.0")

        small_cap = await client.post("/api/search/advanced", json={"maxSize": 1})
        large_cap = await client.post("/api/search/advanced", json={"maxSize": 2})

        assert small_cap.json()["total"] == 0
        assert large_cap.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_sort_and_paginate(self, client: AsyncClient, module_factory):
        """Results are sorted before the requested page is cut."""
        for name in ("Charlie", "Alpha", "Bravo"):
            await module_factory(name=name)

        response = await client.post(
            "/api/search/advanced",
            json={"sortBy": "name", "sortOrder": "asc", "page": 2, "pageSize": 2},
        )

        data = response.json()
        assert [m["name"] for m in data["items"]] == ["Charlie"]
        assert data["total_pages"] == 2

    @pytest.mark.asyncio
    async def test_invalid_sort_key(self, client: AsyncClient):
        """Unknown sort keys fail validation."""
        response = await client.post("/api/search/advanced", json={"sortBy": "random"})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "sortBy"


class TestSuggestions:
    """Test POST /api/search."""

    @pytest.mark.asyncio
    async def test_suggestions(self, client: AsyncClient, module_factory):
        """Modules come first, then authors, then categories."""
        module = await module_factory(name="Performance Boost", author="perfdev")

        response = await client.post("/api/search", json={"query": "perf"})

        suggestions = response.json()["suggestions"]
        assert suggestions == [
            {"type": "module", "value": "Performance Boost", "module_id": module.id},
            {"type": "author", "value": "perfdev", "module_id": None},
            {"type": "category", "value": "performance", "module_id": None},
        ]

    @pytest.mark.asyncio
    async def test_suggestions_by_type(self, client: AsyncClient, module_factory):
        """The type restricts which suggestions are returned."""
        await module_factory(name="Performance Boost", author="perfdev")

        response = await client.post("/api/search", json={"query": "perf", "type": "authors"})

        assert [s["type"] for s in response.json()["suggestions"]] == ["author"]

    @pytest.mark.asyncio
    async def test_query_too_short(self, client: AsyncClient):
        """Suggestions need at least two characters."""
        response = await client.post("/api/search", json={"query": "p"})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "query"
