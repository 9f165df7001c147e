"""Tests for the advanced search filter pipeline."""

from datetime import UTC, datetime
from typing import Any

import pytest

from modhub_core.schemas import SearchFilters
from modhub_core.schemas.module import ModuleView
from modhub_core.search import (
    count_active_filters,
    filter_modules,
    paginate,
    parse_size_mb,
    run_search,
    sort_modules,
)


def _view(name: str, **overrides: Any) -> ModuleView:
    now = datetime(2024, 6, 1, tzinfo=UTC)
    fields: dict[str, Any] = {
        "id": name.lower().replace(" ", "-"),
        "name": name,
        "slug": None,
        "description": f"{name} for rooted Android devices",
        "short_description": name,
        "author": "dev",
        "category": "performance",
        "icon": None,
        "images": [],
        "is_open_source": True,
        "license": "MIT",
        "compatibility": {"android_versions": ["13+"], "root_methods": ["Magisk"]},
        "warnings": [],
        "features": [],
        "source_url": "https://github.com/dev/mod",
        "community_url": None,
        "github_repo": None,
        "is_featured": False,
        "is_recommended": False,
        "is_published": True,
        "status": "approved",
        "submitted_by": None,
        "created_at": now,
        "updated_at": now,
        "version": "1.0.0",
        "downloads": 0,
        "rating": 0,
        "review_count": 0,
        "last_updated": now.isoformat(),
        "size": "0 MB",
        "is_recently_updated": False,
    }
    fields.update(overrides)
    return ModuleView(**fields)


class TestParseSize:
    """Test display size parsing."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [("1.5 MB", 1.5), ("512 KB", 0.5), ("2 GB", 2048.0), ("3", 3.0), ("0 MB", 0.0)],
    )
    def test_known_sizes(self, size, expected):
        """Sizes convert to megabytes."""
        assert parse_size_mb(size) == pytest.approx(expected)

    @pytest.mark.parametrize("size", [None, "", "unknown", "1.5 TB", "1..5 MB"])
    def test_unknown_sizes(self, size):
        """Unrecognized sizes give None."""
        assert parse_size_mb(size) is None


class TestFilterModules:
    """Test individual predicates."""

    def test_inactive_filters_keep_everything(self):
        """Default filters match every module."""
        modules = [_view("Alpha"), _view("Beta", is_published=False)]

        assert filter_modules(modules, SearchFilters()) == modules
        assert count_active_filters(SearchFilters()) == 0

    def test_query_matches_features(self):
        """Text search includes features."""
        modules = [_view("Alpha", features=["Ad blocking"]), _view("Beta")]

        result = filter_modules(modules, SearchFilters(query="  BLOCK "))

        assert [m.name for m in result] == ["Alpha"]

    def test_root_method_any_match(self):
        """A module matches when it supports any of the requested methods."""
        modules = [
            _view("Alpha", compatibility={"android_versions": [], "root_methods": ["KernelSU", "APatch"]}),
            _view("Beta"),
        ]

        result = filter_modules(modules, SearchFilters(root_methods=["APatch"]))

        assert [m.name for m in result] == ["Alpha"]

    def test_max_size_keeps_unknown_sizes(self):
        """Modules with unparseable sizes are not excluded by size."""
        modules = [_view("Small", size="900 KB"), _view("Large", size="40 MB"), _view("Odd", size="n/a")]

        result = filter_modules(modules, SearchFilters(max_size=10))

        assert [m.name for m in result] == ["Small", "Odd"]

    def test_warnings_and_urls(self):
        """Boolean presence filters compare truthiness."""
        modules = [
            _view("Flagged", warnings=[{"type": "malware", "message": "Bad"}], source_url=None),
            _view("Clean", community_url="https://t.me/clean"),
        ]

        assert [m.name for m in filter_modules(modules, SearchFilters(has_warnings=True))] == ["Flagged"]
        assert [m.name for m in filter_modules(modules, SearchFilters(has_source_url=False))] == ["Flagged"]
        assert [m.name for m in filter_modules(modules, SearchFilters(has_community_url=True))] == ["Clean"]

    def test_author_is_exact_case_insensitive(self):
        """Author filter matches the whole name."""
        modules = [_view("Alpha", author="DevOne"), _view("Beta", author="DevOneTwo")]

        assert [m.name for m in filter_modules(modules, SearchFilters(author="devone"))] == ["Alpha"]

    def test_filters_combine(self):
        """Every active predicate must pass."""
        modules = [
            _view("Alpha", rating=4.5, category="security"),
            _view("Beta", rating=4.5),
            _view("Gamma", rating=2.0, category="security"),
        ]
        filters = SearchFilters(categories=["security"], min_rating=4)

        assert [m.name for m in filter_modules(modules, filters)] == ["Alpha"]
        assert count_active_filters(filters) == 2


def _catalog() -> list[ModuleView]:
    return [
        _view("Tiny", size="900 KB", rating=4.8, category="security", license="GPL-3.0"),
        _view("Medium", size="40 MB", rating=3.0, is_featured=True, author="Other"),
        _view("Large", size="150 MB", rating=4.1, is_open_source=False, source_url=None),
        _view("Huge", size="300 MB", rating=1.0, warnings=[{"type": "malware", "message": "Bad"}]),
        _view(
            "Unsized",
            size="Unknown",
            is_recommended=True,
            compatibility={"android_versions": ["14+"], "root_methods": ["KernelSU"]},
            community_url="https://t.me/unsized",
        ),
        _view("Pending", size="2 MB", is_published=False, status="pending"),
    ]


def _size_ok(module: ModuleView, cap: float) -> bool:
    size = parse_size_mb(module.size)
    return size is None or size <= cap


class TestFilterCorrectness:
    """Every module in a filtered result satisfies every active predicate."""

    @pytest.mark.parametrize(
        ("filters", "holds"),
        [
            (SearchFilters(), lambda m: _size_ok(m, 100)),
            (SearchFilters(max_size=200), lambda m: _size_ok(m, 200)),
            (SearchFilters(max_size=10), lambda m: _size_ok(m, 10)),
            (SearchFilters(min_rating=4), lambda m: m.rating >= 4),
            (SearchFilters(categories=["security"]), lambda m: m.category == "security"),
            (SearchFilters(root_methods=["KernelSU"]), lambda m: "KernelSU" in m.compatibility["root_methods"]),
            (SearchFilters(android_versions=["14+"]), lambda m: "14+" in m.compatibility["android_versions"]),
            (SearchFilters(is_open_source=False), lambda m: m.is_open_source is False),
            (SearchFilters(has_warnings=True), lambda m: bool(m.warnings)),
            (SearchFilters(is_featured=True), lambda m: m.is_featured),
            (SearchFilters(is_recommended=True), lambda m: m.is_recommended),
            (SearchFilters(is_published=False), lambda m: not m.is_published),
            (SearchFilters(status="pending"), lambda m: m.status == "pending"),
            (SearchFilters(license="GPL-3.0"), lambda m: m.license == "GPL-3.0"),
            (SearchFilters(has_source_url=False), lambda m: not m.source_url),
            (SearchFilters(has_community_url=True), lambda m: bool(m.community_url)),
            (SearchFilters(author="other"), lambda m: m.author == "Other"),
        ],
    )
    def test_results_satisfy_filter(self, filters, holds):
        """Results are non-empty here and none violates the filter."""
        result = filter_modules(_catalog(), filters)

        assert result
        assert all(holds(m) for m in result)

    def test_size_cap_above_default(self):
        """A cap above 100 MB still excludes larger modules."""
        result = filter_modules(_catalog(), SearchFilters(max_size=200))

        assert "Large" in [m.name for m in result]
        assert "Huge" not in [m.name for m in result]

    def test_default_size_cap_applies(self):
        """The default cap excludes modules over 100 MB but keeps unknown sizes."""
        names = [m.name for m in filter_modules(_catalog(), SearchFilters())]

        assert names == ["Tiny", "Medium", "Unsized", "Pending"]
        assert count_active_filters(SearchFilters(max_size=200)) == 0
        assert count_active_filters(SearchFilters(max_size=50)) == 1


class TestSortAndPaginate:
    """Test ordering and paging."""

    def test_relevance_keeps_order(self):
        """Relevance is the incoming order."""
        modules = [_view("Beta"), _view("Alpha")]

        assert sort_modules(modules, "relevance", "asc") == modules

    def test_sort_by_downloads_desc(self):
        """Downloads sort descending."""
        modules = [_view("Low", downloads=1), _view("High", downloads=10)]

        assert [m.name for m in sort_modules(modules, "downloads", "desc")] == ["High", "Low"]

    def test_sort_by_name_is_case_insensitive(self):
        """Names compare without case."""
        modules = [_view("beta"), _view("Alpha")]

        assert [m.name for m in sort_modules(modules, "name", "asc")] == ["Alpha", "beta"]

    def test_unknown_sort_key(self):
        """Unsupported keys raise."""
        with pytest.raises(ValueError, match="Unsupported sort key"):
            sort_modules([], "random", "asc")

    def test_paginate(self):
        """Pages are 1-based slices."""
        modules = [_view(f"Module {i}") for i in range(5)]

        assert [m.name for m in paginate(modules, 2, 2)] == ["Module 2", "Module 3"]
        assert paginate(modules, 4, 2) == []

    def test_run_search(self):
        """The pipeline returns the page, totals and active filter count."""
        modules = [_view(f"Module {i}", downloads=i) for i in range(5)]

        items, total, total_pages, active = run_search(
            modules, SearchFilters(is_open_source=True, page=1, page_size=2)
        )

        assert [m.downloads for m in items] == [4, 3]
        assert total == 5
        assert total_pages == 3
        assert active == 1

    def test_run_search_empty(self):
        """An empty result still has one page."""
        _, total, total_pages, _ = run_search([], SearchFilters())

        assert (total, total_pages) == (0, 1)
