"""
Advanced module search.

A linear filter, sort and paginate pipeline over module views. Each active
predicate narrows the list in turn; inactive predicates (None, empty list)
are skipped. The size cap always applies and lets unknown sizes through.
"""

import re
from collections.abc import Callable, Iterable
from math import ceil

from modhub_core.schemas.module import ModuleView
from modhub_core.schemas.search import SearchFilters

DEFAULT_MAX_SIZE_MB = 100.0

_SIZE_PATTERN = re.compile(r"^\s*([\d.]+)\s*(B|KB|MB|GB)?\s*$", re.IGNORECASE)
_UNIT_TO_MB = {"B": 1 / (1024 * 1024), "KB": 1 / 1024, "MB": 1.0, "GB": 1024.0}

Predicate = Callable[[ModuleView], bool]


def parse_size_mb(size: str | None) -> float | None:
    """
    Parse a display size ("1.5 MB", "800 KB", "2 GB") into megabytes.

    Args:
        size: Size string.

    Returns:
        Size in MB, or None when the string is not a recognizable size.
    """
    if not size:
        return None
    match = _SIZE_PATTERN.match(size)
    if not match:
        return None
    try:
        value = float(match.group(1))
    except ValueError:
        return None
    unit = (match.group(2) or "MB").upper()
    return value * _UNIT_TO_MB[unit]


def _matches_query(module: ModuleView, query: str) -> bool:
    needle = query.lower()
    return (
        needle in module.name.lower()
        or needle in module.description.lower()
        or needle in module.author.lower()
        or any(needle in feature.lower() for feature in module.features)
    )


def _within_size(module: ModuleView, max_size: float) -> bool:
    size_mb = parse_size_mb(module.size)
    # Unknown sizes are not excluded
    return size_mb is None or size_mb <= max_size


def build_predicates(filters: SearchFilters) -> list[Predicate]:
    """
    Translate active filters into predicates.

    Args:
        filters: Search filter object.

    Returns:
        Predicates in application order.
    """
    predicates: list[Predicate] = []

    if filters.query and filters.query.strip():
        query = filters.query.strip()
        predicates.append(lambda m: _matches_query(m, query))

    if filters.categories:
        categories = set(filters.categories)
        predicates.append(lambda m: m.category in categories)

    if filters.root_methods:
        methods = set(filters.root_methods)
        predicates.append(
            lambda m: any(method in methods for method in m.compatibility.get("root_methods", []))
        )

    if filters.android_versions:
        versions = set(filters.android_versions)
        predicates.append(
            lambda m: any(version in versions for version in m.compatibility.get("android_versions", []))
        )

    if filters.is_open_source is not None:
        predicates.append(lambda m: m.is_open_source == filters.is_open_source)

    if filters.min_rating > 0:
        predicates.append(lambda m: m.rating >= filters.min_rating)

    predicates.append(lambda m: _within_size(m, filters.max_size))

    if filters.has_warnings is not None:
        predicates.append(lambda m: bool(m.warnings) == filters.has_warnings)

    if filters.is_featured is not None:
        predicates.append(lambda m: m.is_featured == filters.is_featured)

    if filters.is_recommended is not None:
        predicates.append(lambda m: m.is_recommended == filters.is_recommended)

    if filters.is_published is not None:
        predicates.append(lambda m: m.is_published == filters.is_published)

    if filters.status is not None:
        predicates.append(lambda m: m.status == filters.status)

    if filters.license is not None:
        predicates.append(lambda m: m.license == filters.license)

    if filters.has_source_url is not None:
        predicates.append(lambda m: bool(m.source_url) == filters.has_source_url)

    if filters.has_community_url is not None:
        predicates.append(lambda m: bool(m.community_url) == filters.has_community_url)

    if filters.author:
        author = filters.author.strip().lower()
        predicates.append(lambda m: m.author.lower() == author)

    return predicates


def count_active_filters(filters: SearchFilters) -> int:
    """Number of active filters, not counting the text query and sorting."""
    return sum(
        (
            bool(filters.categories),
            bool(filters.root_methods),
            bool(filters.android_versions),
            filters.is_open_source is not None,
            filters.min_rating > 0,
            filters.max_size < DEFAULT_MAX_SIZE_MB,
            filters.has_warnings is not None,
            filters.is_featured is not None,
            filters.is_recommended is not None,
            filters.is_published is not None,
            filters.status is not None,
            filters.license is not None,
            filters.has_source_url is not None,
            filters.has_community_url is not None,
            bool(filters.author),
        )
    )


def filter_modules(modules: Iterable[ModuleView], filters: SearchFilters) -> list[ModuleView]:
    """Apply every active predicate in sequence."""
    result = list(modules)
    for predicate in build_predicates(filters):
        result = [module for module in result if predicate(module)]
    return result


def sort_modules(modules: list[ModuleView], sort_by: str, sort_order: str) -> list[ModuleView]:
    """
    Sort modules by the selected key.

    "relevance" keeps the incoming order. Sorting is stable, so ties keep
    their incoming order too.
    """
    if sort_by == "relevance":
        return list(modules)

    keys: dict[str, Callable[[ModuleView], object]] = {
        "name": lambda m: m.name.lower(),
        "rating": lambda m: m.rating,
        "downloads": lambda m: m.downloads,
        "last_updated": lambda m: m.last_updated,
    }
    key = keys.get(sort_by)
    if key is None:
        raise ValueError(f"Unsupported sort key: {sort_by}")
    return sorted(modules, key=key, reverse=sort_order == "desc")


def paginate(items: list[ModuleView], page: int, page_size: int) -> list[ModuleView]:
    """Slice one page out of the result list (pages are 1-based)."""
    start = (page - 1) * page_size
    return items[start : start + page_size]


def run_search(
    modules: Iterable[ModuleView], filters: SearchFilters
) -> tuple[list[ModuleView], int, int, int]:
    """
    Run the full pipeline.

    Args:
        modules: Candidate modules.
        filters: Search filter object.

    Returns:
        Tuple of (page items, total matches, total pages, active filter count).
    """
    matched = filter_modules(modules, filters)
    ordered = sort_modules(matched, filters.sort_by, filters.sort_order)
    total = len(ordered)
    total_pages = ceil(total / filters.page_size) if total > 0 else 1
    return paginate(ordered, filters.page, filters.page_size), total, total_pages, count_active_filters(filters)
