"""
Catalog router.

Marketplace-wide views: categories, site statistics and trending modules.
"""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query

from modhub_core.schemas import CategoryStat, ModuleView, SiteStats
from modhub_core.services import PUBLIC_READ, ModuleService
from modhub_core.services.module_service import TrendingAlgorithm, TrendingRange

from ..dependencies import get_module_service, get_reader_optional, rate_limit

router = APIRouter(dependencies=[Depends(rate_limit(PUBLIC_READ)), Depends(get_reader_optional)])


@router.get("/categories")
async def list_categories(
    module_service: Annotated[ModuleService, Depends(get_module_service)],
    include_empty: Annotated[bool, Query(alias="includeEmpty")] = False,
    sort: Literal["name", "count"] = "name",
    order: Literal["asc", "desc"] = "asc",
) -> list[CategoryStat]:
    """
    Published module counts per category.

    Args:
        module_service: Module service.
        include_empty: Also list categories without modules.
        sort: Sort by category name or count.
        order: Sort direction.

    Returns:
        Category statistics.
    """
    return await module_service.get_category_stats(include_empty=include_empty, sort=sort, order=order)


@router.get("/stats")
async def site_stats(
    module_service: Annotated[ModuleService, Depends(get_module_service)],
) -> SiteStats:
    """Public marketplace counters."""
    return await module_service.get_site_stats()


@router.get("/trending")
async def trending_modules(
    module_service: Annotated[ModuleService, Depends(get_module_service)],
    limit: int = Query(20, ge=1, le=100),
    algorithm: TrendingAlgorithm = "downloads",
    time_range: Annotated[TrendingRange, Query(alias="range")] = "7d",
) -> list[ModuleView]:
    """
    Trending published modules, best first.

    Args:
        module_service: Module service.
        limit: Maximum number of modules.
        algorithm: downloads, rating, recent or combined.
        time_range: 7d, 30d or all.

    Returns:
        Module views.
    """
    return await module_service.get_trending(limit=limit, algorithm=algorithm, time_range=time_range)
