"""
Modules router.

Public module browsing: listings, detail, releases, statistics and
download tracking.
"""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from modhub_core.schemas import (
    CurrentUser,
    DownloadResponse,
    ModuleListResponse,
    ModuleStats,
    ModuleView,
    ReleaseInput,
    ReleaseResponse,
)
from modhub_core.services import DOWNLOAD_TRACKING, PUBLIC_READ, ModuleService
from modhub_core.services.module_service import ListFilter, ListSort

from ..dependencies import get_current_user, get_module_service, get_reader_optional, rate_limit
from ..errors import to_http_exception

router = APIRouter()

# Route dependencies for anonymous-friendly reads
public_read = [Depends(rate_limit(PUBLIC_READ))]
public_listing = [*public_read, Depends(get_reader_optional)]


@router.get("", dependencies=public_listing)
async def list_modules(
    module_service: Annotated[ModuleService, Depends(get_module_service)],
    category: str | None = None,
    search: str | None = Query(None, max_length=200),
    filter_by: Annotated[ListFilter | None, Query(alias="filter")] = None,
    sort: ListSort | None = None,
    order: Literal["asc", "desc"] = "desc",
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ModuleListResponse:
    """
    List published modules.

    Args:
        module_service: Module service.
        category: Filter by category.
        search: Text match on name, description or author.
        filter_by: featured, recommended or recent.
        sort: name, downloads, rating or updated.
        order: Sort direction.
        limit: Page size.
        offset: Items to skip.

    Returns:
        Page of modules.
    """
    return await module_service.list_modules(
        category=category,
        search=search,
        filter_by=filter_by,
        sort=sort,
        order=order,
        limit=limit,
        offset=offset,
    )


@router.get("/featured", dependencies=public_listing)
async def featured_modules(
    module_service: Annotated[ModuleService, Depends(get_module_service)],
) -> list[ModuleView]:
    """Featured published modules."""
    return await module_service.get_featured()


@router.get("/recommended", dependencies=public_listing)
async def recommended_modules(
    module_service: Annotated[ModuleService, Depends(get_module_service)],
) -> list[ModuleView]:
    """Recommended published modules."""
    return await module_service.get_recommended()


@router.get("/recent", dependencies=public_listing)
async def recently_updated_modules(
    module_service: Annotated[ModuleService, Depends(get_module_service)],
) -> list[ModuleView]:
    """Published modules with a release in the last 30 days, newest first."""
    return await module_service.get_recently_updated()


@router.get("/{module_id}", dependencies=public_read)
async def get_module(
    module_id: str,
    viewer: Annotated[CurrentUser | None, Depends(get_reader_optional)],
    module_service: Annotated[ModuleService, Depends(get_module_service)],
    include_releases: Annotated[bool, Query(alias="includeReleases")] = False,
) -> ModuleView:
    """
    Get a module by id or slug.

    Unpublished modules are only visible to their submitter and admins.

    Raises:
        HTTPException: If the module is not found.
    """
    try:
        return await module_service.get_module(module_id, viewer=viewer, include_releases=include_releases)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/{module_id}/stats", dependencies=public_listing)
async def get_module_stats(
    module_id: str,
    module_service: Annotated[ModuleService, Depends(get_module_service)],
) -> ModuleStats:
    """Download and rating statistics of a module."""
    try:
        return await module_service.get_module_stats(module_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/{module_id}/releases", dependencies=public_read)
async def list_releases(
    module_id: str,
    viewer: Annotated[CurrentUser | None, Depends(get_reader_optional)],
    module_service: Annotated[ModuleService, Depends(get_module_service)],
) -> list[ReleaseResponse]:
    """List a module's releases, newest first."""
    try:
        return await module_service.list_releases(module_id, viewer)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/{module_id}/releases", status_code=status.HTTP_201_CREATED)
async def create_release(
    module_id: str,
    data: ReleaseInput,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    module_service: Annotated[ModuleService, Depends(get_module_service)],
) -> ReleaseResponse:
    """
    Publish a new release of a module.

    Args:
        module_id: Module identifier.
        data: Release data.
        current_user: Module owner or admin.
        module_service: Module service.

    Returns:
        Created release.

    Raises:
        HTTPException: If the module is missing or not owned by the caller.
    """
    try:
        return await module_service.create_release(current_user, module_id, data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/{module_id}/releases/latest", dependencies=public_listing)
async def get_latest_release(
    module_id: str,
    module_service: Annotated[ModuleService, Depends(get_module_service)],
) -> ReleaseResponse:
    """Latest release of a module."""
    try:
        return await module_service.get_latest_release(module_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/{module_id}/download", dependencies=[Depends(rate_limit(DOWNLOAD_TRACKING))])
async def track_download(
    module_id: str,
    viewer: Annotated[CurrentUser | None, Depends(get_reader_optional)],
    module_service: Annotated[ModuleService, Depends(get_module_service)],
    release_id: Annotated[int | None, Query(alias="releaseId")] = None,
) -> DownloadResponse:
    """
    Count a download.

    Unpublished modules count only for their submitter and admins.

    Args:
        module_id: Module identifier.
        viewer: Current caller, if any.
        module_service: Module service.
        release_id: Release to count; the latest release when omitted.

    Returns:
        Release id, download URL and the new download count.
    """
    try:
        return await module_service.track_download(module_id, release_id, viewer=viewer)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/{module_id}/download", dependencies=[Depends(rate_limit(DOWNLOAD_TRACKING))])
async def download_latest(
    module_id: str,
    viewer: Annotated[CurrentUser | None, Depends(get_reader_optional)],
    module_service: Annotated[ModuleService, Depends(get_module_service)],
) -> RedirectResponse:
    """
    Redirect to the latest release download and count it.

    Raises:
        HTTPException: If there is no release or its host is not trusted.
    """
    try:
        url = await module_service.prepare_download_redirect(module_id, viewer=viewer)
    except ValueError as e:
        raise to_http_exception(e) from e
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)
