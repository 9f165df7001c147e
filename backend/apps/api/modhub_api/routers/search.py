"""
Search router.

Text search, the advanced filter pipeline, and autocomplete suggestions.
"""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, status

from modhub_core.schemas import (
    AdvancedSearchResponse,
    SearchFilters,
    SearchResponse,
    SuggestionRequest,
    SuggestionResponse,
)
from modhub_core.services import PUBLIC_READ, SearchService
from modhub_core.services.search_service import SimpleSort

from ..dependencies import get_reader_optional, get_search_service, rate_limit
from ..errors import ApiError

router = APIRouter(dependencies=[Depends(rate_limit(PUBLIC_READ)), Depends(get_reader_optional)])

MAX_QUERY_LENGTH = 200


@router.get("")
async def search_modules(
    search_service: Annotated[SearchService, Depends(get_search_service)],
    q: str | None = Query(None, max_length=MAX_QUERY_LENGTH),
    query: str | None = Query(None, max_length=MAX_QUERY_LENGTH),
    category: str | None = None,
    sort: SimpleSort = "relevance",
    order: Literal["asc", "desc"] = "desc",
    min_rating: Annotated[float | None, Query(alias="minRating", ge=1, le=5)] = None,
    is_open_source: Annotated[bool | None, Query(alias="isOpenSource")] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> SearchResponse:
    """
    Search published modules by text.

    The query may be passed as ``q`` or ``query``.

    Args:
        search_service: Search service.
        q: Search text.
        query: Search text (alternate parameter name).
        category: Category filter.
        sort: relevance, name, downloads, rating or updated.
        order: Sort direction.
        min_rating: Minimum average rating (1-5).
        is_open_source: Open source filter.
        limit: Page size.
        offset: Results to skip.

    Returns:
        Matching modules.

    Raises:
        HTTPException: If the query is missing or blank.
    """
    text = (q or query or "").strip()
    if not text:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Search query is required")

    return await search_service.search(
        text,
        category=category,
        sort=sort,
        order=order,
        min_rating=min_rating,
        is_open_source=is_open_source,
        limit=limit,
        offset=offset,
    )


@router.post("/advanced")
async def advanced_search(
    filters: SearchFilters,
    search_service: Annotated[SearchService, Depends(get_search_service)],
) -> AdvancedSearchResponse:
    """
    Run the full filter pipeline over published modules.

    Args:
        filters: Filter, sort and pagination options.
        search_service: Search service.

    Returns:
        One page of results with totals and the active filter count.
    """
    return await search_service.advanced_search(filters)


@router.post("")
async def search_suggestions(
    data: SuggestionRequest,
    search_service: Annotated[SearchService, Depends(get_search_service)],
) -> SuggestionResponse:
    """Autocomplete module names, authors and categories."""
    return await search_service.suggest(data)
