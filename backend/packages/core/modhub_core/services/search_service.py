"""
Search service.

Feeds published modules through the search pipeline and builds
autocomplete suggestions.
"""

from typing import Literal

from sqlalchemy import distinct, select
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core.schemas import (
    AdvancedSearchResponse,
    SearchFilters,
    SearchOptions,
    SearchResponse,
    Suggestion,
    SuggestionRequest,
    SuggestionResponse,
)
from modhub_core.schemas.module import CATEGORIES
from modhub_core.search import filter_modules, run_search, sort_modules
from modhub_database.models import Module

from .module_service import ModuleService

SimpleSort = Literal["relevance", "name", "downloads", "rating", "updated"]


class SearchService:
    """Module search service."""

    def __init__(self, session: AsyncSession):
        """
        Initialize search service.

        Args:
            session: Database session.
        """
        self.session = session
        self.modules = ModuleService(session)

    async def advanced_search(self, filters: SearchFilters) -> AdvancedSearchResponse:
        """
        Run the full filter, sort and paginate pipeline over published modules.

        Args:
            filters: Search filter object.

        Returns:
            One page of results with totals.
        """
        candidates = await self.modules.get_published_views()
        items, total, total_pages, active = run_search(candidates, filters)
        return AdvancedSearchResponse(
            items=items,
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            total_pages=total_pages,
            active_filters=active,
        )

    async def search(
        self,
        query: str,
        category: str | None = None,
        sort: SimpleSort = "relevance",
        order: Literal["asc", "desc"] = "desc",
        min_rating: float | None = None,
        is_open_source: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchResponse:
        """
        Text search over published modules.

        Args:
            query: Search text (matched against name, description, author, features).
            category: Optional category filter.
            sort: relevance, name, downloads, rating or updated.
            order: Sort direction.
            min_rating: Minimum average rating.
            is_open_source: Open source filter.
            limit: Page size.
            offset: Number of results to skip.

        Returns:
            Search results and the options that were applied.
        """
        query = query.strip()
        filters = SearchFilters(
            query=query,
            categories=[category] if category else [],
            min_rating=min_rating or 0,
            is_open_source=is_open_source,
        )
        matched = filter_modules(await self.modules.get_published_views(), filters)
        sort_key = "last_updated" if sort == "updated" else sort
        ordered = sort_modules(matched, sort_key, order)
        page = ordered[offset : offset + limit]

        return SearchResponse(
            query=query,
            results=page,
            total_count=len(ordered),
            offset=offset,
            limit=limit,
            has_more=offset + len(page) < len(ordered),
            search_options=SearchOptions(
                sort=sort,
                order=order,
                category=category,
                min_rating=min_rating,
                is_open_source=is_open_source,
            ),
        )

    async def suggest(self, request: SuggestionRequest) -> SuggestionResponse:
        """
        Autocomplete module names, authors and categories.

        Args:
            request: Query, suggestion type and limit.

        Returns:
            Suggestions, modules first, then authors, then categories.
        """
        query = request.query.strip()
        pattern = f"%{query}%"
        suggestions: list[Suggestion] = []

        if request.type in ("all", "modules"):
            result = await self.session.execute(
                select(Module.id, Module.name)
                .where(Module.is_published.is_(True), Module.name.ilike(pattern))
                .order_by(Module.name)
                .limit(request.limit)
            )
            suggestions.extend(
                Suggestion(type="module", value=name, module_id=module_id) for module_id, name in result.all()
            )

        if request.type in ("all", "authors"):
            result = await self.session.execute(
                select(distinct(Module.author))
                .where(Module.is_published.is_(True), Module.author.ilike(pattern))
                .order_by(Module.author)
                .limit(request.limit)
            )
            suggestions.extend(Suggestion(type="author", value=author) for author in result.scalars().all())

        if request.type in ("all", "categories"):
            needle = query.lower()
            suggestions.extend(
                Suggestion(type="category", value=key)
                for key, label in CATEGORIES.items()
                if needle in key or needle in label.lower()
            )

        return SuggestionResponse(query=query, suggestions=suggestions[: request.limit])
