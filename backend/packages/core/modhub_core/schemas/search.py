"""
Search schemas.

Filter object for the advanced search pipeline plus request/response
models for the search endpoints.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .module import ModuleView

SortBy = Literal["relevance", "name", "rating", "downloads", "last_updated"]
SortOrder = Literal["asc", "desc"]


class SearchFilters(BaseModel):
    """
    Advanced search filter.

    Every field is optional; an unset field means the predicate is inactive.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: str | None = Field(None, max_length=200)
    categories: list[str] = Field(default_factory=list)
    root_methods: list[str] = Field(default_factory=list)
    android_versions: list[str] = Field(default_factory=list)
    is_open_source: bool | None = None
    min_rating: float = Field(0, ge=0, le=5)
    max_size: float = Field(100, gt=0)
    has_warnings: bool | None = None
    is_featured: bool | None = None
    is_recommended: bool | None = None
    is_published: bool | None = None
    status: Literal["pending", "approved", "declined"] | None = None
    license: str | None = None
    has_source_url: bool | None = None
    has_community_url: bool | None = None
    author: str | None = None
    sort_by: SortBy = "downloads"
    sort_order: SortOrder = "desc"
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)


class AdvancedSearchResponse(BaseModel):
    """Result page of the advanced search pipeline."""

    items: list[ModuleView]
    total: int
    page: int
    page_size: int
    total_pages: int
    active_filters: int


class SearchOptions(BaseModel):
    """Echo of the options applied to a simple search."""

    sort: str
    order: str
    category: str | None = None
    min_rating: float | None = None
    is_open_source: bool | None = None


class SearchResponse(BaseModel):
    """Simple search result."""

    query: str
    results: list[ModuleView]
    total_count: int
    offset: int
    limit: int
    has_more: bool
    search_options: SearchOptions


class SuggestionRequest(BaseModel):
    """Autocomplete request."""

    query: str = Field(..., min_length=2, max_length=100)
    type: Literal["all", "modules", "authors", "categories"] = "all"
    limit: int = Field(10, ge=1, le=20)


class Suggestion(BaseModel):
    """Single autocomplete suggestion."""

    type: Literal["module", "author", "category"]
    value: str
    module_id: str | None = None


class SuggestionResponse(BaseModel):
    """Autocomplete suggestions."""

    query: str
    suggestions: list[Suggestion]
