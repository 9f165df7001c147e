"""
Module catalog service.

Public browsing: listings, module detail, statistics, releases and
download tracking. Stored modules are turned into view models in batches,
with release and rating aggregates fetched in grouped queries.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any, Literal, TypeVar
from urllib.parse import urlparse

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_core.auth.api_keys import SCOPE_WRITE
from modhub_core.exceptions import NotFoundError, PermissionDeniedError
from modhub_core.schemas import (
    CategoryStat,
    CurrentUser,
    DownloadResponse,
    ModuleListResponse,
    ModuleStats,
    ModuleView,
    ReleaseInput,
    ReleaseResponse,
    SiteStats,
)
from modhub_core.schemas.module import CATEGORIES
from modhub_core.search import sort_modules
from modhub_database.models import Module, Rating, Release
from modhub_database.models.base import utcnow

from .api_key_service import require_scope

logger = get_logger(__name__)

RECENT_DAYS = 30
DEFAULT_VERSION = "1.0.0"
DEFAULT_SIZE = "0 MB"

ALLOWED_DOWNLOAD_HOSTS = (
    "github.com",
    "raw.githubusercontent.com",
    "releases.githubusercontent.com",
    "gitlab.com",
    "bitbucket.org",
    "sourceforge.net",
)

ListFilter = Literal["featured", "recommended", "recent"]
ListSort = Literal["name", "downloads", "rating", "updated"]
TrendingAlgorithm = Literal["downloads", "rating", "recent", "combined"]
TrendingRange = Literal["7d", "30d", "all"]

ViewT = TypeVar("ViewT", bound=ModuleView)

_LIST_SORT_KEYS = {"name": "name", "downloads": "downloads", "rating": "rating", "updated": "last_updated"}
_RANGE_DAYS = {"7d": 7, "30d": 30}


def check_download_url(url: str) -> None:
    """
    Validate a download URL before redirecting to it.

    Args:
        url: Release download URL.

    Raises:
        ValueError: If the URL is malformed, not http(s), or points at a
            host outside the allow-list.
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ValueError("Invalid download URL") from e

    hostname = (parsed.hostname or "").lower()
    if not hostname:
        raise ValueError("Invalid download URL")
    if not any(hostname == host or hostname.endswith(f".{host}") for host in ALLOWED_DOWNLOAD_HOSTS):
        logger.warning("Blocked redirect to untrusted host", extra={"host": hostname})
        raise ValueError("Download URL points to an untrusted source")
    if parsed.scheme not in ("http", "https"):
        raise ValueError("Invalid download URL protocol")


def can_view_module(module: Module, viewer: CurrentUser | None) -> bool:
    """Published modules are public; others only for their submitter and admins."""
    if module.is_published:
        return True
    if viewer is None:
        return False
    return viewer.is_admin or module.submitted_by == viewer.id


def module_fields(module: Module) -> dict[str, Any]:
    """Stored columns shared by every module view."""
    return {
        "id": module.id,
        "name": module.name,
        "slug": module.slug,
        "description": module.description,
        "short_description": module.short_description,
        "author": module.author,
        "category": module.category,
        "icon": module.icon,
        "images": module.images or [],
        "is_open_source": module.is_open_source,
        "license": module.license,
        "compatibility": module.compatibility or {},
        "warnings": module.warnings or [],
        "features": module.features or [],
        "source_url": module.source_url,
        "community_url": module.community_url,
        "github_repo": module.github_repo,
        "is_featured": module.is_featured,
        "is_recommended": module.is_recommended,
        "is_published": module.is_published,
        "status": module.status,
        "submitted_by": module.submitted_by,
        "created_at": module.created_at,
        "updated_at": module.updated_at,
        "last_sync_at": module.last_sync_at,
        "review_notes": module.review_notes or [],
    }


class ModuleService:
    """Public module catalog service."""

    def __init__(self, session: AsyncSession):
        """
        Initialize module service.

        Args:
            session: Database session.
        """
        self.session = session

    async def transform_modules(
        self,
        modules: Sequence[Module],
        include_releases: bool = False,
        view: type[ViewT] = ModuleView,
    ) -> list[ViewT]:
        """
        Build view models for a batch of modules.

        Latest releases, rating aggregates and download sums are each
        fetched with one grouped query for the whole batch.

        Args:
            modules: Stored modules.
            include_releases: Attach the full release list to each view.
            view: View model class (ModuleView or a subclass).

        Returns:
            Views in the same order as the input.
        """
        if not modules:
            return []

        module_ids = [module.id for module in modules]

        latest_result = await self.session.execute(
            select(Release).where(Release.module_id.in_(module_ids), Release.is_latest.is_(True))
        )
        latest_by_module: dict[str, Release] = {}
        for release in latest_result.scalars().all():
            latest_by_module.setdefault(release.module_id, release)

        rating_result = await self.session.execute(
            select(Rating.module_id, func.avg(Rating.rating), func.count(Rating.id))
            .where(Rating.module_id.in_(module_ids))
            .group_by(Rating.module_id)
        )
        ratings_by_module = {
            row[0]: (float(row[1] or 0), int(row[2] or 0)) for row in rating_result.all()
        }

        download_result = await self.session.execute(
            select(Release.module_id, func.coalesce(func.sum(Release.downloads), 0))
            .where(Release.module_id.in_(module_ids))
            .group_by(Release.module_id)
        )
        downloads_by_module = {row[0]: int(row[1] or 0) for row in download_result.all()}

        releases_by_module: dict[str, list[Release]] = {}
        if include_releases:
            all_releases = await self.session.execute(
                select(Release)
                .where(Release.module_id.in_(module_ids))
                .order_by(Release.created_at.desc(), Release.id.desc())
            )
            for release in all_releases.scalars().all():
                releases_by_module.setdefault(release.module_id, []).append(release)

        recent_threshold = utcnow() - timedelta(days=RECENT_DAYS)
        views = []
        for module in modules:
            latest = latest_by_module.get(module.id)
            rating, review_count = ratings_by_module.get(module.id, (0.0, 0))
            last_update: datetime = latest.created_at if latest else module.last_updated

            data = module_fields(module)
            data.update(
                version=latest.version if latest else DEFAULT_VERSION,
                downloads=downloads_by_module.get(module.id, 0),
                rating=round(rating, 2),
                review_count=review_count,
                last_updated=last_update.strftime("%Y-%m-%d"),
                size=(latest.size if latest else None) or DEFAULT_SIZE,
                changelog=latest.changelog if latest else None,
                download_url=latest.download_url if latest else None,
                is_recently_updated=last_update > recent_threshold,
                latest_release=ReleaseResponse.model_validate(latest) if latest else None,
                releases=(
                    [ReleaseResponse.model_validate(r) for r in releases_by_module.get(module.id, [])]
                    if include_releases
                    else None
                ),
            )
            views.append(view.model_validate(data))
        return views

    async def get_module_row(self, module_id: str) -> Module:
        result = await self.session.execute(select(Module).where(Module.id == module_id))
        module = result.scalar_one_or_none()
        if not module:
            raise NotFoundError("Module not found")
        return module

    async def _published(self, *conditions: Any) -> list[Module]:
        stmt = select(Module).where(Module.is_published.is_(True), *conditions).order_by(Module.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_published_views(self) -> list[ModuleView]:
        """All published modules as views (input of the search pipeline)."""
        return await self.transform_modules(await self._published())

    async def list_modules(
        self,
        category: str | None = None,
        search: str | None = None,
        filter_by: ListFilter | None = None,
        sort: ListSort | None = None,
        order: Literal["asc", "desc"] = "desc",
        limit: int = 20,
        offset: int = 0,
    ) -> ModuleListResponse:
        """
        List published modules.

        Args:
            category: Only modules of this category.
            search: Case-insensitive match on name, description or author.
            filter_by: featured, recommended or recent.
            sort: name, downloads, rating or updated (newest first when unset).
            order: Sort direction.
            limit: Page size.
            offset: Number of items to skip.

        Returns:
            Page of module views.
        """
        if filter_by == "recent":
            views = await self.get_recently_updated()
            if category:
                views = [view for view in views if view.category == category]
        else:
            conditions = []
            if category:
                conditions.append(Module.category == category)
            if filter_by == "featured":
                conditions.append(Module.is_featured.is_(True))
            elif filter_by == "recommended":
                conditions.append(Module.is_recommended.is_(True))
            if search and search.strip():
                pattern = f"%{search.strip()}%"
                conditions.append(
                    or_(
                        Module.name.ilike(pattern),
                        Module.description.ilike(pattern),
                        Module.short_description.ilike(pattern),
                        Module.author.ilike(pattern),
                    )
                )
            views = await self.transform_modules(await self._published(*conditions))

        if sort:
            views = sort_modules(views, _LIST_SORT_KEYS[sort], order)

        total = len(views)
        page = views[offset : offset + limit]
        return ModuleListResponse(
            items=page, total=total, limit=limit, offset=offset, has_more=offset + len(page) < total
        )

    async def get_module(
        self, id_or_slug: str, viewer: CurrentUser | None = None, include_releases: bool = False
    ) -> ModuleView:
        """
        Get a module by id or slug.

        Args:
            id_or_slug: Module id or slug.
            viewer: Current caller, used for unpublished modules.
            include_releases: Attach all releases.

        Returns:
            Module view.

        Raises:
            NotFoundError: If the module does not exist or is not visible.
        """
        stmt = select(Module).where(or_(Module.id == id_or_slug, Module.slug == id_or_slug))
        result = await self.session.execute(stmt)
        module = result.scalars().first()

        if not module or not can_view_module(module, viewer):
            raise NotFoundError("Module not found")

        views = await self.transform_modules([module], include_releases=include_releases)
        return views[0]

    async def get_featured(self) -> list[ModuleView]:
        return await self.transform_modules(await self._published(Module.is_featured.is_(True)))

    async def get_recommended(self) -> list[ModuleView]:
        return await self.transform_modules(await self._published(Module.is_recommended.is_(True)))

    async def get_recently_updated(self, days: int = RECENT_DAYS) -> list[ModuleView]:
        """
        Published modules with a release in the last `days` days.

        Returns:
            Views ordered by their newest release, newest first.
        """
        threshold = utcnow() - timedelta(days=days)
        newest = func.max(Release.created_at)
        result = await self.session.execute(
            select(Release.module_id, newest)
            .join(Module, Module.id == Release.module_id)
            .where(Release.created_at >= threshold, Module.is_published.is_(True))
            .group_by(Release.module_id)
            .order_by(newest.desc())
        )
        ordered_ids = [row[0] for row in result.all()]
        if not ordered_ids:
            return []

        modules = {module.id: module for module in await self._published(Module.id.in_(ordered_ids))}
        return await self.transform_modules([modules[mid] for mid in ordered_ids if mid in modules])

    async def get_trending(
        self,
        limit: int = 20,
        algorithm: TrendingAlgorithm = "downloads",
        time_range: TrendingRange = "7d",
    ) -> list[ModuleView]:
        """
        Trending published modules.

        Args:
            limit: Maximum number of modules.
            algorithm: downloads (downloads of releases published in the
                range), rating, recent, or combined (downloads, rating and
                review count weighted together).
            time_range: 7d, 30d or all.

        Returns:
            Trending module views, best first.
        """
        threshold = utcnow() - timedelta(days=_RANGE_DAYS[time_range]) if time_range in _RANGE_DAYS else None

        if algorithm == "downloads":
            downloads = func.coalesce(func.sum(Release.downloads), 0)
            stmt = (
                select(Release.module_id, downloads)
                .join(Module, Module.id == Release.module_id)
                .where(Module.is_published.is_(True))
                .group_by(Release.module_id)
                .order_by(downloads.desc())
                .limit(limit)
            )
            if threshold is not None:
                stmt = stmt.where(Release.created_at >= threshold)
            ranked_ids = [row[0] for row in (await self.session.execute(stmt)).all()]

            if not ranked_ids:
                return await self.transform_modules((await self._published())[:limit])

            modules = {m.id: m for m in await self._published(Module.id.in_(ranked_ids))}
            return await self.transform_modules([modules[mid] for mid in ranked_ids if mid in modules])

        conditions = [Module.last_updated >= threshold] if threshold is not None else []
        views = await self.transform_modules(await self._published(*conditions))

        if algorithm == "rating":
            views.sort(key=lambda m: (m.rating, m.review_count), reverse=True)
        elif algorithm == "recent":
            views.sort(key=lambda m: m.last_updated, reverse=True)
        else:
            views.sort(key=lambda m: m.downloads + m.rating * m.review_count * 10, reverse=True)
        return views[:limit]

    async def get_category_stats(
        self,
        include_empty: bool = False,
        sort: Literal["name", "count"] = "name",
        order: Literal["asc", "desc"] = "asc",
    ) -> list[CategoryStat]:
        """
        Count published modules per category.

        Args:
            include_empty: Also list categories without modules.
            sort: Sort by category id or by count.
            order: Sort direction.

        Returns:
            Category statistics.
        """
        result = await self.session.execute(
            select(Module.category, func.count(Module.id))
            .where(Module.is_published.is_(True))
            .group_by(Module.category)
        )
        counts = {row[0]: int(row[1]) for row in result.all()}

        stats = [
            CategoryStat(id=key, name=label, count=counts.get(key, 0))
            for key, label in CATEGORIES.items()
            if include_empty or counts.get(key, 0) > 0
        ]
        if sort == "count":
            stats.sort(key=lambda s: s.count, reverse=order == "desc")
        else:
            stats.sort(key=lambda s: s.id, reverse=order == "desc")
        return stats

    async def _count_published(self, *conditions: Any) -> int:
        stmt = select(func.count(Module.id)).where(Module.is_published.is_(True), *conditions)
        return await self.session.scalar(stmt) or 0

    async def get_site_stats(self) -> SiteStats:
        """Public marketplace counters."""
        now = utcnow()

        updated_this_week = await self.session.scalar(
            select(func.count(func.distinct(Release.module_id)))
            .join(Module, Module.id == Release.module_id)
            .where(Release.created_at >= now - timedelta(days=7), Module.is_published.is_(True))
        )
        total_downloads = await self.session.scalar(
            select(func.coalesce(func.sum(Release.downloads), 0))
            .join(Module, Module.id == Release.module_id)
            .where(Module.is_published.is_(True))
        )

        return SiteStats(
            total_modules=await self._count_published(),
            updated_this_week=updated_this_week or 0,
            featured_count=await self._count_published(Module.is_featured.is_(True)),
            recommended_count=await self._count_published(Module.is_recommended.is_(True)),
            total_downloads=int(total_downloads or 0),
            security_modules=await self._count_published(Module.category == "security"),
            performance_modules=await self._count_published(Module.category == "performance"),
            new_this_month=await self._count_published(Module.created_at >= now - timedelta(days=30)),
        )

    async def get_module_stats(self, module_id: str) -> ModuleStats:
        """
        Download and rating statistics of a published module.

        Raises:
            NotFoundError: If the module does not exist or is unpublished.
        """
        module = await self.get_module_row(module_id)
        if not module.is_published:
            raise NotFoundError("Module not found")

        release_row = (
            await self.session.execute(
                select(func.coalesce(func.sum(Release.downloads), 0), func.count(Release.id)).where(
                    Release.module_id == module_id
                )
            )
        ).one()

        distribution = {value: 0 for value in range(1, 6)}
        rating_rows = await self.session.execute(
            select(Rating.rating, func.count(Rating.id))
            .where(Rating.module_id == module_id)
            .group_by(Rating.rating)
        )
        for value, count in rating_rows.all():
            distribution[int(value)] = int(count)

        review_count = sum(distribution.values())
        average = (
            sum(value * count for value, count in distribution.items()) / review_count if review_count else 0.0
        )

        return ModuleStats(
            module_id=module_id,
            downloads=int(release_row[0] or 0),
            rating=round(average, 2),
            review_count=review_count,
            release_count=int(release_row[1] or 0),
            rating_distribution=distribution,
        )

    async def list_releases(self, module_id: str, viewer: CurrentUser | None = None) -> list[ReleaseResponse]:
        """
        List a module's releases, newest first.

        Raises:
            NotFoundError: If the module does not exist or is not visible.
        """
        module = await self.get_module_row(module_id)
        if not can_view_module(module, viewer):
            raise NotFoundError("Module not found")

        result = await self.session.execute(
            select(Release)
            .where(Release.module_id == module_id)
            .order_by(Release.created_at.desc(), Release.id.desc())
        )
        return [ReleaseResponse.model_validate(release) for release in result.scalars().all()]

    async def _latest_release_row(self, module_id: str) -> Release | None:
        result = await self.session.execute(
            select(Release)
            .where(Release.module_id == module_id, Release.is_latest.is_(True))
            .order_by(Release.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_latest_release(self, module_id: str) -> ReleaseResponse:
        """
        Get the latest release of a module.

        Raises:
            NotFoundError: If the module has no latest release.
        """
        release = await self._latest_release_row(module_id)
        if not release:
            raise NotFoundError("No releases found for this module")
        return ReleaseResponse.model_validate(release)

    async def add_release(self, module_id: str, data: ReleaseInput, commit: bool = True) -> Release:
        """
        Add a release to a module.

        When the new release is marked latest, the flag is cleared on every
        other release of the module first, so at most one stays latest.

        Args:
            module_id: Module identifier.
            data: Release data.
            commit: Commit the transaction (False when part of a larger unit).

        Returns:
            Created release.

        Raises:
            NotFoundError: If the module does not exist.
        """
        module = await self.get_module_row(module_id)

        if data.is_latest:
            await self.session.execute(
                update(Release).where(Release.module_id == module_id).values(is_latest=False)
            )

        release = Release(
            module_id=module_id,
            version=data.version,
            download_url=data.download_url,
            size=data.size or "Unknown",
            changelog=data.changelog,
            is_latest=data.is_latest,
            github_release_id=data.github_release_id,
            github_tag_name=data.github_tag_name,
            assets=[asset.model_dump() for asset in data.assets] if data.assets else None,
        )
        self.session.add(release)
        module.last_updated = utcnow()

        if commit:
            await self.session.commit()
            await self.session.refresh(release)
        else:
            await self.session.flush()

        logger.info(
            "Release added",
            extra={"module_id": module_id, "version": release.version, "is_latest": release.is_latest},
        )
        return release

    async def create_release(self, user: CurrentUser, module_id: str, data: ReleaseInput) -> ReleaseResponse:
        """
        Publish a release of a module on behalf of its submitter or an admin.

        Raises:
            PermissionDeniedError: If the caller does not own the module or
                an API key lacks the write scope.
            NotFoundError: If the module does not exist.
        """
        require_scope(user, SCOPE_WRITE)
        module = await self.get_module_row(module_id)
        if not user.is_admin and module.submitted_by != user.id:
            raise PermissionDeniedError("You can only add releases to your own modules")

        release = await self.add_release(module_id, data)
        return ReleaseResponse.model_validate(release)

    async def _increment_downloads(self, release: Release) -> int:
        await self.session.execute(
            update(Release).where(Release.id == release.id).values(downloads=Release.downloads + 1)
        )
        await self.session.commit()
        await self.session.refresh(release)
        return release.downloads

    async def track_download(
        self, module_id: str, release_id: int | None = None, viewer: CurrentUser | None = None
    ) -> DownloadResponse:
        """
        Count a download of a release (the latest one when not given).

        Raises:
            NotFoundError: If the module is not visible to the caller or the
                release does not exist for the module.
        """
        module = await self.get_module_row(module_id)
        if not can_view_module(module, viewer):
            raise NotFoundError("Module not found")

        if release_id is not None:
            result = await self.session.execute(
                select(Release).where(Release.id == release_id, Release.module_id == module.id)
            )
            release = result.scalar_one_or_none()
            if not release:
                raise NotFoundError("Release not found")
        else:
            release = await self._latest_release_row(module.id)
            if not release:
                raise NotFoundError("No releases found for this module")

        downloads = await self._increment_downloads(release)
        return DownloadResponse(release_id=release.id, download_url=release.download_url, downloads=downloads)

    async def prepare_download_redirect(self, module_id: str, viewer: CurrentUser | None = None) -> str:
        """
        Validate the latest release URL and count the download.

        Returns:
            URL to redirect to.

        Raises:
            NotFoundError: If the module is not visible to the caller or has
                no latest release.
            ValueError: If the download URL is not trusted.
        """
        module = await self.get_module_row(module_id)
        if not can_view_module(module, viewer):
            raise NotFoundError("Module not found")

        release = await self._latest_release_row(module.id)
        if not release:
            raise NotFoundError("No releases found for this module")

        check_download_url(release.download_url)
        await self._increment_downloads(release)
        return release.download_url
