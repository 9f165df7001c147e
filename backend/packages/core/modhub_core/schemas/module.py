"""
Module schemas.

Request and response models for module submission, editing, review and
public browsing. Request models accept both snake_case and camelCase keys.
"""

import re
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

# Length limits
MAX_NAME = 80
MIN_NAME = 3
MAX_SHORT = 140
MIN_SHORT = 10
MAX_DESCRIPTION = 8000
MIN_DESCRIPTION = 30
MAX_AUTHOR = 60
MIN_AUTHOR = 2
MAX_FEATURE = 150
MIN_FEATURE = 2
MAX_FEATURES = 25
MAX_IMAGES = 10
MAX_LICENSE = 40
MAX_CUSTOM_LICENSE = 100
MAX_URL = 300
MAX_IMAGE_URL = 500
MAX_CHANGELOG = 5000
MAX_VERSION = 50
MAX_ANDROID_VERSIONS = 20
MAX_ROOT_METHODS = 5
MAX_REVIEW_NOTE = 1000

CATEGORIES: dict[str, str] = {
    "security": "Security & Privacy",
    "performance": "Performance",
    "ui": "UI & Theming",
    "system": "System Tweaks",
    "media": "Media & Audio",
    "development": "Development",
    "gaming": "Gaming",
    "miscellaneous": "Miscellaneous",
}

LICENSES = (
    "MIT",
    "Apache-2.0",
    "GPL-3.0",
    "GPL-2.0",
    "LGPL-3.0",
    "LGPL-2.1",
    "BSD-3-Clause",
    "BSD-2-Clause",
    "MPL-2.0",
    "ISC",
    "CC0-1.0",
    "CC-BY-4.0",
    "CC-BY-SA-4.0",
    "AGPL-3.0",
    "Unlicense",
    "WTFPL",
    "Proprietary",
    "Custom",
    "Other",
)

ROOT_METHODS = ("Magisk", "KernelSU", "KernelSU-Next")

ANDROID_VERSIONS = (
    "4.1+",
    "5.0+",
    "6.0+",
    "7.0+",
    "8.0+",
    "9.0+",
    "10+",
    "11+",
    "12+",
    "13+",
    "14+",
    "15+",
    "16+",
)

WARNING_TYPES = ("malware", "closed-source", "stolen-code")

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-._()\[\]]+$")
AUTHOR_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-._@]+$")
URL_PATTERN = re.compile(r"^https?://.+", re.IGNORECASE)
ASSET_URL_PATTERN = re.compile(r"^(/|https?://).+", re.IGNORECASE)
GITHUB_URL_PATTERN = re.compile(r"^https?://(www\.)?github\.com/[\w.-]+/[\w.-]+", re.IGNORECASE)
OWNER_REPO_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$")


class RequestModel(BaseModel):
    """Base for request bodies: strips strings, accepts camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


def _check_length(value: str, label: str, minimum: int | None, maximum: int) -> str:
    if minimum is not None and len(value) < minimum:
        raise ValueError(f"{label} must be at least {minimum} characters")
    if len(value) > maximum:
        raise ValueError(f"{label} must be less than {maximum} characters")
    return value


def _optional_url(value: str | None, label: str, pattern: re.Pattern[str], maximum: int) -> str | None:
    if value is None or value == "":
        return None
    _check_length(value, label, None, maximum)
    if not pattern.match(value):
        raise ValueError(f"{label} must be a valid URL")
    return value


def normalize_version(value: str) -> str:
    """Strip whitespace and a leading "v" from a version string."""
    value = value.strip()
    if value[:1] in ("v", "V"):
        value = value[1:]
    return value


class ModuleCompatibility(RequestModel):
    """Android versions and root methods a module supports."""

    android_versions: list[str]
    root_methods: list[str]

    @field_validator("android_versions")
    @classmethod
    def validate_android_versions(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("Select at least one Android version")
        if len(value) > MAX_ANDROID_VERSIONS:
            raise ValueError(f"Maximum {MAX_ANDROID_VERSIONS} Android versions allowed")
        invalid = [v for v in value if v not in ANDROID_VERSIONS]
        if invalid:
            raise ValueError(f"Invalid Android version: {', '.join(invalid)}")
        return list(dict.fromkeys(value))

    @field_validator("root_methods")
    @classmethod
    def validate_root_methods(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("Select at least one root method")
        if len(value) > MAX_ROOT_METHODS:
            raise ValueError(f"Maximum {MAX_ROOT_METHODS} root methods allowed")
        invalid = [v for v in value if v not in ROOT_METHODS]
        if invalid:
            raise ValueError(f"Invalid root method: {', '.join(invalid)}")
        return list(dict.fromkeys(value))


class _ModuleFieldRules(RequestModel):
    """
    Field rules shared by full submissions and partial edits.

    Every validator passes None through so partial models can reuse them.
    """

    @field_validator("name", check_fields=False)
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return value
        _check_length(value, "Module name", MIN_NAME, MAX_NAME)
        if not NAME_PATTERN.match(value):
            raise ValueError(
                "Module name can only contain letters, numbers, spaces, hyphens, "
                "dots, underscores, parentheses and brackets"
            )
        return value

    @field_validator("short_description", check_fields=False)
    @classmethod
    def validate_short_description(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return _check_length(value, "Short description", MIN_SHORT, MAX_SHORT)

    @field_validator("description", check_fields=False)
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return _check_length(value, "Description", MIN_DESCRIPTION, MAX_DESCRIPTION)

    @field_validator("author", check_fields=False)
    @classmethod
    def validate_author(cls, value: str | None) -> str | None:
        if value is None:
            return value
        _check_length(value, "Author name", MIN_AUTHOR, MAX_AUTHOR)
        if not AUTHOR_PATTERN.match(value):
            raise ValueError(
                "Author name can only contain letters, numbers, spaces, hyphens, "
                "dots, underscores and @"
            )
        return value

    @field_validator("category", check_fields=False)
    @classmethod
    def validate_category(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if value not in CATEGORIES:
            raise ValueError("Please select a valid category")
        return value

    @field_validator("license", check_fields=False)
    @classmethod
    def validate_license(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if len(value) > MAX_LICENSE or value not in LICENSES:
            raise ValueError("Please select a valid license")
        return value

    @field_validator("features", check_fields=False)
    @classmethod
    def validate_features(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        features = [feature for feature in value if feature]
        if not features:
            raise ValueError("At least one feature is required")
        if len(features) > MAX_FEATURES:
            raise ValueError(f"Maximum {MAX_FEATURES} features allowed")
        for feature in features:
            _check_length(feature, "Each feature", MIN_FEATURE, MAX_FEATURE)
        return features

    @field_validator("community_url", check_fields=False)
    @classmethod
    def validate_community_url(cls, value: str | None) -> str | None:
        return _optional_url(value, "Community URL", URL_PATTERN, MAX_URL)

    @field_validator("github_repo", check_fields=False)
    @classmethod
    def validate_github_repo(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        _check_length(value, "GitHub repository", None, MAX_URL)
        if not (GITHUB_URL_PATTERN.match(value) or OWNER_REPO_PATTERN.match(value)):
            raise ValueError("GitHub repository must be a GitHub URL or in owner/repo format")
        return value

    @field_validator("icon", check_fields=False)
    @classmethod
    def validate_icon(cls, value: str | None) -> str | None:
        return _optional_url(value, "Icon URL", ASSET_URL_PATTERN, MAX_URL)

    @field_validator("images", check_fields=False)
    @classmethod
    def validate_images(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        images = [image for image in value if image]
        if len(images) > MAX_IMAGES:
            raise ValueError(f"Maximum {MAX_IMAGES} images allowed")
        for image in images:
            _optional_url(image, "Image URL", ASSET_URL_PATTERN, MAX_IMAGE_URL)
        return images


class ModuleSubmission(_ModuleFieldRules):
    """Complete module definition submitted by a user."""

    name: str
    short_description: str
    description: str
    author: str
    category: str
    license: str
    custom_license: str | None = Field(None, validate_default=True)
    is_open_source: bool = False
    source_url: str | None = Field(None, validate_default=True)
    community_url: str | None = None
    github_repo: str | None = None
    features: list[str]
    compatibility: ModuleCompatibility
    icon: str | None = None
    images: list[str] = Field(default_factory=list)

    @field_validator("custom_license")
    @classmethod
    def validate_custom_license(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value == "":
            value = None
        if value is not None:
            _check_length(value, "Custom license", None, MAX_CUSTOM_LICENSE)
        if info.data.get("license") == "Custom" and not value:
            raise ValueError("Custom license name is required when license is Custom")
        return value

    @field_validator("source_url")
    @classmethod
    def validate_source_url(cls, value: str | None, info: ValidationInfo) -> str | None:
        value = _optional_url(value, "Source URL", URL_PATTERN, MAX_URL)
        if info.data.get("is_open_source") and not value:
            raise ValueError("Source URL is required for open source modules")
        return value

    def effective_license(self) -> str:
        """License to persist: the custom name when license is Custom."""
        if self.license == "Custom" and self.custom_license:
            return self.custom_license
        return self.license


class ReleaseAsset(RequestModel):
    """Single downloadable asset of a release."""

    name: str
    download_url: str
    size: int = 0
    content_type: str | None = None


class ReleaseInput(RequestModel):
    """Release attached to a submission or added by an admin."""

    version: str
    download_url: str
    size: str | None = None
    changelog: str | None = None
    is_latest: bool = True
    github_release_id: int | None = None
    github_tag_name: str | None = None
    assets: list[ReleaseAsset] | None = None

    @field_validator("version")
    @classmethod
    def validate_version(cls, value: str) -> str:
        value = normalize_version(value)
        if not value:
            raise ValueError("Version is required")
        return _check_length(value, "Version", None, MAX_VERSION)

    @field_validator("download_url")
    @classmethod
    def validate_download_url(cls, value: str) -> str:
        result = _optional_url(value, "Download URL", URL_PATTERN, MAX_URL)
        if result is None:
            raise ValueError("Download URL is required")
        return result

    @field_validator("changelog")
    @classmethod
    def validate_changelog(cls, value: str | None) -> str | None:
        if not value:
            return None
        return _check_length(value, "Changelog", None, MAX_CHANGELOG)


class ModuleSubmissionRequest(RequestModel):
    """Submission body: module, optional first release, captcha token."""

    module: ModuleSubmission
    release: ReleaseInput | None = None
    turnstile_token: str | None = None


class ModuleEditRequest(_ModuleFieldRules):
    """Partial admin edit. Unset fields are left unchanged."""

    name: str | None = None
    short_description: str | None = None
    description: str | None = None
    author: str | None = None
    category: str | None = None
    license: str | None = None
    custom_license: str | None = None
    is_open_source: bool | None = None
    source_url: str | None = None
    community_url: str | None = None
    github_repo: str | None = None
    features: list[str] | None = None
    compatibility: ModuleCompatibility | None = None
    icon: str | None = None
    images: list[str] | None = None
    is_featured: bool | None = None
    is_recommended: bool | None = None

    # Columns that cannot be cleared; omit them to leave them unchanged
    @field_validator(
        "name",
        "short_description",
        "description",
        "author",
        "category",
        "license",
        "is_open_source",
        "features",
        "compatibility",
        "is_featured",
        "is_recommended",
    )
    @classmethod
    def reject_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            raise ValueError(f"{info.field_name.replace('_', ' ').capitalize()} cannot be null")
        return value

    @field_validator("source_url")
    @classmethod
    def validate_source_url(cls, value: str | None) -> str | None:
        return _optional_url(value, "Source URL", URL_PATTERN, MAX_URL)

    @field_validator("custom_license")
    @classmethod
    def validate_custom_license(cls, value: str | None) -> str | None:
        if not value:
            return None
        return _check_length(value, "Custom license", None, MAX_CUSTOM_LICENSE)


class SubmissionUpdateRequest(ModuleEditRequest):
    """
    Owner update of a submission.

    Setting status to "pending" resubmits the module for review and
    requires a captcha token.
    """

    status: Literal["pending"] | None = None
    turnstile_token: str | None = None


class ModuleStatusUpdate(RequestModel):
    """Admin approve/decline decision."""

    is_published: bool
    notes: str | None = Field(None, max_length=MAX_REVIEW_NOTE)


class ModuleWarning(RequestModel):
    """Moderation warning shown on a module."""

    type: Literal["malware", "closed-source", "stolen-code"]
    message: str = Field(..., min_length=1, max_length=500)


class WarningsUpdate(RequestModel):
    """Replace a module's warnings."""

    warnings: list[ModuleWarning]


class ModuleFlagUpdate(RequestModel):
    """Toggle a boolean module flag (featured, recommended)."""

    enabled: bool


class ReleaseResponse(BaseModel):
    """Release response model."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    module_id: str
    version: str
    download_url: str
    size: str
    changelog: str | None = None
    downloads: int
    is_latest: bool
    github_release_id: int | None = None
    github_tag_name: str | None = None
    assets: list[dict[str, Any]] | None = None
    created_at: datetime
    updated_at: datetime


class ModuleView(BaseModel):
    """
    Public module view.

    Combines the stored module with statistics derived from its releases
    and ratings.
    """

    id: str
    name: str
    slug: str | None
    description: str
    short_description: str
    author: str
    category: str
    icon: str | None
    images: list[str]
    is_open_source: bool
    license: str
    compatibility: dict[str, list[str]]
    warnings: list[dict[str, Any]]
    features: list[str]
    source_url: str | None
    community_url: str | None
    github_repo: str | None
    is_featured: bool
    is_recommended: bool
    is_published: bool
    status: str
    submitted_by: str | None
    created_at: datetime
    updated_at: datetime
    last_sync_at: datetime | None = None

    # Derived
    version: str
    downloads: int
    rating: float
    review_count: int
    last_updated: str
    size: str
    changelog: str | None = None
    download_url: str | None = None
    is_recently_updated: bool
    latest_release: ReleaseResponse | None = None
    releases: list[ReleaseResponse] | None = None


class SubmissionView(ModuleView):
    """Module view for its submitter and for admins (includes review history)."""

    review_notes: list[dict[str, Any]]


class ModuleListResponse(BaseModel):
    """Paginated module list."""

    items: list[ModuleView]
    total: int
    limit: int
    offset: int
    has_more: bool


class SubmissionListResponse(BaseModel):
    """User's own submissions."""

    items: list[SubmissionView]
    total: int


class AdminModuleListResponse(BaseModel):
    """Admin module list with page-based pagination."""

    items: list[SubmissionView]
    total: int
    page: int
    per_page: int
    total_pages: int


class SubmissionCreatedResponse(BaseModel):
    """Response to a successful submission."""

    id: str
    slug: str | None = None
    message: str
    pending: bool = True


class CategoryStat(BaseModel):
    """Module count for one category."""

    id: str
    name: str
    count: int


class SiteStats(BaseModel):
    """Public marketplace statistics."""

    total_modules: int
    updated_this_week: int
    featured_count: int
    recommended_count: int
    total_downloads: int
    security_modules: int
    performance_modules: int
    new_this_month: int


class ModuleStats(BaseModel):
    """Statistics for a single module."""

    module_id: str
    downloads: int
    rating: float
    review_count: int
    release_count: int
    rating_distribution: dict[int, int]


class DownloadResponse(BaseModel):
    """Result of tracking a download."""

    success: bool = True
    release_id: int
    download_url: str
    downloads: int
