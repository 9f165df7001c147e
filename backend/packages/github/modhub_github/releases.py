"""
Release helpers.

Main asset selection, file size formatting and version ordering used when
importing GitHub releases.
"""

import functools
import re
from dataclasses import dataclass, field
from typing import Any

# Asset name patterns in priority order
_MAIN_ASSET_PATTERNS = (
    re.compile(r"\.zip$", re.IGNORECASE),
    re.compile(r"\.apk$", re.IGNORECASE),
    re.compile(r"\.jar$", re.IGNORECASE),
    re.compile(r"module\.prop$", re.IGNORECASE),
    re.compile(r"\.tar\.gz$", re.IGNORECASE),
    re.compile(r"\.tgz$", re.IGNORECASE),
)

_PRE_RELEASE_ORDER = {"alpha": 1, "beta": 2, "rc": 3}
_SIZE_UNITS = ("B", "KB", "MB", "GB")


@dataclass
class GitHubAsset:
    """Release asset as returned by the GitHub API."""

    id: int
    name: str
    browser_download_url: str
    size: int
    content_type: str = "application/octet-stream"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "GitHubAsset":
        return cls(
            id=data["id"],
            name=data["name"],
            browser_download_url=data["browser_download_url"],
            size=int(data.get("size") or 0),
            content_type=data.get("content_type") or "application/octet-stream",
        )


@dataclass
class GitHubRelease:
    """Release as returned by the GitHub API."""

    id: int
    tag_name: str
    name: str
    body: str
    created_at: str
    published_at: str
    prerelease: bool = False
    draft: bool = False
    assets: list[GitHubAsset] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "GitHubRelease":
        return cls(
            id=data["id"],
            tag_name=data["tag_name"],
            name=data.get("name") or data["tag_name"],
            body=data.get("body") or "",
            created_at=data.get("created_at") or "",
            published_at=data.get("published_at") or data.get("created_at") or "",
            prerelease=bool(data.get("prerelease")),
            draft=bool(data.get("draft")),
            assets=[GitHubAsset.from_api(asset) for asset in data.get("assets") or []],
        )

    @property
    def version(self) -> str:
        """Tag name without a leading "v"."""
        return self.tag_name[1:] if self.tag_name.startswith("v") else self.tag_name

    @property
    def total_size(self) -> int:
        return sum(asset.size for asset in self.assets)


def find_main_asset(assets: list[GitHubAsset]) -> GitHubAsset | None:
    """
    Pick the asset users should download.

    Args:
        assets: Release assets.

    Returns:
        First asset matching the highest-priority pattern, else the first
        asset, else None.
    """
    for pattern in _MAIN_ASSET_PATTERNS:
        for asset in assets:
            if pattern.search(asset.name):
                return asset
    return assets[0] if assets else None


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count for display ("0 B", "512 B", "1.5 MB").

    Args:
        size_bytes: Size in bytes.

    Returns:
        Size with at most two decimals and a B/KB/MB/GB unit.
    """
    if size_bytes <= 0:
        return "0 B"
    value = float(size_bytes)
    index = 0
    while value >= 1024 and index < len(_SIZE_UNITS) - 1:
        value /= 1024
        index += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[index]}"


def _is_numeric(part: str) -> bool:
    return part.isdigit()


def _part_order(part: str) -> int:
    if part in _PRE_RELEASE_ORDER:
        return _PRE_RELEASE_ORDER[part]
    if _is_numeric(part):
        return int(part) + 1000
    return 999


def compare_versions(a: str, b: str) -> int:
    """
    Compare two version strings.

    Parts are split on "." and "-". Numeric parts compare numerically;
    otherwise alpha < beta < rc < unknown labels < numbers.

    Returns:
        Negative if a < b, zero if equal, positive if a > b.
    """
    parts_a = re.split(r"[.-]", a.lower().removeprefix("v"))
    parts_b = re.split(r"[.-]", b.lower().removeprefix("v"))

    for index in range(max(len(parts_a), len(parts_b))):
        part_a = parts_a[index] if index < len(parts_a) and parts_a[index] else "0"
        part_b = parts_b[index] if index < len(parts_b) and parts_b[index] else "0"

        if _is_numeric(part_a) and _is_numeric(part_b):
            if int(part_a) != int(part_b):
                return int(part_a) - int(part_b)
            continue

        order_a, order_b = _part_order(part_a), _part_order(part_b)
        if order_a != order_b:
            return order_a - order_b
        if part_a != part_b:
            return -1 if part_a < part_b else 1

    return 0


def latest_version(versions: list[str]) -> str | None:
    """Highest version in a list, or None for an empty list."""
    if not versions:
        return None
    return max(versions, key=functools.cmp_to_key(compare_versions))
