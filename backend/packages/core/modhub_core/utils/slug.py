"""
Module slug helpers.

Slugs have the form "{author}-{name}", lowercased, restricted to
[a-z0-9-] with runs of hyphens collapsed.
"""

import re
from collections.abc import Collection

_INVALID_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")
_SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


def _clean(text: str) -> str:
    text = _INVALID_CHARS.sub("", text.lower())
    text = _WHITESPACE.sub("-", text.strip())
    text = _HYPHENS.sub("-", text)
    return text.strip("-")


def generate_slug(name: str, author: str) -> str:
    """
    Build the base slug of a module.

    Args:
        name: Module name.
        author: Module author.

    Returns:
        "{author}-{name}" slug.
    """
    return f"{_clean(author)}-{_clean(name)}".strip("-")


def validate_slug(slug: str) -> bool:
    """Whether a slug is well formed and 3 to 100 characters long."""
    return 3 <= len(slug) <= 100 and bool(_SLUG_PATTERN.match(slug))


def resolve_slug_conflict(base_slug: str, existing: Collection[str]) -> str:
    """
    Return base_slug, or base_slug with the first free numeric suffix.

    Args:
        base_slug: Desired slug.
        existing: Slugs already taken.

    Returns:
        Unique slug ("name", "name-1", "name-2", ...).
    """
    if base_slug not in existing:
        return base_slug
    counter = 1
    while f"{base_slug}-{counter}" in existing:
        counter += 1
    return f"{base_slug}-{counter}"
