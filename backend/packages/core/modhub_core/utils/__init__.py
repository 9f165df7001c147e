"""Small shared helpers."""

from .slug import generate_slug, resolve_slug_conflict, validate_slug

__all__ = ["generate_slug", "resolve_slug_conflict", "validate_slug"]
