"""
API key primitives.

Key generation, hashing and scope rules. Keys look like ``mk_`` followed by
43 base64url characters; only their SHA-256 digest is persisted.
"""

import base64
import hashlib
import secrets
from datetime import UTC, datetime, timedelta

API_KEY_PREFIX = "mk_"
KEY_PREFIX_LENGTH = 8

SCOPE_READ = "read"
SCOPE_WRITE = "write"
SCOPE_ADMIN = "admin"
VALID_SCOPES = (SCOPE_READ, SCOPE_WRITE, SCOPE_ADMIN)

# Scopes that satisfy a required scope. Write implies read.
_SATISFIED_BY: dict[str, frozenset[str]] = {
    SCOPE_READ: frozenset({SCOPE_READ, SCOPE_WRITE}),
    SCOPE_WRITE: frozenset({SCOPE_WRITE}),
    SCOPE_ADMIN: frozenset({SCOPE_ADMIN}),
}

EXPIRATION_PERIODS: dict[str, timedelta | None] = {
    "30days": timedelta(days=30),
    "90days": timedelta(days=90),
    "1year": timedelta(days=365),
    "never": None,
}


def generate_api_key() -> tuple[str, str, str]:
    """
    Generate a new API key.

    Returns:
        Tuple of (plain key, sha256 hex digest, display prefix).
    """
    raw = base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode("ascii")
    key = f"{API_KEY_PREFIX}{raw}"
    return key, hash_api_key(key), key[:KEY_PREFIX_LENGTH]


def generate_key_id() -> str:
    """Generate an API key record identifier."""
    return f"apikey_{secrets.token_hex(16)}"


def hash_api_key(key: str) -> str:
    """SHA-256 hex digest of a plain API key."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def is_api_key(value: str | None) -> bool:
    """Whether a credential string has the API key format."""
    return bool(value) and value.startswith(API_KEY_PREFIX)


def has_required_scope(scopes: list[str] | None, required: str) -> bool:
    """
    Check whether granted scopes satisfy a required scope.

    Args:
        scopes: Scopes granted to the key.
        required: Scope the operation needs.

    Returns:
        True if any granted scope satisfies the requirement.
    """
    if not scopes:
        return False
    allowed = _SATISFIED_BY.get(required, frozenset({required}))
    return any(scope in allowed for scope in scopes)


def compute_expiration(expires_in: str, now: datetime | None = None) -> datetime | None:
    """
    Translate an expiration choice into an absolute timestamp.

    Args:
        expires_in: One of "30days", "90days", "1year", "never".
        now: Reference time (defaults to current UTC time).

    Returns:
        Expiration timestamp, or None for keys that never expire.

    Raises:
        ValueError: If the choice is unknown.
    """
    if expires_in not in EXPIRATION_PERIODS:
        raise ValueError(f"Invalid expiration: {expires_in}")
    period = EXPIRATION_PERIODS[expires_in]
    if period is None:
        return None
    return (now or datetime.now(UTC)) + period
