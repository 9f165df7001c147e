"""
Authentication utilities.

Provides password hashing, JWT token management and API key primitives.
"""

from .api_keys import (
    SCOPE_ADMIN,
    SCOPE_READ,
    SCOPE_WRITE,
    VALID_SCOPES,
    compute_expiration,
    generate_api_key,
    generate_key_id,
    has_required_scope,
    hash_api_key,
    is_api_key,
)
from .jwt import JWTConfig, TokenData, create_access_token, create_refresh_token, verify_token
from .password import hash_password, verify_password

__all__ = [
    "JWTConfig",
    "TokenData",
    "create_access_token",
    "create_refresh_token",
    "verify_token",
    "hash_password",
    "verify_password",
    # API keys
    "SCOPE_READ",
    "SCOPE_WRITE",
    "SCOPE_ADMIN",
    "VALID_SCOPES",
    "compute_expiration",
    "generate_api_key",
    "generate_key_id",
    "has_required_scope",
    "hash_api_key",
    "is_api_key",
]
