"""
API key schemas.

Pydantic models for API key request/response handling.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ExpiresIn = Literal["30days", "90days", "1year", "never"]
Scope = Literal["read", "write", "admin"]


class ApiKeyCreate(BaseModel):
    """Schema for creating a new API key."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    expires_in: ExpiresIn = Field("never", alias="expiresIn")
    scopes: list[Scope] = Field(default_factory=lambda: ["read"], min_length=1)

    @field_validator("scopes")
    @classmethod
    def dedupe_scopes(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class AdminApiKeyCreate(ApiKeyCreate):
    """Admin creates a key on behalf of a user."""

    user_id: str = Field(..., alias="userId")


class ApiKeyResponse(BaseModel):
    """Response schema for a single API key (without the actual key)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    key_prefix: str
    scopes: list[str]
    last_used_at: datetime | None
    expires_at: datetime | None
    revoked_at: datetime | None = None
    created_at: datetime


class ApiKeyCreateResponse(ApiKeyResponse):
    """Response schema when creating a key (includes the plain key)."""

    key: str  # Only returned once during creation


class ApiKeyListResponse(BaseModel):
    """Response schema for API key list."""

    keys: list[ApiKeyResponse]


class AdminApiKeyItem(ApiKeyResponse):
    """API key row in the admin overview."""

    user_id: str
    user_name: str | None = None
    user_email: str | None = None
    last_used_ip: str | None = None
    revoked_by: str | None = None
    status: Literal["active", "expired", "revoked"]


class AdminApiKeyListResponse(BaseModel):
    """Paginated admin API key list."""

    items: list[AdminApiKeyItem]
    total: int
    page: int
    per_page: int
    total_pages: int
