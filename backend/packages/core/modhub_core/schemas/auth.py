"""
Authentication schemas.

Request and response models for registration, login and token refresh.
"""

from pydantic import BaseModel, EmailStr, Field

from .user import UserResponse


class RegisterRequest(BaseModel):
    """User registration request."""

    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=128)


class LoginRequest(BaseModel):
    """User login request."""

    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    """Token refresh request."""

    refresh_token: str


class TokenResponse(BaseModel):
    """Issued token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(BaseModel):
    """Authenticated user with tokens."""

    user: UserResponse
    tokens: TokenResponse
