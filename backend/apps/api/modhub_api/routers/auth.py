"""
Authentication router.

Provides endpoints for user registration, login, token refresh, and the
current caller's profile.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from modhub_core.schemas import (
    AuthResponse,
    CurrentUser,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
)
from modhub_core.services import AuthService

from ..dependencies import get_auth_service, get_current_user
from ..errors import to_http_exception

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthResponse:
    """
    Register a new user account.

    Args:
        data: User registration data.
        auth_service: Authentication service.

    Returns:
        User profile and authentication tokens.

    Raises:
        HTTPException: If email is already registered.
    """
    try:
        return await auth_service.register(data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/login")
async def login(
    data: LoginRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthResponse:
    """
    Authenticate user and issue tokens.

    Args:
        data: User login credentials.
        auth_service: Authentication service.

    Returns:
        User profile and authentication tokens.

    Raises:
        HTTPException: If credentials are invalid.
    """
    try:
        return await auth_service.login(data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/refresh")
async def refresh_token(
    data: RefreshTokenRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> TokenResponse:
    """
    Refresh access token using refresh token.

    Raises:
        HTTPException: If refresh token is invalid or expired.
    """
    try:
        return await auth_service.refresh_access_token(data.refresh_token)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/me")
async def get_me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """
    Get the current caller, including how it authenticated.

    Args:
        current_user: Current authenticated user.

    Returns:
        User information with auth method and API key scopes.
    """
    return current_user
