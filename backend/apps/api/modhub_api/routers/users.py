"""
Users router.

Profile settings, the caller's role, and public user profiles.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from modhub_core.schemas import CurrentUser, PublicProfile, UserResponse, UserUpdate
from modhub_core.services import PUBLIC_READ, UserService

from ..dependencies import get_current_user, get_reader_optional, get_user_service, rate_limit
from ..errors import to_http_exception

router = APIRouter()


@router.get("/settings/profile")
async def get_profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """The caller's profile."""
    try:
        return await user_service.get_user(current_user.id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.patch("/settings/profile")
async def update_profile(
    data: UserUpdate,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """
    Update the caller's display name or avatar.

    Args:
        data: Changed profile fields.
        current_user: Current authenticated user.
        user_service: User service.

    Returns:
        Updated profile.
    """
    try:
        return await user_service.update_profile(current_user.id, data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/user/role")
async def get_role(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> dict[str, str | bool]:
    """The caller's role."""
    return {"role": current_user.role, "is_admin": current_user.is_admin}


@router.get("/user/profile/{user_id}", dependencies=[Depends(rate_limit(PUBLIC_READ))])
async def get_public_profile(
    user_id: str,
    viewer: Annotated[CurrentUser | None, Depends(get_reader_optional)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    include_modules: Annotated[bool, Query(alias="includeModules")] = True,
    limit: int = Query(10, ge=1, le=50),
) -> PublicProfile:
    """
    Public profile of a user.

    Visitors see only published modules; the owner sees all of theirs.

    Args:
        user_id: Profile owner.
        viewer: Current caller, if any.
        user_service: User service.
        include_modules: Attach the user's modules.
        limit: Maximum number of modules.

    Returns:
        Profile with statistics.
    """
    try:
        return await user_service.get_public_profile(
            user_id, viewer=viewer, include_modules=include_modules, limit=limit
        )
    except ValueError as e:
        raise to_http_exception(e) from e
