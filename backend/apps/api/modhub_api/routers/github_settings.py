"""
GitHub token settings router.

Stores, checks, removes and validates the caller's GitHub personal access
token. Only a salted hash of the token is kept.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from modhub_core.schemas import CurrentUser, GithubPatRequest, GithubPatStatus, GithubPatValidation
from modhub_core.services import GithubSyncService

from ..dependencies import get_current_user, get_github_sync_service
from ..errors import to_http_exception

router = APIRouter()


@router.get("")
async def get_token_status(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
) -> GithubPatStatus:
    """Whether the caller has a stored GitHub token."""
    return await sync_service.get_pat_status(current_user.id)


@router.post("")
async def save_token(
    data: GithubPatRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
) -> GithubPatStatus:
    """
    Store the caller's GitHub token.

    Raises:
        HTTPException: If the token format is invalid.
    """
    try:
        return await sync_service.save_pat(current_user.id, data.token)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_token(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
) -> None:
    """Remove the caller's stored GitHub token."""
    try:
        await sync_service.delete_pat(current_user.id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/validate")
async def validate_token(
    data: GithubPatRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    sync_service: Annotated[GithubSyncService, Depends(get_github_sync_service)],
) -> GithubPatValidation:
    """
    Check a token against the GitHub API without storing it.

    Returns:
        Whether the token is valid, the GitHub login and granted scopes.
    """
    return await sync_service.validate_pat(data.token)
