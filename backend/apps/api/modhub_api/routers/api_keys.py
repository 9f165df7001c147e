"""
API keys router.

Provides endpoints for the caller's API key management (create, list, revoke).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from modhub_core.schemas import ApiKeyCreate, ApiKeyCreateResponse, ApiKeyListResponse, CurrentUser
from modhub_core.services import ApiKeyService

from ..dependencies import get_api_key_service, get_current_user
from ..errors import to_http_exception

router = APIRouter()


@router.get("")
async def list_keys(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    key_service: Annotated[ApiKeyService, Depends(get_api_key_service)],
) -> ApiKeyListResponse:
    """
    List the caller's active API keys.

    Args:
        current_user: Current authenticated user.
        key_service: API key service instance.

    Returns:
        Keys without their secret values.
    """
    return ApiKeyListResponse(keys=await key_service.list_keys(current_user.id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_key(
    data: ApiKeyCreate,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    key_service: Annotated[ApiKeyService, Depends(get_api_key_service)],
) -> ApiKeyCreateResponse:
    """
    Create a new API key.

    The plain key value is only returned once during creation.
    Make sure to save it securely.

    Args:
        data: Key name, expiration and scopes.
        current_user: Current authenticated user.
        key_service: API key service instance.

    Returns:
        Created key with the plain key value (only shown once).

    Raises:
        HTTPException: 403 for admin scope requested by a non-admin, 400
            when the key limit is reached.
    """
    try:
        return await key_service.create_key(current_user, data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_key(
    key_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    key_service: Annotated[ApiKeyService, Depends(get_api_key_service)],
) -> None:
    """
    Revoke an API key.

    Args:
        key_id: Key identifier.
        current_user: Current authenticated user.
        key_service: API key service instance.

    Raises:
        HTTPException: If the key is not found or already revoked.
    """
    try:
        await key_service.revoke_key(key_id, current_user.id)
    except ValueError as e:
        raise to_http_exception(e) from e
