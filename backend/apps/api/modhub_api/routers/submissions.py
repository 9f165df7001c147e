"""
Submissions router.

Provides endpoints for submitting modules, listing the caller's own
submissions, and editing or resubmitting them.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from modhub_core.schemas import (
    CurrentUser,
    ModuleSubmissionRequest,
    SubmissionCreatedResponse,
    SubmissionListResponse,
    SubmissionUpdateRequest,
    SubmissionView,
)
from modhub_core.services import SubmissionService

from ..dependencies import get_current_user, get_request_ip, get_submission_service
from ..errors import to_http_exception

router = APIRouter()


@router.post("/submit", status_code=status.HTTP_201_CREATED)
async def submit_module(
    data: ModuleSubmissionRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    client_ip: Annotated[str | None, Depends(get_request_ip)],
    submission_service: Annotated[SubmissionService, Depends(get_submission_service)],
) -> SubmissionCreatedResponse:
    """
    Submit a module for review.

    Args:
        data: Module, optional first release and captcha token.
        current_user: Submitting user.
        client_ip: Caller IP forwarded to the captcha check.
        submission_service: Submission service.

    Returns:
        Id of the pending module.

    Raises:
        HTTPException: On rate limit, captcha failure, duplicate submission
            or insufficient API key scope.
    """
    try:
        return await submission_service.submit(current_user, data, client_ip)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/my-submissions")
async def my_submissions(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    submission_service: Annotated[SubmissionService, Depends(get_submission_service)],
) -> SubmissionListResponse:
    """List every module the caller submitted."""
    return await submission_service.list_my_submissions(current_user)


@router.patch("/update/{module_id}")
async def update_submission(
    module_id: str,
    data: SubmissionUpdateRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    client_ip: Annotated[str | None, Depends(get_request_ip)],
    submission_service: Annotated[SubmissionService, Depends(get_submission_service)],
) -> SubmissionView:
    """
    Edit a submission, or resubmit it with status "pending".

    Raises:
        HTTPException: If the module is not the caller's, is published, or
            the resubmission fails captcha verification.
    """
    try:
        return await submission_service.update_submission(current_user, module_id, data, client_ip)
    except ValueError as e:
        raise to_http_exception(e) from e
