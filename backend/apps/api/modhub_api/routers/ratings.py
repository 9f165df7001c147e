"""
Ratings router.

Module reviews, threaded replies and helpful votes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from modhub_core.schemas import (
    CurrentUser,
    HelpfulVoteRequest,
    HelpfulVoteResponse,
    RatingCreate,
    RatingListResponse,
    RatingResponse,
    RatingUpdate,
    ReplyCreate,
    ReplyListResponse,
    ReplyResponse,
    UserHelpfulVotes,
)
from modhub_core.services import PUBLIC_READ, RatingService

from ..dependencies import (
    get_current_user,
    get_rating_service,
    get_reader_optional,
    get_request_ip,
    rate_limit,
)
from ..errors import to_http_exception

router = APIRouter()


@router.get("/modules/{module_id}/ratings", dependencies=[Depends(rate_limit(PUBLIC_READ))])
async def list_ratings(
    module_id: str,
    viewer: Annotated[CurrentUser | None, Depends(get_reader_optional)],
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
) -> RatingListResponse:
    """
    List a module's ratings, newest first.

    Args:
        module_id: Module identifier.
        viewer: Current caller, whose own rating is returned separately.
        rating_service: Rating service.

    Returns:
        Ratings and the viewer's rating.
    """
    try:
        return await rating_service.list_ratings(module_id, viewer)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/modules/{module_id}/ratings", status_code=status.HTTP_201_CREATED)
async def create_rating(
    module_id: str,
    data: RatingCreate,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    client_ip: Annotated[str | None, Depends(get_request_ip)],
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
) -> RatingResponse:
    """
    Review a module.

    Raises:
        HTTPException: 409 if the caller already reviewed the module.
    """
    try:
        return await rating_service.create_rating(current_user, module_id, data, client_ip)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.patch("/modules/{module_id}/ratings")
async def update_rating(
    module_id: str,
    data: RatingUpdate,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
) -> RatingResponse:
    """Update the caller's own rating of a module."""
    try:
        return await rating_service.update_rating(current_user, module_id, data)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/modules/{module_id}/helpful-votes")
async def user_helpful_votes(
    module_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
) -> UserHelpfulVotes:
    """Ratings and replies of a module the caller already voted helpful."""
    return await rating_service.get_user_helpful_votes(current_user.id, module_id)


@router.get(
    "/ratings/{rating_id}/replies",
    dependencies=[Depends(rate_limit(PUBLIC_READ)), Depends(get_reader_optional)],
)
async def list_replies(
    rating_id: int,
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
) -> ReplyListResponse:
    """Replies to a rating, oldest first."""
    try:
        return await rating_service.list_replies(rating_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/ratings/{rating_id}/replies", status_code=status.HTTP_201_CREATED)
async def create_reply(
    rating_id: int,
    data: ReplyCreate,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    client_ip: Annotated[str | None, Depends(get_request_ip)],
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
) -> ReplyResponse:
    """Reply to a rating."""
    try:
        return await rating_service.create_reply(current_user, rating_id, data, client_ip)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/ratings/{rating_id}/helpful")
async def mark_rating_helpful(
    rating_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
) -> HelpfulVoteResponse:
    """
    Vote a rating helpful.

    Raises:
        HTTPException: 400 if the caller already voted for it.
    """
    try:
        return await rating_service.mark_helpful(current_user, rating_id=rating_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/replies/{reply_id}/helpful")
async def mark_reply_helpful(
    reply_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
) -> HelpfulVoteResponse:
    """Vote a reply helpful."""
    try:
        return await rating_service.mark_helpful(current_user, reply_id=reply_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/helpful")
async def mark_helpful(
    data: HelpfulVoteRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    rating_service: Annotated[RatingService, Depends(get_rating_service)],
) -> HelpfulVoteResponse:
    """Vote a rating or a reply helpful, named in the request body."""
    try:
        return await rating_service.mark_helpful(current_user, rating_id=data.rating_id, reply_id=data.reply_id)
    except ValueError as e:
        raise to_http_exception(e) from e
