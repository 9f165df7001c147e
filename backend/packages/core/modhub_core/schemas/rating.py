"""
Review schemas.

Request and response models for ratings, replies and helpful votes.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_COMMENT = 1000


def _non_blank(value: str | None, required: bool) -> str | None:
    if value is None:
        if required:
            raise ValueError("Comment is required")
        return None
    if not value.strip():
        raise ValueError("Comment cannot be empty or whitespace only")
    return value.strip()


class RatingCreate(BaseModel):
    """Create a rating for a module."""

    model_config = ConfigDict(populate_by_name=True)

    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=MAX_COMMENT)
    turnstile_token: str | None = Field(None, alias="turnstileToken")

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, value: str | None) -> str | None:
        return _non_blank(value, required=False)


class RatingUpdate(BaseModel):
    """Update the caller's own rating."""

    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=MAX_COMMENT)

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, value: str | None) -> str | None:
        return _non_blank(value, required=False)


class RatingResponse(BaseModel):
    """Rating with author display fields."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    module_id: str
    user_id: str
    user_name: str | None = None
    user_image: str | None = None
    rating: int
    comment: str | None
    helpful: int
    reply_count: int = 0
    created_at: datetime
    updated_at: datetime


class RatingListResponse(BaseModel):
    """Ratings of a module plus the viewer's own rating."""

    ratings: list[RatingResponse]
    user_rating: RatingResponse | None = None


class ReplyCreate(BaseModel):
    """Reply to a rating."""

    model_config = ConfigDict(populate_by_name=True)

    comment: str = Field(..., min_length=1, max_length=MAX_COMMENT)
    turnstile_token: str | None = Field(None, alias="turnstileToken")

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, value: str) -> str:
        return _non_blank(value, required=True)


class ReplyResponse(BaseModel):
    """Reply with author display fields."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    rating_id: int
    user_id: str
    user_name: str | None = None
    user_image: str | None = None
    comment: str
    helpful: int
    created_at: datetime


class ReplyListResponse(BaseModel):
    """Replies of a rating."""

    replies: list[ReplyResponse]


class HelpfulVoteRequest(BaseModel):
    """Mark a rating or a reply as helpful (exactly one target)."""

    model_config = ConfigDict(populate_by_name=True)

    rating_id: int | None = Field(None, alias="ratingId")
    reply_id: int | None = Field(None, alias="replyId")

    @model_validator(mode="after")
    def check_single_target(self) -> "HelpfulVoteRequest":
        if (self.rating_id is None) == (self.reply_id is None):
            raise ValueError("Provide exactly one of rating_id or reply_id")
        return self


class HelpfulVoteResponse(BaseModel):
    """New helpful count of the voted target."""

    success: bool = True
    helpful: int


class UserHelpfulVotes(BaseModel):
    """Targets the caller already voted helpful."""

    ratings: list[int]
    replies: list[int]


class AdminReviewItem(RatingResponse):
    """Rating row in the admin moderation list."""

    module_name: str | None = None
    user_email: str | None = None


class AdminReviewListResponse(BaseModel):
    """Paginated admin review list."""

    items: list[AdminReviewItem]
    total: int
    page: int
    per_page: int
    total_pages: int


class ReviewStats(BaseModel):
    """Aggregate review statistics."""

    total_reviews: int
    average_rating: float
    helpful_reviews: int
    recent_reviews: int
    total_replies: int
    rating_distribution: dict[int, int]
