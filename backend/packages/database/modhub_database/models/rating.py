"""
Review models.

Ratings, threaded replies and helpful votes.
"""

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class Rating(Base, TimestampMixin):
    """
    User review of a module.

    One rating per (user, module). The service checks for an existing
    rating before insert; the unique constraint backs that check.

    Attributes:
        id: Auto-increment identifier.
        module_id: Reviewed module.
        user_id: Reviewer.
        rating: Score from 1 to 5.
        comment: Optional review text.
        helpful: Helpful vote counter.
    """

    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("user_id", "module_id", name="uq_rating_user_module"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_rating_range"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign keys
    module_id: Mapped[str] = mapped_column(
        String(21), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Review content
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)
    helpful: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    module = relationship("Module", back_populates="ratings")
    user = relationship("User", back_populates="ratings")
    replies = relationship(
        "Reply", back_populates="rating", cascade="all, delete-orphan", passive_deletes=True
    )


class Reply(Base, TimestampMixin):
    """
    Threaded response to a rating.

    Attributes:
        id: Auto-increment identifier.
        rating_id: Parent rating.
        user_id: Reply author.
        comment: Reply text.
        helpful: Helpful vote counter.
    """

    __tablename__ = "replies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rating_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ratings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    helpful: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    rating = relationship("Rating", back_populates="replies")
    user = relationship("User")


class HelpfulVote(Base, TimestampMixin):
    """A user's helpful vote on a rating or a reply (exactly one target)."""

    __tablename__ = "helpful_votes"
    __table_args__ = (
        UniqueConstraint("user_id", "rating_id", name="uq_helpful_vote_rating"),
        UniqueConstraint("user_id", "reply_id", name="uq_helpful_vote_reply"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rating_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("ratings.id", ondelete="CASCADE"), index=True
    )
    reply_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("replies.id", ondelete="CASCADE"), index=True
    )
