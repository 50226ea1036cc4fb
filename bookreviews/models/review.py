"""
Review Model

Represents a user's review of a book: star rating, text content,
moderation state and likes.

Business Rules:
- One review per user per book (unique constraint)
- Rating must be 1-5
- A review counts toward the book's rating only while approved
- Reviews by moderators start approved, everyone else starts pending
- Only approved reviews can be liked, never by their own author

Concurrency:
- `version` is the mapper's version_id_col. Every UPDATE of a review
  row carries "WHERE version = <loaded version>", so two concurrent
  edits of the same review can't silently overwrite each other; the
  loser gets StaleDataError at flush time.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookreviews.database import Base

if TYPE_CHECKING:
    from bookreviews.models.book import Book


TITLE_MAX_LENGTH = 100
CONTENT_MAX_LENGTH = 5000
REJECTION_REASON_MAX_LENGTH = 500


class ReviewStatus(str, Enum):
    """
    Moderation state of a review.

    - PENDING: waiting for a moderator, not counted in the book rating
    - APPROVED: public and counted in the book rating
    - REJECTED: hidden from the public, not counted
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Moderator-only transitions. Nothing moves back to pending, and
# deletion (not a status) is the only terminal operation.
ALLOWED_TRANSITIONS: dict[ReviewStatus, frozenset[ReviewStatus]] = {
    ReviewStatus.PENDING: frozenset({ReviewStatus.APPROVED, ReviewStatus.REJECTED}),
    ReviewStatus.APPROVED: frozenset({ReviewStatus.REJECTED}),
    ReviewStatus.REJECTED: frozenset({ReviewStatus.APPROVED}),
}


def utcnow() -> datetime:
    return datetime.now(UTC)


class Review(Base):
    """
    Review model for book reviews.

    Attributes:
        id: Primary key
        book_id: Foreign key to books table
        user_id: Author id, issued by the authentication service
        rating: 1-5 star rating
        title: Review headline
        content: Review text content
        status: pending / approved / rejected
        edited: True once the title, content or rating changed after creation
        last_edited_at: When the content was last edited
        moderated_by: Moderator who last set the status
        moderated_at: When the status was last set by a moderator
        rejection_reason: Why the review was rejected (only while rejected)
        version: Optimistic concurrency token
    """

    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    book_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Author id from the authentication service",
    )

    # Review content
    rating: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Rating from 1-5 stars",
    )
    title: Mapped[str] = mapped_column(
        String(TITLE_MAX_LENGTH),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    contains_spoilers: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    is_recommended: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Moderation fields
    status: Mapped[str] = mapped_column(
        String(20),
        default=ReviewStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, approved or rejected",
    )
    moderated_by: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Moderator who last changed the status",
    )
    moderated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(
        String(REJECTION_REASON_MAX_LENGTH),
        nullable=True,
    )

    # Edit tracking
    edited: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    last_edited_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Optimistic concurrency token",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    # Relationships
    book: Mapped["Book"] = relationship("Book", back_populates="reviews")
    like_entries: Mapped[list["ReviewLike"]] = relationship(
        "ReviewLike",
        back_populates="review",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        # One review per user per book
        UniqueConstraint("book_id", "user_id", name="uq_review_book_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_review_status",
        ),
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_approved(self) -> bool:
        return self.status == ReviewStatus.APPROVED.value

    @property
    def likes(self) -> list[int]:
        """Ids of the users who liked this review."""
        return sorted(entry.user_id for entry in self.like_entries)

    @property
    def likes_count(self) -> int:
        return len(self.like_entries)

    def __repr__(self) -> str:
        return (
            f"<Review(id={self.id}, book_id={self.book_id}, user_id={self.user_id}, "
            f"rating={self.rating}, status={self.status})>"
        )


class ReviewLike(Base):
    """
    A single user's like on a review.

    The composite primary key makes a like idempotent per user at the
    storage level: two concurrent "like" requests can't both insert.
    """

    __tablename__ = "review_likes"

    review_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reviews.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    review: Mapped[Review] = relationship("Review", back_populates="like_entries")

    def __repr__(self) -> str:
        return f"<ReviewLike(review_id={self.review_id}, user_id={self.user_id})>"
