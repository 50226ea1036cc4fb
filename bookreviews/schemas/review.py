"""
Review Pydantic Schemas

Schemas for book reviews, likes and rating aggregates.

Schemas:
- ReviewCreate: Create a new review
- ReviewUpdate: Partial update (content fields and/or moderation status)
- ReviewResponse: Full review data for API responses
- ReviewListResponse: Paginated list of reviews
- LikeResponse: Result of toggling a like
- BookRatingStats: Materialized rating aggregate of a book

Business Rules validated here:
- Rating must be 1-5
- Title (max 100) and content (max 5000) are required and not blank
"""

from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bookreviews.models.review import (
    CONTENT_MAX_LENGTH,
    REJECTION_REASON_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    ReviewStatus,
)

if TYPE_CHECKING:
    from bookreviews.services.ratings import RatingAggregate


def _strip_required(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


# =============================================================================
# Review Schemas
# =============================================================================


class ReviewCreate(BaseModel):
    """
    Schema for creating a new review.

    Example request body:
    {
        "rating": 5,
        "title": "Amazing book!",
        "content": "One of the best books I've ever read..."
    }
    """

    rating: int = Field(
        ...,
        ge=1,
        le=5,
        description="Rating from 1 to 5 stars",
        examples=[4, 5],
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=TITLE_MAX_LENGTH,
        description="Review headline",
        examples=["A masterpiece!", "Disappointing read"],
    )
    content: str = Field(
        ...,
        min_length=1,
        max_length=CONTENT_MAX_LENGTH,
        description="Review text content",
    )
    contains_spoilers: bool = Field(default=False)
    is_recommended: bool = Field(default=False)

    @field_validator("title", "content")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        return _strip_required(v)


class ReviewUpdate(BaseModel):
    """
    Schema for updating an existing review.

    All fields are optional; only the fields sent are applied.
    `status` and `rejection_reason` are moderator-only.
    """

    rating: int | None = Field(default=None, ge=1, le=5)
    title: str | None = Field(
        default=None,
        min_length=1,
        max_length=TITLE_MAX_LENGTH,
    )
    content: str | None = Field(
        default=None,
        min_length=1,
        max_length=CONTENT_MAX_LENGTH,
    )
    contains_spoilers: bool | None = None
    is_recommended: bool | None = None
    status: ReviewStatus | None = Field(
        default=None,
        description="New moderation status (moderators only)",
    )
    rejection_reason: str | None = Field(
        default=None,
        max_length=REJECTION_REASON_MAX_LENGTH,
        description="Shown to the author when the review is rejected",
    )

    @field_validator("title", "content")
    @classmethod
    def must_not_be_blank(cls, v: str | None) -> str | None:
        return _strip_required(v)

    def provided_fields(self) -> dict:
        """Fields the caller actually sent, without explicit nulls."""
        return {
            field: value
            for field, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class ReviewResponse(BaseModel):
    """
    Schema for review responses.

    `version` is the optimistic concurrency token; send it back in an
    If-Match header to make an update fail instead of overwriting a
    concurrent change.
    """

    id: int = Field(..., description="Unique review identifier")
    book_id: int = Field(..., description="ID of the reviewed book")
    user_id: int = Field(..., description="ID of the user who wrote the review")

    rating: int
    title: str
    content: str
    contains_spoilers: bool
    is_recommended: bool

    status: ReviewStatus
    moderated_by: int | None = None
    moderated_at: datetime | None = None
    rejection_reason: str | None = None

    likes: list[int] = Field(default_factory=list, description="IDs of liking users")
    likes_count: int = Field(default=0, ge=0)

    edited: bool
    last_edited_at: datetime | None = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewListResponse(BaseModel):
    """Paginated list of reviews."""

    items: list[ReviewResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    per_page: int = Field(..., ge=1, le=100)
    pages: int = Field(..., ge=0)


class LikeResponse(BaseModel):
    """Result of PUT /reviews/{review_id}/like."""

    review_id: int
    action: str = Field(..., description="'liked' or 'unliked'")
    likes_count: int = Field(..., ge=0)
    likes: list[int]


# =============================================================================
# Aggregation Schemas
# =============================================================================


class StarCount(BaseModel):
    star: int = Field(..., ge=1, le=5)
    count: int = Field(..., ge=0)


class BookRatingStats(BaseModel):
    """
    Materialized rating aggregate of a book.

    Counts only approved reviews.
    """

    book_id: int
    average_rating: float = Field(..., ge=0, le=5, description="0 means no approved reviews")
    ratings_count: int = Field(..., ge=0)
    ratings_distribution: list[StarCount] = Field(
        ...,
        description="Approved review count per star, ordered 5..1",
    )

    @classmethod
    def from_aggregate(cls, book_id: int, aggregate: "RatingAggregate") -> "BookRatingStats":
        return cls(
            book_id=book_id,
            average_rating=float(aggregate.average_rating),
            ratings_count=aggregate.ratings_count,
            ratings_distribution=[
                StarCount(star=star, count=count)
                for star, count in aggregate.ratings_distribution
            ],
        )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "book_id": 42,
                "average_rating": 4.7,
                "ratings_count": 3,
                "ratings_distribution": [
                    {"star": 5, "count": 2},
                    {"star": 4, "count": 1},
                    {"star": 3, "count": 0},
                    {"star": 2, "count": 0},
                    {"star": 1, "count": 0},
                ],
            }
        },
    )


class RecomputeAllResponse(BaseModel):
    books_updated: int = Field(..., ge=0)
