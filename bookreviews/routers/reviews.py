"""
Reviews Router

HTTP surface of the review service. Handlers only translate requests into
ReviewService calls; domain errors are turned into responses by the
exception handler registered in bookreviews.main.

Endpoints:
- GET /books/{book_id}/rating - Materialized rating aggregate of a book
- GET /books/{book_id}/reviews - List reviews for a book
- POST /books/{book_id}/reviews - Create a review (authenticated)
- GET /reviews/recent - Most recent approved reviews
- GET /reviews/pending - Moderation queue (moderator)
- GET /reviews/{review_id} - Get a specific review
- PUT /reviews/{review_id} - Update a review (owner or moderator; status: moderator)
- DELETE /reviews/{review_id} - Delete a review (owner or moderator)
- PUT /reviews/{review_id}/like - Like / unlike a review
- GET /users/{user_id}/reviews - Reviews written by a user
"""

import logging

from fastapi import APIRouter, Header, HTTPException, Query, Request, Response, status

from bookreviews.config import get_settings
from bookreviews.dependencies import (
    CurrentActor,
    DbSession,
    ModeratorActor,
    OptionalActor,
    Pagination,
    Reviews,
)
from bookreviews.models.review import Review, ReviewStatus
from bookreviews.schemas.review import (
    BookRatingStats,
    LikeResponse,
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
    ReviewUpdate,
)
from bookreviews.services.rate_limiter import read_limit, write_limit
from bookreviews.services.ratings import get_book_rating
from bookreviews.services.reviews import Page

logger = logging.getLogger(__name__)

settings = get_settings()

router = APIRouter(
    tags=["Reviews"],
    responses={
        404: {"description": "Review or book not found"},
    },
)


# =============================================================================
# Helper Functions
# =============================================================================


def to_list_response(page: Page[Review]) -> ReviewListResponse:
    return ReviewListResponse(
        items=[ReviewResponse.model_validate(r) for r in page.items],
        total=page.total,
        page=page.page,
        per_page=page.per_page,
        pages=page.pages,
    )


def parse_if_match(if_match: str | None) -> int | None:
    """
    Read the expected review version from an If-Match header.

    Accepts the ETag as sent by this API ("3"), weak or unquoted.
    """
    if if_match is None:
        return None
    value = if_match.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    try:
        return int(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="If-Match must carry the review version",
        )


def set_etag(response: Response, review: Review) -> None:
    response.headers["ETag"] = f'"{review.version}"'


# =============================================================================
# Book Review Endpoints
# =============================================================================


@router.get(
    "/books/{book_id}/rating",
    response_model=BookRatingStats,
    summary="Get book rating statistics",
    description="Average rating, count and per-star distribution of approved reviews.",
)
@read_limit
def get_book_rating_stats(
    request: Request,
    book_id: int,
    db: DbSession,
) -> BookRatingStats:
    aggregate = get_book_rating(db, book_id)
    return BookRatingStats.from_aggregate(book_id, aggregate)


@router.get(
    "/books/{book_id}/reviews",
    response_model=ReviewListResponse,
    summary="List reviews for a book",
    description=(
        "Paginated reviews of a book, newest first. Only approved reviews "
        "are listed unless the caller is a moderator."
    ),
)
@read_limit
def list_book_reviews(
    request: Request,
    book_id: int,
    reviews: Reviews,
    pagination: Pagination,
    actor: OptionalActor,
    review_status: ReviewStatus | None = Query(default=None, alias="status"),
) -> ReviewListResponse:
    page = reviews.list_for_book(
        book_id,
        actor=actor,
        status=review_status,
        page=pagination.page,
        per_page=pagination.per_page,
    )
    return to_list_response(page)


@router.post(
    "/books/{book_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a review",
    description=(
        "Create a review for a book. One review per book per user. "
        "Reviews start pending unless written by a moderator."
    ),
)
@write_limit
def create_review(
    request: Request,
    response: Response,
    book_id: int,
    review_data: ReviewCreate,
    reviews: Reviews,
    actor: CurrentActor,
) -> ReviewResponse:
    review = reviews.create(book_id, actor, review_data)
    set_etag(response, review)
    return ReviewResponse.model_validate(review)


# =============================================================================
# Review Collections (must come before /reviews/{review_id} for route matching)
# =============================================================================


@router.get(
    "/reviews/recent",
    response_model=list[ReviewResponse],
    summary="Recent reviews",
    description="Most recent approved reviews across all books.",
)
@read_limit
def list_recent_reviews(
    request: Request,
    reviews: Reviews,
    limit: int = Query(default=settings.recent_reviews_limit, ge=1, le=50),
) -> list[ReviewResponse]:
    return [ReviewResponse.model_validate(r) for r in reviews.list_recent(limit)]


@router.get(
    "/reviews/pending",
    response_model=ReviewListResponse,
    summary="Moderation queue",
    description="Pending reviews, oldest first. Moderators only.",
)
@read_limit
def list_pending_reviews(
    request: Request,
    reviews: Reviews,
    pagination: Pagination,
    moderator: ModeratorActor,
) -> ReviewListResponse:
    page = reviews.moderation_queue(
        moderator,
        page=pagination.page,
        per_page=pagination.per_page,
    )
    return to_list_response(page)


# =============================================================================
# Individual Review Endpoints
# =============================================================================


@router.get(
    "/reviews/{review_id}",
    response_model=ReviewResponse,
    summary="Get a review by ID",
)
@read_limit
def get_review(
    request: Request,
    response: Response,
    review_id: int,
    reviews: Reviews,
    actor: OptionalActor,
) -> ReviewResponse:
    review = reviews.get(review_id, actor)
    set_etag(response, review)
    return ReviewResponse.model_validate(review)


@router.put(
    "/reviews/{review_id}",
    response_model=ReviewResponse,
    summary="Update a review",
    description=(
        "Partial update. The author or a moderator may change the content; "
        "only moderators may change the status. Send If-Match with the "
        "review's ETag to fail with 409 instead of overwriting a concurrent change."
    ),
)
@write_limit
def update_review(
    request: Request,
    response: Response,
    review_id: int,
    review_data: ReviewUpdate,
    reviews: Reviews,
    actor: CurrentActor,
    if_match: str | None = Header(default=None, alias="If-Match"),
) -> ReviewResponse:
    review = reviews.update(
        review_id,
        actor,
        review_data,
        expected_version=parse_if_match(if_match),
    )
    set_etag(response, review)
    return ReviewResponse.model_validate(review)


@router.delete(
    "/reviews/{review_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a review",
    description="Permanently delete a review. Author or moderator only.",
)
@write_limit
def delete_review(
    request: Request,
    review_id: int,
    reviews: Reviews,
    actor: CurrentActor,
) -> None:
    reviews.delete(review_id, actor)


@router.put(
    "/reviews/{review_id}/like",
    response_model=LikeResponse,
    summary="Like or unlike a review",
    description="Toggle the caller's like on an approved review written by someone else.",
)
@write_limit
def toggle_review_like(
    request: Request,
    review_id: int,
    reviews: Reviews,
    actor: CurrentActor,
) -> LikeResponse:
    result = reviews.toggle_like(review_id, actor.user_id)
    return LikeResponse(
        review_id=result.review_id,
        action=result.action,
        likes_count=result.likes_count,
        likes=result.likes,
    )


# =============================================================================
# User Review Endpoints
# =============================================================================


@router.get(
    "/users/{user_id}/reviews",
    response_model=ReviewListResponse,
    summary="List reviews by a user",
    description=(
        "Reviews written by a user. The author and moderators see every "
        "status, everyone else only approved reviews."
    ),
)
@read_limit
def list_user_reviews(
    request: Request,
    user_id: int,
    reviews: Reviews,
    pagination: Pagination,
    actor: OptionalActor,
    review_status: ReviewStatus | None = Query(default=None, alias="status"),
) -> ReviewListResponse:
    page = reviews.list_for_user(
        user_id,
        actor=actor,
        status=review_status,
        page=pagination.page,
        per_page=pagination.per_page,
    )
    return to_list_response(page)
