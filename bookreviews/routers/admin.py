"""
Admin Router

Repair endpoints for the materialized book ratings.

A failed trailing recompute leaves a book's aggregate stale until the
next review change on that book. These endpoints let a moderator heal it
on demand; scripts/recompute_ratings.py does the same from a shell.

Endpoints:
- POST /admin/books/{book_id}/recompute-rating - Recompute one book
- POST /admin/books/recompute-ratings - Recompute every book
"""

import logging

from fastapi import APIRouter, Request

from bookreviews.dependencies import DbSession, ModeratorActor
from bookreviews.schemas.review import BookRatingStats, RecomputeAllResponse
from bookreviews.services.exceptions import BookNotFoundError
from bookreviews.services.rate_limiter import write_limit
from bookreviews.services.ratings import recalculate_all_book_ratings, recalculate_book_rating

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post(
    "/books/{book_id}/recompute-rating",
    response_model=BookRatingStats,
    summary="Recompute a book's rating",
)
@write_limit
def recompute_book_rating(
    request: Request,
    book_id: int,
    db: DbSession,
    moderator: ModeratorActor,
) -> BookRatingStats:
    aggregate = recalculate_book_rating(db, book_id)
    if aggregate is None:
        raise BookNotFoundError(f"Book with id {book_id} not found")

    logger.info(f"Moderator {moderator.user_id} recomputed rating of book {book_id}")

    return BookRatingStats.from_aggregate(book_id, aggregate)


@router.post(
    "/books/recompute-ratings",
    response_model=RecomputeAllResponse,
    summary="Recompute every book's rating",
)
@write_limit
def recompute_all_ratings(
    request: Request,
    db: DbSession,
    moderator: ModeratorActor,
) -> RecomputeAllResponse:
    books_updated = recalculate_all_book_ratings(db)
    logger.info(f"Moderator {moderator.user_id} recomputed ratings of {books_updated} books")
    return RecomputeAllResponse(books_updated=books_updated)
