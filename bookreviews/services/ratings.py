"""
Ratings Service

Service for managing book rating aggregations.

This service maintains denormalized rating fields on the Book model:
- average_rating: Mean of approved review ratings, one decimal, half-up
- ratings_count: Number of approved reviews
- ratings_distribution: Approved review count per star, ordered 5..1

The aggregate is always recomputed from the full set of approved reviews,
never adjusted by deltas. That makes a recompute idempotent and makes
concurrent recomputes for the same book commutative: whichever runs last
re-reads the current approved set, so it writes the correct final state.

Only the review service (after a qualifying review change) and the
repair path (admin endpoint, scripts/recompute_ratings.py) call in here.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bookreviews.models.book import STAR_VALUES, Book
from bookreviews.models.review import Review, ReviewStatus
from bookreviews.services.exceptions import BookNotFoundError

logger = logging.getLogger(__name__)

ONE_DECIMAL = Decimal("0.1")


@dataclass(frozen=True)
class RatingAggregate:
    """The materialized rating triple stored on a book."""

    average_rating: Decimal
    ratings_count: int
    ratings_distribution: tuple[tuple[int, int], ...]

    def distribution_as_list(self) -> list[dict[str, int]]:
        return [
            {"star": star, "count": count}
            for star, count in self.ratings_distribution
        ]

    def matches(self, book: Book) -> bool:
        """True if the book already stores exactly this aggregate."""
        return (
            Decimal(book.average_rating or 0) == self.average_rating
            and book.ratings_count == self.ratings_count
            and book.ratings_distribution == self.distribution_as_list()
        )

    @classmethod
    def from_book(cls, book: Book) -> "RatingAggregate":
        counts = {
            entry["star"]: entry["count"]
            for entry in (book.ratings_distribution or [])
        }
        return cls(
            average_rating=Decimal(book.average_rating or 0).quantize(ONE_DECIMAL),
            ratings_count=book.ratings_count or 0,
            ratings_distribution=tuple(
                (star, counts.get(star, 0)) for star in STAR_VALUES
            ),
        )


def aggregate_from_counts(counts: Mapping[int, int]) -> RatingAggregate:
    """
    Build the aggregate from a {star: count} mapping.

    Stars missing from the mapping count as zero.

    Raises:
        ValueError: If a star value is outside 1-5 or a count is negative
    """
    for star, count in counts.items():
        if star not in STAR_VALUES:
            raise ValueError(f"Rating {star!r} is outside 1-5")
        if count < 0:
            raise ValueError(f"Negative count for rating {star}")

    ratings_count = sum(counts.values())
    if ratings_count == 0:
        average = Decimal("0.0")
    else:
        total = sum(star * count for star, count in counts.items())
        average = (Decimal(total) / Decimal(ratings_count)).quantize(
            ONE_DECIMAL, rounding=ROUND_HALF_UP
        )

    return RatingAggregate(
        average_rating=average,
        ratings_count=ratings_count,
        ratings_distribution=tuple(
            (star, counts.get(star, 0)) for star in STAR_VALUES
        ),
    )


def compute_rating_aggregate(ratings: Iterable[int]) -> RatingAggregate:
    """
    Compute the aggregate for a sequence of approved ratings.

    Example:
        >>> agg = compute_rating_aggregate([5, 5, 4])
        >>> agg.average_rating, agg.ratings_count
        (Decimal('4.7'), 3)
    """
    counts: dict[int, int] = {}
    for rating in ratings:
        counts[rating] = counts.get(rating, 0) + 1
    return aggregate_from_counts(counts)


def recalculate_book_rating(db: Session, book_id: int) -> RatingAggregate | None:
    """
    Recalculate and store a book's rating aggregate.

    Runs as its own transaction:
    1. Lock the book row (SELECT ... FOR UPDATE) so recomputes for the
       same book run one at a time
    2. Read the approved ratings grouped by star value
    3. Write all three fields with a single UPDATE, so readers see
       either the old triple or the new one

    If the stored aggregate already matches, nothing is written.

    Args:
        db: Database session (any pending work must already be committed)
        book_id: ID of the book to update

    Returns:
        The aggregate, or None if the book no longer exists (skipped write)

    Raises:
        SQLAlchemyError: On database failure, after rolling back
    """
    try:
        book = db.execute(
            select(Book)
            .where(Book.id == book_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if book is None:
            db.rollback()
            logger.info(f"Skipping rating recompute: book {book_id} no longer exists")
            return None

        counts_stmt = (
            select(Review.rating, func.count(Review.id))
            .where(
                Review.book_id == book_id,
                Review.status == ReviewStatus.APPROVED.value,
            )
            .group_by(Review.rating)
        )
        counts = {rating: count for rating, count in db.execute(counts_stmt).all()}
        aggregate = aggregate_from_counts(counts)

        if aggregate.matches(book):
            db.commit()
            logger.debug(f"Rating for book {book_id} unchanged: {aggregate}")
            return aggregate

        result = db.execute(
            update(Book)
            .where(Book.id == book_id)
            .values(
                average_rating=aggregate.average_rating,
                ratings_count=aggregate.ratings_count,
                ratings_distribution=aggregate.distribution_as_list(),
            )
        )
        if result.rowcount == 0:
            db.rollback()
            logger.info(f"Skipping rating recompute: book {book_id} deleted concurrently")
            return None

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.debug(
        f"Recomputed rating for book {book_id}: "
        f"avg={aggregate.average_rating} count={aggregate.ratings_count}"
    )
    return aggregate


def recalculate_all_book_ratings(db: Session) -> int:
    """
    Recalculate rating aggregations for all books.

    Repair path for aggregates left stale by a failed trailing recompute.

    Returns:
        Number of books recomputed
    """
    book_ids = db.execute(select(Book.id).order_by(Book.id)).scalars().all()

    updated = 0
    for book_id in book_ids:
        if recalculate_book_rating(db, book_id) is not None:
            updated += 1

    logger.info(f"Recomputed ratings for {updated} of {len(book_ids)} books")
    return updated


def get_book_rating(db: Session, book_id: int) -> RatingAggregate:
    """
    Read the stored aggregate of a book.

    Raises:
        BookNotFoundError: If the book doesn't exist
    """
    book = db.get(Book, book_id)
    if book is None:
        raise BookNotFoundError(f"Book with id {book_id} not found")
    return RatingAggregate.from_book(book)
