#!/usr/bin/env python3
"""
Rating Recompute Script

Recomputes the materialized rating aggregate (average, count, star
distribution) of one book or of every book from its approved reviews.

A rating recompute that fails after a review change leaves the book's
aggregate stale until the next change on that book. Run this to heal it.

Usage:
    # From project root with venv activated:
    python scripts/recompute_ratings.py

    # With Docker:
    docker-compose exec api python scripts/recompute_ratings.py

    # Options:
    python scripts/recompute_ratings.py --book-id 42   # Only one book
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from bookreviews.database import SessionLocal
from bookreviews.services.ratings import (
    recalculate_all_book_ratings,
    recalculate_book_rating,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def recompute(book_id: int | None = None) -> int:
    """
    Recompute one book's rating, or all of them.

    Args:
        book_id: Book to recompute; None recomputes every book

    Returns:
        Process exit code
    """
    db = SessionLocal()
    try:
        if book_id is None:
            logger.info("Recomputing ratings for all books...")
            updated = recalculate_all_book_ratings(db)
            logger.info(f"Done: {updated} books recomputed")
            return 0

        aggregate = recalculate_book_rating(db, book_id)
        if aggregate is None:
            logger.error(f"Book {book_id} not found")
            return 1

        logger.info(
            f"Book {book_id}: average={aggregate.average_rating} "
            f"count={aggregate.ratings_count} "
            f"distribution={aggregate.distribution_as_list()}"
        )
        return 0
    finally:
        db.close()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Recompute book rating aggregates from approved reviews"
    )
    parser.add_argument(
        "--book-id",
        type=int,
        default=None,
        help="Only recompute this book (default: every book)"
    )

    args = parser.parse_args()
    sys.exit(recompute(book_id=args.book_id))


if __name__ == "__main__":
    main()
