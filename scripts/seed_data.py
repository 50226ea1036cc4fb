#!/usr/bin/env python3
"""
Database Seed Script

Populates the database with sample books and reviews for development.

USAGE:
    # Make sure you're in the project root with venv activated
    python scripts/seed_data.py

    # Or with Docker
    docker-compose exec api python scripts/seed_data.py

This script:
1. Connects to the database using app settings
2. Clears existing data (optional)
3. Creates sample books
4. Writes reviews through the review service, so moderation and the
   rating aggregates behave exactly as they do behind the API
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy.orm import Session

from bookreviews.database import SessionLocal, create_tables
from bookreviews.models import Actor, Book, Review, ReviewStatus, Role
from bookreviews.services.reviews import ReviewService

MODERATOR = Actor(user_id=1, role=Role.MODERATOR)


def clear_data(db: Session) -> None:
    """Clear all existing data from the database."""
    print("Clearing existing data...")
    db.query(Review).delete()
    db.query(Book).delete()
    db.commit()
    print("Data cleared.")


def create_books(db: Session) -> dict[str, Book]:
    """Create sample books."""
    print("Creating books...")
    books_data = [
        {"title": "1984", "author": "George Orwell", "isbn": "9780451524935"},
        {"title": "Animal Farm", "author": "George Orwell", "isbn": "9780451526342"},
        {"title": "Pride and Prejudice", "author": "Jane Austen", "isbn": "9780141439518"},
        {"title": "Foundation", "author": "Isaac Asimov", "isbn": "9780553293357"},
        {"title": "The Hobbit", "author": "J.R.R. Tolkien", "isbn": "9780547928227"},
    ]

    books = {}
    for data in books_data:
        book = Book(**data)
        db.add(book)
        books[data["title"]] = book

    db.commit()
    for book in books.values():
        db.refresh(book)

    print(f"Created {len(books)} books.")
    return books


def create_reviews(db: Session, books: dict[str, Book]) -> list[Review]:
    """
    Create sample reviews in every moderation state.

    (book title, author id, rating, final status)
    """
    print("Creating reviews...")
    reviews_data = [
        ("1984", 10, 5, ReviewStatus.APPROVED),
        ("1984", 11, 5, ReviewStatus.APPROVED),
        ("1984", 12, 4, ReviewStatus.APPROVED),
        ("1984", 13, 1, ReviewStatus.REJECTED),
        ("Animal Farm", 10, 4, ReviewStatus.APPROVED),
        ("Animal Farm", 14, 3, ReviewStatus.PENDING),
        ("Pride and Prejudice", 11, 5, ReviewStatus.APPROVED),
        ("Pride and Prejudice", 12, 2, ReviewStatus.APPROVED),
        ("Foundation", 13, 4, ReviewStatus.PENDING),
    ]

    service = ReviewService(db)
    reviews = []
    for title, user_id, rating, final_status in reviews_data:
        review = service.create(
            books[title].id,
            Actor(user_id=user_id),
            {
                "rating": rating,
                "title": f"{rating} stars for {title}",
                "content": f"Sample review of {title} by reader {user_id}.",
                "is_recommended": rating >= 4,
            },
        )
        if final_status != ReviewStatus.PENDING:
            patch = {"status": final_status}
            if final_status == ReviewStatus.REJECTED:
                patch["rejection_reason"] = "Off-topic"
            review = service.update(review.id, MODERATOR, patch)
        reviews.append(review)

    print(f"Created {len(reviews)} reviews.")
    return reviews


def seed_database(clear_existing: bool = True) -> None:
    """
    Main function to seed the database.

    Args:
        clear_existing: If True, clears existing data before seeding.
    """
    print("=" * 60)
    print("Starting database seed...")
    print("=" * 60)

    # Create tables if they don't exist
    create_tables()

    db = SessionLocal()

    try:
        if clear_existing:
            clear_data(db)

        books = create_books(db)
        reviews = create_reviews(db, books)

        print("=" * 60)
        print("Database seeding completed successfully!")
        print("=" * 60)
        print("\nSummary:")
        print(f"  - Books: {len(books)}")
        print(f"  - Reviews: {len(reviews)}")
        for book in books.values():
            db.refresh(book)
            print(f"    {book.title}: {book.average_rating} ({book.ratings_count} approved)")
        print("\nYou can now access the API at http://localhost:8001")
        print("API documentation at http://localhost:8001/docs")

    except Exception as e:
        print(f"Error seeding database: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_database()
