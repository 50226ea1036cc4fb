"""
SQLAlchemy Models Package

Model Relationships:
- Book -> Review: One-to-Many (a book has many reviews, at most one per user)
- Review -> ReviewLike: One-to-Many (one row per liking user)

Import all models here to:
1. Make them available as: from bookreviews.models import Book, Review
2. Ensure Alembic discovers them for migrations
"""

from bookreviews.models.book import Book, empty_distribution
from bookreviews.models.review import Review, ReviewLike, ReviewStatus
from bookreviews.models.user import Actor, Role

__all__ = [
    "Book",
    "empty_distribution",
    "Review",
    "ReviewLike",
    "ReviewStatus",
    "Actor",
    "Role",
]
