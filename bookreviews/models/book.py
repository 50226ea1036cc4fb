"""
Book Model

The aggregate root the review ratings are materialized onto.

Books are created by the cataloguing service; this application only
reads the catalogue fields and owns the three rating fields:

- average_rating: mean of approved review ratings, rounded half-up to
  one decimal (0 when there are no approved reviews)
- ratings_count: number of approved reviews
- ratings_distribution: five {"star", "count"} entries ordered 5..1

WHY Materialize the Rating?
===========================
Book listings are read far more often than reviews are written.
Storing the aggregate on the book avoids COUNT/AVG subqueries on every
request; the rating service recomputes it from scratch after each
qualifying review change so it can never drift.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookreviews.database import Base

if TYPE_CHECKING:
    from bookreviews.models.review import Review


STAR_VALUES = (5, 4, 3, 2, 1)


def empty_distribution() -> list[dict[str, int]]:
    """Zero-filled distribution, highest star first."""
    return [{"star": star, "count": 0} for star in STAR_VALUES]


class Book(Base):
    """
    Book model.

    Table: books

    Indexes:
    - isbn: Unique index for lookups
    - average_rating: For "top rated" sorting in listings

    Example:
        book = Book(title="1984", author="George Orwell", isbn="9780451524935")
    """

    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)

    # -------------------------------------------------------------------------
    # Catalogue Fields (written by the cataloguing service)
    # -------------------------------------------------------------------------
    title: Mapped[str] = mapped_column(
        String(500),
        index=True,
        nullable=False,
        comment="Book title"
    )
    author: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Display name of the author(s)"
    )
    isbn: Mapped[str | None] = mapped_column(
        String(20),
        unique=True,
        index=True,
        nullable=True,
        comment="International Standard Book Number"
    )

    # -------------------------------------------------------------------------
    # Rating Aggregate (written only by services.ratings)
    # -------------------------------------------------------------------------
    # Numeric(2, 1): 0.0 - 5.0, one decimal place
    average_rating: Mapped[Decimal] = mapped_column(
        Numeric(2, 1),
        default=Decimal("0"),
        nullable=False,
        index=True,
        comment="Mean of approved review ratings, 0 if none"
    )
    ratings_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Number of approved reviews"
    )
    ratings_distribution: Mapped[list] = mapped_column(
        JSON,
        default=empty_distribution,
        nullable=False,
        comment="Approved review count per star, ordered 5..1"
    )

    # -------------------------------------------------------------------------
    # Timestamps
    # -------------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------
    reviews: Mapped[list["Review"]] = relationship(
        "Review",
        back_populates="book",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"Book(id={self.id}, title='{self.title}', "
            f"average_rating={self.average_rating}, ratings_count={self.ratings_count})"
        )
