"""
Domain exceptions for the review service.

Each error carries the HTTP status the API layer answers with, so the
FastAPI app can translate the whole hierarchy with one exception handler.
"""

from fastapi import status


class ReviewServiceError(Exception):
    """Base exception for all review service errors."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ReviewValidationError(ReviewServiceError):
    """Missing or out-of-range review fields."""

    status_code = 422

    def __init__(self, detail: str, errors: list | None = None) -> None:
        super().__init__(detail)
        self.errors = errors or []


class NotFoundError(ReviewServiceError):
    """A referenced book or review does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class BookNotFoundError(NotFoundError):
    pass


class ReviewNotFoundError(NotFoundError):
    pass


class DuplicateReviewError(ReviewServiceError):
    """User already reviewed this book."""

    status_code = status.HTTP_409_CONFLICT


class AuthorizationError(ReviewServiceError):
    """Ownership or role check failed."""

    status_code = status.HTTP_403_FORBIDDEN


class SelfLikeError(ReviewServiceError):
    """Users can't like their own review."""


class InvalidStateError(ReviewServiceError):
    """Operation not allowed in the review's current status."""


class ConcurrentModificationError(ReviewServiceError):
    """The review changed since it was read; re-fetch and retry."""

    status_code = status.HTTP_409_CONFLICT


class AggregationWarning(UserWarning):
    """
    A book's rating recompute failed after a review change committed.

    Never raised to callers. The review change stands and the book keeps
    its previous aggregate until the next successful recompute.
    """

    def __init__(self, book_id: int, operation: str, cause: BaseException) -> None:
        super().__init__(
            f"Rating for book {book_id} may be stale after {operation}: {cause!r}"
        )
        self.book_id = book_id
        self.operation = operation
        self.cause = cause
