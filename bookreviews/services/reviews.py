"""
Review Service

Owns the lifecycle of a review: creation, edits, moderation, likes and
deletion, plus the read-side visibility rules.

Lifecycle:
    create ──► pending ──► approved ◄──► rejected
          └──► approved (author is a moderator)

    - Status changes are moderator-only; nothing moves back to pending
    - Owner or moderator may edit the content or delete the review
    - Only approved reviews can be liked, never by their author

Rating side effect:
    Every change that can alter a review's contribution to its book's
    rating (creating an approved review, moving into or out of approved,
    editing an approved review, deleting an approved review) is followed
    by a full recompute of that book's aggregate (services.ratings).
    The recompute runs after the review change has committed. If it
    fails, the review change stands, an AggregationWarning is logged and
    the aggregate stays stale until the next recompute for that book.
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from bookreviews.models.book import Book
from bookreviews.models.review import (
    ALLOWED_TRANSITIONS,
    Review,
    ReviewLike,
    ReviewStatus,
    utcnow,
)
from bookreviews.models.user import Actor
from bookreviews.schemas.review import ReviewCreate, ReviewUpdate
from bookreviews.services.exceptions import (
    AggregationWarning,
    AuthorizationError,
    BookNotFoundError,
    ConcurrentModificationError,
    DuplicateReviewError,
    InvalidStateError,
    ReviewNotFoundError,
    ReviewValidationError,
    SelfLikeError,
)
from bookreviews.services.ratings import RatingAggregate, recalculate_book_rating

logger = logging.getLogger(__name__)

# Fields the author (or a moderator) may change
CONTENT_FIELDS = ("rating", "title", "content", "contains_spoilers", "is_recommended")
# Changing any of these marks the review as edited
EDIT_TRACKED_FIELDS = frozenset({"rating", "title", "content"})
# Moderator-only fields
MODERATION_FIELDS = ("status", "rejection_reason")

SchemaT = TypeVar("SchemaT", bound=BaseModel)
ItemT = TypeVar("ItemT")


@dataclass(frozen=True)
class LikeResult:
    review_id: int
    action: str
    likes_count: int
    likes: list[int]


@dataclass(frozen=True)
class Page(Generic[ItemT]):
    items: list[ItemT]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.per_page) if self.total > 0 else 0


def _validate(schema: type[SchemaT], payload: SchemaT | Mapping) -> SchemaT:
    """Accept an already-validated schema or validate a plain mapping."""
    if isinstance(payload, schema):
        return payload
    try:
        return schema.model_validate(payload)
    except PydanticValidationError as exc:
        raise ReviewValidationError(
            f"Invalid review data: {exc.error_count()} error(s)",
            errors=exc.errors(include_url=False, include_context=False),
        ) from exc


class ReviewService:
    """
    Review lifecycle operations on one database session.

    Usage:
        service = ReviewService(db)
        review = service.create(book_id, Actor(user_id=7), {"rating": 5, ...})
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_book(self, book_id: int) -> Book:
        book = self.db.get(Book, book_id)
        if book is None:
            raise BookNotFoundError(f"Book with id {book_id} not found")
        return book

    def _get_review(self, review_id: int, for_update: bool = False) -> Review:
        stmt = select(Review).where(Review.id == review_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        review = self.db.execute(stmt).scalar_one_or_none()
        if review is None:
            raise ReviewNotFoundError(f"Review with id {review_id} not found")
        return review

    def find_review_by_user_and_book(self, user_id: int, book_id: int) -> Review | None:
        stmt = select(Review).where(
            Review.book_id == book_id,
            Review.user_id == user_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create(
        self,
        book_id: int,
        actor: Actor,
        payload: ReviewCreate | Mapping,
    ) -> Review:
        """
        Create a review for a book.

        Reviews by moderators are approved immediately and recompute the
        book's rating before returning; everyone else's start pending.

        Raises:
            ReviewValidationError: Missing or out-of-range fields
            BookNotFoundError: Book doesn't exist
            DuplicateReviewError: The author already reviewed this book
        """
        data = _validate(ReviewCreate, payload)
        self.get_book(book_id)

        if self.find_review_by_user_and_book(actor.user_id, book_id) is not None:
            raise DuplicateReviewError(
                "You have already reviewed this book. You can update your existing review."
            )

        review = Review(
            book_id=book_id,
            user_id=actor.user_id,
            **data.model_dump(),
        )
        if actor.is_moderator:
            review.status = ReviewStatus.APPROVED.value
            review.moderated_by = actor.user_id
            review.moderated_at = utcnow()
        else:
            review.status = ReviewStatus.PENDING.value

        self.db.add(review)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # The unique constraint settles concurrent creates
            self.db.rollback()
            if self.find_review_by_user_and_book(actor.user_id, book_id) is not None:
                raise DuplicateReviewError(
                    "You have already reviewed this book. You can update your existing review."
                ) from exc
            if self.db.get(Book, book_id) is None:
                raise BookNotFoundError(f"Book with id {book_id} not found") from exc
            raise

        logger.info(
            f"Review {review.id} created for book {book_id} "
            f"by user {actor.user_id} ({review.status})"
        )

        if review.is_approved:
            self._refresh_book_rating(book_id, "create")

        return review

    def update(
        self,
        review_id: int,
        actor: Actor,
        patch: ReviewUpdate | Mapping,
        expected_version: int | None = None,
    ) -> Review:
        """
        Apply a partial update to a review.

        Args:
            review_id: Review to update
            actor: Acting user
            patch: Content fields and/or moderation fields
            expected_version: Version the caller last read; if given and
                the review changed since, nothing is written

        Raises:
            ReviewValidationError: Invalid field values
            ReviewNotFoundError: Review doesn't exist
            AuthorizationError: Not the owner and not a moderator, or a
                non-moderator sent moderation fields
            InvalidStateError: Transition not allowed (e.g. back to pending)
            ConcurrentModificationError: Review changed concurrently
        """
        review = self._get_review(review_id)
        if not (actor.owns(review.user_id) or actor.is_moderator):
            raise AuthorizationError("You can only update your own reviews")

        changes = _validate(ReviewUpdate, patch).provided_fields()

        content_changes = {f: changes[f] for f in CONTENT_FIELDS if f in changes}
        moderation_changes = {f: changes[f] for f in MODERATION_FIELDS if f in changes}

        if moderation_changes and not actor.is_moderator:
            raise AuthorizationError("Only moderators can change review status")

        if expected_version is not None and review.version != expected_version:
            raise ConcurrentModificationError(
                f"Review {review_id} was modified (version {review.version}, "
                f"expected {expected_version})"
            )

        old_status = ReviewStatus(review.status)
        new_status = ReviewStatus(moderation_changes.get("status", old_status))

        if new_status != old_status and new_status not in ALLOWED_TRANSITIONS[old_status]:
            raise InvalidStateError(
                f"Cannot change review status from {old_status.value} to {new_status.value}"
            )
        if "rejection_reason" in moderation_changes and new_status != ReviewStatus.REJECTED:
            raise ReviewValidationError("A rejection reason only applies to rejected reviews")

        book_id = review.book_id

        edited = False
        for field, value in content_changes.items():
            if getattr(review, field) != value:
                setattr(review, field, value)
                edited = edited or field in EDIT_TRACKED_FIELDS
        if edited:
            review.edited = True
            review.last_edited_at = utcnow()

        if new_status != old_status:
            review.status = new_status.value
            review.moderated_by = actor.user_id
            review.moderated_at = utcnow()
            if new_status != ReviewStatus.REJECTED:
                review.rejection_reason = None
        if "rejection_reason" in moderation_changes:
            review.rejection_reason = moderation_changes["rejection_reason"]

        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            raise ConcurrentModificationError(
                f"Review {review_id} was modified concurrently, re-fetch and retry"
            ) from exc

        if new_status != old_status:
            logger.info(
                f"Review {review_id} moved {old_status.value} -> {new_status.value} "
                f"by moderator {actor.user_id}"
            )

        if ReviewStatus.APPROVED in (old_status, new_status):
            self._refresh_book_rating(book_id, "update")

        return review

    def delete(self, review_id: int, actor: Actor) -> None:
        """
        Permanently delete a review (owner or moderator).

        Raises:
            ReviewNotFoundError: Review doesn't exist
            AuthorizationError: Not the owner and not a moderator
            ConcurrentModificationError: Review changed concurrently
        """
        review = self._get_review(review_id)

        if not (actor.owns(review.user_id) or actor.is_moderator):
            raise AuthorizationError("You can only delete your own reviews")

        # Captured before the row disappears
        book_id = review.book_id
        was_approved = review.is_approved

        self.db.delete(review)
        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            raise ConcurrentModificationError(
                f"Review {review_id} was modified concurrently, re-fetch and retry"
            ) from exc

        logger.info(f"Review {review_id} deleted by user {actor.user_id}")

        if was_approved:
            self._refresh_book_rating(book_id, "delete")

    def toggle_like(self, review_id: int, user_id: int) -> LikeResult:
        """
        Like the review if the user hasn't yet, otherwise remove the like.

        Likes don't affect the book rating.

        Raises:
            ReviewNotFoundError: Review doesn't exist
            SelfLikeError: User is the review's author
            InvalidStateError: Review isn't approved
            ConcurrentModificationError: Same user toggled concurrently
        """
        review = self._get_review(review_id, for_update=True)

        if review.user_id == user_id:
            raise SelfLikeError("You cannot like your own review")
        if not review.is_approved:
            raise InvalidStateError("Cannot like a review that is not approved")

        existing = next(
            (entry for entry in review.like_entries if entry.user_id == user_id),
            None,
        )
        if existing is None:
            review.like_entries.append(ReviewLike(user_id=user_id))
            action = "liked"
        else:
            review.like_entries.remove(existing)
            action = "unliked"

        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConcurrentModificationError(
                f"Like on review {review_id} changed concurrently, retry"
            ) from exc

        return LikeResult(
            review_id=review.id,
            action=action,
            likes_count=review.likes_count,
            likes=review.likes,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, review_id: int, actor: Actor | None = None) -> Review:
        """
        Get a review. Non-approved reviews are only visible to their
        author and to moderators; for anyone else they don't exist.
        """
        review = self._get_review(review_id)
        if not review.is_approved and not self._can_see_hidden(actor, review.user_id):
            raise ReviewNotFoundError(f"Review with id {review_id} not found")
        return review

    def list_for_book(
        self,
        book_id: int,
        actor: Actor | None = None,
        status: ReviewStatus | None = None,
        page: int = 1,
        per_page: int = 10,
    ) -> Page[Review]:
        """
        Reviews of a book, newest first.

        Non-moderators always get approved reviews only; moderators may
        filter by any status (all statuses when no filter is given).
        """
        self.get_book(book_id)

        stmt = select(Review).where(Review.book_id == book_id)
        if actor is None or not actor.is_moderator:
            stmt = stmt.where(Review.status == ReviewStatus.APPROVED.value)
        elif status is not None:
            stmt = stmt.where(Review.status == ReviewStatus(status).value)

        return self._paginate(stmt.order_by(Review.created_at.desc(), Review.id.desc()), page, per_page)

    def list_for_user(
        self,
        user_id: int,
        actor: Actor | None = None,
        status: ReviewStatus | None = None,
        page: int = 1,
        per_page: int = 10,
    ) -> Page[Review]:
        """
        Reviews written by a user, newest first.

        The author and moderators see every status; anyone else only
        approved reviews and may not ask for another status.
        """
        privileged = self._can_see_hidden(actor, user_id)

        stmt = select(Review).where(Review.user_id == user_id)
        if status is not None:
            status = ReviewStatus(status)
            if status != ReviewStatus.APPROVED and not privileged:
                raise AuthorizationError("Not authorized to view these reviews")
            stmt = stmt.where(Review.status == status.value)
        elif not privileged:
            stmt = stmt.where(Review.status == ReviewStatus.APPROVED.value)

        return self._paginate(stmt.order_by(Review.created_at.desc(), Review.id.desc()), page, per_page)

    def list_recent(self, limit: int = 5) -> list[Review]:
        """Most recent approved reviews across all books."""
        stmt = (
            select(Review)
            .where(Review.status == ReviewStatus.APPROVED.value)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def moderation_queue(
        self,
        actor: Actor,
        page: int = 1,
        per_page: int = 10,
    ) -> Page[Review]:
        """Pending reviews, oldest first. Moderators only."""
        if not actor.is_moderator:
            raise AuthorizationError("Moderator privileges required")

        stmt = (
            select(Review)
            .where(Review.status == ReviewStatus.PENDING.value)
            .order_by(Review.created_at.asc(), Review.id.asc())
        )
        return self._paginate(stmt, page, per_page)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _can_see_hidden(actor: Actor | None, owner_id: int) -> bool:
        return actor is not None and (actor.is_moderator or actor.owns(owner_id))

    def _paginate(self, stmt: Select, page: int, per_page: int) -> Page[Review]:
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = self.db.execute(count_stmt).scalar() or 0

        items = self.db.execute(
            stmt.offset((page - 1) * per_page).limit(per_page)
        ).scalars().all()

        return Page(items=list(items), total=total, page=page, per_page=per_page)

    def _refresh_book_rating(self, book_id: int, operation: str) -> RatingAggregate | None:
        """
        Trailing recompute after a committed review change.

        Failures are logged as AggregationWarning and never propagate:
        the review change is the source of truth and has already
        committed; the aggregate heals on the next recompute.
        """
        try:
            return recalculate_book_rating(self.db, book_id)
        except Exception as exc:
            self.db.rollback()
            warning = AggregationWarning(book_id, operation, exc)
            logger.warning(str(warning), exc_info=exc)
            return None
