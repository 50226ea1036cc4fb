"""
pytest Fixtures for Book Reviews API Tests

This file contains shared fixtures used across all test files.

FIXTURE SCOPES:
- function (default): New instance per test function

Every test gets its own in-memory SQLite database. The review service
commits (and rolls back) on its own, so wrapping each test in an outer
transaction isn't an option; a fresh engine per test keeps tests
isolated instead.
"""

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================
# IMPORTANT: Set environment variables BEFORE importing the app
# This disables rate limiting and sets a test secret key
import os

os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-at-least-32-characters-long"
os.environ["DATABASE_URL"] = "sqlite://"

from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bookreviews.database import Base, get_db
from bookreviews.main import app
from bookreviews.models import Actor, Book, Review, ReviewStatus, Role

# =============================================================================
# DATABASE FIXTURES
# =============================================================================
# SQLite in-memory is fast and needs no external database.
#
# IMPORTANT: SQLite ignores SELECT ... FOR UPDATE. Row locking is only
# exercised against PostgreSQL.


@pytest.fixture(scope="function")
def engine():
    """
    Create a SQLite in-memory database engine.

    StaticPool keeps the single connection alive for the whole test.
    Without it, the in-memory database would disappear between connections.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        # ON DELETE CASCADE needs foreign keys switched on in SQLite
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    TestSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )
    session = TestSessionLocal()

    yield session

    session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """
    Create a test client with the test database.

    We override the get_db dependency to use our test session.
    """

    def override_get_db():
        """Provide test database session instead of real one."""
        try:
            yield db_session
        finally:
            pass  # Session cleanup handled by db_session fixture

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# ACTORS
# =============================================================================

AUTHOR_ID = 101
READER_ID = 202
MODERATOR_ID = 900


@pytest.fixture
def author() -> Actor:
    return Actor(user_id=AUTHOR_ID)


@pytest.fixture
def reader() -> Actor:
    return Actor(user_id=READER_ID)


@pytest.fixture
def moderator() -> Actor:
    return Actor(user_id=MODERATOR_ID, role=Role.MODERATOR)


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================


@pytest.fixture
def sample_book(db_session: Session) -> Book:
    """Create a sample book for testing."""
    book = Book(
        title="1984",
        author="George Orwell",
        isbn="9780451524935",
    )
    db_session.add(book)
    db_session.commit()
    db_session.refresh(book)
    return book


@pytest.fixture
def second_book(db_session: Session) -> Book:
    book = Book(title="Animal Farm", author="George Orwell", isbn="9780451526342")
    db_session.add(book)
    db_session.commit()
    db_session.refresh(book)
    return book


@pytest.fixture
def make_review(db_session: Session, sample_book: Book) -> Callable[..., Review]:
    """
    Factory that inserts a review row directly, bypassing the service.

    Used to arrange state; the book's aggregate is NOT recomputed.
    """
    next_user_id = iter(range(5000, 6000))

    def _make_review(
        rating: int = 4,
        status: ReviewStatus = ReviewStatus.APPROVED,
        user_id: int | None = None,
        book: Book | None = None,
        **fields,
    ) -> Review:
        review = Review(
            book_id=(book or sample_book).id,
            user_id=user_id if user_id is not None else next(next_user_id),
            rating=rating,
            title=fields.pop("title", "Great book!"),
            content=fields.pop("content", "I really enjoyed reading this book."),
            status=ReviewStatus(status).value,
            **fields,
        )
        db_session.add(review)
        db_session.commit()
        db_session.refresh(review)
        return review

    return _make_review


@pytest.fixture
def review_payload() -> dict:
    return {
        "rating": 4,
        "title": "Great book!",
        "content": "I really enjoyed reading this book.",
    }
