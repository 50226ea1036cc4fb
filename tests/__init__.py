"""
Test Suite for Book Reviews API

Test Organization:
- conftest.py: Shared fixtures (test database, client, actors, sample data)
- test_ratings.py: Rating aggregate computation and recompute
- test_review_service.py: Review lifecycle, moderation and likes
- test_reviews.py: Tests for the /api/v1 review endpoints
- test_admin.py: Tests for the /api/v1/admin repair endpoints

Running Tests:
    # Run all tests
    pytest

    # Run specific file
    pytest tests/test_ratings.py

    # Run with verbose output
    pytest -v
"""
