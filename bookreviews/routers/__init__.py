"""
API Routers Package

This package contains FastAPI routers that handle API endpoints.

Router Structure:
- reviews.py: /api/v1/books/{id}/reviews, /api/v1/reviews/*, /api/v1/users/{id}/reviews
- admin.py: /api/v1/admin/* rating repair endpoints (moderators)

Each router is imported and registered in main.py.
"""

from bookreviews.routers.admin import router as admin_router
from bookreviews.routers.reviews import router as reviews_router

__all__ = [
    "admin_router",
    "reviews_router",
]
