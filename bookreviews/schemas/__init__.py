"""
Pydantic Schemas Package

Pydantic models for request/response validation.

Schema Naming Convention:
- XxxCreate: Fields required when creating a new record
- XxxUpdate: Fields allowed when updating (all optional)
- XxxResponse: Fields returned in API responses
"""

from bookreviews.schemas.review import (
    BookRatingStats,
    LikeResponse,
    RecomputeAllResponse,
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
    ReviewUpdate,
    StarCount,
)

__all__ = [
    "ReviewCreate",
    "ReviewUpdate",
    "ReviewResponse",
    "ReviewListResponse",
    "LikeResponse",
    "StarCount",
    "BookRatingStats",
    "RecomputeAllResponse",
]
