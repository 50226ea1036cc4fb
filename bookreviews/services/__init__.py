"""
Services Package

Business logic, separate from HTTP handling so it can be embedded behind
any transport and tested in isolation.

Current services:
- reviews.py: Review lifecycle, moderation and likes (ReviewService)
- ratings.py: Book rating aggregation (recompute from approved reviews)
- exceptions.py: Domain errors raised by the services
- security.py: Bearer token verification
- rate_limiter.py: Rate limiting with slowapi
"""
