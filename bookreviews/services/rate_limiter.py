"""
Rate Limiting Service

Per-client rate limits for the review endpoints, built on slowapi.

Two tiers, applied as decorators on the route handlers:

    @router.get("/reviews/{review_id}")
    @read_limit
    def get_review(request: Request, ...): ...

    @router.put("/reviews/{review_id}")
    @write_limit
    def update_review(request: Request, ...): ...

- read_limit: listings, single reviews, book ratings
  (settings.rate_limit_default)
- write_limit: anything that can trigger a review commit or a rating
  recompute (settings.rate_limit_write)

Counters live in process memory, keyed by client IP. With several
workers each keeps its own counters, so the effective limit is per
worker.
"""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from bookreviews.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

DEFAULT_RETRY_AFTER_SECONDS = 60


def get_client_ip(request: Request) -> str:
    """
    Rate limit key: the first X-Forwarded-For hop, X-Real-IP, or the
    direct peer address.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[settings.rate_limit_default],
    strategy="fixed-window",
    enabled=settings.rate_limit_enabled,
)

read_limit = limiter.limit(settings.rate_limit_default)
write_limit = limiter.limit(settings.rate_limit_write)

logger.info(
    f"Rate limiting {'enabled' if settings.rate_limit_enabled else 'disabled'}: "
    f"reads {settings.rate_limit_default}, writes {settings.rate_limit_write}"
)


def retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Length of the window that was exhausted."""
    item = getattr(getattr(exc, "limit", None), "limit", None)
    if item is None:
        return DEFAULT_RETRY_AFTER_SECONDS
    return int(item.get_expiry())


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 with Retry-After set to the exhausted window."""
    limit_detail = str(exc.detail)
    retry_after = retry_after_seconds(exc)

    logger.warning(
        f"Rate limit {limit_detail} exceeded by {get_client_ip(request)} "
        f"on {request.method} {request.url.path}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please slow down.",
            "detail": limit_detail,
        },
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": limit_detail,
        },
    )
