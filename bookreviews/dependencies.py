"""
FastAPI Dependencies Module

Dependencies are reusable components injected into route handlers.

Provided here:
- DbSession: per-request SQLAlchemy session
- Pagination: page / per_page query parameters
- CurrentActor / OptionalActor / ModeratorActor: the acting user,
  taken from the Bearer token issued by the authentication service
- Reviews: a ReviewService bound to the request's session
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from bookreviews.database import get_db
from bookreviews.models.user import Actor
from bookreviews.services.reviews import ReviewService
from bookreviews.services.security import actor_from_token

# =============================================================================
# Type Aliases with Annotated
# =============================================================================
DbSession = Annotated[Session, Depends(get_db)]


# =============================================================================
# Pagination Parameters
# =============================================================================
class PaginationParams:
    """
    Common pagination parameters for list endpoints.

    GET /books/1/reviews?page=2&per_page=20
    """

    def __init__(
        self,
        page: int = Query(
            default=1,
            ge=1,
            description="Page number (1-indexed)",
        ),
        per_page: int = Query(
            default=10,
            ge=1,
            le=100,
            description="Number of items per page (max 100)",
        ),
    ) -> None:
        self.page = page
        self.per_page = per_page


Pagination = Annotated[PaginationParams, Depends()]


# =============================================================================
# Acting User
# =============================================================================
# tokenUrl points at the authentication service's login route; it only
# feeds the "Authorize" button of the Swagger UI.

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/v1/auth/login",
    auto_error=True,
)

oauth2_scheme_optional = OAuth2PasswordBearer(
    tokenUrl="/api/v1/auth/login",
    auto_error=False,
)


def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    """
    Resolve the acting user from the Bearer token.

    Raises:
        HTTPException: 401 if the token is invalid
    """
    actor = actor_from_token(token)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


def get_optional_actor(
    token: str | None = Depends(oauth2_scheme_optional),
) -> Actor | None:
    """Acting user if a valid token was sent, None for anonymous reads."""
    if not token:
        return None
    return actor_from_token(token)


def get_moderator(actor: Actor = Depends(get_current_actor)) -> Actor:
    """
    Require the moderator role.

    Raises:
        HTTPException: 403 if the actor is not a moderator
    """
    if not actor.is_moderator:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Moderator privileges required",
        )
    return actor


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
OptionalActor = Annotated[Actor | None, Depends(get_optional_actor)]
ModeratorActor = Annotated[Actor, Depends(get_moderator)]


# =============================================================================
# Services
# =============================================================================
def get_review_service(db: DbSession) -> ReviewService:
    return ReviewService(db)


Reviews = Annotated[ReviewService, Depends(get_review_service)]
