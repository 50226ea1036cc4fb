"""
Acting User

Users live in the authentication service; this application never stores
them. What it needs from a request is who is acting and with which role,
which the authentication service puts into the Bearer token.

The review service trusts the Actor it is given. Deriving it from a
token is the job of bookreviews.dependencies.
"""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """
    Roles understood by the review service.

    - USER: can write, edit and delete their own reviews and like others'
    - MODERATOR: can also change review status and act on any review
    """

    USER = "user"
    MODERATOR = "moderator"


@dataclass(frozen=True)
class Actor:
    """The user performing an operation."""

    user_id: int
    role: Role = Role.USER

    @property
    def is_moderator(self) -> bool:
        return self.role == Role.MODERATOR

    def owns(self, user_id: int) -> bool:
        return self.user_id == user_id
