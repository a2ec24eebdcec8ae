"""
User-related schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from app.models.user import User
from app.schemas.common import CamelModel


class UserResponse(CamelModel):
    """Public user profile."""

    user_id: str
    username: str
    created_at: datetime


class UserUpdate(CamelModel):
    """Schema for updating a user profile."""

    username: Optional[str] = Field(default=None, min_length=1, max_length=255)


def user_to_response(user: User) -> UserResponse:
    return UserResponse(user_id=user.id, username=user.username, created_at=user.created_at)
