"""
User profile reads and updates.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, ConstraintViolation, NotFoundError
from app.core.logging import get_logger
from app.models.user import User
from app.services.auth import USERNAME_TAKEN
from app.services.repository import UserRepository

logger = get_logger(__name__)

USER_NOT_FOUND = "User not found"


class UserService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.users = UserRepository(db)

    async def get_user(self, user_id: str) -> User:
        """Live (non-deleted) user by id, else NotFoundError."""
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError(USER_NOT_FOUND)
        return user

    async def update_user(self, user_id: str, username: Optional[str] = None) -> User:
        user = await self.get_user(user_id)
        if username is None or username == user.username:
            return user

        try:
            existing = await self.users.find_by_username(username)
            if existing is not None and existing.id != user.id:
                raise ConflictError(USERNAME_TAKEN)
            await self.users.update_identity(user, username=username)
            await self.db.commit()
        except ConflictError:
            await self.db.rollback()
            raise
        except ConstraintViolation as e:
            await self.db.rollback()
            if e.column != "username":
                raise
            raise ConflictError(USERNAME_TAKEN) from e

        logger.info("user_updated", user_id=user.id, fields=["username"])
        return user
