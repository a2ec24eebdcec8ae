"""
User, credential and role models.

Security considerations:
- Passwords are hashed with Argon2id and live in `users_private`, apart
  from the public profile row
- Emails are stored lowercased; uniqueness is case-insensitive
- Users are soft deleted (`deleted_at`) so their id stays valid as a
  foreign key
- All timestamps use UTC
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, ForeignKey, String, Table, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, UTCDateTime, utcnow

ADMIN_ROLE = "admin"


def new_id() -> str:
    return str(uuid.uuid4())


# Association table for user-role membership (many-to-many)
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(36), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class Role(Base):
    """Named capability; membership is what grants it to a user."""

    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("name", name="uq_roles_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<Role {self.name}>"


class User(Base):
    """Public identity row."""

    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("username", name="uq_users_username"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    # Soft delete
    deleted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.username}>"

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class UserPrivate(Base):
    """Private credential record, 1:1 with `User`."""

    __tablename__ = "users_private"
    __table_args__ = (UniqueConstraint("email", name="uq_users_private_email"),)

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<UserPrivate {self.user_id}>"
