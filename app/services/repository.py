"""
Repositories over the user, credential and role tables.

Repositories flush but never commit; the calling service owns the
transaction. A uniqueness failure reported by the database surfaces as
`ConstraintViolation` with the colliding column in `detail["column"]`.
"""

import re
from typing import Any, Optional

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import utcnow
from app.core.errors import ConstraintViolation
from app.models.user import Role, User, UserPrivate, user_roles

# Named constraints declared on the models
UNIQUE_CONSTRAINT_COLUMNS = {
    "uq_users_username": "username",
    "uq_users_private_email": "email",
    "uq_refresh_tokens_token_hash": "token_hash",
    "uq_roles_name": "name",
}

_SQLITE_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: (\w+)\.(\w+)")


def _constraint_name(orig: Any) -> Optional[str]:
    """Pull the constraint name from driver metadata (asyncpg or psycopg)."""
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        name = getattr(candidate, "constraint_name", None)
        if name:
            return name
        diag = getattr(candidate, "diag", None)
        if diag is not None and getattr(diag, "constraint_name", None):
            return diag.constraint_name
    return None


def constraint_violation_from(exc: IntegrityError) -> ConstraintViolation:
    orig = exc.orig
    constraint = _constraint_name(orig)
    column = UNIQUE_CONSTRAINT_COLUMNS.get(constraint) if constraint else None
    if column is None:
        # SQLite only reports "table.column" in the message
        match = _SQLITE_UNIQUE_RE.search(str(orig))
        if match:
            column = match.group(2)
    return ConstraintViolation(
        str(orig), detail={"constraint": constraint, "column": column}
    )


class UserRepository:
    """Identity and credential rows."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_by_email(self, email: str) -> Optional[tuple[User, UserPrivate]]:
        """Credential joined to its identity, soft-deleted identities included."""
        result = await self.db.execute(
            select(User, UserPrivate)
            .join(UserPrivate, UserPrivate.user_id == User.id)
            .where(UserPrivate.email == email.lower())
            .limit(1)
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    async def find_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username).limit(1))
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: str, include_deleted: bool = False) -> Optional[User]:
        query = select(User).where(User.id == user_id)
        if not include_deleted:
            query = query.where(User.deleted_at.is_(None))
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def insert_identity(self, username: str) -> User:
        user = User(username=username)
        self.db.add(user)
        await self._flush()
        return user

    async def insert_credential(self, user_id: str, email: str, password_hash: str) -> UserPrivate:
        credential = UserPrivate(user_id=user_id, email=email.lower(), password_hash=password_hash)
        self.db.add(credential)
        await self._flush()
        return credential

    async def update_identity(self, user: User, **fields: Any) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        await self._flush()
        return user

    async def soft_delete(self, user: User) -> User:
        return await self.update_identity(user, deleted_at=utcnow())

    async def _flush(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise constraint_violation_from(e) from e


class RoleRepository:
    """Role names and user-role membership."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def roles_for_user(self, user_id: str) -> list[str]:
        result = await self.db.execute(
            select(Role.name)
            .join(user_roles, user_roles.c.role_id == Role.id)
            .where(user_roles.c.user_id == user_id)
            .order_by(Role.name)
        )
        return list(result.scalars().all())

    async def ensure_role(self, name: str) -> Role:
        result = await self.db.execute(select(Role).where(Role.name == name))
        role = result.scalar_one_or_none()
        if role is None:
            role = Role(name=name)
            self.db.add(role)
            await self.db.flush()
        return role

    async def grant(self, user_id: str, name: str) -> None:
        """Add `user_id` to role `name`; granting twice is a no-op."""
        role = await self.ensure_role(name)
        existing = await self.db.execute(
            select(user_roles.c.user_id).where(
                user_roles.c.user_id == user_id, user_roles.c.role_id == role.id
            )
        )
        if existing.first() is None:
            await self.db.execute(insert(user_roles).values(user_id=user_id, role_id=role.id))
