"""
Refresh-token store.

Persists the SHA-256 hex digest of every issued refresh token together with
its owner and expiry. The raw token is never written. Deletes are
idempotent: removing a record that does not exist is not an error.
"""

import hashlib
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.refresh_token import RefreshToken


def hash_refresh_token(raw_token: str) -> str:
    """One-way digest used as the lookup key for a refresh token."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


class RefreshTokenStore:
    """Refresh-session persistence bound to one database session.

    Callers own the transaction; nothing here commits.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def insert(self, token_hash: str, user_id: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(token_hash=token_hash, user_id=user_id, expires_at=expires_at)
        self.db.add(record)
        await self.db.flush()
        return record

    async def find_by_hash(self, token_hash: str) -> Optional[RefreshToken]:
        result = await self.db.execute(
            select(RefreshToken).where(RefreshToken.token_hash == token_hash)
        )
        return result.scalar_one_or_none()

    async def delete_by_id(self, record_id: str) -> None:
        await self.db.execute(delete(RefreshToken).where(RefreshToken.id == record_id))

    async def delete_by_hash(self, token_hash: str) -> None:
        await self.db.execute(
            delete(RefreshToken).where(RefreshToken.token_hash == token_hash)
        )
