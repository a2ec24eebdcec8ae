"""
Authentication service: sign-up, sign-in, sign-out and refresh.

Every token issuance looks up live role membership, so an access token
always reflects the roles held at the moment it was minted. Refresh tokens
are tracked server-side by hash and rotated once they get close to expiry.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.auth.jwt import JwtSigner, TokenType
from app.auth.password import hash_password, verify_password
from app.auth.refresh_store import RefreshTokenStore, hash_refresh_token
from app.core.config import Settings
from app.core.errors import AuthenticationError, ConflictError, ConstraintViolation
from app.core.logging import get_logger
from app.models.user import User
from app.schemas.auth import AuthResponse, SignOutResponse, TokenRefreshResponse, UserSummary
from app.services.repository import RoleRepository, UserRepository

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"
EMAIL_TAKEN = "Email already taken"
USERNAME_TAKEN = "Username already taken"

_CONFLICT_MESSAGES = {
    "email": EMAIL_TAKEN,
    "username": USERNAME_TAKEN,
}


class AuthService:
    """Orchestrates the signer, the refresh-token store and the repositories.

    One instance per request; it shares the request's database session.
    """

    def __init__(
        self,
        db: AsyncSession,
        signer: JwtSigner,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.db = db
        self.signer = signer
        self.settings = settings
        self.users = UserRepository(db)
        self.roles = RoleRepository(db)
        self.refresh_tokens = RefreshTokenStore(db)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str, username: str) -> AuthResponse:
        """
        Create an identity and its credential, then issue a token pair.

        Raises:
            ConflictError: Email or username already taken (email checked first)
        """
        email = email.lower()
        password_hash = await run_in_threadpool(hash_password, password)

        try:
            if await self.users.find_by_email(email) is not None:
                raise ConflictError(EMAIL_TAKEN)
            if await self.users.find_by_username(username) is not None:
                raise ConflictError(USERNAME_TAKEN)

            user = await self.users.insert_identity(username)
            await self.users.insert_credential(user.id, email, password_hash)
            await self.db.commit()
        except ConflictError as e:
            await self.db.rollback()
            logger.info("sign_up_conflict", reason=e.message)
            raise
        except ConstraintViolation as e:
            # Lost a race with a concurrent sign-up; the constraint decides
            await self.db.rollback()
            message = _CONFLICT_MESSAGES.get(e.column)
            if message is None:
                raise
            logger.info("sign_up_conflict", reason=message, source="constraint")
            raise ConflictError(message) from e

        response = await self._issue_token_pair(user)
        logger.info("sign_up_succeeded", user_id=user.id)
        return response

    async def sign_in(self, email: str, password: str) -> AuthResponse:
        """
        Verify credentials and issue a token pair.

        Unknown email, soft-deleted identity and wrong password all fail with
        the same message.
        """
        row = await self.users.find_by_email(email)
        if row is None:
            logger.info("sign_in_failed", reason="unknown_email")
            raise AuthenticationError(INVALID_CREDENTIALS)

        user, credential = row
        if user.is_deleted:
            logger.info("sign_in_failed", reason="deleted", user_id=user.id)
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not await run_in_threadpool(verify_password, password, credential.password_hash):
            logger.info("sign_in_failed", reason="bad_password", user_id=user.id)
            raise AuthenticationError(INVALID_CREDENTIALS)

        response = await self._issue_token_pair(user)
        logger.info("sign_in_succeeded", user_id=user.id)
        return response

    async def sign_out(self, refresh_token: str) -> SignOutResponse:
        """Revoke a refresh token. Unknown tokens are ignored."""
        await self.refresh_tokens.delete_by_hash(hash_refresh_token(refresh_token))
        await self.db.commit()
        logger.info("sign_out")
        return SignOutResponse(success=True)

    async def refresh(self, refresh_token: str) -> TokenRefreshResponse:
        """
        Exchange a refresh token for a new access token.

        The refresh token is rotated when less than
        `refresh_renew_threshold` seconds remain on its stored expiry;
        otherwise the same token is returned and its record is left as is.

        Raises:
            AuthenticationError: Invalid, wrong-type, revoked or expired token,
                or the owning identity is gone
        """
        claims = self.signer.verify(refresh_token)
        if claims is None or claims.get("tt") != TokenType.REFRESH.value:
            raise self._invalid_refresh("invalid_token")

        token_hash = hash_refresh_token(refresh_token)
        stored = await self.refresh_tokens.find_by_hash(token_hash)
        if stored is None:
            raise self._invalid_refresh("unknown_token")

        now = self._now()
        if stored.expires_at <= now:
            await self.refresh_tokens.delete_by_id(stored.id)
            await self.db.commit()
            logger.info("refresh_token_expired_cleanup", record_id=stored.id)
            raise self._invalid_refresh("expired_record")

        if claims.get("sub") != stored.user_id:
            raise self._invalid_refresh("subject_mismatch")

        user = await self.users.find_by_id(stored.user_id)
        if user is None:
            raise self._invalid_refresh("user_gone")

        auth_token = await self._issue_auth_token(user)

        remaining = (stored.expires_at - now).total_seconds()
        if remaining >= self.settings.refresh_renew_threshold:
            return TokenRefreshResponse(auth_token=auth_token, refresh_token=refresh_token)

        # Concurrent refreshes may each mint a replacement; deletes are idempotent
        await self.refresh_tokens.delete_by_id(stored.id)
        new_refresh_token = await self._issue_refresh_token(user.id)
        await self.db.commit()
        logger.info("refresh_rotated", user_id=user.id, remaining_seconds=int(remaining))
        return TokenRefreshResponse(auth_token=auth_token, refresh_token=new_refresh_token)

    # ------------------------------------------------------------------
    # Token issuance
    # ------------------------------------------------------------------

    async def _issue_token_pair(self, user: User) -> AuthResponse:
        auth_token = await self._issue_auth_token(user)
        refresh_token = await self._issue_refresh_token(user.id)
        await self.db.commit()
        return AuthResponse(
            auth_token=auth_token,
            refresh_token=refresh_token,
            user=UserSummary(user_id=user.id, username=user.username),
        )

    async def _issue_auth_token(self, user: User) -> str:
        roles = await self.roles.roles_for_user(user.id)
        return self.signer.sign(
            {
                "sub": user.id,
                "tt": TokenType.AUTH.value,
                "username": user.username,
                "roles": roles,
                "jti": uuid.uuid4().hex,
            },
            self.settings.auth_token_ttl,
        )

    async def _issue_refresh_token(self, user_id: str) -> str:
        """Sign a refresh token and persist its hash. Caller commits."""
        ttl = self.settings.refresh_token_ttl
        raw_token = self.signer.sign(
            {"sub": user_id, "tt": TokenType.REFRESH.value, "jti": str(uuid.uuid4())},
            ttl,
        )
        await self.refresh_tokens.insert(
            hash_refresh_token(raw_token),
            user_id,
            self._now() + timedelta(seconds=ttl),
        )
        return raw_token

    def _invalid_refresh(self, reason: str) -> AuthenticationError:
        logger.info("refresh_rejected", reason=reason)
        return AuthenticationError(INVALID_REFRESH_TOKEN)
