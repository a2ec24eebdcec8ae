"""Tests for the authentication service."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from app.auth.jwt import TokenType
from app.auth.refresh_store import RefreshTokenStore, hash_refresh_token
from app.core.database import close_db, create_engine, create_session_maker, init_db
from app.core.errors import AuthenticationError, ConflictError
from app.models.user import ADMIN_ROLE
from app.services.auth import (
    EMAIL_TAKEN,
    INVALID_CREDENTIALS,
    INVALID_REFRESH_TOKEN,
    USERNAME_TAKEN,
    AuthService,
)
from app.services.repository import RoleRepository, UserRepository


def service_at(db_session, signer, settings, moment: datetime) -> AuthService:
    """Service whose clock is pinned to `moment`."""
    return AuthService(db_session, signer, settings, clock=lambda: moment)


class TestSignUp:

    @pytest.mark.asyncio
    async def test_issues_token_pair(self, auth_service, signer):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")

        claims = signer.verify(response.auth_token)
        assert claims["sub"] == response.user.user_id
        assert claims["tt"] == TokenType.AUTH.value
        assert claims["username"] == "alice"
        assert claims["roles"] == []
        assert signer.verify(response.refresh_token)["tt"] == TokenType.REFRESH.value
        assert response.user.username == "alice"

    @pytest.mark.asyncio
    async def test_persists_refresh_hash_only(self, auth_service, db_session):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")

        store = RefreshTokenStore(db_session)
        record = await store.find_by_hash(hash_refresh_token(response.refresh_token))
        assert record is not None
        assert record.user_id == response.user.user_id
        assert await store.find_by_hash(response.refresh_token) is None

    @pytest.mark.asyncio
    async def test_email_stored_lowercase(self, auth_service, db_session):
        await auth_service.sign_up("Alice@X.COM", "password123", "alice")

        _, credential = await UserRepository(db_session).find_by_email("alice@x.com")
        assert credential.email == "alice@x.com"
        assert credential.password_hash.startswith("$argon2id$")

    @pytest.mark.asyncio
    async def test_duplicate_email_case_insensitive(self, auth_service):
        await auth_service.sign_up("a@x.com", "password123", "alice")

        with pytest.raises(ConflictError) as exc_info:
            await auth_service.sign_up("A@X.com", "password123", "bob")

        assert exc_info.value.message == EMAIL_TAKEN
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_duplicate_username(self, auth_service):
        await auth_service.sign_up("a@x.com", "password123", "alice")

        with pytest.raises(ConflictError) as exc_info:
            await auth_service.sign_up("b@x.com", "password123", "alice")

        assert exc_info.value.message == USERNAME_TAKEN

    @pytest.mark.asyncio
    async def test_email_conflict_reported_first(self, auth_service):
        await auth_service.sign_up("a@x.com", "password123", "alice")

        with pytest.raises(ConflictError) as exc_info:
            await auth_service.sign_up("a@x.com", "password123", "alice")

        assert exc_info.value.message == EMAIL_TAKEN

    @pytest.mark.asyncio
    async def test_lost_race_on_email_maps_to_conflict(self, auth_service, db_session, monkeypatch):
        await auth_service.sign_up("a@x.com", "password123", "alice")
        # Simulate the pre-check running before the other sign-up committed
        monkeypatch.setattr(auth_service.users, "find_by_email", AsyncMock(return_value=None))

        with pytest.raises(ConflictError) as exc_info:
            await auth_service.sign_up("a@x.com", "password123", "bob")

        assert exc_info.value.message == EMAIL_TAKEN
        # The partial identity insert was rolled back
        assert await UserRepository(db_session).find_by_username("bob") is None

    @pytest.mark.asyncio
    async def test_lost_race_on_username_maps_to_conflict(self, auth_service, monkeypatch):
        await auth_service.sign_up("a@x.com", "password123", "alice")
        monkeypatch.setattr(auth_service.users, "find_by_username", AsyncMock(return_value=None))

        with pytest.raises(ConflictError) as exc_info:
            await auth_service.sign_up("b@x.com", "password123", "alice")

        assert exc_info.value.message == USERNAME_TAKEN


class TestConcurrentSignUp:

    @pytest.mark.asyncio
    async def test_same_email_one_wins(self, tmp_path, signer, settings):
        engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
        await init_db(engine)
        session_maker = create_session_maker(engine)

        async def attempt(username):
            async with session_maker() as session:
                service = AuthService(session, signer, settings)
                return await service.sign_up("a@x.com", "password123", username)

        try:
            results = await asyncio.gather(
                attempt("alice"), attempt("bob"), return_exceptions=True
            )
        finally:
            await close_db(engine)

        conflicts = [r for r in results if isinstance(r, ConflictError)]
        successes = [r for r in results if not isinstance(r, BaseException)]
        assert len(successes) == 1
        assert len(conflicts) == 1
        assert conflicts[0].message == EMAIL_TAKEN


class TestSignIn:

    @pytest.mark.asyncio
    async def test_fresh_tokens_on_success(self, auth_service, signer):
        signed_up = await auth_service.sign_up("a@x.com", "password123", "alice")

        signed_in = await auth_service.sign_in("A@x.com", "password123")

        assert signed_in.user.user_id == signed_up.user.user_id
        assert signed_in.auth_token != signed_up.auth_token
        assert signed_in.refresh_token != signed_up.refresh_token
        assert signer.verify(signed_in.auth_token)["sub"] == signed_up.user.user_id

    @pytest.mark.asyncio
    async def test_wrong_password(self, auth_service):
        await auth_service.sign_up("a@x.com", "password123", "alice")

        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.sign_in("a@x.com", "wrong-password")

        assert exc_info.value.message == INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_unknown_email(self, auth_service):
        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.sign_in("nobody@x.com", "password123")

        assert exc_info.value.message == INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_soft_deleted_identity(self, auth_service, db_session):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")
        users = UserRepository(db_session)
        await users.soft_delete(await users.find_by_id(response.user.user_id))
        await db_session.commit()

        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.sign_in("a@x.com", "password123")

        assert exc_info.value.message == INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_roles_reflect_current_membership(self, auth_service, db_session, signer):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")
        await RoleRepository(db_session).grant(response.user.user_id, ADMIN_ROLE)
        await db_session.commit()

        signed_in = await auth_service.sign_in("a@x.com", "password123")

        assert signer.verify(signed_in.auth_token)["roles"] == [ADMIN_ROLE]


class TestSignOut:

    @pytest.mark.asyncio
    async def test_revokes_refresh_token(self, auth_service):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")

        result = await auth_service.sign_out(response.refresh_token)

        assert result.success is True
        with pytest.raises(AuthenticationError):
            await auth_service.refresh(response.refresh_token)

    @pytest.mark.asyncio
    async def test_unknown_token_still_succeeds(self, auth_service):
        assert (await auth_service.sign_out("never-issued")).success is True


class TestRefresh:

    @pytest.mark.asyncio
    async def test_far_from_expiry_echoes_refresh_token(self, auth_service, signer):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")

        refreshed = await auth_service.refresh(response.refresh_token)

        assert refreshed.refresh_token == response.refresh_token
        assert refreshed.auth_token != response.auth_token
        assert signer.verify(refreshed.auth_token)["tt"] == TokenType.AUTH.value

    @pytest.mark.asyncio
    async def test_rotates_near_expiry(self, auth_service, db_session, signer, settings):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")
        later = datetime.now(timezone.utc) + timedelta(
            seconds=settings.refresh_token_ttl - settings.refresh_renew_threshold + 60
        )

        refreshed = await service_at(db_session, signer, settings, later).refresh(
            response.refresh_token
        )

        assert refreshed.refresh_token != response.refresh_token
        store = RefreshTokenStore(db_session)
        assert await store.find_by_hash(hash_refresh_token(response.refresh_token)) is None
        assert await store.find_by_hash(hash_refresh_token(refreshed.refresh_token)) is not None
        assert signer.verify(refreshed.refresh_token)["tt"] == TokenType.REFRESH.value

    @pytest.mark.asyncio
    async def test_exactly_threshold_remaining_echoes_token(
        self, auth_service, db_session, signer, settings
    ):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")
        record = await RefreshTokenStore(db_session).find_by_hash(
            hash_refresh_token(response.refresh_token)
        )
        at_threshold = record.expires_at - timedelta(seconds=settings.refresh_renew_threshold)

        refreshed = await service_at(db_session, signer, settings, at_threshold).refresh(
            response.refresh_token
        )

        assert refreshed.refresh_token == response.refresh_token

    @pytest.mark.asyncio
    async def test_just_under_threshold_rotates(self, auth_service, db_session, signer, settings):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")
        record = await RefreshTokenStore(db_session).find_by_hash(
            hash_refresh_token(response.refresh_token)
        )
        past_threshold = (
            record.expires_at
            - timedelta(seconds=settings.refresh_renew_threshold)
            + timedelta(microseconds=1)
        )

        refreshed = await service_at(db_session, signer, settings, past_threshold).refresh(
            response.refresh_token
        )

        assert refreshed.refresh_token != response.refresh_token

    @pytest.mark.asyncio
    async def test_rotated_away_token_is_rejected(self, auth_service, db_session, signer, settings):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")
        later = datetime.now(timezone.utc) + timedelta(
            seconds=settings.refresh_token_ttl - settings.refresh_renew_threshold + 60
        )
        await service_at(db_session, signer, settings, later).refresh(response.refresh_token)

        with pytest.raises(AuthenticationError):
            await auth_service.refresh(response.refresh_token)

    @pytest.mark.asyncio
    async def test_expired_record_is_deleted(self, auth_service, db_session, signer, settings):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")
        after_expiry = datetime.now(timezone.utc) + timedelta(
            seconds=settings.refresh_token_ttl + 1
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await service_at(db_session, signer, settings, after_expiry).refresh(
                response.refresh_token
            )

        assert exc_info.value.message == INVALID_REFRESH_TOKEN
        store = RefreshTokenStore(db_session)
        assert await store.find_by_hash(hash_refresh_token(response.refresh_token)) is None

    @pytest.mark.asyncio
    async def test_access_token_is_not_a_refresh_token(self, auth_service):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")

        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.refresh(response.auth_token)

        assert exc_info.value.message == INVALID_REFRESH_TOKEN

    @pytest.mark.asyncio
    async def test_garbage_token(self, auth_service):
        with pytest.raises(AuthenticationError):
            await auth_service.refresh("not-a-token")

    @pytest.mark.asyncio
    async def test_subject_must_match_record(self, auth_service, db_session, signer, settings):
        alice = await auth_service.sign_up("a@x.com", "password123", "alice")
        bob = await auth_service.sign_up("b@x.com", "password123", "bob")
        # A validly signed refresh token for alice whose record belongs to bob
        token = signer.sign(
            {"sub": alice.user.user_id, "tt": TokenType.REFRESH.value, "jti": "forged"},
            settings.refresh_token_ttl,
        )
        await RefreshTokenStore(db_session).insert(
            hash_refresh_token(token),
            bob.user.user_id,
            datetime.now(timezone.utc) + timedelta(days=1),
        )
        await db_session.commit()

        with pytest.raises(AuthenticationError):
            await auth_service.refresh(token)

    @pytest.mark.asyncio
    async def test_soft_deleted_identity_cannot_refresh(self, auth_service, db_session):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")
        users = UserRepository(db_session)
        await users.soft_delete(await users.find_by_id(response.user.user_id))
        await db_session.commit()

        with pytest.raises(AuthenticationError):
            await auth_service.refresh(response.refresh_token)

    @pytest.mark.asyncio
    async def test_new_auth_token_carries_current_roles(self, auth_service, db_session, signer):
        response = await auth_service.sign_up("a@x.com", "password123", "alice")
        await RoleRepository(db_session).grant(response.user.user_id, ADMIN_ROLE)
        await db_session.commit()

        refreshed = await auth_service.refresh(response.refresh_token)

        assert signer.verify(response.auth_token)["roles"] == []
        assert signer.verify(refreshed.auth_token)["roles"] == [ADMIN_ROLE]
