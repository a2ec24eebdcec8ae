"""Pytest configuration and fixtures."""

from typing import AsyncIterator, Iterator

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from app.auth.jwt import JwtSigner
from app.core.config import Settings
from app.core.database import close_db, create_engine, create_session_maker, init_db
from app.main import create_app
from app.services.auth import AuthService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def generate_pem_pair() -> tuple[str, str]:
    """Fresh P-256 key pair as (private_pem, public_pem)."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture(scope="session")
def key_pair() -> tuple[str, str]:
    return generate_pem_pair()


@pytest.fixture
def settings(key_pair) -> Settings:
    private_pem, public_pem = key_pair
    return Settings(
        database_url=TEST_DATABASE_URL,
        jwt_private_key=private_pem,
        jwt_public_key=public_pem,
        log_level="WARNING",
        log_json=False,
    )


@pytest.fixture
def signer(settings) -> JwtSigner:
    return JwtSigner.from_settings(settings)


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_engine(TEST_DATABASE_URL)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest_asyncio.fixture
async def db_session(engine) -> AsyncIterator[AsyncSession]:
    session_maker = create_session_maker(engine)
    async with session_maker() as session:
        yield session


@pytest.fixture
def auth_service(db_session, signer, settings) -> AuthService:
    return AuthService(db_session, signer, settings)


@pytest.fixture
def client(settings) -> Iterator[TestClient]:
    """Test client on a fresh app; the lifespan creates the schema."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def sign_up(client: TestClient, email: str, username: str, password: str = "password123") -> dict:
    response = client.post(
        "/api/auth/sign-up",
        json={"email": email, "password": password, "username": username},
    )
    assert response.status_code == 201, response.text
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
