"""Shared pytest fixtures for zCorvus tests.

Provides:
- Async test database (in-memory SQLite, one per test, roles seeded)
- Test client (httpx AsyncClient on the FastAPI app)
- Helpers for registering users, logging in and promoting admins
"""

import os
from typing import AsyncGenerator

import pyotp
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Force test settings before the app reads them
os.environ["ZC_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ZC_JWT_SECRET"] = "test-secret-key-for-tests"
os.environ["ZC_BCRYPT_ROUNDS"] = "4"

from app.core.cache import InMemoryTTLCache, get_secret_cache
from app.db.engine import Base, get_db, seed_roles
from app.db.models import Role, User, role_id_for
from app.main import app


# ── Database fixtures ─────────────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Create a fresh in-memory database for one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await seed_roles(conn)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Database session for service-level tests and test setup."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def secret_cache():
    return InMemoryTTLCache()


@pytest_asyncio.fixture
async def client(session_factory, secret_cache) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with overridden DB and cache dependencies.

    Every request gets its own session, as in production.
    """

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_secret_cache] = lambda: secret_cache

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Factory helpers ───────────────────────────────────────────────────

DEFAULT_PASSWORD = "secret123"


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def register(
    client: AsyncClient,
    username: str = "alice",
    email: str = "alice@example.com",
    password: str = DEFAULT_PASSWORD,
) -> dict:
    """Register a user and return the response ``data`` block."""
    resp = await client.post("/api/auth/register", json={
        "username": username,
        "email": email,
        "password": password,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def login(
    client: AsyncClient,
    email: str = "alice@example.com",
    password: str = DEFAULT_PASSWORD,
    code: str | None = None,
):
    body = {"email": email, "password": password}
    if code is not None:
        body["twoFactorCode"] = code
    return await client.post("/api/auth/login", json=body)


async def set_role(session: AsyncSession, user_id: str, role: Role) -> None:
    """Write a role straight to the database, bypassing the API."""
    user = await session.get(User, user_id)
    user.role_id = role_id_for(role)
    await session.commit()


async def make_admin(client: AsyncClient, session: AsyncSession) -> tuple[dict, str]:
    """Register an admin account and return (user, access token)."""
    data = await register(client, "root", "root@example.com")
    await set_role(session, data["user"]["id"], Role.ADMIN)
    resp = await login(client, "root@example.com")
    assert resp.status_code == 200, resp.text
    return data["user"], resp.json()["data"]["accessToken"]


async def enable_2fa(client: AsyncClient, token: str) -> tuple[str, list[str]]:
    """Run 2FA setup + verify; return (secret, backup codes)."""
    resp = await client.post("/api/auth/2fa/setup", headers=auth_header(token))
    assert resp.status_code == 200, resp.text
    secret = resp.json()["data"]["secret"]
    resp = await client.post(
        "/api/auth/2fa/verify",
        json={"token": pyotp.TOTP(secret).now()},
        headers=auth_header(token),
    )
    assert resp.status_code == 200, resp.text
    return secret, resp.json()["data"]["backupCodes"]
