"""Test fixtures — a real app over a throwaway SQLite database.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own Settings pointing at a fresh SQLite file under
   tmp_path (aiosqlite driver), so nothing leaks between tests.
2. create_app(settings) builds the same app production runs. ASGITransport
   does not run the lifespan, so the fixture creates the schema from the
   ORM metadata and seeds the roles itself.
3. Auth is NOT mocked: tests sign up, log in and carry real tokens and
   cookies through the real gateway.
"""

import uuid
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from edtech.config import Settings
from edtech.db.models import ROLE_ADMINISTRATOR, Base
from edtech.main import create_app
from edtech.services.role_service import RoleService
from edtech.services.user_service import UserService

TEST_SECRET = "test-secret-0123456789abcdefghijklmnop"
PASSWORD = "pw123"


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        jwt_secret=TEST_SECRET,
        access_token_ttl=timedelta(hours=24),
        session_ttl=timedelta(days=7),
        cookie_secure=False,
        bcrypt_rounds=10,
        redis_url="",
    )


@pytest_asyncio.fixture()
async def app(settings):
    app = create_app(settings)
    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with app.state.session_factory() as db:
        await RoleService(db).ensure_default_roles()

    yield app

    await app.state.engine.dispose()


@pytest_asyncio.fixture()
async def db_session(app):
    """A session on the app's engine for arranging and inspecting rows."""
    async with app.state.session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client talking to the app in-process. Keeps cookies between calls."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ─── Helpers ─────────────────────────────────────────────


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


async def signup(client, email: str, password: str = PASSWORD, role_id: int = 1):
    return await client.post(
        "/auth/signup",
        json={
            "name": "Test",
            "surname": "User",
            "email": email,
            "password": password,
            "role_id": role_id,
        },
    )


async def login(client, email: str, password: str = PASSWORD):
    return await client.post(
        "/auth/login", json={"email": email, "password": password}
    )


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def logged_in(client):
    """A Child account that has logged in. Returns (user json, access token)."""
    email = unique_email("child")
    await signup(client, email)
    r = await login(client, email)
    assert r.status_code == 200
    body = r.json()
    return body["user"], body["token"]


@pytest_asyncio.fixture()
async def admin_token(app, settings, client):
    """An Administrator created directly in the store, then logged in."""
    email = unique_email("admin")
    async with app.state.session_factory() as db:
        role = await RoleService(db).get_by_name(ROLE_ADMINISTRATOR)
        await UserService(db, settings.bcrypt_rounds).create(
            name="Ada",
            surname="Admin",
            email=email,
            password=PASSWORD,
            role_id=role.id,
        )
    r = await client.post(
        "/auth/login", json={"email": email, "password": PASSWORD}
    )
    assert r.status_code == 200
    # Admin calls authenticate with the bearer token; drop the cookie so
    # it cannot be confused with another user's session in the same client.
    client.cookies.clear()
    return r.json()["token"]
