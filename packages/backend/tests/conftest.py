"""Test fixtures — a fresh SQLite database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI without a server:

1. Each test gets its own SQLite file under tmp_path (via aiosqlite) and
   its own Database handle, so there is no cross-test pollution and no
   external PostgreSQL to provision.
2. The app is built with create_app(database=...), so routes see exactly
   this database.
3. httpx.ASGITransport drives the app in-process. It doesn't run the
   lifespan, so Redis is never initialised and rate limiting is skipped.

bcrypt is turned down to its minimum cost so registering a user in every
test stays fast.
"""

import os

os.environ.setdefault("TASKGATE_BCRYPT_ROUNDS", "4")
os.environ.setdefault("TASKGATE_JWT_SECRET", "test-secret-0123456789-abcdefghijklmnop")

import uuid

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from taskgate.db.engine import Database
from taskgate.identity.roles import Role
from taskgate.identity.store import IdentityStore
from taskgate.main import create_app

PASSWORD = "correct-horse-42"


@pytest_asyncio.fixture()
async def database(tmp_path):
    """Per-test Database on a throwaway SQLite file, schema created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'taskgate-test.db'}")
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()


@pytest_asyncio.fixture()
async def db_session(database):
    """A session for arranging and inspecting rows directly."""
    async with database.session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def store(db_session):
    return IdentityStore(db_session)


@pytest_asyncio.fixture()
async def app(database):
    """The app wired to the per-test database. Tests may set dependency_overrides."""
    application = create_app(database=database)
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client driving the app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ═══════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register(client, email: str, password: str = PASSWORD, name: str = "Test User"):
    r = await client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": password, "name": name},
    )
    assert r.status_code == 201, r.text
    return r.json()


async def login(client, email: str, password: str = PASSWORD) -> dict:
    r = await client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert r.status_code == 200, r.text
    return r.json()


async def register_and_login(client, prefix: str = "user") -> tuple[dict, dict]:
    """Register a fresh USER and sign in. Returns (identity, tokens)."""
    email = unique_email(prefix)
    identity = await register(client, email)
    return identity, await login(client, email)


async def make_super(database, identity_id: str) -> None:
    """Promote an identity straight in the store, as the operator CLI does."""
    async with database.session_factory() as session:
        store = IdentityStore(session)
        identity = await store.get(uuid.UUID(identity_id))
        await store.update_identity(identity, role=Role.SUPER.value)


async def super_tokens(client, database) -> tuple[dict, dict]:
    """A SUPER identity with a token issued after the promotion."""
    identity = await register(client, unique_email("admin"), name="Admin")
    await make_super(database, identity["id"])
    return identity, await login(client, identity["email"])
