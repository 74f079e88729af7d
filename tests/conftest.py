"""Test fixtures — a fresh in-memory database per test.

Each test gets its own SQLite engine (aiosqlite, StaticPool so every
connection sees the same in-memory database) with the schema created
from the models. The app's get_db is overridden to hand out that
session, and the HTTP client talks to the app through ASGITransport,
so no server, Postgres or Redis is needed.
"""

import os

# Must be set before halaqa.config is imported anywhere.
os.environ.setdefault("HALAQA_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from halaqa.db.engine import get_db
from halaqa.db.models import Base
from halaqa.main import app
from support import Seed

TEST_DB_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture()
async def db_session():
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest_asyncio.fixture()
async def client(db_session):
    """HTTP client with the app's get_db pointed at the test database."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def seed(db_session):
    return Seed(db_session)
