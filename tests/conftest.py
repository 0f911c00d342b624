import os

# Settings are read at import time, point them at SQLite before loading the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.catalog import get_schema, load_schema
from app.core.database import get_db

# In-memory database, one per test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

SCHEMA = [
    """
    CREATE TABLE items (
        id INTEGER PRIMARY KEY,
        title VARCHAR(255) NOT NULL,
        description TEXT NOT NULL,
        updated TEXT
    )
    """,
    """
    CREATE TABLE users (
        user_id INTEGER PRIMARY KEY,
        login VARCHAR(255) NOT NULL,
        password VARCHAR(255) NOT NULL,
        email VARCHAR(255) UNIQUE,
        info TEXT NOT NULL,
        updated VARCHAR(255)
    )
    """,
    """
    CREATE TABLE scores (
        id INTEGER PRIMARY KEY,
        points INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE events (
        name TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'new',
        happened_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE readings (
        id INTEGER PRIMARY KEY,
        value REAL NOT NULL
    )
    """,
]

SEED = [
    "INSERT INTO items (id, title, description, updated) VALUES "
    "(1, 'database/sql', 'Talk about databases', NULL), "
    "(2, 'memcache', 'Talk about memcache with a usage example', NULL)",
    "INSERT INTO users (user_id, login, password, email, info, updated) VALUES "
    "(1, 'rvasily', 'love', 'rvasily@example.com', 'none', NULL)",
    "INSERT INTO scores (id, points) VALUES "
    "(1, 10), (2, 20), (3, 30), (4, 40), (5, 50), (6, 60), (7, 70)",
]


# Fresh database for every test, dropped with the engine
@pytest_asyncio.fixture(scope="function")
async def test_engine():
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        for statement in SCHEMA + SEED:
            await conn.execute(text(statement))
    yield engine
    await engine.dispose()


# Every SQL string sent to the database during the test
@pytest_asyncio.fixture(scope="function")
async def executed_sql(test_engine):
    statements = []

    def record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(test_engine.sync_engine, "before_cursor_execute", record)
    yield statements
    event.remove(test_engine.sync_engine, "before_cursor_execute", record)


@pytest_asyncio.fixture(scope="function")
async def schema(test_engine):
    async with test_engine.connect() as conn:
        return await load_schema(conn)


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine):
    session_local = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_local() as session:
        yield session


# Client
@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, schema):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_schema] = lambda: schema

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
