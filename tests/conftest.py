"""Shared fixtures for notesbuzz tests."""

import pytest
from fastapi.testclient import TestClient

from notesbuzz.config import Settings
from notesbuzz.database import build_engine, build_session_factory
from notesbuzz.main import create_app
from notesbuzz.models import Base

# Small enough that a few bytes span several chunks
TEST_CHUNK_SIZE = 4


@pytest.fixture
def anyio_backend():
    """Run async tests on asyncio only."""
    return 'asyncio'


@pytest.fixture
def database_url(tmp_path):
    """SQLite database file private to one test.

    Returns:
        Async SQLAlchemy URL.
    """
    return f'sqlite+aiosqlite:///{tmp_path / "notesbuzz.db"}'


@pytest.fixture
async def session_factory(anyio_backend, database_url):
    """Session factory over a freshly created schema.

    Yields:
        async_sessionmaker bound to the test database.
    """
    engine = build_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def client(database_url):
    """HTTP client for an app wired to the test database.

    Yields:
        TestClient with the app lifespan running.
    """
    app = create_app(
        Settings(DATABASE_URL=database_url, BLOB_CHUNK_SIZE=TEST_CHUNK_SIZE),
    )
    with TestClient(app) as test_client:
        yield test_client
