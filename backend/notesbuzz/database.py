"""Async SQLAlchemy engine and session factory.

The engine is built once in the application lifespan and kept on ``app.state``;
stores receive the session factory through FastAPI dependencies:

    @router.get("/items")
    async def list_items(factory = Depends(get_session_factory)):
        async with factory() as db:
            result = await db.execute(select(Item))
            return result.scalars().all()
"""
from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine. SQLite gets the driver's default pool."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False)
    return create_async_engine(
        database_url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency returning the session factory created at startup."""
    return request.app.state.session_factory
