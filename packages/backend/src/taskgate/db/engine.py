"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.

The engine is wrapped in an explicit Database handle instead of a module
global. Whoever starts the process (the app factory / lifespan, the CLI, the
test fixtures) constructs it and disposes it; components only ever see the
AsyncSession handed to them.
"""

from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from taskgate.db.models import Base


class Database:
    """Owns one engine and its session factory."""

    def __init__(self, url: str, echo: bool = False):
        engine_kwargs = {"echo": echo}
        if not url.startswith("sqlite"):
            # Connection pool: min 5, max 20 connections.
            engine_kwargs.update(pool_size=5, max_overflow=15)
        self.url = url
        self.engine = create_async_engine(url, **engine_kwargs)
        # Session factory — each request gets its own session.
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """Create every table. Dev/test convenience; production uses Alembic."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency — yields a session per request, auto-closes."""
    database: Database = request.app.state.db
    async with database.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
