"""Async database engine and session management."""

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.config import Settings


class Database:
    """Engine + session factory owned by one application instance.

    The engine is created on first use, not at construction, so building an
    app (or importing it for alembic) never opens a connection pool.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            url = self._settings.database_url
            if url.startswith("sqlite"):
                # SQLite connections can't be shared across event loops
                self._engine = create_async_engine(url, poolclass=NullPool, echo=False)
            else:
                self._engine = create_async_engine(
                    url,
                    pool_size=20,
                    max_overflow=10,
                    pool_pre_ping=True,
                    echo=self._settings.debug,
                )
        return self._engine

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        return self._session_maker

    async def dispose(self):
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_maker = None


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: yields a request-scoped async session."""
    session_maker = request.app.state.ctx.db.session_maker
    async with session_maker() as session:
        yield session
