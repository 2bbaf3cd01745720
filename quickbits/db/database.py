"""Database connection and session management."""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from quickbits.config import settings

# Base class for models
Base = declarative_base()


class Database:
    """
    Store client owning the async engine and session factory.

    Constructed explicitly and passed to whoever needs the store. ``open()`` is
    safe to call repeatedly; ``close()`` disposes the engine. Also usable as an
    async context manager.
    """

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or settings.database_url
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_maker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def open(self) -> "Database":
        """Create the engine and make sure the tables exist."""
        if self._engine is None:
            self._engine = create_async_engine(self.url, echo=self.echo, future=True)
            self._session_maker = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            await self.create_all()
        return self

    async def create_all(self):
        """Initialize database tables."""
        # Import models so they register on Base.metadata
        import quickbits.models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        """Close database connections."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_maker = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session that commits on success and rolls back on error."""
        if self._session_maker is None:
            await self.open()
        async with self._session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def __aenter__(self) -> "Database":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
