from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from types import TracebackType

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from collection_filter.db.models import Base


class SqlBackend:
    """Async SQLAlchemy engine shared by the SQL sink and recovery store.

    *url* is any async SQLAlchemy URL, e.g. ``sqlite+aiosqlite:///out.db``
    or ``postgresql+asyncpg://user:pw@host/db``.
    """

    def __init__(self, url: str) -> None:
        self._engine = create_async_engine(url, echo=False)
        self._session_factory = async_sessionmaker(
            self._engine, expire_on_commit=False
        )
        self._initialised = False

    def get_engine(self) -> AsyncEngine:
        return self._engine

    def get_session(self) -> AsyncSession:
        return self._session_factory()

    async def init_db(self) -> None:
        """Create tables (idempotent)."""
        if self._initialised:
            return
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self._initialised = True

    async def close(self) -> None:
        """Dispose of the connection pool and release all resources."""
        await self._engine.dispose()

    async def __aenter__(self) -> SqlBackend:
        await self.init_db()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession]:
        """Provide a transactional scope around a series of operations."""
        await self.init_db()
        session = self.get_session()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
