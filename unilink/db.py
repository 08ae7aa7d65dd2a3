"""SQLAlchemy 2.x async database setup.

SQLite (aiosqlite) is the default backend; point ``DB_URL`` at
``postgresql+asyncpg://...`` for PostgreSQL. No credentials are hard-coded.
"""

from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


engine: AsyncEngine = create_async_engine(settings.db.url, echo=settings.db.echo, future=True)

if _is_sqlite(settings.db.url):
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

AsyncSessionMaker = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI-friendly async session dependency.

    Usage:
        async def endpoint(session: AsyncSession = Depends(get_session)):
            ...
    """

    async with AsyncSessionMaker() as session:
        yield session


async def create_all() -> None:
    """Create every table that does not exist yet."""
    from .models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
