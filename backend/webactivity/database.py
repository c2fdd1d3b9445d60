"""Database engines, session factories and the declarative base."""

from collections.abc import AsyncIterator

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from webactivity.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    """Declarative base for all models."""


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a request-scoped session, committing on success."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def sync_database_url(database_url: str) -> str:
    """Celery workers use the default sync driver instead of the async one."""
    return database_url.replace("+asyncpg", "").replace("+aiosqlite", "")


def create_sync_session_factory(database_url: str | None = None) -> sessionmaker:
    """Build a sync session factory for worker processes."""
    url = sync_database_url(database_url or settings.database_url)
    sync_engine = create_engine(url, pool_pre_ping=True)
    return sessionmaker(bind=sync_engine, expire_on_commit=False)
