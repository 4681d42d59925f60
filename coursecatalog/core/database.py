from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from coursecatalog.core.config import settings

logger = logging.getLogger(__name__)

# Arbitrary constant shared by every process that imports the catalog.
CATALOG_IMPORT_LOCK_KEY = 7_240_301


def _engine_kwargs(url: str) -> dict:
    kwargs = {"echo": settings.DATABASE_ECHO, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        return kwargs
    if settings.is_testing():
        kwargs["poolclass"] = NullPool
        return kwargs
    kwargs.update(
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=settings.DATABASE_POOL_TIMEOUT,
    )
    return kwargs


engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


@asynccontextmanager
async def transaction(session_factory: Optional[async_sessionmaker] = None) -> AsyncIterator[AsyncSession]:
    """One session, one transaction: commit on normal exit, roll back on any exception."""
    factory = session_factory or AsyncSessionLocal
    async with factory() as session:
        async with session.begin():
            yield session


async def acquire_import_lock(session: AsyncSession) -> bool:
    """Take the transaction-scoped advisory lock where the backend supports it."""
    if session.get_bind().dialect.name != "postgresql":
        return False
    await session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": CATALOG_IMPORT_LOCK_KEY})
    return True


async def init_db():
    """Initialize database, create tables if they don't exist."""
    # Importing the models registers them on Base.metadata.
    from coursecatalog.models import orm  # noqa: F401

    async with engine.begin() as conn:
        # In production, use migrations instead
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections."""
    await engine.dispose()
