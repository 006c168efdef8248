from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    pool_pre_ping=True,
    pool_size=settings.DATABASE_POOL_SIZE,
    max_overflow=settings.DATABASE_MAX_OVERFLOW,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> AsyncIterator[AsyncSession]:
    """One session per unit of work; anything uncommitted is rolled back on error."""
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
