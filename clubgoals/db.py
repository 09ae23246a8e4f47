from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clubgoals.config import settings


def async_database_url(url: str) -> str:
    """Force the asyncpg driver onto plain postgres URLs."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


engine = create_async_engine(
    async_database_url(settings.database_url),
    pool_pre_ping=True,
    echo=settings.db_echo,
)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    # Reports only read; nothing is committed.
    async with async_session() as session:
        yield session
