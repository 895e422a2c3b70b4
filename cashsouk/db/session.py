from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cashsouk.core.settings import settings
from cashsouk.db.url import normalize_database_url

engine = create_async_engine(
    normalize_database_url(settings.database_url),
    pool_size=settings.db_pool_size,
    pool_pre_ping=True,
)
# Routers commit; services only flush, so objects must stay readable after commit.
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
