from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import Settings


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Engine shared by request handlers and the realtime member/todo loaders."""
    return create_async_engine(
        settings.database_url,
        echo=settings.db_echo or settings.log_level.lower() == "debug",
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Loaded rows are read after commit when building event payloads.
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


settings = Settings()
async_engine = create_engine_from_settings(settings)
AsyncSessionFactory = create_session_factory(async_engine)


class Base(AsyncAttrs, DeclarativeBase):
    pass


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Read-only request session; this service never writes through it."""
    async with AsyncSessionFactory() as session:
        yield session
