from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def build_engine(database_url: str) -> AsyncEngine:
    """Async engine for the page store; sqlite is only used by tests and local tooling."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, future=True, connect_args={"check_same_thread": False})
    return create_async_engine(database_url, future=True, pool_pre_ping=True, pool_size=10, max_overflow=10)


engine = build_engine(settings.database_url)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session
