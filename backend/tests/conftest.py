import asyncio
from collections.abc import Iterator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

import app.models  # noqa: F401
from app.db.base import Base


def _memory_store() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    return engine, async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture(scope="module")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def session_factory() -> Iterator[async_sessionmaker[AsyncSession]]:
    """Fresh in-memory page store per test."""
    engine, factory = _memory_store()
    yield factory
    asyncio.run(engine.dispose())


@pytest.fixture(scope="module")
def module_session_factory() -> Iterator[async_sessionmaker[AsyncSession]]:
    """In-memory page store shared by every test of a module; seed it once."""
    engine, factory = _memory_store()
    yield factory
    asyncio.run(engine.dispose())
