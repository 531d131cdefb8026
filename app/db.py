from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app import models  # noqa: F401


SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]

engine: AsyncEngine = create_async_engine(settings.assembled_db_url, echo=False, future=True)


async def init_db(bind: AsyncEngine = engine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


def session_factory(bind: AsyncEngine) -> SessionFactory:
    """Build a ``get_session``-style context manager bound to ``bind``."""

    @asynccontextmanager
    async def factory() -> AsyncIterator[AsyncSession]:
        async_session = AsyncSession(bind, expire_on_commit=False)
        try:
            yield async_session
        finally:
            await async_session.close()

    return factory

