"""Async engine and session factory shared by the API and tooling."""

from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from gramperks_api.core.settings import settings


engine = create_async_engine(settings.database_url, echo=settings.database_echo, future=True)

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session."""

    async with async_session() as session:
        yield session


async def init_models() -> None:
    """Create tables directly from metadata (development databases only)."""

    import gramperks_api.models  # noqa: F401  (register mappers)
    from gramperks_api.db.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
