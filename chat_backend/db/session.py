"""
Async SQLAlchemy engine and session factory.

The engine is created at import time but connects lazily, so importing the
API module never touches PostgreSQL. `dispose_engine` is awaited from the
application lifespan on shutdown.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from chat_backend.core.config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.database_dsn,
        pool_pre_ping=True,
        pool_size=settings.database_pool_size,
        echo=settings.database_echo,
    )


engine: AsyncEngine = build_engine(get_settings())
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, closed afterwards."""
    async with AsyncSessionLocal() as session:
        yield session


async def dispose_engine() -> None:
    await engine.dispose()
