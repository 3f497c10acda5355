"""Database engine and session management."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings

DATABASE_URL = settings.sqlalchemy_database_url


def engine_options(url: str) -> dict[str, Any]:
    """Pool and driver options for a database URL.

    Only the asyncpg driver takes pool sizing and server settings; local
    SQLite files get the driver defaults.
    """
    options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    if make_url(url).get_backend_name() == "postgresql":
        options.update(
            pool_size=10,
            max_overflow=20,
            pool_recycle=3600,
            connect_args={"server_settings": {"application_name": settings.app_name}},
        )
    return options


engine: AsyncEngine = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; rolled back when the handler raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def check_database_connection() -> bool:
    """Run ``SELECT 1`` against the engine."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
