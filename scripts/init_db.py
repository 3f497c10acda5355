"""Script to initialize a development database."""

import asyncio

from sqlalchemy import MetaData

from app.database import engine
from app.models.sessions import metadata as sessions_metadata
from app.models.users import metadata as users_metadata


def combined_metadata() -> MetaData:
    """Every table the service knows about in one MetaData."""
    metadata = MetaData()
    for source in (sessions_metadata, users_metadata):
        for table in source.tables.values():
            table.to_metadata(metadata)
    return metadata


async def init_db() -> None:
    """Create the sessions and users tables when they do not exist yet."""
    metadata = combined_metadata()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")
    print("  Use 'alembic upgrade head' for shared environments.")


if __name__ == "__main__":
    asyncio.run(init_db())
