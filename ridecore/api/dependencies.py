"""FastAPI dependency injection helpers."""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from ridecore.infrastructure.database import async_session_factory


async def get_db() -> AsyncIterator[AsyncSession]:
    """One transaction per request: committed on return, rolled back on error."""
    async with async_session_factory() as session:
        async with session.begin():
            yield session
