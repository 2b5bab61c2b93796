"""
Async SQLAlchemy engine and session factory.

Every request, dispatch sweep and fare calculation runs in its own session
(unit of work).  Nothing is cached across sessions, so rate tables and zones
edited by operators take effect on the next call.

Pool sizing comes from settings.  Each API request holds one connection for
its transaction; the sweeper opens one per ride it dispatches, so
``db_max_overflow`` absorbs a sweep running alongside peak traffic.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ridecore.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_timeout=settings.db_pool_timeout_seconds,
    # Connections idle between sweeps may have been closed by the server
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for the ridecore tables (see ``models``)."""
