"""
Async SQLAlchemy engine and session factory for the SQL store.

``asyncpg`` in production; any async URL works, so a file-backed SQLite
database (``sqlite+aiosqlite://``) can stand in for local runs.  Sessions
never expire on commit because entities are mapped out of the rows after
the unit of work has closed.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from rider_dispatch.config import settings


def _engine_options(url: str) -> dict:
    # SQLite uses a static pool; the sizing knobs only apply to real servers
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
    }


engine: AsyncEngine = create_async_engine(
    settings.database_url, echo=False, **_engine_options(settings.database_url)
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for the rider, order, event and offer tables."""


async def dispose_engine() -> None:
    """Close pooled connections on shutdown."""
    await engine.dispose()
