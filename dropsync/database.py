# dropsync/database.py

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from dropsync.core.config import get_settings

Base = declarative_base()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine() -> AsyncEngine:
    """Build the engine on first use so models import without a database."""
    global _engine
    if _engine is None:
        database_url = get_settings().async_database_url
        if not database_url:
            raise ValueError("DATABASE_URL is not set in environment variables")

        kwargs = {"echo": False, "future": True}
        if not database_url.startswith("sqlite"):
            kwargs.update(pool_size=10, max_overflow=20, pool_timeout=30, pool_recycle=1800)
        _engine = create_async_engine(database_url, **kwargs)
    return _engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False
        )
    return _session_factory



async def init_models():
    """Create any missing tables."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine():
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
