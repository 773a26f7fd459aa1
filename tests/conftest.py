# tests/conftest.py
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dropsync import models  # noqa: F401
from dropsync.core.config import Settings
from dropsync.database import Base
from dropsync.services.stores import (
    JobRunStore,
    ListingStore,
    MessageStore,
    PendingAuthorizationStore,
    TokenStore,
)


@pytest.fixture
def settings(tmp_path):
    """Test settings: no .env lookup, every sleep zeroed, scheduler off"""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        BASIC_AUTH_USERNAME="admin",
        BASIC_AUTH_PASSWORD="secret",
        AUTODS_STORE_ID="store-1",
        EBAY_CLIENT_ID="test-client-id",
        EBAY_CLIENT_SECRET="test-client-secret",
        EBAY_RU_NAME="test-ru-name",
        AUTH_POLL_INTERVAL_SECONDS=0.01,
        STAGE_SETTLE_SECONDS=0,
        PROMOTE_SETTLE_SECONDS=0,
        STAGE_ITEM_DELAY_SECONDS=0,
        REMOVAL_BATCH_DELAY_SECONDS=0,
        REMOVAL_ITEM_DELAY_SECONDS=0,
        MESSAGE_ITEM_DELAY_SECONDS=0,
        SCHEDULER_ENABLED=False,
    )


@pytest.fixture
async def test_engine(settings):
    """SQLite engine with every table created, one database file per test."""
    engine = create_async_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def token_store(session_factory):
    return TokenStore(session_factory)


@pytest.fixture
def pending_store(session_factory):
    return PendingAuthorizationStore(session_factory, ttl_seconds=3600)


@pytest.fixture
def listing_store(session_factory):
    return ListingStore(session_factory)


@pytest.fixture
def job_store(session_factory):
    return JobRunStore(session_factory)


@pytest.fixture
def message_store(session_factory):
    return MessageStore(session_factory)
