import os
from typing import AsyncGenerator

# Test settings must be in place before any libs module reads them
os.environ.update(
    {
        "ENVIRONMENT": "test",
        "DATABASE_URL": "sqlite+aiosqlite://",
        "RATE_LIMIT_ENABLED": "false",
        "RAZORPAY_KEY_ID": "rzp_test_key",
        "RAZORPAY_KEY_SECRET": "test_key_secret",
        "RAZORPAY_WEBHOOK_SECRET": "test_webhook_secret",
        "RAZORPAY_RETRY_DELAY_SECONDS": "0",
        "JWT_SECRET": "test-jwt-secret",
    }
)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from libs.common.config import get_settings  # noqa: E402
from libs.db.base import Base  # noqa: E402

# Import all models so metadata includes every table
from services.orders_service import models as _order_models  # noqa: F401,E402
from services.payments_service import models as _payment_models  # noqa: F401,E402

# Clear cached settings to reload with the test env vars
get_settings.cache_clear()
settings = get_settings()


@pytest_asyncio.fixture
async def test_engine():
    """
    A fresh in-memory SQLite database per test.

    pysqlite's own transaction handling breaks SAVEPOINT, so BEGIN is
    emitted explicitly; per-vendor savepoints then behave as on PostgreSQL.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session configured like the application's session factory.
    """
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_razorpay():
    """In-process Razorpay API that records every call."""
    from tests.fakes import FakeRazorpay

    return FakeRazorpay()
