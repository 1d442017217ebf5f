"""
Per-service HTTP clients for integration tests.

Both apps share the test session, the fake Razorpay API and a switchable
caller identity:

    auth.as_customer(seeded.customer_id)
    await orders_client.post("/checkout/confirm", json=...)
    auth.as_admin()
    await payments_client.post("/razorpay/refund", json=...)
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.payments_service.razorpay_client import get_razorpay_client


class AuthSwitch:
    def __init__(self):
        self.user = AuthUser(sub="1", email="asha@example.com", role="customer")

    def as_customer(self, customer_id: int) -> AuthUser:
        self.user = AuthUser(
            sub=str(customer_id), email="asha@example.com", role="customer"
        )
        return self.user

    def as_admin(self) -> AuthUser:
        self.user = AuthUser(sub="admin-1", email="ops@example.com", role="admin")
        return self.user

    async def current_user(self) -> AuthUser:
        return self.user


@pytest.fixture
def auth() -> AuthSwitch:
    return AuthSwitch()


def _override(app, db_session, auth, fake_razorpay):
    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_current_user] = auth.current_user
    app.dependency_overrides[get_razorpay_client] = lambda: fake_razorpay.client()


@pytest_asyncio.fixture
async def orders_client(
    db_session, auth, fake_razorpay
) -> AsyncGenerator[AsyncClient, None]:
    from services.orders_service.app.main import app

    _override(app, db_session, auth, fake_razorpay)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def payments_client(
    db_session, auth, fake_razorpay
) -> AsyncGenerator[AsyncClient, None]:
    from services.payments_service.app.main import app

    _override(app, db_session, auth, fake_razorpay)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
