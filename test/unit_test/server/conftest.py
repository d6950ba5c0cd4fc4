from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_directory.core.billing import StripeGateway
from dumpster_directory.core.billing.stripe_gateway import CheckoutSession
from dumpster_directory.core.database.entities import StripeCustomer
from dumpster_directory.server.core.config import settings


class FakeStripeGateway(StripeGateway):
    """Gateway that records calls instead of reaching Stripe; webhook verification is real."""

    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str]) -> None:
        super().__init__(secret_key=secret_key, webhook_secret=webhook_secret, publishable_key="pk_test_unit")
        self.checkout_calls: List[Dict[str, Any]] = []
        self.products: List[Dict[str, Any]] = []

    async def get_or_create_customer(self, customers, *, business_id, user_id, email, name) -> str:
        existing = await customers.get_by_business(business_id)
        if existing is not None:
            return existing.stripe_customer_id
        self._require_key()
        customers.add(StripeCustomer(business_id=business_id, user_id=user_id, stripe_customer_id="cus_test_1"))
        await customers.session.flush()
        return "cus_test_1"

    async def create_checkout_session(self, **kwargs) -> CheckoutSession:
        self._require_key()
        self.checkout_calls.append(kwargs)
        return CheckoutSession(id=f"cs_test_{len(self.checkout_calls)}", url="https://checkout.stripe.test/pay")

    async def create_product_price(self, *, name, description, price):
        self._require_key()
        self.products.append({"name": name, "description": description, "price": price})
        n = len(self.products)
        return f"prod_test_{n}", f"price_test_{n}"


@pytest.fixture
def auth_config():
    return settings.auth


@pytest.fixture
def fake_gateway(test_config) -> FakeStripeGateway:
    return FakeStripeGateway(test_config.stripe.secret_key, test_config.stripe.webhook_secret)


@pytest_asyncio.fixture(name="client")
async def client_fixture(session: AsyncSession, fake_gateway: FakeStripeGateway) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client with overridden dependencies.

    The ASGI transport does not run the lifespan, so no cache is running
    unless a test puts one on ``app.state``.
    """
    from dumpster_directory.core.database.session import get_session
    from dumpster_directory.server.main import app
    from dumpster_directory.server.services.deps import get_gateway

    async def get_session_override() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    app.state.business_cache = None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
        yield client

    app.dependency_overrides.clear()
    app.state.business_cache = None
    if hasattr(app.state, "zip_lookup"):
        del app.state.zip_lookup
