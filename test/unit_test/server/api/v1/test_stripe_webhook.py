import hashlib
import hmac
import json
import time

import pytest
from httpx import AsyncClient

from test.unit_test.fixtures import make_business

pytestmark = pytest.mark.asyncio

WEBHOOK_URL = "/api/v1/stripe/webhook"


def _sign(payload: str, secret: str, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def _credits_event(business_id: str, event_id: str = "evt_endpoint_1") -> str:
    return json.dumps(
        {
            "id": event_id,
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_test_1",
                    "amount_total": 1000,
                    "metadata": {"business_id": business_id, "user_id": "u1", "type": "credits", "credits": "3"},
                }
            },
        }
    )


async def test_signed_event_is_processed_once(client: AsyncClient, repos, test_config):
    business = await make_business(repos)
    payload = _credits_event(business.id)
    headers = {"stripe-signature": _sign(payload, test_config.stripe.webhook_secret)}

    first = await client.post(WEBHOOK_URL, content=payload, headers=headers)
    second = await client.post(WEBHOOK_URL, content=payload, headers=headers)

    assert first.status_code == 200
    assert first.json() == {"received": True, "event_id": "evt_endpoint_1", "outcome": "processed"}
    assert second.json()["outcome"] == "duplicate"
    assert await repos.subscriptions.credit_balance(business.id) == 3


async def test_alternate_path_is_the_same_endpoint(client: AsyncClient, repos, test_config):
    payload = json.dumps({"id": "evt_alt", "type": "ping", "data": {"object": {}}})
    headers = {"stripe-signature": _sign(payload, test_config.stripe.webhook_secret)}

    response = await client.post("/api/v1/webhooks/stripe", content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json()["outcome"] == "ignored"


async def test_bad_signature_is_rejected(client: AsyncClient, repos):
    business = await make_business(repos)
    payload = _credits_event(business.id)

    headers = {"stripe-signature": _sign(payload, "whsec_wrong")}
    response = await client.post(WEBHOOK_URL, content=payload, headers=headers)

    assert response.status_code == 400
    assert await repos.subscriptions.credit_balance(business.id) == 0


async def test_missing_signature_is_rejected(client: AsyncClient):
    response = await client.post(WEBHOOK_URL, content=json.dumps({"id": "evt", "type": "ping"}))
    assert response.status_code == 400


async def test_stale_signature_is_rejected(client: AsyncClient, test_config):
    payload = json.dumps({"id": "evt_old", "type": "ping", "data": {"object": {}}})
    stale = _sign(payload, test_config.stripe.webhook_secret, timestamp=int(time.time()) - 3600)

    response = await client.post(WEBHOOK_URL, content=payload, headers={"stripe-signature": stale})

    assert response.status_code == 400


async def test_unconfigured_secret_returns_503(client: AsyncClient, fake_gateway):
    fake_gateway.webhook_secret = None

    response = await client.post(WEBHOOK_URL, content="{}", headers={"stripe-signature": "t=1,v1=abc"})

    assert response.status_code == 503
