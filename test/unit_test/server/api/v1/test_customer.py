import pytest
from httpx import AsyncClient

from test.unit_test.fixtures import login_headers, make_quote, make_user

pytestmark = pytest.mark.asyncio


async def test_my_quotes_match_id_or_email(client: AsyncClient, repos, auth_config):
    user = await make_user(repos, "jane@example.com")
    await make_quote(repos)
    await make_quote(repos, customer_email="changed@example.com", customer_id=user.id)
    await make_quote(repos, customer_email="someone@else.test")
    headers = await login_headers(repos, user, auth_config)

    response = await client.get("/api/v1/customer/quotes", headers=headers)
    paged = await client.get("/api/v1/customer/quotes", params={"limit": 1}, headers=headers)

    assert response.json()["total"] == 2
    assert len(paged.json()["quotes"]) == 1
    assert paged.json()["total"] == 2


async def test_my_quote(client: AsyncClient, repos, auth_config):
    user = await make_user(repos, "jane@example.com")
    mine = await make_quote(repos, customer_email="Jane@Example.com")
    theirs = await make_quote(repos, customer_email="someone@else.test")
    headers = await login_headers(repos, user, auth_config)

    found = await client.get(f"/api/v1/customer/quotes/{mine.id}", headers=headers)
    hidden = await client.get(f"/api/v1/customer/quotes/{theirs.id}", headers=headers)

    assert found.json()["id"] == mine.id
    assert hidden.status_code == 404


async def test_requires_login(client: AsyncClient):
    assert (await client.get("/api/v1/customer/quotes")).status_code == 401
