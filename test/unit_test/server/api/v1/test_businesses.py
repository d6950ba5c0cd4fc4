import pytest
import pytest_asyncio
from httpx import AsyncClient

from dumpster_directory.core.cache import BusinessCache
from test.unit_test.fixtures import login_headers, make_business, make_quote, make_user

pytestmark = pytest.mark.asyncio

BUSINESSES = "/api/v1/businesses"

NEW_BUSINESS = {
    "name": "Lone Star Roll Off",
    "category": "Dumpster Rental",
    "phone": "(512) 555-0000",
    "address": "9 River Rd",
    "city": "Austin",
    "state": "TX",
    "zipcode": "78702",
}


@pytest_asyncio.fixture
async def loaded_cache(client, session_factory):
    from dumpster_directory.server.main import app

    cache = BusinessCache(session_factory)
    app.state.business_cache = cache
    return cache


@pytest_asyncio.fixture
async def directory(repos):
    return [
        await make_business(repos, "Acme Dumpsters", rating=4.9, reviews=120),
        await make_business(repos, "Budget Bins", city="Dallas", rating=4.1, is_verified=True),
        await make_business(repos, "Featured Hauling", rating=3.2, is_featured=True),
        await make_business(repos, "Mile High Bins", city="Denver", state="CO", category="Junk Removal"),
    ]


class TestListing:
    async def test_list_from_database(self, client: AsyncClient, directory):
        response = await client.get(BUSINESSES)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 4
        assert data["cached"] is False
        assert data["businesses"][0]["name"] == "Featured Hauling"
        assert data["businesses"][1]["name"] == "Acme Dumpsters"

    async def test_list_from_cache(self, client: AsyncClient, directory, loaded_cache):
        await loaded_cache.refresh()

        response = await client.get(BUSINESSES, params={"state": "tx", "limit": 2})

        data = response.json()
        assert data["cached"] is True
        assert data["total"] == 3
        assert data["limit"] == 2
        assert [b["name"] for b in data["businesses"]] == ["Featured Hauling", "Acme Dumpsters"]

    async def test_cache_not_loaded_falls_back_to_database(self, client: AsyncClient, directory, loaded_cache):
        response = await client.get(BUSINESSES, params={"city": "Denver"})

        data = response.json()
        assert data["cached"] is False
        assert data["total"] == 1

    async def test_filters(self, client: AsyncClient, directory):
        featured = await client.get(BUSINESSES, params={"featured": "true"})
        verified = await client.get(BUSINESSES, params={"verified": "true"})
        category = await client.get(BUSINESSES, params={"category": "junk removal"})

        assert [b["name"] for b in featured.json()["businesses"]] == ["Featured Hauling"]
        assert [b["name"] for b in verified.json()["businesses"]] == ["Budget Bins"]
        assert category.json()["total"] == 1

    async def test_search(self, client: AsyncClient, directory):
        response = await client.get(f"{BUSINESSES}/search", params={"q": "bins"})

        assert {b["name"] for b in response.json()["businesses"]} == {"Budget Bins", "Mile High Bins"}

    async def test_invalid_limit(self, client: AsyncClient):
        response = await client.get(BUSINESSES, params={"limit": 0})
        assert response.status_code == 422


class TestAggregates:
    async def test_stats(self, client: AsyncClient, directory):
        stats = (await client.get(f"{BUSINESSES}/stats")).json()

        assert stats["total_businesses"] == 4
        assert stats["total_states"] == 2
        assert stats["total_cities"] == 3
        assert stats["featured_count"] == 1
        assert stats["verified_count"] == 1
        assert stats["total_reviews"] == 180

    async def test_categories_states_and_cities(self, client: AsyncClient, directory, loaded_cache):
        await loaded_cache.refresh()

        categories = (await client.get(f"{BUSINESSES}/categories")).json()
        states = (await client.get(f"{BUSINESSES}/states")).json()
        cities = (await client.get(f"{BUSINESSES}/states/tx/cities")).json()

        assert categories[0] == {"category": "Dumpster Rental", "count": 3}
        assert {"state": "TX", "count": 3, "city_count": 2} in states
        assert {c["city"] for c in cities} == {"Austin", "Dallas"}

    async def test_empty_directory_stats(self, client: AsyncClient):
        stats = (await client.get(f"{BUSINESSES}/stats")).json()
        assert stats["total_businesses"] == 0
        assert stats["average_rating"] == 0.0


class TestSingleBusiness:
    async def test_get_business(self, client: AsyncClient, directory):
        response = await client.get(f"{BUSINESSES}/{directory[0].id}")

        assert response.status_code == 200
        assert response.json()["name"] == "Acme Dumpsters"

    async def test_get_missing_business(self, client: AsyncClient):
        response = await client.get(f"{BUSINESSES}/does-not-exist")
        assert response.status_code == 404

    async def test_get_business_missing_from_cache_reads_database(self, client: AsyncClient, repos, loaded_cache):
        await loaded_cache.refresh()
        business = await make_business(repos, "Brand New Bins")

        response = await client.get(f"{BUSINESSES}/{business.id}")

        assert response.status_code == 200
        assert response.json()["name"] == "Brand New Bins"

    async def test_check_duplicate(self, client: AsyncClient, directory):
        params = {"name": "acme dumpsters", "city": "austin", "state": "tx"}
        found = await client.get(f"{BUSINESSES}/check", params=params)
        missing = await client.get(f"{BUSINESSES}/check", params={"name": "Acme Dumpsters", "city": "Dallas"})

        assert found.json()["exists"] is True
        assert found.json()["business"]["id"] == directory[0].id
        assert missing.json() == {"exists": False, "business": None}


class TestWrites:
    async def test_create_requires_login(self, client: AsyncClient):
        response = await client.post(BUSINESSES, json=NEW_BUSINESS)
        assert response.status_code == 401

    async def test_create_by_customer(self, client: AsyncClient, repos, auth_config, loaded_cache):
        await loaded_cache.refresh()
        headers = await login_headers(repos, await make_user(repos), auth_config)

        response = await client.post(BUSINESSES, json=NEW_BUSINESS, headers=headers)

        assert response.status_code == 201
        data = response.json()
        assert data["is_verified"] is False
        assert data["is_claimed"] is False
        assert loaded_cache.get_business(data["id"])["name"] == "Lone Star Roll Off"

    async def test_create_by_admin_is_verified(self, client: AsyncClient, repos, auth_config):
        headers = await login_headers(repos, await make_user(repos, "admin@example.com", role="admin"), auth_config)

        response = await client.post(BUSINESSES, json=NEW_BUSINESS, headers=headers)

        assert response.json()["is_verified"] is True

    async def test_create_duplicate(self, client: AsyncClient, repos, auth_config):
        await make_business(repos, "Lone Star Roll Off")
        headers = await login_headers(repos, await make_user(repos), auth_config)

        response = await client.post(BUSINESSES, json=NEW_BUSINESS, headers=headers)

        assert response.status_code == 409

    async def test_create_missing_required_field(self, client: AsyncClient, repos, auth_config):
        headers = await login_headers(repos, await make_user(repos), auth_config)
        payload = {k: v for k, v in NEW_BUSINESS.items() if k != "phone"}

        response = await client.post(BUSINESSES, json=payload, headers=headers)

        assert response.status_code == 422

    async def test_owner_updates_own_listing_but_not_admin_fields(self, client: AsyncClient, repos, auth_config):
        business = await make_business(repos, rating=4.0)
        owner = await make_user(repos, role="business_owner", business_id=business.id)
        headers = await login_headers(repos, owner, auth_config)

        response = await client.patch(
            f"{BUSINESSES}/{business.id}",
            json={"description": "Same-day delivery", "rating": 5.0, "is_verified": True},
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["description"] == "Same-day delivery"
        assert data["rating"] == 4.0
        assert data["is_verified"] is False

    async def test_owner_cannot_update_other_listing(self, client: AsyncClient, repos, auth_config):
        mine = await make_business(repos)
        other = await make_business(repos, "Someone Else")
        owner = await make_user(repos, role="business_owner", business_id=mine.id)
        headers = await login_headers(repos, owner, auth_config)

        response = await client.patch(f"{BUSINESSES}/{other.id}", json={"name": "Hijacked"}, headers=headers)

        assert response.status_code == 403

    async def test_admin_updates_admin_fields(self, client: AsyncClient, repos, auth_config):
        business = await make_business(repos)
        headers = await login_headers(repos, await make_user(repos, "admin@example.com", role="admin"), auth_config)

        response = await client.patch(f"{BUSINESSES}/{business.id}", json={"is_verified": True}, headers=headers)

        assert response.json()["is_verified"] is True

    async def test_update_missing_business(self, client: AsyncClient, repos, auth_config):
        headers = await login_headers(repos, await make_user(repos, "admin@example.com", role="admin"), auth_config)
        response = await client.patch(f"{BUSINESSES}/missing", json={"name": "X"}, headers=headers)
        assert response.status_code == 404

    async def test_delete_requires_admin(self, client: AsyncClient, repos, auth_config):
        business = await make_business(repos)
        headers = await login_headers(repos, await make_user(repos), auth_config)

        response = await client.delete(f"{BUSINESSES}/{business.id}", headers=headers)

        assert response.status_code == 403

    async def test_admin_deletes_business_and_quotes(self, client: AsyncClient, repos, auth_config, loaded_cache):
        business = await make_business(repos)
        await make_quote(repos, business_id=business.id, business_name=business.name)
        await loaded_cache.refresh()
        headers = await login_headers(repos, await make_user(repos, "admin@example.com", role="admin"), auth_config)

        response = await client.delete(f"{BUSINESSES}/{business.id}", headers=headers)
        missing = await client.delete(f"{BUSINESSES}/{business.id}", headers=headers)

        assert response.status_code == 200
        assert missing.status_code == 404
        assert await repos.quotes.count() == 0
        assert loaded_cache.get_business(business.id) is None
