import csv
import io

import pytest
import pytest_asyncio
from httpx import AsyncClient

from dumpster_directory.server.services.claims import CLAIM_EXPORT_HEADERS, claim_url, new_claim_token
from test.unit_test.fixtures import TEST_PASSWORD, login_headers, make_business, make_campaign, make_user

pytestmark = pytest.mark.asyncio

CLAIM = "/api/v1/claim"
CAMPAIGNS = "/api/v1/admin/claim-campaigns"


def _claim_request(business_id: str, **fields) -> dict:
    request = {
        "business_id": business_id,
        "email": "new.owner@example.com",
        "password": "a-new-password",
        "name": "New Owner",
        "phone": "512-555-0000",
    }
    request.update(fields)
    return request


@pytest_asyncio.fixture
async def admin_headers(repos, auth_config):
    return await login_headers(repos, await make_user(repos, "admin@example.com", role="admin"), auth_config)


async def test_claim_token_and_url():
    token = new_claim_token()
    assert len(token) >= 32
    assert token != new_claim_token()
    assert claim_url("https://example.com/", "abc") == "https://example.com/claim/abc"


class TestResolveToken:
    async def test_valid(self, client: AsyncClient, repos):
        business = await make_business(repos)
        campaign = await make_campaign(repos, business)

        response = await client.get(f"{CLAIM}/token/{campaign.claim_token}")

        assert response.status_code == 200
        assert response.json()["business"]["id"] == business.id
        assert response.json()["campaign"]["token"] == "claim-token-123"

    async def test_unknown(self, client: AsyncClient):
        response = await client.get(f"{CLAIM}/token/nope")
        assert response.status_code == 404
        assert response.json()["detail"] == "Invalid claim token"

    async def test_expired(self, client: AsyncClient, repos):
        campaign = await make_campaign(repos, await make_business(repos), expires_in_days=-1)
        response = await client.get(f"{CLAIM}/token/{campaign.claim_token}")
        assert response.status_code == 410

    async def test_already_claimed(self, client: AsyncClient, repos):
        campaign = await make_campaign(repos, await make_business(repos, is_claimed=True))
        response = await client.get(f"{CLAIM}/token/{campaign.claim_token}")
        assert response.status_code == 409


class TestTracking:
    async def test_first_open_is_kept(self, client: AsyncClient, repos, session):
        campaign = await make_campaign(repos, await make_business(repos))

        first = await client.post(f"{CLAIM}/token/{campaign.claim_token}/track", json={"event": "opened"})
        await session.refresh(campaign)
        opened_at = campaign.email_opened_at
        await client.post(f"{CLAIM}/token/{campaign.claim_token}/track", json={"event": "opened"})
        await client.post(f"{CLAIM}/token/{campaign.claim_token}/track", json={"event": "clicked"})
        await session.refresh(campaign)

        assert first.json() == {"success": True}
        assert opened_at is not None
        assert campaign.email_opened_at == opened_at
        assert campaign.link_clicked_at is not None

    async def test_unknown_token(self, client: AsyncClient):
        response = await client.post(f"{CLAIM}/token/nope/track", json={"event": "clicked"})
        assert response.status_code == 404

    async def test_unknown_event(self, client: AsyncClient, repos):
        campaign = await make_campaign(repos, await make_business(repos))
        response = await client.post(f"{CLAIM}/token/{campaign.claim_token}/track", json={"event": "bounced"})
        assert response.status_code == 422


class TestClaim:
    async def test_new_account_claims_listing(self, client: AsyncClient, repos, session):
        business = await make_business(repos, email=None)
        campaign = await make_campaign(repos, business)

        response = await client.post(
            CLAIM,
            json=_claim_request(business.id, claim_token=campaign.claim_token, business_email="office@acme.test"),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["business_id"] == business.id
        assert client.cookies.get("auth-token") == data["token"]

        await session.refresh(business)
        await session.refresh(campaign)
        assert business.is_claimed is True
        assert business.is_verified is True
        assert business.owner_email == "new.owner@example.com"
        assert business.email == "office@acme.test"
        assert campaign.claimed_at is not None
        owner = await repos.users.get_by_email("new.owner@example.com")
        assert owner.role == "business_owner"
        assert owner.business_id == business.id
        subscription = await repos.subscriptions.get_by_business(business.id)
        assert subscription.plan == "free"
        assert subscription.lead_credits == 10

        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert me.json()["business_id"] == business.id

    async def test_existing_email_is_kept(self, client: AsyncClient, repos, session):
        business = await make_business(repos, email="listed@acme.test")

        await client.post(CLAIM, json=_claim_request(business.id, business_email="other@acme.test"))

        await session.refresh(business)
        assert business.email == "listed@acme.test"

    async def test_existing_account_with_password(self, client: AsyncClient, repos):
        business = await make_business(repos)
        user = await make_user(repos, "jane@example.com")

        response = await client.post(
            CLAIM, json=_claim_request(business.id, email="jane@example.com", password=TEST_PASSWORD)
        )

        assert response.status_code == 200
        assert response.json()["user_id"] == user.id
        refreshed = await repos.users.get_by_id(user.id)
        assert refreshed.role == "business_owner"

    async def test_existing_account_wrong_password(self, client: AsyncClient, repos, session):
        business = await make_business(repos)
        await make_user(repos, "jane@example.com")

        response = await client.post(
            CLAIM, json=_claim_request(business.id, email="jane@example.com", password="not-the-password")
        )

        assert response.status_code == 401
        await session.refresh(business)
        assert business.is_claimed is False

    async def test_claimed_listing(self, client: AsyncClient, repos):
        business = await make_business(repos, is_claimed=True)
        response = await client.post(CLAIM, json=_claim_request(business.id))
        assert response.status_code == 409

    async def test_second_claim_conflicts(self, client: AsyncClient, repos):
        business = await make_business(repos)

        first = await client.post(CLAIM, json=_claim_request(business.id))
        second = await client.post(CLAIM, json=_claim_request(business.id, email="late@example.com"))

        assert first.status_code == 200
        assert second.status_code == 409
        assert await repos.users.get_by_email("late@example.com") is None

    async def test_unknown_listing(self, client: AsyncClient):
        response = await client.post(CLAIM, json=_claim_request("missing"))
        assert response.status_code == 404

    async def test_new_listing(self, client: AsyncClient, repos):
        response = await client.post(
            CLAIM,
            json=_claim_request(
                "new-listing", business_name="Fresh Bins", city="Waco", state="TX", zipcode="76701"
            ),
        )

        assert response.status_code == 200
        business = await repos.businesses.get_by_id(response.json()["business_id"])
        assert business.name == "Fresh Bins"
        assert business.source == "claim"
        assert business.is_claimed is True

    async def test_new_listing_needs_a_name(self, client: AsyncClient):
        response = await client.post(CLAIM, json=_claim_request("new-listing"))
        assert response.status_code == 400

    async def test_short_password(self, client: AsyncClient, repos):
        business = await make_business(repos)
        response = await client.post(CLAIM, json=_claim_request(business.id, password="short"))
        assert response.status_code == 422

    async def test_token_of_another_listing_is_rejected(self, client: AsyncClient, repos, session):
        business = await make_business(repos)
        other = await make_business(repos, "Other Dumpsters")
        campaign = await make_campaign(repos, other)

        response = await client.post(CLAIM, json=_claim_request(business.id, claim_token=campaign.claim_token))

        assert response.status_code == 400
        await session.refresh(business)
        await session.refresh(campaign)
        assert business.is_claimed is False
        assert campaign.claimed_at is None
        assert await repos.users.get_by_email("new.owner@example.com") is None

    async def test_expired_token_is_rejected(self, client: AsyncClient, repos, session):
        business = await make_business(repos)
        campaign = await make_campaign(repos, business, expires_in_days=-1)

        response = await client.post(CLAIM, json=_claim_request(business.id, claim_token=campaign.claim_token))

        assert response.status_code == 410
        await session.refresh(business)
        assert business.is_claimed is False


class TestCampaignAdmin:
    async def test_requires_admin(self, client: AsyncClient, repos, auth_config):
        headers = await login_headers(repos, await make_user(repos), auth_config)
        assert (await client.get(CAMPAIGNS, headers=headers)).status_code == 403

    async def test_generate(self, client: AsyncClient, repos, admin_headers):
        open_listing = await make_business(repos, email="office@acme.test")
        claimed = await make_business(repos, "Taken Bins", is_claimed=True)

        response = await client.post(
            CAMPAIGNS,
            json={"business_ids": [open_listing.id, claimed.id, "missing"], "campaign_name": "Spring"},
            headers=admin_headers,
        )

        data = response.json()
        assert data["summary"] == {"total": 3, "successful": 1, "failed": 2}
        generated, taken, missing = data["results"]
        assert generated["claim_url"] == f"http://localhost:3000/claim/{generated['token']}"
        assert taken["error"] == "Already claimed"
        assert missing["error"] == "Business not found"
        campaign = await repos.claims.get_by_token(generated["token"])
        assert campaign.campaign_name == "Spring"
        assert campaign.email_sent_to == "office@acme.test"

    async def test_list_targets(self, client: AsyncClient, repos, admin_headers):
        popular = await make_business(repos, "Popular Bins", email="a@popular.test", reviews=500)
        await make_business(repos, "Quiet Bins", email="b@quiet.test", reviews=3)
        await make_business(repos, "No Email Bins")
        await make_business(repos, "Claimed Bins", email="c@claimed.test", is_claimed=True)
        await make_campaign(repos, popular)

        default = await client.get(CAMPAIGNS, headers=admin_headers)
        without_email = await client.get(CAMPAIGNS, params={"emailFilter": "without-email"}, headers=admin_headers)
        everything = await client.get(
            CAMPAIGNS, params={"emailFilter": "all", "includeClaimed": True}, headers=admin_headers
        )

        rows = default.json()["businesses"]
        assert [row["name"] for row in rows] == ["Popular Bins", "Quiet Bins"]
        assert rows[0]["claim_token"] == "claim-token-123"
        assert rows[0]["claim_url"].endswith("/claim/claim-token-123")
        assert rows[1]["claim_token"] is None
        assert [row["name"] for row in without_email.json()["businesses"]] == ["No Email Bins"]
        assert everything.json()["total"] == 4

    async def test_stats(self, client: AsyncClient, repos, admin_headers):
        business = await make_business(repos, email="a@acme.test")
        await make_business(repos, "Claimed Bins", is_claimed=True)
        await make_campaign(repos, business)

        response = await client.get(f"{CAMPAIGNS}/stats", headers=admin_headers)

        assert response.json() == {
            "total_businesses": 2,
            "total_unclaimed": 1,
            "claimed": 1,
            "with_email": 1,
            "with_tokens": 1,
            "emails_sent": 0,
        }

    async def test_export(self, client: AsyncClient, repos, admin_headers):
        business = await make_business(repos, email="a@acme.test")
        await make_business(repos, "Tokenless Bins")
        await make_campaign(repos, business)

        response = await client.get(f"{CAMPAIGNS}/export", headers=admin_headers)

        assert response.headers["content-type"].startswith("text/csv")
        assert "claim-campaigns.csv" in response.headers["content-disposition"]
        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0] == CLAIM_EXPORT_HEADERS
        assert len(rows) == 2
        assert rows[1][0] == business.id
        assert rows[1][12] == "http://localhost:3000/claim/claim-token-123"
        assert rows[1][14] == "No"
