"""Builders for rows used across the unit tests."""

from datetime import timedelta
from typing import Optional

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities import Business, ClaimCampaign, Quote, User
from dumpster_directory.core.database.repositories import RepositoryBundle
from dumpster_directory.server.core.config import AuthConfig
from dumpster_directory.server.services.auth import hash_password, issue_session

TEST_PASSWORD = "correct-horse-battery"

# bcrypt is slow; hash the shared password once
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


async def make_business(repos: RepositoryBundle, name: str = "Acme Dumpsters", **fields) -> Business:
    values = {
        "category": "Dumpster Rental",
        "phone": "(555) 123-4567",
        "address": "1 Main St",
        "city": "Austin",
        "state": "TX",
        "zipcode": "78701",
        "rating": 4.5,
        "reviews": 20,
    }
    values.update(fields)
    business = Business(name=name, **values)
    repos.businesses.add(business)
    await repos.session.commit()
    return business


async def make_quote(repos: RepositoryBundle, **fields) -> Quote:
    values = {
        "customer_name": "Jane Doe",
        "customer_email": "jane@example.com",
        "customer_phone": "512-555-9876",
        "service_type": "20 Yard Dumpster",
        "service_address": "42 Elm St",
        "service_city": "Austin",
        "service_state": "TX",
        "customer_zipcode": "78701",
    }
    values.update(fields)
    quote = Quote(**values)
    repos.quotes.add(quote)
    await repos.session.commit()
    return quote


async def make_user(
    repos: RepositoryBundle,
    email: str = "owner@example.com",
    *,
    role: str = "customer",
    business_id: Optional[str] = None,
    name: Optional[str] = "Test User",
) -> User:
    user = User(email=email, password_hash=_PASSWORD_HASH, role=role, business_id=business_id, name=name)
    repos.users.add(user)
    await repos.session.commit()
    return user


async def login_headers(repos: RepositoryBundle, user: User, config: AuthConfig) -> dict:
    """Issue a session for the user and return a Bearer header."""
    token = await issue_session(repos, user, config)
    await repos.session.commit()
    return {"Authorization": f"Bearer {token}"}


async def make_campaign(
    repos: RepositoryBundle,
    business: Business,
    token: str = "claim-token-123",
    *,
    expires_in_days: int = 30,
) -> ClaimCampaign:
    campaign = ClaimCampaign(
        business_id=business.id,
        claim_token=token,
        campaign_name="Test Campaign",
        expires_at=utc_now() + timedelta(days=expires_in_days),
    )
    repos.claims.add(campaign)
    await repos.session.commit()
    return campaign
