"""
Claim Service.

Owners take over imported listings through claim campaigns. A campaign
carries an unguessable token that resolves to its business until it expires
or the business is claimed. Claiming links (or creates) an owner account,
marks the listing claimed and verified, and opens a free subscription.
"""

from __future__ import annotations

import secrets
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.businesses import Business
from dumpster_directory.core.database.entities.claims import ClaimCampaign
from dumpster_directory.core.database.entities.users import User
from dumpster_directory.core.database.repositories.bundle import RepositoryBundle
from dumpster_directory.core.errors import (
    AuthenticationError,
    ConflictError,
    DirectoryError,
    ExpiredError,
    NotFoundError,
)
from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.core.models.domain import ClaimTrackEvent, UserRole
from dumpster_directory.core.models.io import (
    BusinessRead,
    ClaimCampaignInfo,
    ClaimGenerateResponse,
    ClaimRequest,
    ClaimTokenResponse,
    GeneratedClaim,
)
from dumpster_directory.server.core.config import AuthConfig

from .auth import hash_password, issue_session, verify_password

logger = get_logger(__name__)

NEW_BUSINESS_PREFIX = "new-"
MANUAL_CAMPAIGN_NAME = "Manual Campaign"

CLAIM_EXPORT_HEADERS = [
    "Business ID",
    "Business Name",
    "Email",
    "Phone",
    "Address",
    "City",
    "State",
    "Zip",
    "Category",
    "Website",
    "Rating",
    "Reviews",
    "Claim URL",
    "Short Claim URL",
    "Email Sent",
    "Token Expires",
]


def new_claim_token() -> str:
    return secrets.token_urlsafe(24)


def claim_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/claim/{token}"


class ClaimService:
    """Public claim flow and the admin side of claim campaigns."""

    def __init__(self, repos: RepositoryBundle, *, base_url: str) -> None:
        self.repos = repos
        self.base_url = base_url

    async def get_by_token(self, token: str) -> ClaimTokenResponse:
        """Resolve a claim token to its business.

        Raises:
            NotFoundError: Unknown token
            ExpiredError: The campaign expired
            ConflictError: The business is already claimed
        """
        found = await self.repos.claims.get_with_business(token)
        if found is None:
            raise NotFoundError("Invalid claim token")
        campaign, business = found
        if campaign.is_expired():
            raise ExpiredError("This claim link has expired")
        if business.is_claimed or campaign.claimed_at is not None:
            raise ConflictError("This business has already been claimed")
        return ClaimTokenResponse(
            business=BusinessRead.model_validate(business),
            campaign=ClaimCampaignInfo(id=campaign.id, token=campaign.claim_token, expires_at=campaign.expires_at),
        )

    async def track(self, token: str, event: ClaimTrackEvent) -> None:
        if not await self.repos.claims.track(token, event.value):
            raise NotFoundError("Invalid claim token")
        await self.repos.session.commit()

    # ------------------------------------------------------------------
    # Claiming
    # ------------------------------------------------------------------

    async def claim(
        self, request: ClaimRequest, *, free_credits: int, auth_config: AuthConfig
    ) -> Tuple[User, Business, str]:
        """Claim a listing (or register a new one) for the requesting owner.

        Everything happens in one transaction. A listing only changes hands
        once: the claimed flag is set with a conditional update.

        Returns:
            Tuple of (owner, business, auth token)

        Raises:
            NotFoundError: The listing does not exist
            ConflictError: The listing was claimed already
            AuthenticationError: The email belongs to an account and the password is wrong
        """
        session = self.repos.session
        try:
            if request.business_id.startswith(NEW_BUSINESS_PREFIX):
                business = self._new_business(request)
                self.repos.businesses.add(business)
                await session.flush()
            else:
                business = await self.repos.businesses.get_by_id(request.business_id)
                if business is None:
                    raise NotFoundError("Business not found")
                if business.is_claimed:
                    raise ConflictError("This business has already been claimed")

            if request.claim_token:
                campaign = await self.repos.claims.get_by_token(request.claim_token)
                if campaign is None or campaign.business_id != business.id:
                    raise DirectoryError("Claim token does not belong to this business")
                if campaign.is_expired():
                    raise ExpiredError("This claim link has expired")

            user = await self._owner_account(request, business.id)

            claimed = await self.repos.businesses.mark_claimed(
                business.id,
                owner_name=request.name,
                owner_email=request.email,
                owner_phone=request.phone,
                email=request.business_email,
                website=request.website,
            )
            if not claimed:
                raise ConflictError("This business has already been claimed")

            await self.repos.subscriptions.ensure_free(business.id, user.id, free_credits)
            if request.claim_token:
                await self.repos.claims.mark_claimed(request.claim_token)
            token = await issue_session(self.repos, user, auth_config)
            await session.commit()
        except DirectoryError:
            await session.rollback()
            raise

        business = await self._reload(business.id)
        logger.info(f"Business {business.id} claimed by user {user.id}")
        return user, business, token

    def _new_business(self, request: ClaimRequest) -> Business:
        if not request.business_name:
            raise DirectoryError("Business name is required for a new listing")
        return Business(
            name=request.business_name,
            category=request.category or "Dumpster Rental",
            phone=request.business_phone or request.phone,
            email=request.business_email or request.email,
            website=request.website,
            address=request.address,
            city=request.city,
            state=request.state,
            zipcode=request.zipcode,
            is_claimed=False,
            is_verified=False,
            source="claim",
        )

    async def _owner_account(self, request: ClaimRequest, business_id: str) -> User:
        """Link an existing account to the listing, or create one."""
        users = self.repos.users
        user = await users.get_by_email(request.email)
        if user is not None:
            if not verify_password(request.password, user.password_hash):
                raise AuthenticationError("Invalid password for existing account")
            if user.role != UserRole.admin.value:
                user.role = UserRole.business_owner.value
            user.business_id = business_id
            user.company_name = user.company_name or request.business_name
            user.phone = user.phone or request.phone
            user.updated_at = utc_now()
            users.add(user)
        else:
            user = users.add(
                User(
                    email=request.email,
                    password_hash=hash_password(request.password),
                    name=request.name,
                    phone=request.phone,
                    role=UserRole.business_owner.value,
                    business_id=business_id,
                    company_name=request.business_name,
                    email_verified=True,
                )
            )
        await self.repos.session.flush()
        return user

    async def _reload(self, business_id: str) -> Business:
        # The claim was written with a bulk update; refresh the identity map
        business = await self.repos.businesses.get_by_id(business_id)
        await self.repos.session.refresh(business)
        return business

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def generate(
        self,
        business_ids: Iterable[str],
        *,
        campaign_name: Optional[str] = None,
        expires_in_days: int,
    ) -> ClaimGenerateResponse:
        """Create a claim campaign for each listing and commit.

        Missing and already claimed listings are reported, not raised.
        """
        expires_at = utc_now() + timedelta(days=expires_in_days)
        results: List[GeneratedClaim] = []
        for business_id in business_ids:
            business = await self.repos.businesses.get_by_id(business_id)
            if business is None:
                results.append(GeneratedClaim(business_id=business_id, error="Business not found"))
                continue
            if business.is_claimed:
                results.append(
                    GeneratedClaim(business_id=business_id, business_name=business.name, error="Already claimed")
                )
                continue

            campaign = ClaimCampaign(
                business_id=business.id,
                claim_token=new_claim_token(),
                campaign_name=campaign_name or MANUAL_CAMPAIGN_NAME,
                email_sent_to=business.email,
                expires_at=expires_at,
            )
            self.repos.claims.add(campaign)
            results.append(
                GeneratedClaim(
                    business_id=business.id,
                    business_name=business.name,
                    token=campaign.claim_token,
                    claim_url=claim_url(self.base_url, campaign.claim_token),
                    expires_at=expires_at,
                )
            )
        await self.repos.session.commit()

        successful = sum(1 for r in results if r.error is None)
        logger.info(f"Generated {successful} claim tokens ({len(results) - successful} failed)")
        return ClaimGenerateResponse(
            results=results,
            summary={"total": len(results), "successful": successful, "failed": len(results) - successful},
        )

    async def list_targets(self, **filters: Any) -> Dict[str, Any]:
        rows, total = await self.repos.claims.list_targets(**filters)
        businesses = [self._target_row(business, campaign) for business, campaign in rows]
        return {
            "businesses": businesses,
            "total": total,
            "limit": filters.get("limit", 500),
            "offset": filters.get("offset", 0),
        }

    def _target_row(self, business: Business, campaign: Optional[ClaimCampaign]) -> Dict[str, Any]:
        row = BusinessRead.model_validate(business).model_dump(mode="json")
        row.update(
            {
                "claim_token": campaign.claim_token if campaign else None,
                "claim_url": claim_url(self.base_url, campaign.claim_token) if campaign else None,
                "email_sent_at": campaign.email_sent_at.isoformat() if campaign and campaign.email_sent_at else None,
                "email_opened_at": (
                    campaign.email_opened_at.isoformat() if campaign and campaign.email_opened_at else None
                ),
                "link_clicked_at": (
                    campaign.link_clicked_at.isoformat() if campaign and campaign.link_clicked_at else None
                ),
                "expires_at": campaign.expires_at.isoformat() if campaign and campaign.expires_at else None,
            }
        )
        return row

    async def stats(self) -> Dict[str, int]:
        return await self.repos.claims.stats()

    async def export_rows(self, **filters: Any) -> List[List[Any]]:
        """Rows for the claim campaign CSV, in ``CLAIM_EXPORT_HEADERS`` order.

        Only listings that already have a token are exported.
        """
        filters.setdefault("include_emailed", True)
        filters.setdefault("limit", 100000)
        rows, _ = await self.repos.claims.list_targets(**filters)
        export = []
        for business, campaign in rows:
            if campaign is None:
                continue
            export.append(
                [
                    business.id,
                    business.name,
                    business.email or "",
                    business.phone or "",
                    business.address or "",
                    business.city or "",
                    business.state or "",
                    business.zipcode or "",
                    business.category or "",
                    business.website or "",
                    business.rating,
                    business.reviews,
                    claim_url(self.base_url, campaign.claim_token),
                    claim_url(self.base_url, campaign.claim_token),
                    "Yes" if campaign.email_sent_at else "No",
                    campaign.expires_at.isoformat() if campaign.expires_at else "",
                ]
            )
        return export
