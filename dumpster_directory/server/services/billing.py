"""
Billing Service.

Dealer-side billing: the featured listing trial and cancellation, and
Stripe checkout for plans, credit packs and featured placement. Payments
themselves are applied by the webhook processor once Stripe confirms them.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List, Optional

from dumpster_directory.core.billing import StripeGateway
from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.businesses import Business
from dumpster_directory.core.database.entities.users import User
from dumpster_directory.core.database.repositories.bundle import RepositoryBundle
from dumpster_directory.core.errors import DirectoryError, NotFoundError
from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.core.models.domain import CheckoutType
from dumpster_directory.core.models.io import CheckoutRequest, CheckoutResponse, FeaturedListingRead, FeaturedStatus
from dumpster_directory.server.core.config import MarketplaceConfig

logger = get_logger(__name__)


def _cents(amount: float) -> int:
    return int(round(amount * 100))


class FeaturedService:
    """Featured placement status, the one free trial, and cancellation."""

    def __init__(self, repos: RepositoryBundle, config: MarketplaceConfig) -> None:
        self.repos = repos
        self.config = config

    async def status(self, business_id: str) -> FeaturedStatus:
        listing = await self.repos.featured.get_by_business(business_id)
        if listing is None:
            return FeaturedStatus(status="none", trial_eligible=True, trial_used=False)
        active = listing.expires_at is not None and listing.expires_at > utc_now()
        return FeaturedStatus(
            status="active" if active else "expired",
            listing=FeaturedListingRead.model_validate(listing),
            trial_eligible=not listing.trial_used and not active,
            trial_used=listing.trial_used,
        )

    async def start_trial(self, business_id: str) -> Business:
        """Feature the business free for the trial period and commit.

        Raises:
            DirectoryError: Already featured, or the trial was used before (400)
        """
        current = await self.status(business_id)
        if current.status == "active":
            raise DirectoryError("Featured listing is already active")
        if current.trial_used:
            raise DirectoryError("Free trial has already been used")

        expires_at = utc_now() + timedelta(days=self.config.featured_trial_days)
        await self.repos.featured.upsert(business_id, expires_at=expires_at, is_trial=True)
        business = await self.repos.businesses.set_featured(business_id, True, expires_at)
        if business is None:
            await self.repos.session.rollback()
            raise NotFoundError("Business not found")
        self.repos.notifications.notify(
            business_id,
            "featured",
            "Featured Trial Started",
            f"Your listing is featured free for {self.config.featured_trial_days} days",
        )
        await self.repos.session.commit()
        logger.info(f"Started featured trial for business {business_id}")
        return business

    async def cancel(self, business_id: str) -> Business:
        """Expire the featured listing now and clear the flag.

        Raises:
            NotFoundError: No active featured listing
        """
        listing = await self.repos.featured.get_by_business(business_id)
        now = utc_now()
        if listing is None or listing.expires_at is None or listing.expires_at <= now:
            raise NotFoundError("No active featured listing")
        listing.expires_at = now
        listing.auto_renew = False
        listing.updated_at = now
        self.repos.featured.add(listing)
        business = await self.repos.businesses.set_featured(business_id, False, None)
        await self.repos.session.commit()
        logger.info(f"Cancelled featured listing for business {business_id}")
        return business


class CheckoutService:
    """Builds Stripe checkout sessions for the dealer portal."""

    def __init__(
        self, repos: RepositoryBundle, gateway: StripeGateway, config: MarketplaceConfig, *, base_url: str
    ) -> None:
        self.repos = repos
        self.gateway = gateway
        self.config = config
        self.base_url = base_url.rstrip("/")

    async def create(self, user: User, business: Business, request: CheckoutRequest) -> CheckoutResponse:
        """Create a checkout session of the requested type.

        Raises:
            BillingNotConfiguredError: Stripe keys are missing
            NotFoundError: Unknown or inactive plan
            DirectoryError: The plan has no Stripe price, or a credit pack has no size
        """
        metadata: Dict[str, str] = {
            "business_id": business.id,
            "user_id": user.id,
            "type": request.type.value,
        }
        mode = "payment"

        if request.type == CheckoutType.subscription:
            line_items = await self._plan_items(request.plan_id, metadata)
            mode = "subscription"
        elif request.type == CheckoutType.credits:
            if not request.credits:
                raise DirectoryError("Number of credits is required")
            metadata["credits"] = str(request.credits)
            line_items = [
                self._price_data(
                    f"{request.credits} Lead Credits",
                    f"{request.credits} lead credits for {business.name}",
                    self.config.credit_price * request.credits,
                )
            ]
        elif request.type in (CheckoutType.featured, CheckoutType.featured_listing):
            days = self.config.featured_duration_days
            metadata["duration_days"] = str(days)
            line_items = [
                self._price_data(
                    "Featured Listing", f"{days} days of featured placement", self.config.featured_price
                )
            ]
        else:
            metadata["credits"] = str(self.config.monthly_credit_allowance)
            line_items = [
                self._price_data(
                    "Monthly Lead Plan",
                    f"{self.config.monthly_credit_allowance} lead credits per month",
                    self.config.monthly_plan_price,
                )
            ]

        customer_id = await self.gateway.get_or_create_customer(
            self.repos.stripe_customers,
            business_id=business.id,
            user_id=user.id,
            email=business.email or user.email,
            name=business.name,
        )
        await self.repos.session.commit()

        session = await self.gateway.create_checkout_session(
            customer_id=customer_id,
            mode=mode,
            line_items=line_items,
            success_url=f"{self.base_url}/dealer-portal/subscription?success=true",
            cancel_url=f"{self.base_url}/dealer-portal/subscription?canceled=true",
            metadata=metadata,
        )
        logger.info(f"Created {request.type.value} checkout {session.id} for business {business.id}")
        return CheckoutResponse(session_id=session.id, url=session.url)

    async def _plan_items(self, plan_id: Optional[str], metadata: Dict[str, str]) -> List[Dict[str, Any]]:
        if not plan_id:
            raise DirectoryError("plan_id is required for a subscription")
        plan = await self.repos.plans.get_by_id(plan_id)
        if plan is None or not plan.is_active:
            raise NotFoundError("Plan not found")
        if not plan.stripe_price_id:
            raise DirectoryError("Plan is not available for purchase")
        metadata["plan_id"] = plan.id
        metadata["plan_name"] = plan.name
        return [{"price": plan.stripe_price_id, "quantity": 1}]

    @staticmethod
    def _price_data(name: str, description: str, amount: float) -> Dict[str, Any]:
        return {
            "price_data": {
                "currency": "usd",
                "product_data": {"name": name, "description": description},
                "unit_amount": _cents(amount),
            },
            "quantity": 1,
        }
