"""
Billing repositories.

Lead credit changes go through single ``UPDATE`` statements so that two
requests never spend the same credit. Like the other domain methods these
only flush; the caller commits.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..base import utc_now
from ..entities.billing import (
    BusinessSubscription,
    FeaturedListing,
    PaymentTransaction,
    StripeCustomer,
    StripeWebhookEvent,
    SubscriptionPlan,
)
from ..entities.notifications import BusinessNotification
from .base import SqlRepository


class SubscriptionRepository(SqlRepository[BusinessSubscription]):
    """Repository for business subscriptions and lead credit balances."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, BusinessSubscription)

    async def get_by_business(self, business_id: str) -> Optional[BusinessSubscription]:
        stmt = select(BusinessSubscription).where(BusinessSubscription.business_id == business_id)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalars().first()

    async def get_by_stripe_subscription(self, stripe_subscription_id: str) -> Optional[BusinessSubscription]:
        stmt = select(BusinessSubscription).where(
            BusinessSubscription.stripe_subscription_id == stripe_subscription_id
        )
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalars().first()

    async def ensure_free(self, business_id: str, user_id: Optional[str], credits: int) -> BusinessSubscription:
        """Return the business's subscription, creating a free plan with ``credits`` if there is none.

        The insert runs in a savepoint. When a concurrent request created the
        row first, the unique ``business_id`` rejects ours and theirs is returned.
        """
        subscription = await self.get_by_business(business_id)
        if subscription is not None:
            return subscription
        subscription = BusinessSubscription(
            business_id=business_id,
            user_id=user_id,
            plan="free",
            subscription_tier="pay_per_lead",
            status="active",
            lead_credits=credits,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(subscription)
                await self.session.flush()
        except IntegrityError:
            existing = await self.get_by_business(business_id)
            if existing is None:
                raise
            return existing
        return subscription

    async def credit_balance(self, business_id: str) -> int:
        result = await self.session.execute(
            select(BusinessSubscription.lead_credits).where(BusinessSubscription.business_id == business_id)
        )
        return int(result.scalar_one_or_none() or 0)

    async def consume_credit(self, business_id: str) -> bool:
        """Spend one credit if the balance is positive.

        Returns:
            True when a credit was spent, False when the balance was empty
        """
        result = await self.session.execute(
            update(BusinessSubscription)
            .where(BusinessSubscription.business_id == business_id, BusinessSubscription.lead_credits > 0)
            .values(
                lead_credits=BusinessSubscription.lead_credits - 1,
                leads_received=BusinessSubscription.leads_received + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def add_credits(self, business_id: str, credits: int) -> bool:
        result = await self.session.execute(
            update(BusinessSubscription)
            .where(BusinessSubscription.business_id == business_id)
            .values(lead_credits=BusinessSubscription.lead_credits + credits, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0


class PlanRepository(SqlRepository[SubscriptionPlan]):
    """Repository for purchasable plans."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, SubscriptionPlan)

    async def list_plans(self, active_only: bool = True) -> List[SubscriptionPlan]:
        stmt = select(SubscriptionPlan)
        if active_only:
            stmt = stmt.where(SubscriptionPlan.is_active == True)  # noqa: E712
        stmt = stmt.order_by(SubscriptionPlan.sort_order, SubscriptionPlan.price)
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_by_name(self, name: str) -> Optional[SubscriptionPlan]:
        result = await self.session.execute(select(SubscriptionPlan).where(SubscriptionPlan.name == name))
        return result.scalars().first()


class StripeCustomerRepository(SqlRepository[StripeCustomer]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, StripeCustomer)

    async def get_by_business(self, business_id: str) -> Optional[StripeCustomer]:
        result = await self.session.execute(select(StripeCustomer).where(StripeCustomer.business_id == business_id))
        return result.scalars().first()

    async def get_by_stripe_id(self, stripe_customer_id: str) -> Optional[StripeCustomer]:
        result = await self.session.execute(
            select(StripeCustomer).where(StripeCustomer.stripe_customer_id == stripe_customer_id)
        )
        return result.scalars().first()

    async def sync_subscription(
        self,
        stripe_customer_id: str,
        *,
        stripe_subscription_id: Optional[str],
        status: Optional[str],
        end_date: Optional[datetime],
    ) -> None:
        await self.session.execute(
            update(StripeCustomer)
            .where(StripeCustomer.stripe_customer_id == stripe_customer_id)
            .values(
                stripe_subscription_id=stripe_subscription_id,
                subscription_status=status,
                subscription_end_date=end_date,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )


class PaymentRepository(SqlRepository[PaymentTransaction]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, PaymentTransaction)

    def record(
        self,
        *,
        business_id: Optional[str],
        amount: float,
        type: str,
        status: str = "succeeded",
        user_id: Optional[str] = None,
        payment_intent_id: Optional[str] = None,
        currency: str = "usd",
        description: Optional[str] = None,
    ) -> PaymentTransaction:
        return self.add(
            PaymentTransaction(
                business_id=business_id,
                user_id=user_id,
                stripe_payment_intent_id=payment_intent_id,
                amount=amount,
                currency=currency,
                status=status,
                type=type,
                description=description,
            )
        )

    async def list_for_business(self, business_id: str, limit: int = 20) -> List[PaymentTransaction]:
        stmt = (
            select(PaymentTransaction)
            .where(PaymentTransaction.business_id == business_id)
            .order_by(PaymentTransaction.created_at.desc())
            .limit(limit)
        )
        return list((await self.session.execute(stmt)).scalars().all())


class FeaturedListingRepository(SqlRepository[FeaturedListing]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, FeaturedListing)

    async def get_by_business(self, business_id: str) -> Optional[FeaturedListing]:
        result = await self.session.execute(
            select(FeaturedListing).where(FeaturedListing.business_id == business_id)
        )
        return result.scalars().first()

    async def upsert(
        self,
        business_id: str,
        *,
        expires_at: datetime,
        is_trial: bool = False,
        payment_intent_id: Optional[str] = None,
    ) -> FeaturedListing:
        listing = await self.get_by_business(business_id)
        if listing is None:
            listing = FeaturedListing(business_id=business_id)
        listing.expires_at = expires_at
        listing.is_trial = is_trial
        listing.trial_used = listing.trial_used or is_trial
        if payment_intent_id:
            listing.stripe_payment_intent_id = payment_intent_id
        listing.updated_at = utc_now()
        self.session.add(listing)
        await self.session.flush()
        return listing


class WebhookEventRepository(SqlRepository[StripeWebhookEvent]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, StripeWebhookEvent)

    async def exists(self, event_id: str) -> bool:
        result = await self.session.execute(
            select(StripeWebhookEvent.id).where(StripeWebhookEvent.event_id == event_id)
        )
        return result.first() is not None

    async def record(self, event_id: str, event_type: str, payload: Optional[dict[str, Any]] = None) -> None:
        """Record an event id; raises ``IntegrityError`` at flush for a replay."""
        self.session.add(StripeWebhookEvent(event_id=event_id, event_type=event_type, payload=payload))
        await self.session.flush()


class NotificationRepository(SqlRepository[BusinessNotification]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, BusinessNotification)

    def notify(self, business_id: str, type: str, title: str, message: str) -> BusinessNotification:
        return self.add(BusinessNotification(business_id=business_id, type=type, title=title, message=message))

    async def list_for_business(self, business_id: str, unread_only: bool = False, limit: int = 50):
        stmt = select(BusinessNotification).where(BusinessNotification.business_id == business_id)
        if unread_only:
            stmt = stmt.where(BusinessNotification.is_read == False)  # noqa: E712
        stmt = stmt.order_by(BusinessNotification.created_at.desc()).limit(limit)
        return list((await self.session.execute(stmt)).scalars().all())

    async def mark_read(self, business_id: str, notification_ids: Optional[List[str]] = None) -> int:
        """Mark the given notifications (or all of them) read."""
        stmt = update(BusinessNotification).where(BusinessNotification.business_id == business_id)
        if notification_ids:
            stmt = stmt.where(BusinessNotification.id.in_(notification_ids))
        result = await self.session.execute(
            stmt.values(is_read=True).execution_options(synchronize_session=False)
        )
        return result.rowcount
