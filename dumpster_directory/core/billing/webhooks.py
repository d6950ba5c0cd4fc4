"""
Stripe webhook processing.

One processor applies every Stripe event type the marketplace cares about.
Each event id is recorded in the same transaction as its effects, so a
redelivered or concurrently delivered event is acknowledged without being
applied twice.

State transitions of ``business_subscriptions``:

=====================================  ==========================================
Event                                  Effect
=====================================  ==========================================
checkout.session.completed             credits pack: add credits
  (metadata.type)                      featured / featured_listing: feature listing
                                       monthly_subscription: monthly tier, credits
                                       subscription mode: monthly tier from plan
customer.subscription.created/updated  status, period, cancel_at_period_end
customer.subscription.deleted          free plan, pay_per_lead, cancelled
invoice.payment_succeeded              record payment; on renewal add allowance
invoice.payment_failed                 past_due
=====================================  ==========================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.billing import BusinessSubscription
from dumpster_directory.core.database.repositories.bundle import RepositoryBundle
from dumpster_directory.core.models.domain import CheckoutType, SubscriptionStatus, SubscriptionTier
from dumpster_directory.core.monitoring import log_webhook_event

logger = logging.getLogger(__name__)

BILLING_PERIOD_DAYS = 30


@dataclass
class WebhookSettings:
    """Marketplace values the processor needs."""

    monthly_credit_allowance: int = 10
    featured_duration_days: int = 30


@dataclass
class WebhookResult:
    event_id: str
    event_type: str
    outcome: str  # processed, duplicate or ignored
    business_ids: Set[str] = field(default_factory=set)


def map_subscription_status(stripe_status: Optional[str]) -> str:
    """Collapse Stripe's subscription statuses onto ours."""
    if stripe_status in ("active", "trialing"):
        return SubscriptionStatus.active.value
    if stripe_status == "past_due":
        return SubscriptionStatus.past_due.value
    if stripe_status == "canceled":
        return SubscriptionStatus.cancelled.value
    return SubscriptionStatus.paused.value


def _from_timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def _as_id(value: Any) -> Optional[str]:
    """Stripe references are either an id string or an expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value or None


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _subscription_period(obj: Dict[str, Any]) -> Tuple[Optional[datetime], Optional[datetime]]:
    start, end = obj.get("current_period_start"), obj.get("current_period_end")
    if start is None and end is None:
        # Newer API versions carry the period on the subscription items
        items = (obj.get("items") or {}).get("data") or []
        if items:
            start, end = items[0].get("current_period_start"), items[0].get("current_period_end")
    return _from_timestamp(start), _from_timestamp(end)


def _invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    subscription = _as_id(invoice.get("subscription"))
    if subscription:
        return subscription
    details = ((invoice.get("parent") or {}).get("subscription_details")) or {}
    return _as_id(details.get("subscription"))


class WebhookProcessor:
    """Apply verified Stripe events to the database."""

    def __init__(self, repos: RepositoryBundle, config: Optional[WebhookSettings] = None) -> None:
        self.repos = repos
        self.config = config or WebhookSettings()
        self._handlers: Dict[str, Callable[[Dict[str, Any], WebhookResult], Awaitable[None]]] = {
            "checkout.session.completed": self._checkout_completed,
            "customer.subscription.created": self._subscription_updated,
            "customer.subscription.updated": self._subscription_updated,
            "customer.subscription.deleted": self._subscription_deleted,
            "invoice.payment_succeeded": self._payment_succeeded,
            "invoice.payment_failed": self._payment_failed,
        }

    async def process(self, event: Dict[str, Any]) -> WebhookResult:
        """Apply one event exactly once and commit.

        Args:
            event: Decoded Stripe event with ``id``, ``type`` and ``data.object``

        Returns:
            WebhookResult describing what happened
        """
        event_id, event_type = str(event["id"]), str(event["type"])
        result = WebhookResult(event_id=event_id, event_type=event_type, outcome="processed")

        if await self.repos.webhook_events.exists(event_id):
            result.outcome = "duplicate"
            log_webhook_event(event_id, event_type, result.outcome)
            return result

        obj = ((event.get("data") or {}).get("object")) or {}
        handler = self._handlers.get(event_type)
        try:
            await self.repos.webhook_events.record(event_id, event_type)
            if handler is None:
                result.outcome = "ignored"
            else:
                await handler(obj, result)
            await self.repos.session.commit()
        except IntegrityError:
            await self.repos.session.rollback()
            if not await self.repos.webhook_events.exists(event_id):
                # Not a replay; fail so Stripe delivers the event again
                raise
            # Another delivery of the same event won the race
            result.outcome = "duplicate"
            result.business_ids.clear()
        except Exception:
            await self.repos.session.rollback()
            raise

        log_webhook_event(event_id, event_type, result.outcome)
        return result

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _owner_of_customer(self, customer_id: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
        if not customer_id:
            return None, None
        customer = await self.repos.stripe_customers.get_by_stripe_id(customer_id)
        if customer is None:
            return None, None
        return customer.business_id, customer.user_id

    async def _subscription_for(
        self, stripe_subscription_id: Optional[str], customer_id: Optional[str]
    ) -> Optional[BusinessSubscription]:
        if stripe_subscription_id:
            subscription = await self.repos.subscriptions.get_by_stripe_subscription(stripe_subscription_id)
            if subscription is not None:
                return subscription
        business_id, _ = await self._owner_of_customer(customer_id)
        if business_id:
            return await self.repos.subscriptions.get_by_business(business_id)
        return None

    # ------------------------------------------------------------------
    # checkout.session.completed
    # ------------------------------------------------------------------

    async def _checkout_completed(self, session: Dict[str, Any], result: WebhookResult) -> None:
        metadata = session.get("metadata") or {}
        customer_id = _as_id(session.get("customer"))
        business_id, user_id = metadata.get("business_id"), metadata.get("user_id")
        if not business_id or not user_id:
            owner_business, owner_user = await self._owner_of_customer(customer_id)
            business_id = business_id or owner_business
            user_id = user_id or owner_user
        if not business_id:
            logger.warning(f"Checkout session {session.get('id')} has no business, skipping")
            return

        checkout_type = metadata.get("type")
        amount = (session.get("amount_total") or 0) / 100
        currency = session.get("currency") or "usd"
        payment_intent = _as_id(session.get("payment_intent"))
        now = utc_now()

        if checkout_type == CheckoutType.credits.value:
            credits = _as_int(metadata.get("credits"), 0)
            if credits <= 0:
                logger.warning(f"Credits checkout {session.get('id')} without a credit count")
                return
            await self.repos.subscriptions.ensure_free(business_id, user_id, 0)
            await self.repos.subscriptions.add_credits(business_id, credits)
            self.repos.payments.record(
                business_id=business_id,
                user_id=user_id,
                payment_intent_id=payment_intent,
                amount=amount,
                currency=currency,
                type="credits",
                description=f"Purchased {credits} lead credits",
            )
            self.repos.notifications.notify(
                business_id,
                "credits",
                "Credits Purchased",
                f"Successfully added {credits} lead credits to your account",
            )

        elif checkout_type in (CheckoutType.featured.value, CheckoutType.featured_listing.value):
            days = _as_int(
                metadata.get("duration_days") or metadata.get("duration"), self.config.featured_duration_days
            )
            is_trial = str(metadata.get("is_trial", "false")).lower() == "true"
            expires_at = now + timedelta(days=days)
            await self.repos.featured.upsert(
                business_id, expires_at=expires_at, is_trial=is_trial, payment_intent_id=payment_intent
            )
            await self.repos.businesses.set_featured(business_id, True, expires_at)
            if amount > 0:
                self.repos.payments.record(
                    business_id=business_id,
                    user_id=user_id,
                    payment_intent_id=payment_intent,
                    amount=amount,
                    currency=currency,
                    type="featured",
                    description=f"Featured listing for {days} days",
                )
            self.repos.notifications.notify(
                business_id, "featured", "Featured Listing Activated", f"Your listing is now featured for {days} days!"
            )
            result.business_ids.add(business_id)

        elif checkout_type == CheckoutType.monthly_subscription.value:
            credits = _as_int(metadata.get("credits"), self.config.monthly_credit_allowance)
            days = _as_int(metadata.get("duration_days"), BILLING_PERIOD_DAYS)
            subscription = await self.repos.subscriptions.ensure_free(business_id, user_id, 0)
            subscription.subscription_tier = SubscriptionTier.monthly.value
            subscription.status = SubscriptionStatus.active.value
            subscription.lead_credits = (subscription.lead_credits or 0) + credits
            subscription.monthly_credit_allowance = credits
            subscription.credits_used_this_period = 0
            subscription.current_period_start = now
            subscription.current_period_end = now + timedelta(days=days)
            subscription.next_credit_refresh = now + timedelta(days=days)
            subscription.stripe_customer_id = customer_id or subscription.stripe_customer_id
            subscription.updated_at = now
            self.repos.session.add(subscription)
            self.repos.payments.record(
                business_id=business_id,
                user_id=user_id,
                payment_intent_id=payment_intent,
                amount=amount,
                currency=currency,
                type="subscription",
                description=f"Monthly plan with {credits} lead credits",
            )
            self.repos.notifications.notify(
                business_id,
                "subscription",
                "Subscription Activated",
                f"{credits} lead credits were added to your account.",
            )

        elif session.get("subscription"):
            await self._activate_subscription(session, business_id, user_id, customer_id, metadata, now)

        else:
            logger.info(f"Checkout session {session.get('id')} has no recognised type, nothing to apply")

    async def _activate_subscription(
        self,
        session: Dict[str, Any],
        business_id: str,
        user_id: Optional[str],
        customer_id: Optional[str],
        metadata: Dict[str, Any],
        now: datetime,
    ) -> None:
        stripe_subscription_id = _as_id(session.get("subscription"))
        plan = None
        if metadata.get("plan_id"):
            plan = await self.repos.plans.get_by_id(metadata["plan_id"])
        if plan is None and metadata.get("plan_name"):
            plan = await self.repos.plans.get_by_name(metadata["plan_name"])
        allowance = plan.lead_credits if plan is not None else self.config.monthly_credit_allowance

        subscription = await self.repos.subscriptions.ensure_free(business_id, user_id, 0)
        subscription.plan = plan.name if plan is not None else (metadata.get("plan_name") or "monthly")
        subscription.subscription_tier = SubscriptionTier.monthly.value
        subscription.status = SubscriptionStatus.active.value
        subscription.stripe_subscription_id = stripe_subscription_id
        subscription.stripe_customer_id = customer_id
        subscription.monthly_credit_allowance = allowance
        subscription.monthly_price = plan.price if plan is not None else subscription.monthly_price
        subscription.lead_credits = (subscription.lead_credits or 0) + allowance
        subscription.credits_used_this_period = 0
        subscription.current_period_start = now
        subscription.current_period_end = now + timedelta(days=BILLING_PERIOD_DAYS)
        subscription.next_credit_refresh = now + timedelta(days=BILLING_PERIOD_DAYS)
        subscription.cancel_at_period_end = False
        subscription.canceled_at = None
        subscription.updated_at = now
        self.repos.session.add(subscription)

        if customer_id:
            await self.repos.stripe_customers.sync_subscription(
                customer_id,
                stripe_subscription_id=stripe_subscription_id,
                status="active",
                end_date=subscription.current_period_end,
            )
        self.repos.notifications.notify(
            business_id, "subscription", "Subscription Activated", "Your subscription has been activated successfully!"
        )

    # ------------------------------------------------------------------
    # customer.subscription.*
    # ------------------------------------------------------------------

    async def _subscription_updated(self, obj: Dict[str, Any], result: WebhookResult) -> None:
        customer_id = _as_id(obj.get("customer"))
        period_start, period_end = _subscription_period(obj)
        if customer_id:
            await self.repos.stripe_customers.sync_subscription(
                customer_id, stripe_subscription_id=obj.get("id"), status=obj.get("status"), end_date=period_end
            )

        subscription = await self._subscription_for(obj.get("id"), customer_id)
        if subscription is None:
            logger.warning(f"No business subscription for Stripe subscription {obj.get('id')}")
            return
        subscription.status = map_subscription_status(obj.get("status"))
        subscription.stripe_subscription_id = obj.get("id") or subscription.stripe_subscription_id
        if period_start is not None:
            subscription.current_period_start = period_start
        if period_end is not None:
            subscription.current_period_end = period_end
        subscription.cancel_at_period_end = bool(obj.get("cancel_at_period_end"))
        subscription.updated_at = utc_now()
        self.repos.session.add(subscription)

    async def _subscription_deleted(self, obj: Dict[str, Any], result: WebhookResult) -> None:
        customer_id = _as_id(obj.get("customer"))
        canceled_at = _from_timestamp(obj.get("canceled_at")) or utc_now()
        if customer_id:
            await self.repos.stripe_customers.sync_subscription(
                customer_id, stripe_subscription_id=obj.get("id"), status="canceled", end_date=canceled_at
            )

        subscription = await self._subscription_for(obj.get("id"), customer_id)
        if subscription is None:
            logger.warning(f"No business subscription for cancelled Stripe subscription {obj.get('id')}")
            return
        # Purchased credits stay with the business
        subscription.plan = "free"
        subscription.subscription_tier = SubscriptionTier.pay_per_lead.value
        subscription.status = SubscriptionStatus.cancelled.value
        subscription.monthly_credit_allowance = 0
        subscription.monthly_price = 0.0
        subscription.cancel_at_period_end = False
        subscription.canceled_at = canceled_at
        subscription.updated_at = utc_now()
        self.repos.session.add(subscription)
        self.repos.notifications.notify(
            subscription.business_id,
            "subscription",
            "Subscription Canceled",
            "Your subscription has been canceled. You have been moved to pay-per-lead.",
        )

    # ------------------------------------------------------------------
    # invoice.*
    # ------------------------------------------------------------------

    async def _payment_succeeded(self, invoice: Dict[str, Any], result: WebhookResult) -> None:
        customer_id = _as_id(invoice.get("customer"))
        business_id, user_id = await self._owner_of_customer(customer_id)
        subscription = await self._subscription_for(_invoice_subscription_id(invoice), customer_id)
        if business_id is None and subscription is not None:
            business_id = subscription.business_id
        if business_id is None:
            logger.warning(f"Invoice {invoice.get('id')} paid by unknown customer {customer_id}")
            return

        self.repos.payments.record(
            business_id=business_id,
            user_id=user_id,
            payment_intent_id=_as_id(invoice.get("payment_intent")),
            amount=(invoice.get("amount_paid") or 0) / 100,
            currency=invoice.get("currency") or "usd",
            type="subscription",
            description="Monthly subscription payment",
        )

        # The first invoice is paid during checkout, which already granted credits
        if invoice.get("billing_reason") == "subscription_create":
            return
        if subscription is None or subscription.subscription_tier != SubscriptionTier.monthly.value:
            return

        now = utc_now()
        allowance = subscription.monthly_credit_allowance or 0
        subscription.lead_credits = (subscription.lead_credits or 0) + allowance
        subscription.credits_used_this_period = 0
        subscription.leads_received = 0
        subscription.status = SubscriptionStatus.active.value
        subscription.next_credit_refresh = now + timedelta(days=BILLING_PERIOD_DAYS)
        subscription.updated_at = now
        self.repos.session.add(subscription)
        self.repos.notifications.notify(
            business_id, "credits", "Credits Refreshed", f"{allowance} lead credits were added for the new period."
        )
        logger.info(f"Refreshed {allowance} credits for business {business_id}")

    async def _payment_failed(self, invoice: Dict[str, Any], result: WebhookResult) -> None:
        customer_id = _as_id(invoice.get("customer"))
        subscription = await self._subscription_for(_invoice_subscription_id(invoice), customer_id)
        if subscription is None:
            logger.warning(f"Failed invoice {invoice.get('id')} for unknown customer {customer_id}")
            return
        subscription.status = SubscriptionStatus.past_due.value
        subscription.updated_at = utc_now()
        self.repos.session.add(subscription)
        self.repos.notifications.notify(
            subscription.business_id,
            "subscription",
            "Payment Failed",
            "Your payment failed. Please update your payment method to continue receiving leads.",
        )


async def process_event(
    repos: RepositoryBundle, event: Dict[str, Any], config: Optional[WebhookSettings] = None
) -> WebhookResult:
    return await WebhookProcessor(repos, config).process(event)


__all__: List[str] = [
    "WebhookProcessor",
    "WebhookResult",
    "WebhookSettings",
    "map_subscription_status",
    "process_event",
]
