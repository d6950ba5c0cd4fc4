"""
Billing entities.

Subscriptions hold a business's lead credit balance and plan. Stripe
identifiers are mirrored locally so that webhooks can be matched back to a
business, and every processed Stripe event id is stored to make webhook
delivery idempotent.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field

from ..base import Base, new_id, utc_now


class BusinessSubscription(Base, table=True):
    """Plan and lead credit balance of a business.

    Table: business_subscriptions
    """

    __tablename__ = "business_subscriptions"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    business_id: str = Field(foreign_key="businesses.id", max_length=36, unique=True, index=True)
    user_id: Optional[str] = Field(default=None, max_length=36)

    plan: str = Field(default="free", max_length=50)
    subscription_tier: str = Field(default="pay_per_lead", max_length=50)
    status: str = Field(default="active", max_length=20)

    lead_credits: int = Field(default=0)
    leads_received: int = Field(default=0)
    monthly_credit_allowance: int = Field(default=0)
    credits_used_this_period: int = Field(default=0)
    monthly_price: float = Field(default=0.0)

    stripe_subscription_id: Optional[str] = Field(default=None, max_length=255, index=True)
    stripe_customer_id: Optional[str] = Field(default=None, max_length=255)
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    next_credit_refresh: Optional[datetime] = None
    cancel_at_period_end: bool = Field(default=False)
    canceled_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"BusinessSubscription(business={self.business_id}, plan={self.plan}, credits={self.lead_credits})"


class SubscriptionPlan(Base, table=True):
    """A purchasable plan managed by administrators.

    Table: subscription_plans
    """

    __tablename__ = "subscription_plans"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: str = Field(max_length=100, unique=True)
    description: Optional[str] = None
    price: float = Field(default=0.0)
    lead_credits: int = Field(default=0)
    features: Optional[list[str]] = Field(default=None, sa_column=Column(JSON))
    stripe_price_id: Optional[str] = Field(default=None, max_length=255)
    stripe_product_id: Optional[str] = Field(default=None, max_length=255)
    is_active: bool = Field(default=True)
    sort_order: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"SubscriptionPlan(name={self.name}, price={self.price}, credits={self.lead_credits})"


class StripeCustomer(Base, table=True):
    """Link between a business and its Stripe customer.

    Table: stripe_customers
    """

    __tablename__ = "stripe_customers"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    business_id: str = Field(foreign_key="businesses.id", max_length=36, unique=True, index=True)
    user_id: Optional[str] = Field(default=None, max_length=36)
    stripe_customer_id: str = Field(max_length=255, index=True)
    stripe_subscription_id: Optional[str] = Field(default=None, max_length=255)
    subscription_status: Optional[str] = Field(default=None, max_length=50)
    subscription_end_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class PaymentTransaction(Base, table=True):
    """A completed or failed payment.

    Table: payment_transactions
    """

    __tablename__ = "payment_transactions"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    business_id: Optional[str] = Field(default=None, max_length=36, index=True)
    user_id: Optional[str] = Field(default=None, max_length=36)
    stripe_payment_intent_id: Optional[str] = Field(default=None, max_length=255)
    amount: float = Field(default=0.0)
    currency: str = Field(default="usd", max_length=10)
    status: str = Field(default="succeeded", max_length=20)
    type: str = Field(max_length=50)
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"PaymentTransaction(business={self.business_id}, type={self.type}, amount={self.amount})"


class FeaturedListing(Base, table=True):
    """Featured placement purchase or trial for a business.

    Table: featured_listings
    """

    __tablename__ = "featured_listings"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    business_id: str = Field(foreign_key="businesses.id", max_length=36, unique=True, index=True)
    expires_at: Optional[datetime] = None
    is_trial: bool = Field(default=False)
    trial_used: bool = Field(default=False)
    auto_renew: bool = Field(default=False)
    stripe_payment_intent_id: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class StripeWebhookEvent(Base, table=True):
    """Stripe event ids already applied.

    Table: stripe_webhook_events
    """

    __tablename__ = "stripe_webhook_events"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    event_id: str = Field(max_length=255, unique=True, index=True)
    event_type: str = Field(max_length=100)
    payload: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    processed_at: datetime = Field(default_factory=utc_now)
