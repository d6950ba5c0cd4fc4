"""
Billing I/O models: plans, subscriptions, featured listings and checkout.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from dumpster_directory.core.models.domain import CheckoutType


class PlanRead(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: float
    lead_credits: int
    features: Optional[List[str]] = None
    stripe_price_id: Optional[str] = None
    stripe_product_id: Optional[str] = None
    is_active: bool = True
    sort_order: int = 0

    class Config:
        from_attributes = True


class PlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    price: float = Field(ge=0)
    lead_credits: int = Field(default=0, ge=0)
    features: Optional[List[str]] = None
    is_active: bool = True
    sort_order: int = 0
    sync_stripe: bool = Field(default=True, description="Create the Stripe product and monthly price")


class PlanUpdate(BaseModel):
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    lead_credits: Optional[int] = Field(default=None, ge=0)
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class SubscriptionRead(BaseModel):
    business_id: str
    plan: str
    subscription_tier: str
    status: str
    lead_credits: int
    leads_received: int
    monthly_credit_allowance: int
    credits_used_this_period: int
    monthly_price: float
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    next_credit_refresh: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FeaturedListingRead(BaseModel):
    business_id: str
    expires_at: Optional[datetime] = None
    is_trial: bool = False
    trial_used: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FeaturedStatus(BaseModel):
    status: str  # active, expired or none
    listing: Optional[FeaturedListingRead] = None
    trial_eligible: bool
    trial_used: bool


class CheckoutRequest(BaseModel):
    type: CheckoutType
    plan_id: Optional[str] = None
    credits: Optional[int] = Field(default=None, ge=1, le=1000)


class CheckoutResponse(BaseModel):
    session_id: str
    url: Optional[str] = None


class NotificationRead(BaseModel):
    id: str
    type: str
    title: str
    message: str
    is_read: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MarkReadRequest(BaseModel):
    notification_ids: Optional[List[str]] = Field(default=None, description="Mark all notifications read if omitted")
