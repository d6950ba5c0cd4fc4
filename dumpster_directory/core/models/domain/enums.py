"""Domain enums for the directory and lead marketplace."""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    admin = "admin"
    business_owner = "business_owner"
    customer = "customer"


class QuoteStatus(str, Enum):
    """Lifecycle of a customer quote request."""

    pending = "pending"
    viewed = "viewed"
    contacted = "contacted"
    quoted = "quoted"
    accepted = "accepted"
    declined = "declined"
    completed = "completed"
    cancelled = "cancelled"


class AssignmentStatus(str, Enum):
    """Progress of one business on a distributed lead."""

    new = "new"
    viewed = "viewed"
    contacted = "contacted"
    quoted = "quoted"
    won = "won"
    lost = "lost"
    declined = "declined"


class SubscriptionStatus(str, Enum):
    active = "active"
    past_due = "past_due"
    cancelled = "cancelled"
    paused = "paused"


class SubscriptionTier(str, Enum):
    """How a business pays for leads."""

    pay_per_lead = "pay_per_lead"  # Buys credit packs.
    monthly = "monthly"  # Receives an allowance each billing period.


class CheckoutType(str, Enum):
    """``metadata.type`` carried on Stripe checkout sessions."""

    subscription = "subscription"
    credits = "credits"
    featured = "featured"
    featured_listing = "featured_listing"
    monthly_subscription = "monthly_subscription"


class ClaimTrackEvent(str, Enum):
    opened = "opened"
    clicked = "clicked"
