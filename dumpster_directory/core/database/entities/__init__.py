"""
Database entity models.

Modules:
- businesses: Directory listings
- quotes: Quote requests, lead assignments and paid reveals
- claims: Claim campaigns and their contact addresses
- billing: Subscriptions, plans, Stripe mirrors, payments, featured listings
- notifications: Dealer portal notifications
- users: Accounts and auth sessions
"""

from .billing import (
    BusinessSubscription,
    FeaturedListing,
    PaymentTransaction,
    StripeCustomer,
    StripeWebhookEvent,
    SubscriptionPlan,
)
from .businesses import Business
from .claims import ClaimCampaign, ClaimContact
from .notifications import BusinessNotification
from .quotes import LeadAssignment, LeadReveal, Quote
from .users import User, UserSession

__all__ = [
    "Business",
    "BusinessNotification",
    "BusinessSubscription",
    "ClaimCampaign",
    "ClaimContact",
    "FeaturedListing",
    "LeadAssignment",
    "LeadReveal",
    "PaymentTransaction",
    "Quote",
    "StripeCustomer",
    "StripeWebhookEvent",
    "SubscriptionPlan",
    "User",
    "UserSession",
]
