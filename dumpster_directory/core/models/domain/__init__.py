"""Domain enums and value objects."""

from .enums import (
    AssignmentStatus,
    CheckoutType,
    ClaimTrackEvent,
    QuoteStatus,
    SubscriptionStatus,
    SubscriptionTier,
    UserRole,
)
from .filters import BusinessFilters

__all__ = [
    "AssignmentStatus",
    "BusinessFilters",
    "CheckoutType",
    "ClaimTrackEvent",
    "QuoteStatus",
    "SubscriptionStatus",
    "SubscriptionTier",
    "UserRole",
]
