"""Core models and schemas: domain enums, filters and API I/O models."""

from __future__ import annotations

from .domain import (
    AssignmentStatus,
    BusinessFilters,
    CheckoutType,
    ClaimTrackEvent,
    QuoteStatus,
    SubscriptionStatus,
    SubscriptionTier,
    UserRole,
)

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
