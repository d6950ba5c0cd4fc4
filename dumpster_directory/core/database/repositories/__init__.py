"""
Repository layer.

One repository per aggregate, all built on ``SqlRepository``. Use
``build_repositories(session)`` to get every repository bound to one session.
"""

from .base import AsyncBaseRepository, QueryBuilder, SqlRepository
from .billing import (
    FeaturedListingRepository,
    NotificationRepository,
    PaymentRepository,
    PlanRepository,
    StripeCustomerRepository,
    SubscriptionRepository,
    WebhookEventRepository,
)
from .bundle import RepositoryBundle, build_repositories
from .businesses import BusinessRepository, dedupe_key, serves_area
from .claims import ClaimRepository
from .quotes import LeadRepository, QuoteRepository
from .users import SessionRepository, UserRepository

__all__ = [
    "AsyncBaseRepository",
    "BusinessRepository",
    "ClaimRepository",
    "FeaturedListingRepository",
    "LeadRepository",
    "NotificationRepository",
    "PaymentRepository",
    "PlanRepository",
    "QueryBuilder",
    "QuoteRepository",
    "RepositoryBundle",
    "SessionRepository",
    "SqlRepository",
    "StripeCustomerRepository",
    "SubscriptionRepository",
    "UserRepository",
    "WebhookEventRepository",
    "build_repositories",
    "dedupe_key",
    "serves_area",
]
