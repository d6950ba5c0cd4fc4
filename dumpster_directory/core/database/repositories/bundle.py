"""
Repository bundle for dependency injection.

This module provides a convenience bundle of all repository instances bound
to one session, so that a request handler or batch command works inside a
single transaction.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from .billing import (
    FeaturedListingRepository,
    NotificationRepository,
    PaymentRepository,
    PlanRepository,
    StripeCustomerRepository,
    SubscriptionRepository,
    WebhookEventRepository,
)
from .businesses import BusinessRepository
from .claims import ClaimRepository
from .quotes import LeadRepository, QuoteRepository
from .users import SessionRepository, UserRepository


@dataclass(frozen=True)
class RepositoryBundle:
    """Convenience bundle of all SQL repositories sharing one session."""

    session: AsyncSession
    businesses: BusinessRepository
    quotes: QuoteRepository
    leads: LeadRepository
    claims: ClaimRepository
    subscriptions: SubscriptionRepository
    plans: PlanRepository
    stripe_customers: StripeCustomerRepository
    payments: PaymentRepository
    featured: FeaturedListingRepository
    webhook_events: WebhookEventRepository
    notifications: NotificationRepository
    users: UserRepository
    sessions: SessionRepository


def build_repositories(session: AsyncSession) -> RepositoryBundle:
    """Build a RepositoryBundle around an open session.

    Args:
        session: Async session shared by every repository

    Returns:
        Bundle containing all repository instances
    """
    return RepositoryBundle(
        session=session,
        businesses=BusinessRepository(session),
        quotes=QuoteRepository(session),
        leads=LeadRepository(session),
        claims=ClaimRepository(session),
        subscriptions=SubscriptionRepository(session),
        plans=PlanRepository(session),
        stripe_customers=StripeCustomerRepository(session),
        payments=PaymentRepository(session),
        featured=FeaturedListingRepository(session),
        webhook_events=WebhookEventRepository(session),
        notifications=NotificationRepository(session),
        users=UserRepository(session),
        sessions=SessionRepository(session),
    )
