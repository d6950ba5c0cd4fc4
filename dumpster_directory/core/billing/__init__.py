"""Stripe checkout and webhook handling."""

from .stripe_gateway import CheckoutSession, StripeGateway
from .webhooks import WebhookProcessor, WebhookResult, WebhookSettings, map_subscription_status, process_event

__all__ = [
    "CheckoutSession",
    "StripeGateway",
    "WebhookProcessor",
    "WebhookResult",
    "WebhookSettings",
    "map_subscription_status",
    "process_event",
]
