"""
Stripe Webhook Endpoint.

Stripe posts billing events here. The signature is verified against
``STRIPE_WEBHOOK_SECRET`` before anything is read, and every event id is
applied at most once, so Stripe's retries are safe.
"""

from typing import Optional

from fastapi import APIRouter, Header, Request

from dumpster_directory.core.billing import WebhookSettings, process_event
from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.server.services.deps import CacheDep, GatewayDep, ReposDep, SettingsDep

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    summary="Stripe Webhook",
    description="Receive Stripe billing events (checkouts, subscriptions, invoices).",
    response_description="Acknowledgement.",
    responses={400: {"description": "Invalid signature"}, 503: {"description": "Webhook secret not configured"}},
)
async def stripe_webhook(
    request: Request,
    repos: ReposDep,
    gateway: GatewayDep,
    cache: CacheDep,
    app_settings: SettingsDep,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
):
    """
    Handle a Stripe event.

    Replays of an event already applied are acknowledged without effect.
    Listings whose featured state changed are patched into the cache.
    """
    payload = await request.body()
    event = gateway.parse_webhook(payload, stripe_signature)

    marketplace = app_settings.marketplace
    config = WebhookSettings(
        monthly_credit_allowance=marketplace.monthly_credit_allowance,
        featured_duration_days=marketplace.featured_duration_days,
    )
    result = await process_event(repos, event, config)

    if cache is not None:
        for business_id in result.business_ids:
            business = await repos.businesses.get_by_id(business_id)
            if business is not None:
                cache.upsert(business)

    return {"received": True, "event_id": result.event_id, "outcome": result.outcome}
