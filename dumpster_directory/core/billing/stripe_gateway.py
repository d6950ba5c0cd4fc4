"""
Stripe gateway.

Thin wrapper around the ``stripe`` SDK used by the dealer portal and admin
routes. The SDK is synchronous, so every network call runs in the threadpool.
Keys are passed per call instead of being assigned to ``stripe.api_key`` so
that tests and multiple configurations never share global state.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from dumpster_directory.core.database.entities.billing import StripeCustomer
from dumpster_directory.core.database.repositories.billing import StripeCustomerRepository
from dumpster_directory.core.errors import BillingNotConfiguredError, WebhookSignatureError

logger = logging.getLogger(__name__)

# Seconds a signed webhook stays acceptable
WEBHOOK_TOLERANCE = 300


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: Optional[str]


class StripeGateway:
    """Customer, checkout, product and webhook operations against Stripe."""

    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str] = None,
        publishable_key: Optional[str] = None,
    ) -> None:
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.publishable_key = publishable_key

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)

    @property
    def mode(self) -> str:
        return "live" if (self.secret_key or "").startswith("sk_live") else "test"

    def _require_key(self) -> str:
        if not self.secret_key:
            raise BillingNotConfiguredError("Stripe is not configured")
        return self.secret_key

    async def get_or_create_customer(
        self,
        customers: StripeCustomerRepository,
        *,
        business_id: str,
        user_id: Optional[str],
        email: str,
        name: Optional[str],
    ) -> str:
        """Return the business's Stripe customer id, creating and storing one if needed. Caller commits."""
        existing = await customers.get_by_business(business_id)
        if existing is not None and existing.stripe_customer_id:
            return existing.stripe_customer_id

        api_key = self._require_key()
        customer = await run_in_threadpool(
            stripe.Customer.create,
            api_key=api_key,
            email=email,
            name=name or email,
            metadata={"business_id": business_id, "user_id": user_id or ""},
        )
        customers.add(StripeCustomer(business_id=business_id, user_id=user_id, stripe_customer_id=customer.id))
        await customers.session.flush()
        logger.info(f"Created Stripe customer {customer.id} for business {business_id}")
        return customer.id

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        mode: str,
        line_items: List[Dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> CheckoutSession:
        """Create a hosted checkout session.

        Args:
            customer_id: Stripe customer id
            mode: ``subscription`` or ``payment``
            line_items: Stripe line items (``price`` ids or inline ``price_data``)
            success_url: Redirect after payment
            cancel_url: Redirect when the customer backs out
            metadata: String metadata echoed back on ``checkout.session.completed``
        """
        api_key = self._require_key()
        session = await run_in_threadpool(
            stripe.checkout.Session.create,
            api_key=api_key,
            customer=customer_id,
            payment_method_types=["card"],
            line_items=line_items,
            mode=mode,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
        return CheckoutSession(id=session.id, url=session.url)

    async def create_product_price(self, *, name: str, description: Optional[str], price: float) -> tuple[str, str]:
        """Create a product with a monthly recurring price.

        Returns:
            Tuple of (product id, price id)
        """
        api_key = self._require_key()
        product = await run_in_threadpool(
            stripe.Product.create, api_key=api_key, name=name, description=description or name
        )
        stripe_price = await run_in_threadpool(
            stripe.Price.create,
            api_key=api_key,
            product=product.id,
            unit_amount=int(round(price * 100)),
            currency="usd",
            recurring={"interval": "month"},
        )
        return product.id, stripe_price.id

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify a webhook signature and decode the event.

        Raises:
            BillingNotConfiguredError: No webhook secret configured
            WebhookSignatureError: Missing or invalid signature, or a body that is not JSON
        """
        if not self.webhook_secret:
            raise BillingNotConfiguredError("Stripe webhook secret is not configured")
        if not signature:
            raise WebhookSignatureError("No signature provided")

        body = payload.decode("utf-8")
        try:
            stripe.WebhookSignature.verify_header(body, signature, self.webhook_secret, WEBHOOK_TOLERANCE)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Stripe webhook verification failed: {e}")
            raise WebhookSignatureError("Invalid signature") from e

        try:
            event = json.loads(body)
        except ValueError as e:
            raise WebhookSignatureError("Invalid payload") from e
        if not isinstance(event, dict) or "id" not in event or "type" not in event:
            raise WebhookSignatureError("Invalid payload")
        return event
