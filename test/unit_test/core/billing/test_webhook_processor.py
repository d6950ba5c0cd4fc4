"""
Unit tests for Stripe webhook processing.

Events are fed straight to the processor as decoded dictionaries; signature
verification is covered by the endpoint tests.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError

from dumpster_directory.core.billing import WebhookSettings, map_subscription_status, process_event
from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities import BusinessSubscription, StripeCustomer, SubscriptionPlan
from test.unit_test.fixtures import make_business

pytestmark = pytest.mark.asyncio


def _event(event_id, event_type, obj):
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def _credits_checkout(business_id, credits="5", event_id="evt_credits_1"):
    return _event(
        event_id,
        "checkout.session.completed",
        {
            "id": "cs_test_1",
            "customer": "cus_test_1",
            "amount_total": 2500,
            "currency": "usd",
            "payment_intent": "pi_test_1",
            "metadata": {"business_id": business_id, "user_id": "user-1", "type": "credits", "credits": credits},
        },
    )


async def _subscribed_business(repos, **subscription_fields):
    business = await make_business(repos)
    repos.stripe_customers.add(
        StripeCustomer(business_id=business.id, user_id="user-1", stripe_customer_id="cus_test_1")
    )
    values = {
        "plan": "Pro",
        "subscription_tier": "monthly",
        "status": "active",
        "lead_credits": 3,
        "monthly_credit_allowance": 10,
        "stripe_subscription_id": "sub_test_1",
    }
    values.update(subscription_fields)
    repos.subscriptions.add(BusinessSubscription(business_id=business.id, user_id="user-1", **values))
    await repos.session.commit()
    return business


class TestMapSubscriptionStatus:
    @pytest.mark.parametrize(
        "stripe_status, expected",
        [
            ("active", "active"),
            ("trialing", "active"),
            ("past_due", "past_due"),
            ("canceled", "cancelled"),
            ("incomplete", "paused"),
            (None, "paused"),
        ],
    )
    async def test_mapping(self, stripe_status, expected):
        assert map_subscription_status(stripe_status) == expected


class TestCheckoutCompleted:
    async def test_credits_purchase_adds_credits(self, repos):
        business = await make_business(repos)

        result = await process_event(repos, _credits_checkout(business.id))

        assert result.outcome == "processed"
        assert await repos.subscriptions.credit_balance(business.id) == 5
        payments = await repos.payments.list_for_business(business.id)
        assert len(payments) == 1
        assert payments[0].amount == 25.0
        assert payments[0].type == "credits"
        notifications = await repos.notifications.list_for_business(business.id)
        assert notifications[0].title == "Credits Purchased"

    async def test_redelivered_event_is_applied_once(self, repos):
        business = await make_business(repos)
        event = _credits_checkout(business.id)

        first = await process_event(repos, event)
        second = await process_event(repos, event)

        assert first.outcome == "processed"
        assert second.outcome == "duplicate"
        assert await repos.subscriptions.credit_balance(business.id) == 5
        assert len(await repos.payments.list_for_business(business.id)) == 1

    async def test_subscription_created_concurrently_keeps_purchased_credits(self, repos, monkeypatch):
        business = await make_business(repos)
        business_id = business.id
        repos.subscriptions.add(BusinessSubscription(business_id=business_id, plan="free", lead_credits=3))
        await repos.session.commit()
        real_get = repos.subscriptions.get_by_business
        reads = []

        async def first_read_misses(subscription_business_id):
            reads.append(subscription_business_id)
            return None if len(reads) == 1 else await real_get(subscription_business_id)

        monkeypatch.setattr(repos.subscriptions, "get_by_business", first_read_misses)

        result = await process_event(repos, _credits_checkout(business_id))

        assert result.outcome == "processed"
        assert await repos.subscriptions.credit_balance(business_id) == 8
        assert await repos.webhook_events.exists("evt_credits_1") is True

    async def test_integrity_error_from_handler_is_raised_for_retry(self, repos, monkeypatch):
        business = await make_business(repos)
        business_id = business.id
        event = _credits_checkout(business_id)
        failure = IntegrityError("INSERT INTO payment_transactions", {}, Exception("constraint failed"))

        with monkeypatch.context() as patch:
            patch.setattr(repos.subscriptions, "add_credits", AsyncMock(side_effect=failure))
            with pytest.raises(IntegrityError):
                await process_event(repos, event)

        assert await repos.webhook_events.exists("evt_credits_1") is False
        retried = await process_event(repos, event)
        assert retried.outcome == "processed"
        assert await repos.subscriptions.credit_balance(business_id) == 5

    async def test_credits_purchase_without_count_changes_nothing(self, repos):
        business = await make_business(repos)

        result = await process_event(repos, _credits_checkout(business.id, credits="0"))

        assert result.outcome == "processed"
        assert await repos.subscriptions.get_by_business(business.id) is None

    async def test_featured_purchase_features_listing(self, repos):
        business = await make_business(repos)
        event = _event(
            "evt_featured_1",
            "checkout.session.completed",
            {
                "id": "cs_test_2",
                "amount_total": 4900,
                "metadata": {"business_id": business.id, "user_id": "user-1", "type": "featured", "duration_days": "7"},
            },
        )

        result = await process_event(repos, event)

        assert business.id in result.business_ids
        refreshed = await repos.businesses.get_by_id(business.id)
        assert refreshed.is_featured is True
        assert refreshed.featured_until > utc_now() + timedelta(days=6)
        assert refreshed.featured_until < utc_now() + timedelta(days=8)
        listing = await repos.featured.get_by_business(business.id)
        assert listing.is_trial is False
        payments = await repos.payments.list_for_business(business.id)
        assert payments[0].type == "featured"

    async def test_featured_trial_defaults_duration_and_records_no_payment(self, repos):
        business = await make_business(repos)
        event = _event(
            "evt_featured_trial",
            "checkout.session.completed",
            {
                "id": "cs_test_3",
                "amount_total": 0,
                "metadata": {
                    "business_id": business.id,
                    "user_id": "user-1",
                    "type": "featured_listing",
                    "is_trial": "true",
                },
            },
        )

        await process_event(repos, event, WebhookSettings(featured_duration_days=14))

        listing = await repos.featured.get_by_business(business.id)
        assert listing.is_trial is True
        assert listing.trial_used is True
        assert listing.expires_at > utc_now() + timedelta(days=13)
        assert await repos.payments.list_for_business(business.id) == []

    async def test_monthly_subscription_checkout(self, repos):
        business = await make_business(repos)
        event = _event(
            "evt_monthly_1",
            "checkout.session.completed",
            {
                "id": "cs_test_4",
                "customer": "cus_test_9",
                "amount_total": 9900,
                "metadata": {
                    "business_id": business.id,
                    "user_id": "user-1",
                    "type": "monthly_subscription",
                    "credits": "15",
                },
            },
        )

        await process_event(repos, event)

        subscription = await repos.subscriptions.get_by_business(business.id)
        assert subscription.subscription_tier == "monthly"
        assert subscription.lead_credits == 15
        assert subscription.monthly_credit_allowance == 15
        assert subscription.stripe_customer_id == "cus_test_9"
        assert subscription.current_period_end is not None

    async def test_subscription_mode_uses_plan_allowance(self, repos):
        business = await make_business(repos)
        plan = SubscriptionPlan(name="Pro", price=149.0, lead_credits=25)
        repos.plans.add(plan)
        await repos.session.commit()
        event = _event(
            "evt_sub_checkout",
            "checkout.session.completed",
            {
                "id": "cs_test_5",
                "customer": "cus_test_1",
                "subscription": "sub_test_7",
                "metadata": {"business_id": business.id, "user_id": "user-1", "plan_id": plan.id},
            },
        )

        await process_event(repos, event)

        subscription = await repos.subscriptions.get_by_business(business.id)
        assert subscription.plan == "Pro"
        assert subscription.status == "active"
        assert subscription.stripe_subscription_id == "sub_test_7"
        assert subscription.lead_credits == 25
        assert subscription.monthly_price == 149.0

    async def test_business_resolved_from_customer(self, repos):
        business = await _subscribed_business(repos, lead_credits=0)
        event = _credits_checkout(business.id, credits="2", event_id="evt_credits_2")
        event["data"]["object"]["metadata"] = {"type": "credits", "credits": "2"}

        await process_event(repos, event)

        assert await repos.subscriptions.credit_balance(business.id) == 2

    async def test_unknown_business_is_skipped(self, repos):
        event = _event("evt_orphan", "checkout.session.completed", {"id": "cs_x", "metadata": {"type": "credits"}})

        result = await process_event(repos, event)

        assert result.outcome == "processed"
        assert await repos.webhook_events.exists("evt_orphan")


class TestSubscriptionEvents:
    async def test_updated_syncs_status_and_period(self, repos):
        business = await _subscribed_business(repos)
        now = int(utc_now().timestamp())
        event = _event(
            "evt_sub_updated",
            "customer.subscription.updated",
            {
                "id": "sub_test_1",
                "customer": "cus_test_1",
                "status": "past_due",
                "cancel_at_period_end": True,
                "items": {"data": [{"current_period_start": now, "current_period_end": now + 86400 * 30}]},
            },
        )

        await process_event(repos, event)

        subscription = await repos.subscriptions.get_by_business(business.id)
        assert subscription.status == "past_due"
        assert subscription.cancel_at_period_end is True
        assert subscription.current_period_end is not None
        customer = await repos.stripe_customers.get_by_stripe_id("cus_test_1")
        await repos.session.refresh(customer)
        assert customer.subscription_status == "past_due"

    async def test_deleted_reverts_to_free_and_keeps_credits(self, repos):
        business = await _subscribed_business(repos, lead_credits=7)
        event = _event(
            "evt_sub_deleted", "customer.subscription.deleted", {"id": "sub_test_1", "customer": "cus_test_1"}
        )

        await process_event(repos, event)

        subscription = await repos.subscriptions.get_by_business(business.id)
        assert subscription.plan == "free"
        assert subscription.subscription_tier == "pay_per_lead"
        assert subscription.status == "cancelled"
        assert subscription.monthly_credit_allowance == 0
        assert subscription.lead_credits == 7
        assert subscription.canceled_at is not None


class TestInvoiceEvents:
    async def test_renewal_adds_allowance(self, repos):
        business = await _subscribed_business(repos, lead_credits=2, credits_used_this_period=8)
        event = _event(
            "evt_invoice_paid",
            "invoice.payment_succeeded",
            {
                "id": "in_test_1",
                "customer": "cus_test_1",
                "subscription": "sub_test_1",
                "amount_paid": 14900,
                "billing_reason": "subscription_cycle",
            },
        )

        await process_event(repos, event)

        subscription = await repos.subscriptions.get_by_business(business.id)
        assert subscription.lead_credits == 12
        assert subscription.credits_used_this_period == 0
        payments = await repos.payments.list_for_business(business.id)
        assert payments[0].amount == 149.0

    async def test_first_invoice_only_records_payment(self, repos):
        business = await _subscribed_business(repos, lead_credits=10)
        event = _event(
            "evt_invoice_first",
            "invoice.payment_succeeded",
            {
                "id": "in_test_2",
                "customer": "cus_test_1",
                "parent": {"subscription_details": {"subscription": "sub_test_1"}},
                "amount_paid": 14900,
                "billing_reason": "subscription_create",
            },
        )

        await process_event(repos, event)

        assert await repos.subscriptions.credit_balance(business.id) == 10
        assert len(await repos.payments.list_for_business(business.id)) == 1

    async def test_payment_failed_marks_past_due(self, repos):
        business = await _subscribed_business(repos)
        event = _event(
            "evt_invoice_failed",
            "invoice.payment_failed",
            {"id": "in_test_3", "customer": "cus_test_1", "subscription": "sub_test_1"},
        )

        await process_event(repos, event)

        subscription = await repos.subscriptions.get_by_business(business.id)
        assert subscription.status == "past_due"
        notifications = await repos.notifications.list_for_business(business.id)
        assert notifications[0].title == "Payment Failed"


async def test_unhandled_event_type_is_ignored_but_recorded(repos):
    result = await process_event(repos, _event("evt_other", "charge.refunded", {"id": "ch_1"}))

    assert result.outcome == "ignored"
    assert await repos.webhook_events.exists("evt_other")
