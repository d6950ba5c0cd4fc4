"""Initial schema for Dumpster Directory

Revision ID: 20261001_000000
Revises: None
Create Date: 2026-10-01 00:00:00.000000

This is the initial migration that creates every table of the directory:
- Businesses and their claim campaigns and contacts
- Quotes, lead assignments and lead reveals
- Subscriptions, plans, Stripe customers, payments, featured listings and
  processed webhook events
- Notifications, users and auth sessions

Revision format: YYYYMMDD_HHMMSS_description

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261001_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Create all tables."""

    # Create businesses table
    op.create_table(
        "businesses",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("reviews", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(50), nullable=True),
        sa.Column("zipcode", sa.String(20), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("featured_until", sa.DateTime(), nullable=True),
        sa.Column("logo_url", sa.String(500), nullable=True),
        sa.Column("cover_image", sa.String(500), nullable=True),
        sa.Column("years_in_business", sa.Integer(), nullable=True),
        sa.Column("license_number", sa.String(100), nullable=True),
        sa.Column("insurance", sa.String(255), nullable=True),
        sa.Column("price_range", sa.String(50), nullable=True),
        sa.Column("owner_name", sa.String(255), nullable=True),
        sa.Column("owner_email", sa.String(255), nullable=True),
        sa.Column("owner_phone", sa.String(50), nullable=True),
        sa.Column("place_id", sa.String(255), nullable=True),
        sa.Column("source", sa.String(50), nullable=True),
        sa.Column("new_leads_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("services", sa.JSON(), nullable=True),
        sa.Column("service_areas", sa.JSON(), nullable=True),
        sa.Column("hours", sa.JSON(), nullable=True),
        sa.Column("gallery_images", sa.JSON(), nullable=True),
        sa.Column("certifications", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_businesses_name", "name"),
        sa.Index("ix_businesses_category", "category"),
        sa.Index("ix_businesses_city", "city"),
        sa.Index("ix_businesses_state", "state"),
    )

    # Create users and sessions tables
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="customer"),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("business_id", sa.String(36), nullable=True),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_users_email", "email", unique=True),
        sa.Index("ix_users_business_id", "business_id"),
    )

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("token", sa.String(1024), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_sessions_user_id", "user_id"),
        sa.Index("ix_sessions_token", "token"),
    )

    # Create quotes, lead_assignments and lead_reveals tables
    op.create_table(
        "quotes",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("customer_id", sa.String(36), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("customer_zipcode", sa.String(20), nullable=True),
        sa.Column("service_address", sa.String(500), nullable=True),
        sa.Column("service_city", sa.String(100), nullable=True),
        sa.Column("service_state", sa.String(50), nullable=True),
        sa.Column("service_area", sa.String(255), nullable=True),
        sa.Column("business_id", sa.String(36), nullable=True),
        sa.Column("business_name", sa.String(255), nullable=True),
        sa.Column("service_type", sa.String(100), nullable=False),
        sa.Column("project_description", sa.Text(), nullable=True),
        sa.Column("timeline", sa.String(100), nullable=True),
        sa.Column("budget", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("source", sa.String(50), nullable=True),
        sa.Column("referrer", sa.String(500), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("viewed_at", sa.DateTime(), nullable=True),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        sa.Column("response_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_quotes_customer_id", "customer_id"),
        sa.Index("ix_quotes_customer_email", "customer_email"),
        sa.Index("ix_quotes_business_id", "business_id"),
        sa.Index("ix_quotes_status", "status"),
        sa.Index("ix_quotes_created_at", "created_at"),
    )

    op.create_table(
        "lead_assignments",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("lead_id", sa.String(36), sa.ForeignKey("quotes.id"), nullable=False),
        sa.Column("business_id", sa.String(36), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lead_id", "business_id", name="uq_lead_assignments_lead_business"),
        sa.Index("ix_lead_assignments_lead_id", "lead_id"),
        sa.Index("ix_lead_assignments_business_id", "business_id"),
    )

    op.create_table(
        "lead_reveals",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("lead_id", sa.String(36), sa.ForeignKey("quotes.id"), nullable=False),
        sa.Column("business_id", sa.String(36), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("credits_used", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("revealed_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lead_id", "business_id", name="uq_lead_reveals_lead_business"),
        sa.Index("ix_lead_reveals_lead_id", "lead_id"),
        sa.Index("ix_lead_reveals_business_id", "business_id"),
    )

    # Create claim_campaigns and claim_contacts tables
    op.create_table(
        "claim_campaigns",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("business_id", sa.String(36), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("claim_token", sa.String(128), nullable=False),
        sa.Column("campaign_name", sa.String(255), nullable=True),
        sa.Column("email_sent_to", sa.String(255), nullable=True),
        sa.Column("email_sent_at", sa.DateTime(), nullable=True),
        sa.Column("email_opened_at", sa.DateTime(), nullable=True),
        sa.Column("link_clicked_at", sa.DateTime(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_claim_campaigns_business_id", "business_id"),
        sa.Index("ix_claim_campaigns_claim_token", "claim_token", unique=True),
    )

    op.create_table(
        "claim_contacts",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("claim_campaign_id", sa.String(36), sa.ForeignKey("claim_campaigns.id"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_selected", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("email_type", sa.String(50), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("opened_at", sa.DateTime(), nullable=True),
        sa.Column("clicked_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_claim_contacts_claim_campaign_id", "claim_campaign_id"),
    )

    # Create billing tables
    op.create_table(
        "business_subscriptions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("business_id", sa.String(36), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("plan", sa.String(50), nullable=False, server_default="free"),
        sa.Column("subscription_tier", sa.String(50), nullable=False, server_default="pay_per_lead"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("lead_credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("leads_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("monthly_credit_allowance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("credits_used_this_period", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("monthly_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("current_period_start", sa.DateTime(), nullable=True),
        sa.Column("current_period_end", sa.DateTime(), nullable=True),
        sa.Column("next_credit_refresh", sa.DateTime(), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("canceled_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_business_subscriptions_business_id", "business_id", unique=True),
        sa.Index("ix_business_subscriptions_stripe_subscription_id", "stripe_subscription_id"),
    )

    op.create_table(
        "subscription_plans",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("lead_credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("features", sa.JSON(), nullable=True),
        sa.Column("stripe_price_id", sa.String(255), nullable=True),
        sa.Column("stripe_product_id", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "stripe_customers",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("business_id", sa.String(36), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("stripe_customer_id", sa.String(255), nullable=False),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("subscription_status", sa.String(50), nullable=True),
        sa.Column("subscription_end_date", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_stripe_customers_business_id", "business_id", unique=True),
        sa.Index("ix_stripe_customers_stripe_customer_id", "stripe_customer_id"),
    )

    op.create_table(
        "payment_transactions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("business_id", sa.String(36), nullable=True),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(255), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(10), nullable=False, server_default="usd"),
        sa.Column("status", sa.String(20), nullable=False, server_default="succeeded"),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_payment_transactions_business_id", "business_id"),
    )

    op.create_table(
        "featured_listings",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("business_id", sa.String(36), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("is_trial", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("trial_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_renew", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("stripe_payment_intent_id", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_featured_listings_business_id", "business_id", unique=True),
    )

    op.create_table(
        "stripe_webhook_events",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("event_id", sa.String(255), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_stripe_webhook_events_event_id", "event_id", unique=True),
    )

    # Create business_notifications table
    op.create_table(
        "business_notifications",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("business_id", sa.String(36), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_business_notifications_business_id", "business_id"),
    )


def downgrade() -> None:
    """Drop all tables created in upgrade."""
    op.drop_table("business_notifications")
    op.drop_table("stripe_webhook_events")
    op.drop_table("featured_listings")
    op.drop_table("payment_transactions")
    op.drop_table("stripe_customers")
    op.drop_table("subscription_plans")
    op.drop_table("business_subscriptions")
    op.drop_table("claim_contacts")
    op.drop_table("claim_campaigns")
    op.drop_table("lead_reveals")
    op.drop_table("lead_assignments")
    op.drop_table("quotes")
    op.drop_table("sessions")
    op.drop_table("users")
    op.drop_table("businesses")
