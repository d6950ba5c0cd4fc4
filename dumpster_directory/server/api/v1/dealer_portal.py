"""
Dealer Portal Endpoints.

Everything a business owner does for their own listing: working leads,
spending credits to reveal them, taking unassigned quotes, editing the
profile, notifications, featured placement and billing.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, status

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.businesses import Business
from dumpster_directory.core.database.entities.users import User
from dumpster_directory.core.database.repositories.bundle import RepositoryBundle
from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.core.models.domain import AssignmentStatus
from dumpster_directory.core.models.io import (
    BusinessRead,
    BusinessUpdate,
    CheckoutRequest,
    CheckoutResponse,
    FeaturedStatus,
    LeadListResponse,
    LeadStatusUpdate,
    LeadView,
    MarkReadRequest,
    NotificationRead,
    PlanRead,
    QuoteRead,
    RevealResponse,
    SubscriptionRead,
)
from dumpster_directory.server.services.billing import CheckoutService, FeaturedService
from dumpster_directory.server.services.deps import BusinessOwnerDep, CacheDep, GatewayDep, ReposDep, SettingsDep
from dumpster_directory.server.services.leads import LeadService

logger = get_logger(__name__)

router = APIRouter()


async def _own_business(user: User, repos: RepositoryBundle) -> Business:
    business = await repos.businesses.get_by_id(user.business_id)
    if business is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    return business


# ----------------------------------------------------------------------
# Leads
# ----------------------------------------------------------------------


@router.get(
    "/leads",
    response_model=LeadListResponse,
    summary="List Leads",
    description="Leads addressed or assigned to the business, with contact details masked until revealed.",
    response_description="Leads with the remaining credit balance.",
)
async def list_leads(user: BusinessOwnerDep, repos: ReposDep, app_settings: SettingsDep) -> LeadListResponse:
    """
    List leads.

    Listing marks every newly assigned lead as viewed.
    """
    service = LeadService(repos, default_category=app_settings.marketplace.default_category)
    leads = await service.list_for_business(user.business_id)
    credits = await repos.subscriptions.credit_balance(user.business_id)
    return LeadListResponse(leads=leads, total=len(leads), credits=credits)


@router.get(
    "/leads/{lead_id}",
    response_model=LeadView,
    summary="Get Lead",
    description="One lead as the business sees it.",
    response_description="The lead.",
    responses={404: {"description": "Lead not found"}},
)
async def get_lead(lead_id: str, user: BusinessOwnerDep, repos: ReposDep) -> LeadView:
    return await LeadService(repos).detail(user.business_id, lead_id)


@router.patch(
    "/leads/{lead_id}",
    response_model=LeadView,
    summary="Update Lead Status",
    description="Record the business's progress on a lead.",
    response_description="The updated lead.",
    responses={404: {"description": "Lead not found"}},
)
async def update_lead(lead_id: str, payload: LeadStatusUpdate, user: BusinessOwnerDep, repos: ReposDep) -> LeadView:
    return await LeadService(repos).update_status(user.business_id, lead_id, payload.status)


@router.post(
    "/leads/{lead_id}/reveal",
    response_model=RevealResponse,
    summary="Reveal Lead",
    description="Spend one lead credit to see the customer's contact details. Revealing again is free.",
    response_description="The unmasked lead and the remaining credits.",
    responses={403: {"description": "No credits left"}, 404: {"description": "Lead not found"}},
)
async def reveal_lead(
    lead_id: str, user: BusinessOwnerDep, repos: ReposDep, app_settings: SettingsDep
) -> RevealResponse:
    """
    Reveal a lead.

    A business without a subscription gets the free plan and its starting
    credits first.
    """
    service = LeadService(repos)
    return await service.reveal(
        user.business_id, lead_id, user.id, app_settings.marketplace.free_plan_lead_credits
    )


# ----------------------------------------------------------------------
# Available quotes
# ----------------------------------------------------------------------


@router.get(
    "/available-quotes",
    response_model=List[LeadView],
    summary="Available Quotes",
    description="Unassigned quotes matching the business's services and service area.",
    response_description="Matching quotes with contact details masked.",
)
async def available_quotes(user: BusinessOwnerDep, repos: ReposDep) -> List[LeadView]:
    business = await _own_business(user, repos)
    return await LeadService(repos).available_for(business)


@router.post(
    "/available-quotes/{quote_id}",
    response_model=QuoteRead,
    summary="Take Quote",
    description="Address an unassigned quote to the business.",
    response_description="The quote, now addressed to the business.",
    responses={400: {"description": "Quote already assigned"}, 404: {"description": "Quote not found"}},
)
async def take_quote(quote_id: str, user: BusinessOwnerDep, repos: ReposDep) -> QuoteRead:
    business = await _own_business(user, repos)
    quote = await LeadService(repos).take(business, quote_id)
    return QuoteRead.model_validate(quote)


# ----------------------------------------------------------------------
# Profile, stats and notifications
# ----------------------------------------------------------------------


@router.get(
    "/business-profile",
    response_model=BusinessRead,
    summary="Get Business Profile",
    description="The listing linked to the signed-in owner.",
    response_description="The business.",
)
async def get_profile(user: BusinessOwnerDep, repos: ReposDep) -> BusinessRead:
    return BusinessRead.model_validate(await _own_business(user, repos))


@router.patch(
    "/business-profile",
    response_model=BusinessRead,
    summary="Update Business Profile",
    description="Edit the owner's listing. Only the fields sent are changed.",
    response_description="The updated business.",
)
async def update_profile(
    payload: BusinessUpdate, user: BusinessOwnerDep, repos: ReposDep, cache: CacheDep
) -> BusinessRead:
    business = await _own_business(user, repos)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(business, field, value)
    business.updated_at = utc_now()
    business = await repos.businesses.update(business)
    if cache is not None:
        cache.upsert(business)
    return BusinessRead.model_validate(business)


@router.get(
    "/stats",
    summary="Dealer Statistics",
    description="Lead, credit and listing figures for the owner's business.",
    response_description="Statistics object.",
)
async def dealer_stats(user: BusinessOwnerDep, repos: ReposDep) -> Dict[str, Any]:
    business = await _own_business(user, repos)
    assignments = await repos.leads.assignments_for_business(business.id)
    by_status: Dict[str, int] = {}
    for assignment in assignments:
        by_status[assignment.status] = by_status.get(assignment.status, 0) + 1
    subscription = await repos.subscriptions.get_by_business(business.id)
    return {
        "assigned_leads": len(assignments),
        "leads_by_status": by_status,
        "new_leads": by_status.get(AssignmentStatus.new.value, 0),
        "direct_quotes": await repos.quotes.count_by_status(business.id),
        "new_leads_count": business.new_leads_count,
        "revealed_leads": await repos.leads.count_reveals(business.id),
        "lead_credits": subscription.lead_credits if subscription else 0,
        "plan": subscription.plan if subscription else None,
        "rating": business.rating,
        "reviews": business.reviews,
        "is_featured": business.is_featured_active(utc_now()),
        "is_verified": business.is_verified,
    }


@router.get(
    "/notifications",
    response_model=List[NotificationRead],
    summary="List Notifications",
    description="Newest notifications of the owner's business.",
    response_description="Notifications.",
)
async def list_notifications(
    user: BusinessOwnerDep, repos: ReposDep, unread_only: bool = False
) -> List[NotificationRead]:
    notifications = await repos.notifications.list_for_business(user.business_id, unread_only=unread_only)
    return [NotificationRead.model_validate(n) for n in notifications]


@router.post(
    "/notifications/read",
    summary="Mark Notifications Read",
    description="Mark the given notifications, or all of them, as read.",
    response_description="Number of notifications updated.",
)
async def mark_notifications_read(payload: MarkReadRequest, user: BusinessOwnerDep, repos: ReposDep):
    updated = await repos.notifications.mark_read(user.business_id, payload.notification_ids)
    await repos.session.commit()
    return {"success": True, "updated": updated}


# ----------------------------------------------------------------------
# Featured listing
# ----------------------------------------------------------------------


@router.get(
    "/featured",
    response_model=FeaturedStatus,
    summary="Featured Status",
    description="Whether the listing is featured, and whether the free trial is still available.",
    response_description="Featured status.",
)
async def featured_status(user: BusinessOwnerDep, repos: ReposDep, app_settings: SettingsDep) -> FeaturedStatus:
    return await FeaturedService(repos, app_settings.marketplace).status(user.business_id)


@router.post(
    "/featured",
    response_model=BusinessRead,
    summary="Start Featured Trial",
    description="Feature the listing for free once, for FEATURED_TRIAL_DAYS days.",
    response_description="The featured business.",
    responses={400: {"description": "Already featured, or the trial was used"}},
)
async def start_featured_trial(
    user: BusinessOwnerDep, repos: ReposDep, cache: CacheDep, app_settings: SettingsDep
) -> BusinessRead:
    business = await FeaturedService(repos, app_settings.marketplace).start_trial(user.business_id)
    if cache is not None:
        cache.upsert(business)
    return BusinessRead.model_validate(business)


@router.delete(
    "/featured",
    response_model=BusinessRead,
    summary="Cancel Featured Listing",
    description="End the featured placement now.",
    response_description="The business, no longer featured.",
    responses={404: {"description": "No active featured listing"}},
)
async def cancel_featured(
    user: BusinessOwnerDep, repos: ReposDep, cache: CacheDep, app_settings: SettingsDep
) -> BusinessRead:
    business = await FeaturedService(repos, app_settings.marketplace).cancel(user.business_id)
    if cache is not None:
        cache.upsert(business)
    return BusinessRead.model_validate(business)


# ----------------------------------------------------------------------
# Subscription and checkout
# ----------------------------------------------------------------------


@router.get(
    "/subscription/plans",
    response_model=List[PlanRead],
    summary="Available Plans",
    description="Active subscription plans in display order.",
    response_description="Plans.",
)
async def subscription_plans(user: BusinessOwnerDep, repos: ReposDep) -> List[PlanRead]:
    return [PlanRead.model_validate(p) for p in await repos.plans.list_plans(active_only=True)]


@router.get(
    "/subscription/current",
    response_model=SubscriptionRead,
    summary="Current Subscription",
    description="The business's subscription; a free plan is opened if it has none.",
    response_description="The subscription.",
)
async def current_subscription(user: BusinessOwnerDep, repos: ReposDep, app_settings: SettingsDep) -> SubscriptionRead:
    subscription = await repos.subscriptions.ensure_free(
        user.business_id, user.id, app_settings.marketplace.free_plan_lead_credits
    )
    await repos.session.commit()
    return SubscriptionRead.model_validate(subscription)


@router.get(
    "/subscription/stripe-config",
    summary="Stripe Configuration",
    description="Publishable key and mode for the checkout client.",
    response_description="Stripe client configuration.",
)
async def stripe_config(user: BusinessOwnerDep, gateway: GatewayDep):
    return {
        "publishable_key": gateway.publishable_key,
        "configured": gateway.is_configured,
        "mode": gateway.mode,
    }


@router.post(
    "/subscription/checkout",
    response_model=CheckoutResponse,
    summary="Create Checkout",
    description="Start a Stripe checkout for a plan, a credit pack, featured placement or the monthly plan.",
    response_description="The checkout session ID and URL.",
    responses={404: {"description": "Plan not found"}, 503: {"description": "Billing is not configured"}},
)
async def create_checkout(
    payload: CheckoutRequest,
    user: BusinessOwnerDep,
    repos: ReposDep,
    gateway: GatewayDep,
    app_settings: SettingsDep,
) -> CheckoutResponse:
    """
    Create a checkout session.

    Nothing is granted here; credits, plans and featured placement are
    applied when Stripe reports the completed checkout by webhook.
    """
    business = await _own_business(user, repos)
    service = CheckoutService(repos, gateway, app_settings.marketplace, base_url=app_settings.app_base_url)
    return await service.create(user, business, payload)
