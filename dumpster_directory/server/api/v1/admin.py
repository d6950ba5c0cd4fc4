"""
Administration Endpoints.

Bulk business import and export, featuring listings by hand, the business
cache, and subscription plans kept in sync with Stripe products and prices.
"""

import io
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile, status

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.billing import SubscriptionPlan
from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.core.models.io import BusinessRead, PlanCreate, PlanRead, PlanUpdate, SetFeaturedRequest
from dumpster_directory.core.transfer import export_businesses, import_businesses, parse_csv, parse_json
from dumpster_directory.server.services.deps import AdminDep, CacheDep, GatewayDep, ReposDep, SettingsDep

logger = get_logger(__name__)

router = APIRouter()


# ----------------------------------------------------------------------
# Businesses
# ----------------------------------------------------------------------


@router.get(
    "/businesses/export",
    summary="Export Businesses",
    description="Download every business as CSV, with claim contact emails merged into the email column.",
    response_description="CSV file.",
)
async def export_business_csv(admin: AdminDep, repos: ReposDep) -> Response:
    buffer = io.StringIO()
    count = await export_businesses(repos, buffer)
    logger.info(f"Admin {admin.id} exported {count} businesses")
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="businesses.csv"'},
    )


@router.post(
    "/businesses/import",
    summary="Import Businesses",
    description="Upload a CSV or JSON file of businesses. Duplicates of existing listings are skipped.",
    response_description="Import counts and the first error messages.",
    responses={400: {"description": "Unreadable file"}},
)
async def import_business_file(
    admin: AdminDep,
    repos: ReposDep,
    cache: CacheDep,
    app_settings: SettingsDep,
    file: UploadFile = File(...),
    clear: bool = Form(False),
    limit: Optional[int] = Form(None),
):
    """
    Import businesses.

    ``clear`` deletes every existing listing first. The cache is reloaded
    afterwards.
    """
    raw = await file.read()
    try:
        content = raw.decode("utf-8-sig")
        if (file.filename or "").lower().endswith(".json"):
            records = parse_json(content)
        else:
            records = parse_csv(content)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Could not read file: {e}")

    report = await import_businesses(
        repos,
        records,
        clear=clear,
        limit=limit,
        default_category=app_settings.marketplace.default_category,
    )
    if cache is not None:
        await cache.invalidate()
    logger.info(f"Admin {admin.id} imported {file.filename}: {report.message}")
    return report.to_dict()


@router.post(
    "/businesses/{business_id}/featured",
    response_model=BusinessRead,
    summary="Set Featured",
    description="Feature a listing, for a number of days or open-ended, or stop featuring it.",
    response_description="The updated business.",
    responses={404: {"description": "Business not found"}},
)
async def set_featured(
    business_id: str, payload: SetFeaturedRequest, admin: AdminDep, repos: ReposDep, cache: CacheDep
) -> BusinessRead:
    until = utc_now() + timedelta(days=payload.days) if payload.featured and payload.days else None
    business = await repos.businesses.set_featured(business_id, payload.featured, until)
    if business is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    if payload.featured and until is not None:
        await repos.featured.upsert(business_id, expires_at=until)
    elif not payload.featured:
        listing = await repos.featured.get_by_business(business_id)
        if listing is not None and (listing.expires_at is None or listing.expires_at > utc_now()):
            listing.expires_at = utc_now()
            repos.featured.add(listing)
    await repos.session.commit()
    if cache is not None:
        cache.upsert(business)
    logger.info(f"Admin {admin.id} set featured={payload.featured} on business {business_id}")
    return BusinessRead.model_validate(business)


# ----------------------------------------------------------------------
# Cache
# ----------------------------------------------------------------------


@router.get(
    "/cache/stats",
    summary="Cache Status",
    description="Whether the business cache is loaded, when, and what it holds.",
    response_description="Cache status with directory statistics.",
)
async def cache_stats(admin: AdminDep, cache: CacheDep):
    if cache is None:
        return {"initialized": False, "stats": None}
    return {**cache.info(), "stats": cache.get_stats()}


@router.post(
    "/cache/refresh",
    summary="Refresh Cache",
    description="Reload the business cache from the database now.",
    response_description="Whether the reload succeeded.",
    responses={503: {"description": "Cache not running"}},
)
async def refresh_cache(admin: AdminDep, cache: CacheDep):
    if cache is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Business cache is not running")
    refreshed = await cache.invalidate()
    return {"success": refreshed, **cache.info()}


# ----------------------------------------------------------------------
# Subscription plans
# ----------------------------------------------------------------------


@router.get(
    "/plans",
    response_model=List[PlanRead],
    summary="List Plans",
    description="Every subscription plan, active or not.",
    response_description="Plans.",
)
async def list_plans(admin: AdminDep, repos: ReposDep) -> List[PlanRead]:
    return [PlanRead.model_validate(p) for p in await repos.plans.list_plans(active_only=False)]


@router.post(
    "/plans",
    response_model=PlanRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Plan",
    description="Create a plan, and by default its Stripe product and monthly price.",
    response_description="The created plan.",
    responses={409: {"description": "Plan name taken"}, 503: {"description": "Stripe not configured"}},
)
async def create_plan(payload: PlanCreate, admin: AdminDep, repos: ReposDep, gateway: GatewayDep) -> PlanRead:
    if await repos.plans.get_by_name(payload.name) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A plan with this name exists")
    plan = SubscriptionPlan(**payload.model_dump(exclude={"sync_stripe"}))
    if payload.sync_stripe and plan.price > 0:
        plan.stripe_product_id, plan.stripe_price_id = await gateway.create_product_price(
            name=plan.name, description=plan.description, price=plan.price
        )
    plan = await repos.plans.create(plan)
    logger.info(f"Admin {admin.id} created plan {plan.name}")
    return PlanRead.model_validate(plan)


@router.patch(
    "/plans/{plan_id}",
    response_model=PlanRead,
    summary="Update Plan",
    description="Update a plan. A new price gets a new Stripe price when the plan is synced.",
    response_description="The updated plan.",
    responses={404: {"description": "Plan not found"}},
)
async def update_plan(
    plan_id: str, payload: PlanUpdate, admin: AdminDep, repos: ReposDep, gateway: GatewayDep
) -> PlanRead:
    plan = await repos.plans.get_by_id(plan_id)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")
    changes = payload.model_dump(exclude_unset=True)
    price_changed = "price" in changes and changes["price"] != plan.price
    for field, value in changes.items():
        setattr(plan, field, value)
    if price_changed and plan.stripe_price_id and plan.price > 0:
        # Stripe prices are immutable
        plan.stripe_product_id, plan.stripe_price_id = await gateway.create_product_price(
            name=plan.name, description=plan.description, price=plan.price
        )
    plan = await repos.plans.update(plan)
    return PlanRead.model_validate(plan)


@router.post(
    "/plans/{plan_id}/sync",
    response_model=PlanRead,
    summary="Sync Plan to Stripe",
    description="Create the Stripe product and monthly price for a plan that has none.",
    response_description="The synced plan.",
    responses={404: {"description": "Plan not found"}, 503: {"description": "Stripe not configured"}},
)
async def sync_plan(plan_id: str, admin: AdminDep, repos: ReposDep, gateway: GatewayDep) -> PlanRead:
    plan = await repos.plans.get_by_id(plan_id)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")
    if not plan.stripe_price_id:
        plan.stripe_product_id, plan.stripe_price_id = await gateway.create_product_price(
            name=plan.name, description=plan.description, price=plan.price
        )
        plan = await repos.plans.update(plan)
        logger.info(f"Synced plan {plan.name} to Stripe price {plan.stripe_price_id}")
    return PlanRead.model_validate(plan)


@router.delete(
    "/plans/{plan_id}",
    summary="Deactivate Plan",
    description="Hide a plan from purchase. Existing subscriptions are not affected.",
    response_description="Confirmation.",
    responses={404: {"description": "Plan not found"}},
)
async def deactivate_plan(plan_id: str, admin: AdminDep, repos: ReposDep):
    plan = await repos.plans.get_by_id(plan_id)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")
    plan.is_active = False
    await repos.plans.update(plan)
    return {"success": True}
