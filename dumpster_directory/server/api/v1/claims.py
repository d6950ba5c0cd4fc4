"""
Claim Endpoints.

``router`` serves owners following a claim link: resolving the token,
tracking opens and clicks, and claiming the listing. ``admin_router`` lets
administrators generate claim campaigns, review them and export them.
"""

from typing import Optional

from fastapi import APIRouter, Query, Response

from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.core.models.io import (
    ClaimGenerateRequest,
    ClaimGenerateResponse,
    ClaimRequest,
    ClaimResponse,
    ClaimTokenResponse,
    ClaimTrackRequest,
)
from dumpster_directory.core.transfer import render_csv
from dumpster_directory.server.services.auth import set_auth_cookie
from dumpster_directory.server.services.claims import CLAIM_EXPORT_HEADERS, ClaimService
from dumpster_directory.server.services.deps import AdminDep, CacheDep, ReposDep, SettingsDep

logger = get_logger(__name__)

router = APIRouter()
admin_router = APIRouter()


@router.get(
    "/token/{token}",
    response_model=ClaimTokenResponse,
    summary="Resolve Claim Token",
    description="Look up the business a claim link belongs to.",
    response_description="The business and its campaign.",
    responses={
        404: {"description": "Invalid claim token"},
        409: {"description": "Business already claimed"},
        410: {"description": "Claim link expired"},
    },
)
async def resolve_token(token: str, repos: ReposDep, app_settings: SettingsDep) -> ClaimTokenResponse:
    return await ClaimService(repos, base_url=app_settings.app_base_url).get_by_token(token)


@router.post(
    "/token/{token}/track",
    summary="Track Claim Link",
    description="Record that the claim email was opened or its link clicked. Only the first time is kept.",
    response_description="Confirmation.",
    responses={404: {"description": "Invalid claim token"}},
)
async def track_token(token: str, payload: ClaimTrackRequest, repos: ReposDep, app_settings: SettingsDep):
    await ClaimService(repos, base_url=app_settings.app_base_url).track(token, payload.event)
    return {"success": True}


@router.post(
    "",
    response_model=ClaimResponse,
    summary="Claim Business",
    description="Claim an existing listing, or register a new one with a business_id starting with 'new-'.",
    response_description="The owner account, the business and a session token.",
    responses={
        401: {"description": "Wrong password for an existing account"},
        404: {"description": "Business not found"},
        409: {"description": "Business already claimed"},
    },
)
async def claim_business(
    payload: ClaimRequest, response: Response, repos: ReposDep, cache: CacheDep, app_settings: SettingsDep
) -> ClaimResponse:
    """
    Claim a business.

    The owner is signed in on success: the token is returned and set as the
    auth cookie. New owners start on the free plan.
    """
    service = ClaimService(repos, base_url=app_settings.app_base_url)
    user, business, token = await service.claim(
        payload,
        free_credits=app_settings.marketplace.free_plan_lead_credits,
        auth_config=app_settings.auth,
    )
    set_auth_cookie(response, token, app_settings.auth)
    if cache is not None:
        cache.upsert(business)
    return ClaimResponse(token=token, user_id=user.id, business_id=business.id)


@admin_router.get(
    "",
    summary="List Claim Targets",
    description="Businesses eligible for claim campaigns, each with its newest campaign.",
    response_description="A page of businesses with campaign details.",
)
async def list_claim_targets(
    admin: AdminDep,
    repos: ReposDep,
    app_settings: SettingsDep,
    include_claimed: bool = Query(False, alias="includeClaimed"),
    include_emailed: bool = Query(False, alias="includeEmailed"),
    email_filter: str = Query("with-email", alias="emailFilter", pattern="^(with-email|without-email|all)$"),
    state: Optional[str] = None,
    city: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = Query(500, ge=1, le=5000),
    offset: int = Query(0, ge=0),
):
    service = ClaimService(repos, base_url=app_settings.app_base_url)
    return await service.list_targets(
        include_claimed=include_claimed,
        include_emailed=include_emailed,
        email_filter=email_filter,
        state=state,
        city=city,
        category=category,
        limit=limit,
        offset=offset,
    )


@admin_router.post(
    "",
    response_model=ClaimGenerateResponse,
    summary="Generate Claim Campaigns",
    description="Create a claim token for each business. Missing and claimed businesses are reported.",
    response_description="One result per business with a summary.",
)
async def generate_claims(
    payload: ClaimGenerateRequest, admin: AdminDep, repos: ReposDep, app_settings: SettingsDep
) -> ClaimGenerateResponse:
    service = ClaimService(repos, base_url=app_settings.app_base_url)
    return await service.generate(
        payload.business_ids,
        campaign_name=payload.campaign_name,
        expires_in_days=payload.expires_in_days or app_settings.marketplace.claim_token_ttl_days,
    )


@admin_router.get(
    "/stats",
    summary="Claim Campaign Statistics",
    description="Counts of businesses, claimed listings, listings with email, tokens and sent emails.",
    response_description="Statistics object.",
)
async def claim_stats(admin: AdminDep, repos: ReposDep, app_settings: SettingsDep):
    return await ClaimService(repos, base_url=app_settings.app_base_url).stats()


@admin_router.get(
    "/export",
    summary="Export Claim Campaigns",
    description="Download every business with a claim token as CSV.",
    response_description="CSV file.",
)
async def export_claims(
    admin: AdminDep,
    repos: ReposDep,
    app_settings: SettingsDep,
    include_claimed: bool = Query(False, alias="includeClaimed"),
    state: Optional[str] = None,
    city: Optional[str] = None,
) -> Response:
    service = ClaimService(repos, base_url=app_settings.app_base_url)
    rows = await service.export_rows(include_claimed=include_claimed, email_filter="all", state=state, city=city)
    logger.info(f"Exported {len(rows)} claim campaigns")
    return Response(
        content=render_csv(CLAIM_EXPORT_HEADERS, rows),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="claim-campaigns.csv"'},
    )
