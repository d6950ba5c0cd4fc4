"""
Quote Request Endpoints.

Customers submit quote requests either to one business or to the
marketplace, where they are distributed to the businesses serving the area.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.quotes import Quote
from dumpster_directory.core.database.entities.users import User
from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.core.models.domain import QuoteStatus, UserRole
from dumpster_directory.core.models.io import (
    AssignmentResult,
    QuoteCreate,
    QuoteListResponse,
    QuoteRead,
    QuoteSubmitted,
    QuoteUpdate,
)
from dumpster_directory.server.services.deps import AdminDep, CurrentUserDep, OptionalUserDep, ReposDep, SettingsDep
from dumpster_directory.server.services.leads import LeadService

logger = get_logger(__name__)

router = APIRouter()


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _is_customer_of(user: User, quote: Quote) -> bool:
    return quote.customer_id == user.id or quote.customer_email.lower() == user.email.lower()


@router.post(
    "",
    response_model=QuoteSubmitted,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Quote Request",
    description="Submit a quote request to one business or to every business serving the area.",
    response_description="The stored quote and its distribution.",
    responses={404: {"description": "Target business not found"}},
)
async def submit_quote(
    payload: QuoteCreate,
    request: Request,
    user: OptionalUserDep,
    repos: ReposDep,
    app_settings: SettingsDep,
) -> QuoteSubmitted:
    """
    Submit a quote request.

    A quote naming a business is delivered to it directly and counted in its
    new leads. Any other quote is assigned by service area.
    """
    business = None
    if payload.business_id:
        business = await repos.businesses.get_by_id(payload.business_id)
        if business is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")

    quote = repos.quotes.add(
        Quote(
            **payload.model_dump(exclude={"source"}),
            customer_id=user.id if user is not None else None,
            business_name=business.name if business is not None else None,
            source=payload.source or "website",
            referrer=request.headers.get("referer"),
            ip_address=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    )

    if business is not None:
        await repos.businesses.increment_new_leads(business.id)
        repos.notifications.notify(
            business.id,
            "quote",
            "New Quote Request",
            f"{payload.customer_name} requested a {payload.service_type} quote",
        )
        await repos.session.commit()
        logger.info(f"Quote {quote.id} sent to business {business.id}")
        return QuoteSubmitted(quote=QuoteRead.model_validate(quote))

    await repos.session.commit()
    service = LeadService(repos, default_category=app_settings.marketplace.default_category)
    assignment = await service.assign(quote)
    return QuoteSubmitted(quote=QuoteRead.model_validate(quote), assignment=assignment)


@router.get(
    "",
    response_model=QuoteListResponse,
    summary="List Quotes",
    description="List quotes. Administrators see all; owners see their business's; customers see their own.",
    response_description="A page of quotes with the total count.",
)
async def list_quotes(
    user: CurrentUserDep,
    repos: ReposDep,
    business_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    status_filter: Optional[QuoteStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> QuoteListResponse:
    customer_email = None
    if user.role == UserRole.business_owner.value:
        if not user.business_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No business linked to this account")
        business_id, customer_id = user.business_id, None
    elif user.role == UserRole.customer.value:
        business_id, customer_id, customer_email = None, user.id, user.email

    quotes, total = await repos.quotes.search(
        business_id=business_id,
        customer_id=customer_id,
        customer_email=customer_email,
        status=status_filter.value if status_filter else None,
        limit=limit,
        offset=offset,
    )
    return QuoteListResponse(
        quotes=[QuoteRead.model_validate(q) for q in quotes], total=total, limit=limit, offset=offset
    )


@router.patch(
    "/{quote_id}",
    response_model=QuoteRead,
    summary="Update Quote",
    description="Change a quote's status or reply to it, as its customer or the business it was sent to.",
    response_description="The updated quote.",
    responses={403: {"description": "Not a party to the quote"}, 404: {"description": "Quote not found"}},
)
async def update_quote(quote_id: str, payload: QuoteUpdate, user: CurrentUserDep, repos: ReposDep) -> QuoteRead:
    """
    Update a quote.

    The first update by the business stamps ``viewed_at``; a response
    message stamps ``responded_at``.
    """
    quote = await repos.quotes.get_by_id(quote_id)
    if quote is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quote not found")
    is_business = quote.business_id is not None and quote.business_id == user.business_id
    if user.role != UserRole.admin.value and not is_business and not _is_customer_of(user, quote):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to update this quote")

    now = utc_now()
    if payload.status is not None:
        quote.status = payload.status.value
    if is_business and quote.viewed_at is None:
        quote.viewed_at = now
    if payload.response_message is not None:
        quote.response_message = payload.response_message
        quote.responded_at = now
    quote = await repos.quotes.update(quote)
    return QuoteRead.model_validate(quote)


@router.post(
    "/{quote_id}/assign",
    response_model=AssignmentResult,
    summary="Assign Quote",
    description="Distribute a quote to the businesses serving its area. Existing assignments are kept.",
    response_description="The businesses the quote was assigned to.",
    responses={404: {"description": "Quote not found"}},
)
async def assign_quote(quote_id: str, admin: AdminDep, repos: ReposDep, app_settings: SettingsDep) -> AssignmentResult:
    quote = await repos.quotes.get_by_id(quote_id)
    if quote is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quote not found")
    service = LeadService(repos, default_category=app_settings.marketplace.default_category)
    return await service.assign(quote)
