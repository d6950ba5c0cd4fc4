"""
Customer Endpoints.

A signed-in customer's own quote requests. Quotes submitted before the
account existed are matched by email address.
"""

from fastapi import APIRouter, HTTPException, Query, status

from dumpster_directory.core.models.io import QuoteListResponse, QuoteRead
from dumpster_directory.server.services.deps import CurrentUserDep, ReposDep

router = APIRouter()


@router.get(
    "/quotes",
    response_model=QuoteListResponse,
    summary="My Quotes",
    description="List the quote requests of the signed-in customer, newest first.",
    response_description="A page of quotes with the total count.",
)
async def my_quotes(
    user: CurrentUserDep,
    repos: ReposDep,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> QuoteListResponse:
    quotes, total = await repos.quotes.search(
        customer_id=user.id, customer_email=user.email, limit=limit, offset=offset
    )
    return QuoteListResponse(
        quotes=[QuoteRead.model_validate(q) for q in quotes], total=total, limit=limit, offset=offset
    )


@router.get(
    "/quotes/{quote_id}",
    response_model=QuoteRead,
    summary="My Quote",
    description="Retrieve one of the signed-in customer's quote requests.",
    response_description="The quote.",
    responses={404: {"description": "Quote not found"}},
)
async def my_quote(quote_id: str, user: CurrentUserDep, repos: ReposDep) -> QuoteRead:
    quote = await repos.quotes.get_by_id(quote_id)
    if quote is None or (quote.customer_id != user.id and quote.customer_email.lower() != user.email.lower()):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quote not found")
    return QuoteRead.model_validate(quote)
