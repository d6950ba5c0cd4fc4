"""
Lead Service.

Distribution of quotes to businesses and the business-side view of leads.

A lead reaches a business either because the customer addressed the quote
to it, or because it was assigned by service area. Contact details stay
masked until the business reveals the lead, which costs one credit exactly
once per (lead, business).
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.businesses import Business
from dumpster_directory.core.database.entities.quotes import Quote
from dumpster_directory.core.database.repositories.bundle import RepositoryBundle
from dumpster_directory.core.database.repositories.businesses import serves_area
from dumpster_directory.core.errors import DirectoryError, InsufficientCreditsError, NotFoundError
from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.core.models.domain import AssignmentStatus, QuoteStatus
from dumpster_directory.core.models.io import AssignmentResult, LeadView, RevealResponse

logger = get_logger(__name__)

MAX_ASSIGNMENTS = 10
MAX_STATE_FALLBACK = 5


def mask_email(email: Optional[str]) -> str:
    """``jane@example.com`` becomes ``j***@example.com``."""
    if not email or "@" not in email:
        return "***"
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def mask_phone(phone: Optional[str]) -> Optional[str]:
    """Keep the last four digits: ``***-***-1234``."""
    if not phone:
        return phone
    digits = "".join(ch for ch in phone if ch.isdigit())
    return f"***-***-{digits[-4:]}" if len(digits) >= 4 else "***"


def to_lead_view(
    quote: Quote,
    *,
    revealed: bool,
    assignment_status: Optional[str] = None,
    direct: bool = False,
) -> LeadView:
    return LeadView(
        id=quote.id,
        customer_name=quote.customer_name,
        customer_email=quote.customer_email if revealed else mask_email(quote.customer_email),
        customer_phone=quote.customer_phone if revealed else mask_phone(quote.customer_phone),
        customer_zipcode=quote.customer_zipcode,
        service_address=quote.service_address if revealed else None,
        service_city=quote.service_city,
        service_state=quote.service_state,
        service_type=quote.service_type,
        project_description=quote.project_description,
        timeline=quote.timeline,
        budget=quote.budget,
        status=quote.status,
        assignment_status=assignment_status,
        direct=direct,
        revealed=revealed,
        created_at=quote.created_at,
    )


class LeadService:
    """Lead distribution and the dealer-side lead workflow."""

    def __init__(self, repos: RepositoryBundle, *, default_category: str = "Dumpster Rental") -> None:
        self.repos = repos
        self.default_category = default_category

    # ------------------------------------------------------------------
    # Distribution
    # ------------------------------------------------------------------

    async def assign(self, quote: Quote) -> AssignmentResult:
        """Assign a quote to the businesses serving its area and commit.

        Businesses that already hold the lead are skipped. When nobody
        serves the city, up to five businesses of the default category in
        the same state get it instead.
        """
        now = utc_now()
        candidates = await self.repos.businesses.find_assignment_candidates(
            quote.service_city, quote.service_state, limit=MAX_ASSIGNMENTS, now=now
        )
        fallback = False
        if not candidates and quote.service_state:
            candidates = await self.repos.businesses.find_state_fallback(
                quote.service_state, self.default_category, limit=MAX_STATE_FALLBACK, now=now
            )
            fallback = bool(candidates)

        already = await self.repos.leads.assigned_business_ids(quote.id)
        assigned: List[str] = []
        for business in candidates:
            if business.id in already:
                continue
            await self.repos.leads.add_assignment(quote.id, business.id)
            self.repos.notifications.notify(
                business.id,
                "lead",
                "New Lead",
                f"New {quote.service_type} request in {quote.service_city or quote.service_state or 'your area'}",
            )
            assigned.append(business.id)
        await self.repos.session.commit()

        logger.info(f"Assigned lead {quote.id} to {len(assigned)} businesses (fallback={fallback})")
        return AssignmentResult(lead_id=quote.id, assigned=len(assigned), business_ids=assigned, fallback=fallback)

    # ------------------------------------------------------------------
    # Dealer view
    # ------------------------------------------------------------------

    async def list_for_business(self, business_id: str) -> List[LeadView]:
        """Every lead the business can see; new assignments become viewed."""
        assignments = {a.lead_id: a for a in await self.repos.leads.assignments_for_business(business_id)}
        quotes = await self.repos.quotes.list_for_business(business_id, list(assignments))
        revealed = await self.repos.leads.revealed_lead_ids(business_id)

        views = []
        for quote in quotes:
            assignment = assignments.get(quote.id)
            views.append(
                to_lead_view(
                    quote,
                    revealed=quote.id in revealed,
                    assignment_status=assignment.status if assignment else None,
                    direct=quote.business_id == business_id,
                )
            )

        if any(a.status == AssignmentStatus.new.value for a in assignments.values()):
            await self.repos.leads.mark_viewed(business_id)
            await self.repos.session.commit()
        return views

    async def _accessible_quote(self, business_id: str, lead_id: str) -> Quote:
        quote = await self.repos.quotes.get_by_id(lead_id)
        if quote is None:
            raise NotFoundError("Lead not found")
        if quote.business_id != business_id and await self.repos.leads.get_assignment(lead_id, business_id) is None:
            raise NotFoundError("Lead not found")
        return quote

    async def detail(self, business_id: str, lead_id: str) -> LeadView:
        quote = await self._accessible_quote(business_id, lead_id)
        assignment = await self.repos.leads.get_assignment(lead_id, business_id)
        return to_lead_view(
            quote,
            revealed=await self.repos.leads.has_reveal(lead_id, business_id),
            assignment_status=assignment.status if assignment else None,
            direct=quote.business_id == business_id,
        )

    async def update_status(self, business_id: str, lead_id: str, new_status: AssignmentStatus) -> LeadView:
        """Set the business's progress on a lead and commit."""
        quote = await self._accessible_quote(business_id, lead_id)
        if await self.repos.leads.get_assignment(lead_id, business_id) is None:
            # A directly addressed quote gets its assignment on first update
            await self.repos.leads.add_assignment(lead_id, business_id)
        await self.repos.leads.set_assignment_status(lead_id, business_id, new_status.value)
        self.repos.notifications.notify(
            business_id, "lead", "Lead Status Updated", f"Lead from {quote.customer_name} marked {new_status.value}"
        )
        await self.repos.session.commit()
        return await self.detail(business_id, lead_id)

    async def reveal(
        self, business_id: str, lead_id: str, user_id: Optional[str], free_credits: int
    ) -> RevealResponse:
        """Spend one credit to unmask a lead.

        Runs as one transaction. Revealing the same lead again is free, and
        the unique (lead, business) reveal row keeps two concurrent requests
        from both charging.

        Raises:
            NotFoundError: The lead does not exist or is not visible to the business
            InsufficientCreditsError: No credits left
        """
        session = self.repos.session
        try:
            await self.repos.subscriptions.ensure_free(business_id, user_id, free_credits)

            if await self.repos.leads.has_reveal(lead_id, business_id):
                return await self._revealed(business_id, lead_id, already=True)

            await self._accessible_quote(business_id, lead_id)

            if not await self.repos.subscriptions.consume_credit(business_id):
                raise InsufficientCreditsError("Insufficient credits")

            await self.repos.leads.mark_contacted_if_new(lead_id, business_id)
        except DirectoryError:
            await session.rollback()
            raise

        try:
            await self.repos.leads.add_reveal(lead_id, business_id, user_id)
            await session.commit()
        except IntegrityError:
            # Rolling back returns the credit spent above
            await session.rollback()
            if not await self.repos.leads.has_reveal(lead_id, business_id):
                raise
            # A concurrent request revealed it first and paid for it
            return await self._revealed(business_id, lead_id, already=True)

        logger.info(f"Business {business_id} revealed lead {lead_id}")
        return await self._revealed(business_id, lead_id, already=False)

    async def _revealed(self, business_id: str, lead_id: str, *, already: bool) -> RevealResponse:
        if already:
            await self.repos.session.commit()
        quote = await self.repos.quotes.get_by_id(lead_id)
        if quote is None:
            raise NotFoundError("Lead not found")
        assignment = await self.repos.leads.get_assignment(lead_id, business_id)
        return RevealResponse(
            already_revealed=already,
            credits_remaining=await self.repos.subscriptions.credit_balance(business_id),
            lead=to_lead_view(
                quote,
                revealed=True,
                assignment_status=assignment.status if assignment else None,
                direct=quote.business_id == business_id,
            ),
        )

    # ------------------------------------------------------------------
    # Available (unassigned) quotes
    # ------------------------------------------------------------------

    @staticmethod
    def matches_business(quote: Quote, business: Business) -> bool:
        """Whether an unassigned quote fits the business's services and service area."""
        services = [s.lower() for s in (business.services or [])]
        wanted = (quote.service_type or "").lower()
        if services and wanted and not any(wanted in s or s in wanted for s in services):
            return False
        if quote.service_city:
            return serves_area(business, quote.service_city, quote.service_state)
        if quote.customer_zipcode and business.zipcode:
            return quote.customer_zipcode == business.zipcode
        return bool(quote.service_state) and quote.service_state == business.state

    async def available_for(self, business: Business) -> List[LeadView]:
        quotes: Iterable[Quote] = await self.repos.quotes.list_unassigned(QuoteStatus.pending.value)
        return [to_lead_view(q, revealed=False) for q in quotes if self.matches_business(q, business)]

    async def take(self, business: Business, quote_id: str) -> Quote:
        """Address an unassigned quote to the business and commit.

        Raises:
            NotFoundError: No such quote
            DirectoryError: The quote already belongs to a business (400)
        """
        quote = await self.repos.quotes.get_by_id(quote_id)
        if quote is None:
            raise NotFoundError("Quote not found")
        if quote.business_id or not await self.repos.quotes.address_to(quote_id, business.id, business.name):
            await self.repos.session.rollback()
            raise DirectoryError("Quote already assigned")
        await self.repos.businesses.increment_new_leads(business.id)
        await self.repos.session.commit()
        logger.info(f"Business {business.id} took quote {quote_id}")
        return await self.repos.quotes.get_by_id(quote_id)
