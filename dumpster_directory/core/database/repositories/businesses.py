"""
Business repository.

Data access for directory listings: filtered listing with total counts,
duplicate lookups for imports and claims, and the candidate queries used to
distribute leads by service area.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dumpster_directory.core.models.domain import BusinessFilters

from ..base import utc_now
from ..entities.billing import BusinessSubscription, FeaturedListing, StripeCustomer
from ..entities.businesses import Business
from ..entities.claims import ClaimCampaign, ClaimContact
from ..entities.notifications import BusinessNotification
from ..entities.quotes import LeadAssignment, LeadReveal, Quote
from .base import SqlRepository


def dedupe_key(name: Optional[str], city: Optional[str], state: Optional[str]) -> str:
    """Import de-duplication key: ``lower(name)_city_state``."""
    return f"{(name or '').strip().lower()}_{(city or '').strip()}_{(state or '').strip()}"


def serves_area(business: Business, city: Optional[str], state: Optional[str]) -> bool:
    """Whether a business lists the city (or ``"City, ST"``) among its service areas or is located there."""
    areas = business.service_areas or []
    if city and city in areas:
        return True
    if city and state and f"{city}, {state}" in areas:
        return True
    return bool(city) and business.city == city and business.state == state


class BusinessRepository(SqlRepository[Business]):
    """Repository for directory listings."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Business)

    @staticmethod
    def _apply_listing_filters(stmt, filters: BusinessFilters):
        if filters.category:
            stmt = stmt.where(func.lower(Business.category) == filters.category.lower())
        if filters.state:
            stmt = stmt.where(func.lower(Business.state) == filters.state.lower())
        if filters.city:
            stmt = stmt.where(func.lower(Business.city) == filters.city.lower())
        if filters.zipcode:
            stmt = stmt.where(Business.zipcode == filters.zipcode)
        if filters.featured is not None:
            stmt = stmt.where(Business.is_featured == filters.featured)
        if filters.verified is not None:
            stmt = stmt.where(Business.is_verified == filters.verified)
        if filters.search:
            pattern = f"%{filters.search}%"
            stmt = stmt.where(
                or_(
                    Business.name.ilike(pattern),
                    Business.description.ilike(pattern),
                    Business.category.ilike(pattern),
                    Business.city.ilike(pattern),
                    Business.state.ilike(pattern),
                )
            )
        return stmt

    async def search(self, filters: BusinessFilters) -> Tuple[List[Business], int]:
        """List businesses matching the filters, ordered like the directory, plus the unpaginated total.

        Args:
            filters: Listing filters with ``limit``/``offset``

        Returns:
            Tuple of (page of businesses, total matches)
        """
        stmt = self._apply_listing_filters(select(Business), filters)
        stmt = stmt.order_by(
            Business.is_featured.desc(), Business.rating.desc(), Business.reviews.desc(), Business.name
        )
        stmt = stmt.limit(filters.limit).offset(filters.offset)
        result = await self.session.execute(stmt)

        count_stmt = self._apply_listing_filters(select(func.count()).select_from(Business), filters)
        total = (await self.session.execute(count_stmt)).scalar_one()
        return list(result.scalars().all()), int(total)

    async def list_for_cache(self) -> List[Business]:
        """Every business in directory order (featured, rating, reviews)."""
        stmt = select(Business).order_by(
            Business.is_featured.desc(), Business.rating.desc(), Business.reviews.desc(), Business.name
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_ordered(self, limit: Optional[int] = None) -> List[Business]:
        """All businesses ordered by name, for exports."""
        stmt = select(Business).order_by(Business.name, Business.city)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_duplicate(self, name: str, city: Optional[str], state: Optional[str]) -> Optional[Business]:
        """Find a listing with the same name, city and state (case-insensitive)."""
        stmt = select(Business).where(func.lower(Business.name) == name.strip().lower())
        if city:
            stmt = stmt.where(func.lower(Business.city) == city.strip().lower())
        if state:
            stmt = stmt.where(func.lower(Business.state) == state.strip().lower())
        result = await self.session.execute(stmt.limit(1))
        return result.scalars().first()

    async def dedupe_keys(self) -> set[str]:
        """Keys of every existing listing, see :func:`dedupe_key`."""
        result = await self.session.execute(select(Business.name, Business.city, Business.state))
        return {dedupe_key(name, city, state) for name, city, state in result.all()}

    async def increment_new_leads(self, business_id: str) -> None:
        """Bump ``new_leads_count`` for a directly addressed quote. Caller commits."""
        await self.session.execute(
            update(Business)
            .where(Business.id == business_id)
            .values(new_leads_count=func.coalesce(Business.new_leads_count, 0) + 1, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    async def find_assignment_candidates(
        self, city: Optional[str], state: Optional[str], limit: int = 10, now: Optional[datetime] = None
    ) -> List[Business]:
        """Claimed or verified businesses serving a city.

        A business qualifies when its service areas contain the city or
        ``"City, ST"``, or when it is located in that city and state.
        Actively featured businesses come first, then the newest.
        """
        if not city:
            return []
        stmt = select(Business).where(or_(Business.is_claimed == True, Business.is_verified == True))  # noqa: E712
        result = await self.session.execute(stmt)
        candidates = [b for b in result.scalars().all() if serves_area(b, city, state)]
        return self._rank(candidates, now)[:limit]

    async def find_state_fallback(
        self, state: str, category: str, limit: int = 5, now: Optional[datetime] = None
    ) -> List[Business]:
        """Claimed or verified businesses of a category anywhere in the state."""
        stmt = select(Business).where(
            or_(Business.is_claimed == True, Business.is_verified == True),  # noqa: E712
            Business.state == state,
            Business.category == category,
        )
        result = await self.session.execute(stmt)
        return self._rank(list(result.scalars().all()), now)[:limit]

    @staticmethod
    def _rank(businesses: Sequence[Business], now: Optional[datetime]) -> List[Business]:
        now = now or utc_now()
        newest_first = sorted(businesses, key=lambda b: b.created_at, reverse=True)
        return sorted(newest_first, key=lambda b: 0 if b.is_featured_active(now) else 1)

    async def set_featured(self, business_id: str, featured: bool, until: Optional[datetime]) -> Optional[Business]:
        """Set the featured flag and expiry. Caller commits."""
        business = await self.get_by_id(business_id)
        if business is None:
            return None
        business.is_featured = featured
        business.featured_until = until if featured else None
        business.updated_at = utc_now()
        self.session.add(business)
        return business

    async def delete_with_dependents(self, business_ids: Sequence[str], *, keep_campaigns: bool = False) -> int:
        """Delete businesses and every row that references them. Caller commits.

        Quotes addressed to the businesses go too, along with the assignments
        and reveals other businesses hold on those quotes.

        Args:
            business_ids: Businesses to delete
            keep_campaigns: Leave claim campaigns alone (they were re-pointed)

        Returns:
            Number of businesses deleted
        """
        ids = list(business_ids)
        if not ids:
            return 0
        quote_ids = select(Quote.id).where(Quote.business_id.in_(ids))
        statements = [
            delete(LeadReveal).where(or_(LeadReveal.business_id.in_(ids), LeadReveal.lead_id.in_(quote_ids))),
            delete(LeadAssignment).where(
                or_(LeadAssignment.business_id.in_(ids), LeadAssignment.lead_id.in_(quote_ids))
            ),
            delete(Quote).where(Quote.business_id.in_(ids)),
            delete(BusinessSubscription).where(BusinessSubscription.business_id.in_(ids)),
            delete(StripeCustomer).where(StripeCustomer.business_id.in_(ids)),
            delete(FeaturedListing).where(FeaturedListing.business_id.in_(ids)),
            delete(BusinessNotification).where(BusinessNotification.business_id.in_(ids)),
        ]
        if not keep_campaigns:
            campaign_ids = select(ClaimCampaign.id).where(ClaimCampaign.business_id.in_(ids))
            statements.append(delete(ClaimContact).where(ClaimContact.claim_campaign_id.in_(campaign_ids)))
            statements.append(delete(ClaimCampaign).where(ClaimCampaign.business_id.in_(ids)))
        for stmt in statements:
            await self.session.execute(stmt.execution_options(synchronize_session=False))
        result = await self.session.execute(
            delete(Business).where(Business.id.in_(ids)).execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_all(self) -> int:
        """Remove every listing and its dependents. Caller commits."""
        ids = list((await self.session.execute(select(Business.id))).scalars().all())
        return await self.delete_with_dependents(ids)

    async def mark_claimed(
        self,
        business_id: str,
        *,
        owner_name: str,
        owner_email: str,
        owner_phone: Optional[str],
        email: Optional[str] = None,
        website: Optional[str] = None,
    ) -> bool:
        """Mark an unclaimed listing claimed and verified. Caller commits.

        ``email`` and ``website`` only fill in values the listing lacks.

        Returns:
            False when the listing was claimed already (or does not exist)
        """
        values = {
            "is_claimed": True,
            "is_verified": True,
            "owner_name": owner_name,
            "owner_email": owner_email,
            "owner_phone": owner_phone,
            "updated_at": utc_now(),
        }
        if email:
            values["email"] = func.coalesce(func.nullif(Business.email, ""), email)
        if website:
            values["website"] = func.coalesce(func.nullif(Business.website, ""), website)
        result = await self.session.execute(
            update(Business)
            .where(Business.id == business_id, Business.is_claimed == False)  # noqa: E712
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
