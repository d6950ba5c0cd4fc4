"""
Quote and lead repositories.

``QuoteRepository`` covers quote requests themselves. ``LeadRepository``
covers how quotes reach businesses: assignments and paid reveals.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Set, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..base import utc_now
from ..entities.quotes import LeadAssignment, LeadReveal, Quote
from .base import SqlRepository


class QuoteRepository(SqlRepository[Quote]):
    """Repository for quote requests."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Quote)

    async def search(
        self,
        *,
        business_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        customer_email: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Quote], int]:
        """Newest-first page of quotes plus the unpaginated total."""
        conditions = []
        if business_id:
            conditions.append(Quote.business_id == business_id)
        if customer_id and customer_email:
            conditions.append(or_(Quote.customer_id == customer_id, Quote.customer_email == customer_email))
        elif customer_id:
            conditions.append(Quote.customer_id == customer_id)
        elif customer_email:
            conditions.append(Quote.customer_email == customer_email)
        if status:
            conditions.append(Quote.status == status)

        stmt = select(Quote).where(*conditions).order_by(Quote.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        total = (await self.session.execute(select(func.count()).select_from(Quote).where(*conditions))).scalar_one()
        return list(result.scalars().all()), int(total)

    async def list_for_business(self, business_id: str, assigned_ids: Sequence[str]) -> List[Quote]:
        """Quotes addressed to the business or distributed to it, newest first."""
        condition = Quote.business_id == business_id
        if assigned_ids:
            condition = or_(condition, Quote.id.in_(list(assigned_ids)))
        result = await self.session.execute(select(Quote).where(condition).order_by(Quote.created_at.desc()))
        return list(result.scalars().all())

    async def list_unassigned(self, status: Optional[str]) -> List[Quote]:
        """Quotes not addressed to any business, newest first."""
        stmt = select(Quote).where(Quote.business_id.is_(None))
        if status:
            stmt = stmt.where(Quote.status == status)
        result = await self.session.execute(stmt.order_by(Quote.created_at.desc()))
        return list(result.scalars().all())

    async def address_to(self, quote_id: str, business_id: str, business_name: Optional[str]) -> bool:
        """Address an unassigned quote to a business. Caller commits.

        Returns:
            False when the quote already belongs to a business
        """
        now = utc_now()
        result = await self.session.execute(
            update(Quote)
            .where(Quote.id == quote_id, Quote.business_id.is_(None))
            .values(
                business_id=business_id,
                business_name=business_name,
                status="viewed",
                viewed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_by_status(self, business_id: str) -> dict[str, int]:
        result = await self.session.execute(
            select(Quote.status, func.count()).where(Quote.business_id == business_id).group_by(Quote.status)
        )
        return {status: int(count) for status, count in result.all()}


class LeadRepository:
    """Assignments and reveals linking quotes to businesses.

    Methods only flush; the calling service owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_assignment(self, lead_id: str, business_id: str) -> Optional[LeadAssignment]:
        stmt = select(LeadAssignment).where(
            LeadAssignment.lead_id == lead_id, LeadAssignment.business_id == business_id
        )
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalars().first()

    async def assigned_business_ids(self, lead_id: str) -> Set[str]:
        result = await self.session.execute(
            select(LeadAssignment.business_id).where(LeadAssignment.lead_id == lead_id)
        )
        return set(result.scalars().all())

    async def assignments_for_business(self, business_id: str) -> List[LeadAssignment]:
        result = await self.session.execute(
            select(LeadAssignment)
            .where(LeadAssignment.business_id == business_id)
            .order_by(LeadAssignment.assigned_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def add_assignment(self, lead_id: str, business_id: str) -> LeadAssignment:
        assignment = LeadAssignment(lead_id=lead_id, business_id=business_id, status="new")
        self.session.add(assignment)
        await self.session.flush()
        return assignment

    async def set_assignment_status(self, lead_id: str, business_id: str, status: str) -> bool:
        result = await self.session.execute(
            update(LeadAssignment)
            .where(LeadAssignment.lead_id == lead_id, LeadAssignment.business_id == business_id)
            .values(status=status, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def mark_contacted_if_new(self, lead_id: str, business_id: str) -> None:
        await self.session.execute(
            update(LeadAssignment)
            .where(
                LeadAssignment.lead_id == lead_id,
                LeadAssignment.business_id == business_id,
                LeadAssignment.status == "new",
            )
            .values(status="contacted", updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    async def mark_viewed(self, business_id: str) -> None:
        """Move every ``new`` assignment of a business to ``viewed``."""
        await self.session.execute(
            update(LeadAssignment)
            .where(LeadAssignment.business_id == business_id, LeadAssignment.status == "new")
            .values(status="viewed", updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    async def has_reveal(self, lead_id: str, business_id: str) -> bool:
        result = await self.session.execute(
            select(LeadReveal.id).where(LeadReveal.lead_id == lead_id, LeadReveal.business_id == business_id)
        )
        return result.first() is not None

    async def revealed_lead_ids(self, business_id: str) -> Set[str]:
        result = await self.session.execute(select(LeadReveal.lead_id).where(LeadReveal.business_id == business_id))
        return set(result.scalars().all())

    async def add_reveal(self, lead_id: str, business_id: str, user_id: Optional[str]) -> LeadReveal:
        """Insert a reveal; raises ``IntegrityError`` at flush if one already exists."""
        reveal = LeadReveal(lead_id=lead_id, business_id=business_id, user_id=user_id, credits_used=1)
        self.session.add(reveal)
        await self.session.flush()
        return reveal

    async def count_reveals(self, business_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(LeadReveal).where(LeadReveal.business_id == business_id)
        )
        return int(result.scalar_one())
