"""
Claim campaign repository.

Campaign rows are looked up by token for the public claim flow and joined
with their business for the admin views.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..base import utc_now
from ..entities.businesses import Business
from ..entities.claims import ClaimCampaign, ClaimContact
from .base import SqlRepository


class ClaimRepository(SqlRepository[ClaimCampaign]):
    """Repository for claim campaigns and their contacts."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, ClaimCampaign)

    async def get_by_token(self, token: str) -> Optional[ClaimCampaign]:
        result = await self.session.execute(select(ClaimCampaign).where(ClaimCampaign.claim_token == token))
        return result.scalars().first()

    async def get_with_business(self, token: str) -> Optional[Tuple[ClaimCampaign, Business]]:
        stmt = (
            select(ClaimCampaign, Business)
            .join(Business, Business.id == ClaimCampaign.business_id)
            .where(ClaimCampaign.claim_token == token)
        )
        row = (await self.session.execute(stmt)).first()
        return (row[0], row[1]) if row else None

    async def latest_for_business(self, business_id: str) -> Optional[ClaimCampaign]:
        stmt = (
            select(ClaimCampaign)
            .where(ClaimCampaign.business_id == business_id)
            .order_by(ClaimCampaign.created_at.desc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def latest_by_business(self, business_ids: Optional[Sequence[str]] = None) -> dict[str, ClaimCampaign]:
        """Newest campaign per business."""
        stmt = select(ClaimCampaign).order_by(ClaimCampaign.created_at)
        if business_ids is not None:
            stmt = stmt.where(ClaimCampaign.business_id.in_(list(business_ids)))
        latest: dict[str, ClaimCampaign] = {}
        for campaign in (await self.session.execute(stmt)).scalars().all():
            latest[campaign.business_id] = campaign
        return latest

    async def list_targets(
        self,
        *,
        include_claimed: bool = False,
        include_emailed: bool = False,
        email_filter: str = "with-email",
        state: Optional[str] = None,
        city: Optional[str] = None,
        category: Optional[str] = None,
        business_ids: Optional[Sequence[str]] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> Tuple[List[Tuple[Business, Optional[ClaimCampaign]]], int]:
        """Businesses that are campaign targets, each with its newest campaign.

        Ordered by reviews then rating, most first.
        """
        stmt = select(Business)
        if not include_claimed:
            stmt = stmt.where(Business.is_claimed == False)  # noqa: E712
        if email_filter == "with-email":
            stmt = stmt.where(Business.email.is_not(None), Business.email != "")
        elif email_filter == "without-email":
            stmt = stmt.where((Business.email.is_(None)) | (Business.email == ""))
        if state:
            stmt = stmt.where(Business.state == state)
        if city:
            stmt = stmt.where(Business.city == city)
        if category:
            stmt = stmt.where(Business.category == category)
        if business_ids:
            stmt = stmt.where(Business.id.in_(list(business_ids)))
        stmt = stmt.order_by(Business.reviews.desc(), Business.rating.desc())

        businesses = list((await self.session.execute(stmt)).scalars().all())
        campaigns = await self.latest_by_business([b.id for b in businesses])
        rows = [(b, campaigns.get(b.id)) for b in businesses]
        if not include_emailed:
            rows = [(b, c) for b, c in rows if c is None or c.email_sent_at is None]
        return rows[offset : offset + limit], len(rows)

    async def stats(self) -> dict[str, int]:
        async def scalar(stmt) -> int:
            return int((await self.session.execute(stmt)).scalar_one() or 0)

        return {
            "total_businesses": await scalar(select(func.count()).select_from(Business)),
            "total_unclaimed": await scalar(
                select(func.count()).select_from(Business).where(Business.is_claimed == False)  # noqa: E712
            ),
            "claimed": await scalar(
                select(func.count()).select_from(Business).where(Business.is_claimed == True)  # noqa: E712
            ),
            "with_email": await scalar(
                select(func.count()).select_from(Business).where(Business.email.is_not(None), Business.email != "")
            ),
            "with_tokens": await scalar(select(func.count(func.distinct(ClaimCampaign.business_id)))),
            "emails_sent": await scalar(
                select(func.count(func.distinct(ClaimCampaign.business_id))).where(
                    ClaimCampaign.email_sent_at.is_not(None)
                )
            ),
        }

    async def track(self, token: str, event: str) -> bool:
        """Stamp the first ``opened``/``clicked`` time on a campaign. Caller commits."""
        column = {"opened": "email_opened_at", "clicked": "link_clicked_at"}[event]
        stmt = (
            update(ClaimCampaign)
            .where(ClaimCampaign.claim_token == token)
            .values({column: func.coalesce(getattr(ClaimCampaign, column), utc_now())})
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def mark_claimed(self, token: str) -> None:
        await self.session.execute(
            update(ClaimCampaign)
            .where(ClaimCampaign.claim_token == token)
            .values(claimed_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    async def repoint(self, from_business_ids: Sequence[str], to_business_id: str) -> int:
        """Move campaigns of duplicate listings onto the kept listing. Caller commits."""
        if not from_business_ids:
            return 0
        result = await self.session.execute(
            update(ClaimCampaign)
            .where(ClaimCampaign.business_id.in_(list(from_business_ids)))
            .values(business_id=to_business_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def contacts_for(self, campaign_ids: Sequence[str]) -> dict[str, List[ClaimContact]]:
        if not campaign_ids:
            return {}
        stmt = (
            select(ClaimContact)
            .where(ClaimContact.claim_campaign_id.in_(list(campaign_ids)))
            .order_by(ClaimContact.is_primary.desc(), ClaimContact.created_at)
        )
        contacts: dict[str, List[ClaimContact]] = {}
        for contact in (await self.session.execute(stmt)).scalars().all():
            contacts.setdefault(contact.claim_campaign_id, []).append(contact)
        return contacts

    async def emails_by_business(self) -> dict[str, List[str]]:
        """Every claim contact address grouped by the campaign's business."""
        stmt = select(ClaimCampaign.business_id, ClaimContact.email).join(
            ClaimCampaign, ClaimCampaign.id == ClaimContact.claim_campaign_id
        )
        emails: dict[str, List[str]] = {}
        for business_id, email in (await self.session.execute(stmt)).all():
            emails.setdefault(business_id, []).append(email)
        return emails

    def add_contact(self, campaign_id: str, email: str, is_primary: bool = False) -> ClaimContact:
        contact = ClaimContact(claim_campaign_id=campaign_id, email=email, is_primary=is_primary)
        self.session.add(contact)
        return contact
