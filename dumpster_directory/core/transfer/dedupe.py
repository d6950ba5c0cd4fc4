"""
Duplicate listing consolidation.

Businesses sharing name, city, state and zipcode are one listing imported
several times. Each group keeps one row, chosen claimed first, then
featured, then most reviews, then oldest. The keeper takes the best values
of the group, claim campaigns of the duplicates move onto it, and the
duplicates are deleted with everything that references them. Finally every
business with an email gets a claim campaign if it has none.

Without ``execute`` nothing is written and the plan is returned.
"""

from __future__ import annotations

import logging
import secrets
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from sqlmodel import select

from dumpster_directory.core.database.base import utc_now
from dumpster_directory.core.database.entities.businesses import Business
from dumpster_directory.core.database.entities.claims import ClaimCampaign
from dumpster_directory.core.database.repositories.bundle import RepositoryBundle

logger = logging.getLogger(__name__)

AUTO_CAMPAIGN_NAME = "Auto-generated Campaign"
AUTO_CAMPAIGN_TTL_DAYS = 90

GroupKey = Tuple[str, str, str, Optional[str]]


@dataclass
class DuplicateGroup:
    name: str
    city: str
    state: str
    zipcode: Optional[str]
    keeper_id: str
    duplicate_ids: List[str]


@dataclass
class DedupeReport:
    executed: bool
    groups: List[DuplicateGroup] = field(default_factory=list)
    deleted: int = 0
    campaigns_moved: int = 0
    campaigns_created: int = 0

    @property
    def duplicates(self) -> int:
        return sum(len(g.duplicate_ids) for g in self.groups)


def keeper_order(business: Business):
    """Sort key putting the row to keep first."""
    return (
        not business.is_claimed,
        not business.is_featured,
        -(business.reviews or 0),
        business.created_at,
    )


def find_duplicate_groups(businesses: List[Business]) -> List[Tuple[Business, List[Business]]]:
    """Group by exact (name, city, state, zipcode); largest groups first.

    Returns:
        List of (keeper, duplicates) pairs
    """
    grouped: Dict[GroupKey, List[Business]] = defaultdict(list)
    for business in businesses:
        if business.name is None or business.city is None or business.state is None:
            continue
        grouped[(business.name, business.city, business.state, business.zipcode)].append(business)

    result = []
    for members in grouped.values():
        if len(members) < 2:
            continue
        ordered = sorted(members, key=keeper_order)
        result.append((ordered[0], ordered[1:]))
    result.sort(key=lambda pair: len(pair[1]), reverse=True)
    return result


def merge_into_keeper(keeper: Business, ordered_group: List[Business]) -> None:
    """Copy the best values of a group onto its keeper."""
    for attribute in ("email", "phone", "website"):
        value = next((getattr(b, attribute) for b in ordered_group if getattr(b, attribute)), None)
        if value:
            setattr(keeper, attribute, value)
    keeper.rating = max(b.rating or 0 for b in ordered_group)
    keeper.reviews = max(b.reviews or 0 for b in ordered_group)
    keeper.is_featured = any(b.is_featured for b in ordered_group)
    keeper.is_claimed = any(b.is_claimed for b in ordered_group)
    keeper.updated_at = utc_now()


async def consolidate_duplicates(repos: RepositoryBundle, *, execute: bool = False) -> DedupeReport:
    """Find duplicate groups and, with ``execute``, merge them.

    Each group is committed on its own; a failing group is rolled back,
    logged and skipped.
    """
    session = repos.session
    businesses = list((await session.execute(select(Business))).scalars().all())
    pairs = find_duplicate_groups(businesses)
    report = DedupeReport(executed=execute)
    for keeper, duplicates in pairs:
        report.groups.append(
            DuplicateGroup(
                name=keeper.name,
                city=keeper.city or "",
                state=keeper.state or "",
                zipcode=keeper.zipcode,
                keeper_id=keeper.id,
                duplicate_ids=[d.id for d in duplicates],
            )
        )
    logger.info(f"Found {len(pairs)} groups of duplicate businesses ({report.duplicates} duplicates)")

    if not execute:
        return report

    for group in report.groups:
        label = f"{group.name} in {group.city}, {group.state}"
        duplicate_ids = group.duplicate_ids
        try:
            # Reload so a rollback of an earlier group leaves nothing stale
            keeper = await repos.businesses.get_by_id(group.keeper_id)
            duplicates = [d for d in [await repos.businesses.get_by_id(i) for i in duplicate_ids] if d is not None]
            if keeper is None:
                continue
            merge_into_keeper(keeper, [keeper, *duplicates])
            session.add(keeper)
            report.campaigns_moved += await repos.claims.repoint(duplicate_ids, group.keeper_id)
            report.deleted += await repos.businesses.delete_with_dependents(duplicate_ids, keep_campaigns=True)
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Failed to consolidate {label}: {e}")
            continue
        logger.info(f"Merged {len(duplicate_ids)} duplicates into {label} ({group.keeper_id})")

    report.campaigns_created = await ensure_claim_campaigns(repos)
    return report


async def ensure_claim_campaigns(repos: RepositoryBundle) -> int:
    """Create a campaign with a primary contact for every emailed business that has none."""
    session = repos.session
    with_campaign = select(ClaimCampaign.business_id)
    stmt = select(Business).where(
        Business.email.is_not(None), Business.email != "", Business.id.not_in(with_campaign)
    )
    targets = list((await session.execute(stmt)).scalars().all())
    expires_at = utc_now() + timedelta(days=AUTO_CAMPAIGN_TTL_DAYS)
    for business in targets:
        campaign = ClaimCampaign(
            business_id=business.id,
            claim_token=secrets.token_urlsafe(24),
            email_sent_to=business.email,
            campaign_name=AUTO_CAMPAIGN_NAME,
            expires_at=expires_at,
        )
        session.add(campaign)
        await session.flush()
        repos.claims.add_contact(campaign.id, business.email, is_primary=True)
    await session.commit()
    if targets:
        logger.info(f"Created claim campaigns for {len(targets)} businesses")
    return len(targets)
