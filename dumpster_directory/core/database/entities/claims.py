"""
Claim campaign entities.

A claim campaign invites the real owner of an imported listing to take it
over. Each campaign has an unguessable token and may have several contact
addresses the invitation was sent to.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field

from ..base import Base, new_id, utc_now


class ClaimCampaign(Base, table=True):
    """Claim invitation for one business.

    Table: claim_campaigns
    """

    __tablename__ = "claim_campaigns"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    business_id: str = Field(foreign_key="businesses.id", max_length=36, index=True)
    claim_token: str = Field(max_length=128, unique=True, index=True)
    campaign_name: Optional[str] = Field(default=None, max_length=255)
    email_sent_to: Optional[str] = Field(default=None, max_length=255)
    email_sent_at: Optional[datetime] = None
    email_opened_at: Optional[datetime] = None
    link_clicked_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at is not None and self.expires_at < (now or utc_now())

    def __repr__(self) -> str:
        return f"ClaimCampaign(business={self.business_id}, claimed={self.claimed_at is not None})"


class ClaimContact(Base, table=True):
    """An email address tied to a claim campaign.

    Table: claim_contacts
    """

    __tablename__ = "claim_contacts"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    claim_campaign_id: str = Field(foreign_key="claim_campaigns.id", max_length=36, index=True)
    email: str = Field(max_length=255)
    is_primary: bool = Field(default=False)
    is_selected: bool = Field(default=True)
    email_type: Optional[str] = Field(default=None, max_length=50)
    sent_at: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"ClaimContact(email={self.email}, primary={self.is_primary})"
