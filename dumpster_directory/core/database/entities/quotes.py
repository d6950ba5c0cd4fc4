"""
Quote (lead) entities.

A quote is a customer's request for service. It may name a business
directly (``business_id``) or be distributed to several businesses through
``lead_assignments``. Businesses pay a credit to see a lead's contact
details; each paid reveal is recorded once in ``lead_reveals``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from ..base import Base, new_id, utc_now


class QuoteBase(Base):
    """Base fields for a customer quote request."""

    customer_id: Optional[str] = Field(default=None, max_length=36, index=True)
    customer_name: str = Field(max_length=255)
    customer_email: str = Field(max_length=255, index=True)
    customer_phone: Optional[str] = Field(default=None, max_length=50)
    customer_zipcode: Optional[str] = Field(default=None, max_length=20)

    service_address: Optional[str] = Field(default=None, max_length=500)
    service_city: Optional[str] = Field(default=None, max_length=100)
    service_state: Optional[str] = Field(default=None, max_length=50)
    service_area: Optional[str] = Field(default=None, max_length=255)

    business_id: Optional[str] = Field(default=None, max_length=36, index=True)
    business_name: Optional[str] = Field(default=None, max_length=255)

    service_type: str = Field(max_length=100)
    project_description: Optional[str] = None
    timeline: Optional[str] = Field(default=None, max_length=100)
    budget: Optional[str] = Field(default=None, max_length=100)

    status: str = Field(default="pending", max_length=20, index=True)
    source: Optional[str] = Field(default="website", max_length=50)
    referrer: Optional[str] = Field(default=None, max_length=500)
    ip_address: Optional[str] = Field(default=None, max_length=64)
    user_agent: Optional[str] = Field(default=None, max_length=500)

    viewed_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    response_message: Optional[str] = None


class Quote(QuoteBase, table=True):
    """Persistent quote request.

    Table: quotes
    """

    __tablename__ = "quotes"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"Quote(id={self.id}, service_type={self.service_type}, status={self.status})"


class LeadAssignment(Base, table=True):
    """A quote distributed to one business.

    Table: lead_assignments
    """

    __tablename__ = "lead_assignments"
    __table_args__ = (UniqueConstraint("lead_id", "business_id", name="uq_lead_assignments_lead_business"),)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    lead_id: str = Field(foreign_key="quotes.id", max_length=36, index=True)
    business_id: str = Field(foreign_key="businesses.id", max_length=36, index=True)
    status: str = Field(default="new", max_length=20)
    assigned_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"LeadAssignment(lead={self.lead_id}, business={self.business_id}, status={self.status})"


class LeadReveal(Base, table=True):
    """One paid unmasking of a lead by a business.

    Table: lead_reveals
    """

    __tablename__ = "lead_reveals"
    __table_args__ = (UniqueConstraint("lead_id", "business_id", name="uq_lead_reveals_lead_business"),)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    lead_id: str = Field(foreign_key="quotes.id", max_length=36, index=True)
    business_id: str = Field(foreign_key="businesses.id", max_length=36, index=True)
    user_id: Optional[str] = Field(default=None, max_length=36)
    credits_used: int = Field(default=1)
    revealed_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"LeadReveal(lead={self.lead_id}, business={self.business_id})"
