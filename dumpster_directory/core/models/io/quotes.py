"""
Quote and lead I/O models for API requests and responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from dumpster_directory.core.models.domain import AssignmentStatus, QuoteStatus


class QuoteCreate(BaseModel):
    """Schema for submitting a quote request."""

    customer_name: str = Field(min_length=1, max_length=255)
    customer_email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    service_type: str = Field(min_length=1, max_length=100)
    customer_phone: Optional[str] = None
    customer_zipcode: Optional[str] = None
    service_address: Optional[str] = None
    service_city: Optional[str] = None
    service_state: Optional[str] = None
    project_description: Optional[str] = None
    timeline: Optional[str] = None
    budget: Optional[str] = None
    business_id: Optional[str] = None
    source: Optional[str] = None


class QuoteRead(BaseModel):
    """Schema for reading a quote with full contact details."""

    id: str
    customer_id: Optional[str] = None
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    customer_zipcode: Optional[str] = None
    service_address: Optional[str] = None
    service_city: Optional[str] = None
    service_state: Optional[str] = None
    service_area: Optional[str] = None
    business_id: Optional[str] = None
    business_name: Optional[str] = None
    service_type: str
    project_description: Optional[str] = None
    timeline: Optional[str] = None
    budget: Optional[str] = None
    status: str
    source: Optional[str] = None
    viewed_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    response_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QuoteUpdate(BaseModel):
    status: Optional[QuoteStatus] = None
    response_message: Optional[str] = None


class QuoteListResponse(BaseModel):
    quotes: List[QuoteRead]
    total: int
    limit: int
    offset: int


class AssignmentResult(BaseModel):
    """Outcome of distributing a quote to businesses."""

    lead_id: str
    assigned: int
    business_ids: List[str]
    fallback: bool = False


class LeadView(BaseModel):
    """A lead as a business sees it; contact fields are masked until revealed."""

    id: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    customer_zipcode: Optional[str] = None
    service_address: Optional[str] = None
    service_city: Optional[str] = None
    service_state: Optional[str] = None
    service_type: str
    project_description: Optional[str] = None
    timeline: Optional[str] = None
    budget: Optional[str] = None
    status: str
    assignment_status: Optional[str] = None
    direct: bool = False
    revealed: bool = False
    created_at: Optional[datetime] = None


class LeadListResponse(BaseModel):
    leads: List[LeadView]
    total: int
    credits: int


class LeadStatusUpdate(BaseModel):
    status: AssignmentStatus


class RevealResponse(BaseModel):
    success: bool = True
    already_revealed: bool = False
    credits_remaining: int
    lead: LeadView


class QuoteSubmitted(BaseModel):
    """A stored quote and, for quotes not addressed to a business, how it was distributed."""

    quote: QuoteRead
    assignment: Optional[AssignmentResult] = None
