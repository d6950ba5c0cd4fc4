"""
Claim campaign I/O models for API requests and responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from dumpster_directory.core.models.domain import ClaimTrackEvent

from .auth import EMAIL_PATTERN
from .businesses import BusinessRead


class ClaimRequest(BaseModel):
    """Claim an existing listing, or register a new one when ``business_id`` starts with ``new-``."""

    business_id: str
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=1, max_length=255)
    phone: Optional[str] = None
    claim_token: Optional[str] = None
    # Used only for new listings
    business_name: Optional[str] = None
    category: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    # Fill in the listing's contact details when it has none
    business_email: Optional[str] = None
    business_phone: Optional[str] = None
    website: Optional[str] = None


class ClaimResponse(BaseModel):
    success: bool = True
    token: str
    user_id: str
    business_id: str


class ClaimCampaignInfo(BaseModel):
    id: str
    token: str
    expires_at: Optional[datetime] = None


class ClaimTokenResponse(BaseModel):
    business: BusinessRead
    campaign: ClaimCampaignInfo


class ClaimTrackRequest(BaseModel):
    event: ClaimTrackEvent


class ClaimGenerateRequest(BaseModel):
    business_ids: List[str] = Field(min_length=1)
    campaign_name: Optional[str] = None
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=365)


class GeneratedClaim(BaseModel):
    business_id: str
    business_name: Optional[str] = None
    token: Optional[str] = None
    claim_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    error: Optional[str] = None


class ClaimGenerateResponse(BaseModel):
    results: List[GeneratedClaim]
    summary: dict
