"""
Business listing entity.

A business is a single directory listing. Listings are created by imports,
by owners claiming them, or by administrators. ``new_leads_count`` counts
quotes addressed directly to the business that it has not looked at yet.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field

from ..base import Base, new_id, utc_now


class BusinessBase(Base):
    """Base fields for a directory listing."""

    name: str = Field(max_length=255, index=True)
    category: str = Field(default="Dumpster Rental", max_length=100, index=True)
    description: Optional[str] = None
    rating: float = Field(default=0.0)
    reviews: int = Field(default=0)

    # Contact
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    website: Optional[str] = Field(default=None, max_length=500)

    # Location
    address: Optional[str] = Field(default=None, max_length=500)
    city: Optional[str] = Field(default=None, max_length=100, index=True)
    state: Optional[str] = Field(default=None, max_length=50, index=True)
    zipcode: Optional[str] = Field(default=None, max_length=20)
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Listing status
    is_featured: bool = Field(default=False)
    is_verified: bool = Field(default=False)
    is_claimed: bool = Field(default=False)
    featured_until: Optional[datetime] = None

    # Profile
    logo_url: Optional[str] = Field(default=None, max_length=500)
    cover_image: Optional[str] = Field(default=None, max_length=500)
    years_in_business: Optional[int] = None
    license_number: Optional[str] = Field(default=None, max_length=100)
    insurance: Optional[str] = Field(default=None, max_length=255)
    price_range: Optional[str] = Field(default=None, max_length=50)

    # Owner contact captured on claim
    owner_name: Optional[str] = Field(default=None, max_length=255)
    owner_email: Optional[str] = Field(default=None, max_length=255)
    owner_phone: Optional[str] = Field(default=None, max_length=50)

    # Provenance
    place_id: Optional[str] = Field(default=None, max_length=255)
    source: Optional[str] = Field(default=None, max_length=50)
    new_leads_count: int = Field(default=0)


class Business(BusinessBase, table=True):
    """Persistent directory listing.

    Table: businesses
    """

    __tablename__ = "businesses"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)

    services: Optional[list[str]] = Field(default=None, sa_column=Column(JSON))
    service_areas: Optional[list[str]] = Field(default=None, sa_column=Column(JSON))
    hours: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    gallery_images: Optional[list[str]] = Field(default=None, sa_column=Column(JSON))
    certifications: Optional[list[str]] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def is_featured_active(self, now: Optional[datetime] = None) -> bool:
        """Featured and not past ``featured_until`` (an open-ended feature never lapses)."""
        if not self.is_featured:
            return False
        if self.featured_until is None:
            return True
        return self.featured_until > (now or utc_now())

    def __repr__(self) -> str:
        return f"Business(id={self.id}, name={self.name}, city={self.city}, state={self.state})"
