"""
Business I/O models for API requests and responses.

These schemas define the contract between the directory API and clients
for listing, creating and updating businesses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class BusinessRead(BaseModel):
    """Schema for reading a business from the API."""

    id: str
    name: str
    category: str
    description: Optional[str] = None
    rating: float = 0.0
    reviews: int = 0
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_featured: bool = False
    is_verified: bool = False
    is_claimed: bool = False
    featured_until: Optional[datetime] = None
    logo_url: Optional[str] = None
    cover_image: Optional[str] = None
    years_in_business: Optional[int] = None
    license_number: Optional[str] = None
    insurance: Optional[str] = None
    price_range: Optional[str] = None
    services: Optional[List[str]] = None
    service_areas: Optional[List[str]] = None
    hours: Optional[Any] = None
    gallery_images: Optional[List[str]] = None
    certifications: Optional[List[str]] = None
    new_leads_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BusinessCreate(BaseModel):
    """Schema for creating a business via the API."""

    name: str = Field(min_length=1, max_length=255)
    category: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=1, max_length=50)
    address: str = Field(min_length=1, max_length=500)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=50)
    zipcode: str = Field(min_length=1, max_length=20)
    email: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    reviews: int = Field(default=0, ge=0)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    services: Optional[List[str]] = None
    service_areas: Optional[List[str]] = None
    hours: Optional[Any] = None
    logo_url: Optional[str] = None
    price_range: Optional[str] = None


class BusinessUpdate(BaseModel):
    """Schema for updating a business; only the fields sent are changed."""

    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    logo_url: Optional[str] = None
    cover_image: Optional[str] = None
    years_in_business: Optional[int] = None
    license_number: Optional[str] = None
    insurance: Optional[str] = None
    price_range: Optional[str] = None
    services: Optional[List[str]] = None
    service_areas: Optional[List[str]] = None
    hours: Optional[Any] = None
    gallery_images: Optional[List[str]] = None
    certifications: Optional[List[str]] = None


class AdminBusinessUpdate(BusinessUpdate):
    """Fields only administrators may change."""

    rating: Optional[float] = Field(default=None, ge=0.0, le=5.0)
    reviews: Optional[int] = Field(default=None, ge=0)
    is_verified: Optional[bool] = None
    is_claimed: Optional[bool] = None


class BusinessListResponse(BaseModel):
    businesses: List[BusinessRead]
    total: int
    limit: int
    offset: int
    cached: bool = False


class DuplicateCheckResponse(BaseModel):
    exists: bool
    business: Optional[BusinessRead] = None


class SetFeaturedRequest(BaseModel):
    """Admin request to feature or unfeature a listing."""

    featured: bool
    days: Optional[int] = Field(default=None, ge=1, description="Feature for this many days; open-ended if omitted")
