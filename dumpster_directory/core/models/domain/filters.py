"""Listing query parameters shared by the business cache and the database fallback."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class BusinessFilters(BaseModel):
    """
    Filters for listing businesses.

    ``category``, ``state`` and ``city`` match case-insensitively and exactly.
    ``search`` is a case-insensitive substring match over name, description,
    category, city and state.
    """

    category: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    zipcode: Optional[str] = None
    featured: Optional[bool] = None
    verified: Optional[bool] = None
    search: Optional[str] = None
    limit: int = Field(default=50, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)
