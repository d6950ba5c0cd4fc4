"""Business notification entity."""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field

from ..base import Base, new_id, utc_now


class BusinessNotification(Base, table=True):
    """In-app notice shown in the dealer portal.

    Table: business_notifications
    """

    __tablename__ = "business_notifications"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    business_id: str = Field(foreign_key="businesses.id", max_length=36, index=True)
    type: str = Field(max_length=50)
    title: str = Field(max_length=255)
    message: str
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)
