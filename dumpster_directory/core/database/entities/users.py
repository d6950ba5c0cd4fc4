"""
User account and session entities.

Roles are ``admin``, ``business_owner`` and ``customer``. A business owner is
linked to the listing they claimed through ``business_id``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field

from ..base import Base, new_id, utc_now


class User(Base, table=True):
    """Account able to sign in.

    Table: users
    """

    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    email: str = Field(max_length=255, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)
    role: str = Field(default="customer", max_length=20)
    phone: Optional[str] = Field(default=None, max_length=50)
    business_id: Optional[str] = Field(default=None, max_length=36, index=True)
    company_name: Optional[str] = Field(default=None, max_length=255)
    email_verified: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"User(email={self.email}, role={self.role})"


class UserSession(Base, table=True):
    """Issued auth token, deleted on logout.

    Table: sessions
    """

    __tablename__ = "sessions"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(foreign_key="users.id", max_length=36, index=True)
    token: str = Field(max_length=1024, index=True)
    expires_at: datetime
    created_at: datetime = Field(default_factory=utc_now)
