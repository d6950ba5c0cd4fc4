"""
Auth I/O models for API requests and responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from dumpster_directory.core.models.domain import UserRole

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class SignupRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    name: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    role: UserRole = UserRole.customer

    @field_validator("role")
    @classmethod
    def _no_self_service_admin(cls, value: UserRole) -> UserRole:
        if value == UserRole.admin:
            raise ValueError("admin accounts cannot be created through signup")
        return value


class LoginRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=128)


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None


class UserRead(BaseModel):
    """Account as returned to clients; never includes the password hash."""

    id: str
    email: str
    name: Optional[str] = None
    role: str
    phone: Optional[str] = None
    business_id: Optional[str] = None
    company_name: Optional[str] = None
    email_verified: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    user: UserRead
    token: str
