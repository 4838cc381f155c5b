"""
schemas/accounts.py — Pydantic models for auth, users and providers

Business Rules:
- Email is lowercased and stripped
- Passwords must be at least 8 characters
- Self-service sign-up can only choose user or provider (never admin)
- Provider registration requires business name and email

Called by: routers/auth.py, routers/admin.py, routers/providers.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

ROLES = ("admin", "provider", "user")
ACCOUNT_STATUSES = ("email_unconfirmed", "pending", "approved", "rejected", "suspended")


def _clean_email(v: str) -> str:
    v = (v or "").strip().lower()
    if "@" not in v:
        raise ValueError("A valid email is required")
    return v


# ── Auth ─────────────────────────────────────────────────────────────


class SignUpRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=8)
    name: str = ""
    role: Literal["user", "provider"] = "user"
    phone: str | None = None

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        return _clean_email(v)


class SignInRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        return _clean_email(v)


class ProfileUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None
    avatar_url: str | None = None


# ── Admin user management ────────────────────────────────────────────


class UserListFilters(BaseModel):
    search: str | None = None
    role: Literal["admin", "provider", "user"] | None = None
    status: Literal["email_unconfirmed", "pending", "approved", "rejected", "suspended"] | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class UserStats(BaseModel):
    total_users: int = 0
    active_users: int = 0
    suspended_users: int = 0
    new_users_this_month: int = 0
    users_by_role: dict[str, int] = Field(
        default_factory=lambda: {"admin": 0, "provider": 0, "user": 0}
    )


# ── Providers ────────────────────────────────────────────────────────


class ProviderRegistration(BaseModel):
    business_name: str
    business_email: str
    business_phone: str = ""
    city: str = ""

    @field_validator("business_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Business name is required")
        return v

    @field_validator("business_email")
    @classmethod
    def business_email_valid(cls, v: str) -> str:
        return _clean_email(v)


class ProviderSignUpRequest(SignUpRequest, ProviderRegistration):
    role: Literal["provider"] = "provider"
