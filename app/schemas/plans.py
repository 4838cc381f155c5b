"""
schemas/plans.py — Pydantic models for architectural plans

Business Rules:
- New plans start as draft, currency KSH, one floor
- Discount percentage is 0-100
- Search sorts by date | price | popularity (views) | downloads

Called by: routers/plans.py, services/plan_service.py
Depends on: pydantic
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from ..utils import split_list


class PlanCreate(BaseModel):
    title: str
    description: str = ""
    category: str | None = None
    status: Literal["draft", "pending", "published", "archived"] = "draft"
    bedrooms: int | None = None
    bathrooms: int | None = None
    area: float | None = None
    area_unit: str = "sqft"
    floors: int = 1
    price: float = Field(0, ge=0)
    currency: str = "KSH"
    discount_percentage: float = Field(0, ge=0, le=100)
    features: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    style: str | None = None
    is_featured: bool = False

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("features", "tags", mode="before")
    @classmethod
    def split_items(cls, v):
        return split_list(v)


class PlanUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    category: str | None = None
    status: Literal["draft", "pending", "published", "archived"] | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    area: float | None = None
    area_unit: str | None = None
    floors: int | None = None
    price: float | None = Field(None, ge=0)
    currency: str | None = None
    discount_percentage: float | None = Field(None, ge=0, le=100)
    features: list[str] | None = None
    tags: list[str] | None = None
    style: str | None = None
    is_featured: bool | None = None


class PlanSearchFilters(BaseModel):
    category: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    min_bedrooms: int | None = None
    max_bedrooms: int | None = None
    min_area: float | None = None
    max_area: float | None = None
    style: str | None = None
    features: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    sort_by: Literal["date", "price", "popularity", "downloads"] = "date"
    sort_order: Literal["asc", "desc"] = "desc"

    @field_validator("features", "tags", mode="before")
    @classmethod
    def split_items(cls, v):
        return split_list(v)


class PlanPurchaseRequest(BaseModel):
    customer_email: str
    customer_name: str
    customer_phone: str | None = None
    payment_method: str | None = None
    payment_reference: str | None = None

    @field_validator("customer_email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if "@" not in v:
            raise ValueError("A valid email is required")
        return v


class PlanFileOrder(BaseModel):
    file_ids: list[str] = Field(..., min_length=1)
