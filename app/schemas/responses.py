"""
schemas/responses.py — Shared response models

Page-number pagination wrappers and the ActionResult every moderation and
notification mutation returns.

Called by: routers/*.py, services/*.py
Depends on: pydantic
"""

from __future__ import annotations

import math

from pydantic import BaseModel, Field


# ── Base Wrappers ───────────────────────────────────────────────────────


class PagedResponse(BaseModel):
    """Page-number pagination (admin user list, property search)."""

    total: int = 0
    page: int = 1
    limit: int = 10
    total_pages: int = 0

    @staticmethod
    def pages(total: int, limit: int) -> int:
        return math.ceil(total / limit) if limit > 0 else 0


class ActionResult(BaseModel):
    """Outcome of a mutation. Failures are values, never exceptions."""

    success: bool
    message: str
    error: str | None = None

    @classmethod
    def ok(cls, message: str) -> "ActionResult":
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, message: str, error: str | None = None) -> "ActionResult":
        return cls(success=False, message=message, error=error)


# ── Users ───────────────────────────────────────────────────────────────


class UserListResponse(PagedResponse):
    users: list[dict] = Field(default_factory=list)


# ── Listings ────────────────────────────────────────────────────────────


class PropertyListResponse(PagedResponse):
    properties: list[dict] = Field(default_factory=list)
