"""
schemas/moderation.py — Moderation request bodies and audit/notification views

Business Rules:
- Suspension and property/plan rejection require a non-blank reason (trimmed)
- Provider rejection reason defaults to "No reason provided"
- Soft-delete reason defaults to "Admin deletion"

Called by: routers/admin.py, services/moderation_service.py,
           services/admin_service.py, services/realtime_service.py
Depends on: pydantic
"""

from __future__ import annotations

from pydantic import BaseModel, field_validator

# Suggested reasons shown next to the free-text field when rejecting a listing
COMMON_REJECTION_REASONS = [
    "Incomplete property information",
    "Poor quality images",
    "Unrealistic pricing",
    "Duplicate listing",
    "Property not available",
    "Insufficient property description",
    "Missing required documents",
    "Inappropriate content",
    "Location information incorrect",
    "Property condition concerns",
]


def _required_reason(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("A reason is required")
    return v


class SuspendRequest(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def reason_required(cls, v: str) -> str:
        return _required_reason(v)


class RejectRequest(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def reason_required(cls, v: str) -> str:
        return _required_reason(v)


class RejectProviderRequest(BaseModel):
    reason: str = "No reason provided"

    @field_validator("reason")
    @classmethod
    def default_when_blank(cls, v: str) -> str:
        return (v or "").strip() or "No reason provided"


class DeleteRequest(BaseModel):
    reason: str = "Admin deletion"

    @field_validator("reason")
    @classmethod
    def default_when_blank(cls, v: str) -> str:
        return (v or "").strip() or "Admin deletion"


# ── Audit feed & admin notifications ─────────────────────────────────


class ActivityItem(BaseModel):
    id: str
    admin_id: str | None = None
    admin_name: str = "Unknown Admin"
    action_type: str
    target_type: str
    target_id: str | None = None
    target_email: str | None = None
    details: dict = {}
    created_at: str | None = None


class AdminNotification(BaseModel):
    id: str
    type: str
    title: str
    message: str
    severity: str = "info"
    is_read: bool = False
    related_entity_type: str | None = None
    related_entity_id: str | None = None
    created_at: str | None = None
