"""
schemas/notifications.py — Owner-facing (provider) notification models

Called by: routers/notifications.py, services/notification_service.py
Depends on: pydantic
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

Severity = Literal["info", "warning", "error", "success"]


class NotificationCreate(BaseModel):
    user_id: str
    type: str
    title: str
    message: str
    severity: Severity = "info"
    related_entity_type: str | None = None
    related_entity_id: str | None = None
