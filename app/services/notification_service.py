"""Notification service — owner-facing (provider/user) notifications.

Separate from admin-facing system notifications (admin_service): different
audience, different table, different read semantics.

Usage:
    from app.services.notification_service import get_notifications, mark_as_read
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import ProviderNotification
from ..schemas.notifications import NotificationCreate
from ..schemas.responses import ActionResult

log = logging.getLogger(__name__)


def notification_to_dict(n: ProviderNotification) -> dict:
    return {
        "id": n.id,
        "user_id": n.user_id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "severity": n.severity,
        "is_read": bool(n.is_read),
        "related_entity_type": n.related_entity_type,
        "related_entity_id": n.related_entity_id,
        "created_at": n.created_at.isoformat() if n.created_at else None,
        "read_at": n.read_at.isoformat() if n.read_at else None,
    }


def get_notifications(db: Session, user_id: str) -> list[dict]:
    rows = (
        db.query(ProviderNotification)
        .filter(ProviderNotification.user_id == user_id)
        .order_by(ProviderNotification.created_at.desc())
        .all()
    )
    return [notification_to_dict(n) for n in rows]


def get_unread_count(db: Session, user_id: str) -> int:
    return (
        db.query(ProviderNotification)
        .filter(ProviderNotification.user_id == user_id, ProviderNotification.is_read.is_(False))
        .count()
    )


def mark_as_read(db: Session, notification_id: str, user_id: str) -> ActionResult:
    """Mark one notification read. Only the recipient may do this."""
    note = (
        db.query(ProviderNotification)
        .filter(ProviderNotification.id == notification_id, ProviderNotification.user_id == user_id)
        .first()
    )
    if not note:
        return ActionResult.fail(
            "Failed to mark notification as read", "Notification not found or not authorized"
        )
    note.is_read = True
    note.read_at = datetime.now(timezone.utc)
    db.commit()
    return ActionResult.ok("Notification marked as read")


def mark_all_as_read(db: Session, user_id: str) -> ActionResult:
    try:
        updated = (
            db.query(ProviderNotification)
            .filter(ProviderNotification.user_id == user_id, ProviderNotification.is_read.is_(False))
            .update(
                {"is_read": True, "read_at": datetime.now(timezone.utc)},
                synchronize_session=False,
            )
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error(f"mark_all_as_read failed for {user_id}: {e}")
        return ActionResult.fail("Failed to mark notifications as read", str(e))
    return ActionResult.ok(f"{updated} notifications marked as read")


def create_notification(db: Session, body: NotificationCreate) -> dict:
    note = ProviderNotification(**body.model_dump())
    db.add(note)
    db.commit()
    log.info(f"Notification {body.type} queued for {body.user_id}")
    return notification_to_dict(note)
