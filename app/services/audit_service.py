"""Audit service — best-effort activity log and notification writes.

Moderation fallbacks call these after the primary state change has been
committed. Each helper commits on its own and swallows (logs) failures:
a lost audit row or notification never changes the reported outcome of
the moderation action, and is not retried.

Usage:
    from app.services.audit_service import log_admin_action, notify_owner
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import AdminActivityLog, ProviderNotification, SystemNotification

log = logging.getLogger("estates.audit")


# ═══════════════════════════════════════════════════════════════════════
#  ACTIVITY LOG — append-only admin audit trail
# ═══════════════════════════════════════════════════════════════════════


def log_admin_action(
    db: Session,
    admin_id: str,
    action_type: str,
    target_type: str,
    target_id: str,
    target_email: str | None = None,
    details: dict | None = None,
) -> AdminActivityLog | None:
    """Append one audit row. Returns None (and logs) on failure."""
    try:
        entry = AdminActivityLog(
            admin_id=admin_id,
            action_type=action_type,
            target_type=target_type,
            target_id=target_id,
            target_email=target_email,
            details=details or {},
        )
        db.add(entry)
        db.commit()
        return entry
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Audit log write failed ({action_type} {target_type} {target_id}): {e}")
        return None


# ═══════════════════════════════════════════════════════════════════════
#  NOTIFICATIONS — owner-facing and admin-facing
# ═══════════════════════════════════════════════════════════════════════


def notify_owner(
    db: Session,
    user_id: str | None,
    type: str,
    title: str,
    message: str,
    severity: str = "info",
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
) -> ProviderNotification | None:
    """Queue a notification for the owning account. Best-effort."""
    if not user_id:
        return None
    try:
        note = ProviderNotification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            severity=severity,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
        )
        db.add(note)
        db.commit()
        return note
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Owner notification failed ({type} → {user_id}): {e}")
        return None


def notify_admins(
    db: Session,
    type: str,
    title: str,
    message: str,
    severity: str = "info",
    admin_id: str | None = None,
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
) -> SystemNotification | None:
    """Queue an admin-facing notification (admin_id None = every admin). Best-effort."""
    try:
        note = SystemNotification(
            admin_id=admin_id,
            type=type,
            title=title,
            message=message,
            severity=severity,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
        )
        db.add(note)
        db.commit()
        return note
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Admin notification failed ({type}): {e}")
        return None
