"""Admin service — user listing & stats, activity feed, admin notifications, health."""

import logging
from datetime import datetime, timezone

from sqlalchemy import func as sqlfunc, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..change_feed import change_feed
from ..config import APP_VERSION, settings
from ..models import (
    AdminActivityLog,
    ArchitecturalPlan,
    Inquiry,
    Profile,
    Property,
    Provider,
    SystemNotification,
)
from ..schemas.accounts import UserListFilters, UserStats
from ..schemas.moderation import ActivityItem, AdminNotification
from ..schemas.responses import ActionResult, PagedResponse

log = logging.getLogger(__name__)


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def user_to_dict(u: Profile) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "phone": u.phone,
        "role": u.role,
        "status": u.status,
        "avatar_url": u.avatar_url,
        "created_at": _iso(u.created_at),
        "updated_at": _iso(u.updated_at),
        "last_login_at": _iso(u.last_login_at),
        "login_count": u.login_count or 0,
        "suspension_reason": u.suspension_reason,
        "suspended_at": _iso(u.suspended_at),
        "notes": u.notes,
    }


# ── User Management ──────────────────────────────────────────────────


def live_profiles(db: Session):
    """Base query for accounts: soft-deleted rows are never included."""
    return db.query(Profile).filter(Profile.deleted_at.is_(None))


def get_users(db: Session, filters: UserListFilters | None = None, page: int = 1, limit: int = 10) -> dict:
    """Paginated account list, newest first, with search and filters."""
    filters = filters or UserListFilters()
    page = max(page, 1)
    limit = max(limit, 1)

    q = live_profiles(db)
    if filters.search:
        term = f"%{filters.search.strip()}%"
        q = q.filter(or_(Profile.name.ilike(term), Profile.email.ilike(term)))
    if filters.role:
        q = q.filter(Profile.role == filters.role)
    if filters.status:
        q = q.filter(Profile.status == filters.status)
    if filters.date_from:
        q = q.filter(Profile.created_at >= filters.date_from)
    if filters.date_to:
        q = q.filter(Profile.created_at <= filters.date_to)

    total = q.count()
    users = (
        q.order_by(Profile.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "users": [user_to_dict(u) for u in users],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": PagedResponse.pages(total, limit),
    }


def get_user_stats(db: Session) -> UserStats:
    """Counts by status and role, plus sign-ups since the 1st of this month."""
    rows = live_profiles(db).with_entities(Profile.status, Profile.role, Profile.created_at).all()
    stats = UserStats(total_users=len(rows))

    start_of_month = datetime.now(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    for status, role, created_at in rows:
        if status == "approved":
            stats.active_users += 1
        elif status == "suspended":
            stats.suspended_users += 1
        bucket = role if role in ("admin", "provider") else "user"
        stats.users_by_role[bucket] += 1
        if created_at and created_at >= start_of_month:
            stats.new_users_this_month += 1
    return stats


# ── Activity Feed ────────────────────────────────────────────────────


def get_activity_feed(db: Session, limit: int = 20) -> list[ActivityItem]:
    """Most recent audit entries with admin names resolved. [] on failure."""
    try:
        entries = (
            db.query(AdminActivityLog)
            .order_by(AdminActivityLog.created_at.desc())
            .limit(limit)
            .all()
        )
        admin_ids = {e.admin_id for e in entries if e.admin_id}
        names = {}
        if admin_ids:
            names = dict(
                db.query(Profile.id, Profile.name).filter(Profile.id.in_(admin_ids)).all()
            )
    except SQLAlchemyError as e:
        log.warning(f"Activity feed fetch failed: {e}")
        return []

    return [
        ActivityItem(
            id=e.id,
            admin_id=e.admin_id,
            admin_name=names.get(e.admin_id) or "Unknown Admin",
            action_type=e.action_type,
            target_type=e.target_type,
            target_id=e.target_id,
            target_email=e.target_email,
            details=e.details or {},
            created_at=_iso(e.created_at),
        )
        for e in entries
    ]


# ── Admin Notifications ──────────────────────────────────────────────


def get_notifications(db: Session, admin_id: str | None = None) -> list[AdminNotification]:
    """Admin notifications, newest first. With admin_id: own + global only."""
    q = db.query(SystemNotification)
    if admin_id:
        q = q.filter(
            or_(SystemNotification.admin_id == admin_id, SystemNotification.admin_id.is_(None))
        )
    try:
        rows = q.order_by(SystemNotification.created_at.desc()).all()
    except SQLAlchemyError as e:
        log.warning(f"Notification fetch failed: {e}")
        return []
    return [
        AdminNotification(
            id=n.id,
            type=n.type,
            title=n.title,
            message=n.message,
            severity=n.severity or "info",
            is_read=bool(n.is_read),
            related_entity_type=n.related_entity_type,
            related_entity_id=n.related_entity_id,
            created_at=_iso(n.created_at),
        )
        for n in rows
    ]


def mark_notification_as_read(db: Session, notification_id: str) -> ActionResult:
    note = db.get(SystemNotification, notification_id)
    if not note:
        return ActionResult.fail("Failed to mark notification as read", "Notification not found")
    try:
        note.is_read = True
        note.read_at = datetime.now(timezone.utc)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        return ActionResult.fail("Failed to mark notification as read", str(e))
    return ActionResult.ok("Notification marked as read")


# ── System Health ────────────────────────────────────────────────────


def get_system_health(db: Session) -> dict:
    """System health: version, row counts, realtime channel status."""
    counts = {}
    for label, model in [
        ("profiles", Profile),
        ("providers", Provider),
        ("properties", Property),
        ("plans", ArchitecturalPlan),
        ("inquiries", Inquiry),
        ("activity_logs", AdminActivityLog),
        ("system_notifications", SystemNotification),
    ]:
        try:
            counts[label] = db.query(sqlfunc.count(model.id)).scalar() or 0
        except SQLAlchemyError:
            db.rollback()
            counts[label] = -1

    return {
        "version": APP_VERSION,
        "environment": settings.app_env,
        "db_stats": counts,
        "realtime": {
            "available": change_feed.available,
            "channels": [c.name for c in change_feed.channels],
        },
    }
