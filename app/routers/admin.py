"""
routers/admin.py — Admin back office: moderation, accounts, analytics, health

Business Rules:
- Every route requires role admin (require_admin)
- Moderation mutations answer with an ActionResult body; a failed action
  keeps the body and maps to 404 (target missing) or 500 (write failed)
- Listing moderation queues exclude items owned by soft-deleted accounts
- /api/admin/realtime is a websocket that streams the activity feed and
  the admin's notifications, plus connection state changes

Called by: main.py (router mount)
Depends on: services/moderation_service.py, services/admin_service.py,
            services/analytics_service.py, services/realtime_service.py
"""

import asyncio
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..database import SessionLocal, get_db
from ..models import Profile
from ..schemas.accounts import UserListFilters
from ..schemas.moderation import (
    COMMON_REJECTION_REASONS,
    DeleteRequest,
    RejectProviderRequest,
    RejectRequest,
    SuspendRequest,
)
from ..schemas.responses import ActionResult, UserListResponse
from ..dependencies import require_admin
from ..services import admin_service, analytics_service, moderation_service
from ..services.connectivity_service import run_connectivity_checks
from ..services.plan_service import get_all_plans
from ..services.property_service import (
    get_all_properties,
    get_pending_properties,
    get_rejected_properties,
)
from ..services.provider_service import get_all_providers, get_providers_by_status
from ..services.realtime_service import AdminRealtimeService, RealtimeCallbacks, RealtimeFailure

log = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


def _action(result: ActionResult):
    if result.success:
        return result
    status = 404 if result.message.endswith("not found") else 500
    return JSONResponse(result.model_dump(), status_code=status)


# ── User Management ──────────────────────────────────────────────────


@router.get("/api/admin/users", response_model=UserListResponse)
def api_list_users(
    search: str | None = None,
    role: str | None = None,
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        filters = UserListFilters(
            search=search, role=role, status=status, date_from=date_from, date_to=date_to,
        )
    except ValueError as e:
        raise HTTPException(422, str(e))
    return admin_service.get_users(db, filters, page=page, limit=limit)


@router.get("/api/admin/users/stats")
def api_user_stats(user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return admin_service.get_user_stats(db)


@router.post("/api/admin/users/{user_id}/suspend")
def api_suspend_user(
    user_id: str,
    body: SuspendRequest,
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if user_id == user.id:
        raise HTTPException(400, "Cannot suspend yourself")
    return _action(moderation_service.suspend_user(db, user_id, user.id, body.reason))


@router.post("/api/admin/users/{user_id}/activate")
def api_activate_user(user_id: str, user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return _action(moderation_service.activate_user(db, user_id, user.id))


@router.delete("/api/admin/users/{user_id}")
def api_delete_user(
    user_id: str,
    body: DeleteRequest | None = None,
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if user_id == user.id:
        raise HTTPException(400, "Cannot delete yourself")
    reason = body.reason if body else "Admin deletion"
    return _action(moderation_service.delete_user(db, user_id, user.id, reason))


# ── Providers ────────────────────────────────────────────────────────


@router.get("/api/admin/providers")
def api_list_providers(
    status: str | None = None,
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if status:
        return get_providers_by_status(db, status)
    return get_all_providers(db)


@router.post("/api/admin/providers/{provider_id}/approve")
def api_approve_provider(provider_id: str, user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return _action(moderation_service.approve_provider(db, provider_id, user.id))


@router.post("/api/admin/providers/{provider_id}/reject")
def api_reject_provider(
    provider_id: str,
    body: RejectProviderRequest | None = None,
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    reason = body.reason if body else "No reason provided"
    return _action(moderation_service.reject_provider(db, provider_id, user.id, reason))


@router.delete("/api/admin/providers/{provider_id}")
def api_delete_provider(provider_id: str, user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return _action(moderation_service.delete_provider(db, provider_id, user.id))


# ── Listing Moderation ───────────────────────────────────────────────


@router.get("/api/admin/properties")
def api_list_properties(
    status: str = Query("pending", pattern="^(pending|rejected|all)$"),
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if status == "pending":
        return get_pending_properties(db)
    if status == "rejected":
        return get_rejected_properties(db)
    return get_all_properties(db)


@router.post("/api/admin/properties/{property_id}/approve")
def api_approve_property(property_id: str, user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return _action(moderation_service.approve_property(db, property_id, user.id))


@router.post("/api/admin/properties/{property_id}/reject")
def api_reject_property(
    property_id: str,
    body: RejectRequest,
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _action(moderation_service.reject_property(db, property_id, user.id, body.reason))


@router.get("/api/admin/plans")
def api_list_plans(user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return get_all_plans(db)


@router.post("/api/admin/plans/{plan_id}/approve")
def api_approve_plan(plan_id: str, user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return _action(moderation_service.approve_plan(db, plan_id, user.id))


@router.post("/api/admin/plans/{plan_id}/reject")
def api_reject_plan(
    plan_id: str,
    body: RejectRequest,
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _action(moderation_service.reject_plan(db, plan_id, user.id, body.reason))


@router.get("/api/admin/rejection-reasons")
def api_rejection_reasons(user: Profile = Depends(require_admin)):
    return COMMON_REJECTION_REASONS


# ── Activity & Notifications ─────────────────────────────────────────


@router.get("/api/admin/activity")
def api_activity_feed(
    limit: int = Query(20, ge=1, le=100),
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return admin_service.get_activity_feed(db, limit=limit)


@router.get("/api/admin/notifications")
def api_admin_notifications(user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return admin_service.get_notifications(db, admin_id=user.id)


@router.post("/api/admin/notifications/{notification_id}/read")
def api_mark_admin_notification(
    notification_id: str,
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _action(admin_service.mark_notification_as_read(db, notification_id))


# ── Analytics ────────────────────────────────────────────────────────


@router.get("/api/admin/analytics")
def api_dashboard_analytics(
    days: int | None = Query(None, ge=1, le=365),
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return analytics_service.get_dashboard_analytics(db, days=days)


@router.get("/api/admin/analytics/growth")
def api_growth_metrics(user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return analytics_service.get_growth_metrics(db)


@router.get("/api/admin/analytics/totals")
def api_total_stats(user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return analytics_service.get_total_stats(db)


@router.get("/api/admin/analytics/properties")
def api_property_analytics(
    property_id: str | None = None,
    days: int = Query(30, ge=1, le=365),
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return analytics_service.get_property_analytics(db, property_id=property_id, days=days)


@router.post("/api/admin/analytics/backfill")
def api_backfill_analytics(user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    created = analytics_service.backfill_analytics(db)
    log.info(f"Admin {user.email} backfilled analytics for {created} properties")
    return {"ok": True, "created": created}


@router.get("/api/admin/revenue")
def api_revenue(
    provider_id: str | None = None,
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return analytics_service.get_revenue_records(db, provider_id=provider_id)


# ── System Health ────────────────────────────────────────────────────


@router.get("/api/admin/health")
def api_health(user: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return admin_service.get_system_health(db)


@router.get("/api/admin/connectivity")
async def api_connectivity(user: Profile = Depends(require_admin)):
    return await run_connectivity_checks()


# ── Realtime ─────────────────────────────────────────────────────────


def _admin_from_session(session: dict) -> Profile | None:
    uid = session.get("user_id")
    if not uid:
        return None
    db = SessionLocal()
    try:
        user = db.get(Profile, uid)
        if user is None or user.deleted_at is not None or user.role != "admin":
            return None
        if user.status in ("suspended", "rejected"):
            return None
        return user
    finally:
        db.close()


@router.websocket("/api/admin/realtime")
async def ws_admin_realtime(websocket: WebSocket):
    """Push activity/notification snapshots to one admin.

    Outgoing messages: {"type": "activity" | "notifications" | "connection" | "error", ...}.
    The client may send {"action": "reconnect"} after a terminal failure.
    """
    admin = await asyncio.to_thread(_admin_from_session, websocket.session)
    if admin is None:
        await websocket.close(code=4403)
        return
    await websocket.accept()

    outbox: asyncio.Queue = asyncio.Queue()
    callbacks = RealtimeCallbacks(
        on_activity_update=lambda items: outbox.put_nowait(
            {"type": "activity", "items": [i.model_dump(mode="json") for i in items]}
        ),
        on_notification_update=lambda items: outbox.put_nowait(
            {"type": "notifications", "items": [i.model_dump(mode="json") for i in items]}
        ),
        on_connection_change=lambda connected: outbox.put_nowait(
            {"type": "connection", "connected": connected}
        ),
        on_error=lambda e: outbox.put_nowait(
            {"type": "error", "message": str(e), "terminal": isinstance(e, RealtimeFailure)}
        ),
    )

    service = AdminRealtimeService()

    async def sender():
        while True:
            await websocket.send_json(await outbox.get())

    send_task = asyncio.create_task(sender())
    try:
        await service.initialize(admin.id, callbacks)
        activity = await service.refresh_activity_feed()
        notifications = await service.refresh_notifications(admin.id)
        callbacks.on_activity_update(activity)
        callbacks.on_notification_update(notifications)

        while True:
            message = await websocket.receive_json()
            if message.get("action") == "reconnect" and service.failed:
                service.cleanup()
                await service.initialize(admin.id, callbacks)
    except WebSocketDisconnect:
        log.info(f"Realtime socket closed for admin {admin.email}")
    finally:
        service.cleanup()
        send_task.cancel()
