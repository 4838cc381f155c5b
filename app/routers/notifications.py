"""
routers/notifications.py — The signed-in user's own notifications

Admin-facing system notifications live under /api/admin/notifications;
these are the owner-facing ones (listing approved, new inquiry, ...).

Called by: main.py (router mount)
Depends on: services/notification_service.py
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_admin, require_user
from ..models import Profile
from ..schemas.notifications import NotificationCreate
from ..services import notification_service

router = APIRouter(tags=["notifications"])


@router.get("/api/notifications")
def api_list_notifications(user: Profile = Depends(require_user), db: Session = Depends(get_db)):
    return {
        "notifications": notification_service.get_notifications(db, user.id),
        "unread": notification_service.get_unread_count(db, user.id),
    }


@router.get("/api/notifications/unread-count")
def api_unread_count(user: Profile = Depends(require_user), db: Session = Depends(get_db)):
    return {"unread": notification_service.get_unread_count(db, user.id)}


@router.post("/api/notifications/{notification_id}/read")
def api_mark_read(notification_id: str, user: Profile = Depends(require_user), db: Session = Depends(get_db)):
    result = notification_service.mark_as_read(db, notification_id, user.id)
    if not result.success:
        return JSONResponse(result.model_dump(), status_code=404)
    return result


@router.post("/api/notifications/read-all")
def api_mark_all_read(user: Profile = Depends(require_user), db: Session = Depends(get_db)):
    return notification_service.mark_all_as_read(db, user.id)


@router.post("/api/notifications")
def api_create_notification(
    body: NotificationCreate,
    user: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return notification_service.create_notification(db, body)
