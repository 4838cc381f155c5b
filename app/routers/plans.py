"""
routers/plans.py — Architectural plan catalogue, files, views and purchases

Business Rules:
- The public catalogue and search only include published plans
- Draft/pending plans are visible to their author and admins
- Plan files: the first upload becomes primary unless one already is
- A signed-in customer sees the purchases made under their own email

Called by: main.py (router mount)
Depends on: services/plan_service.py
"""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_storage_backend, get_user, require_provider, require_user
from ..models import Profile
from ..rate_limit import limiter
from ..schemas.plans import PlanCreate, PlanFileOrder, PlanPurchaseRequest, PlanSearchFilters, PlanUpdate
from ..services import plan_service
from ..storage import read_uploads

log = logging.getLogger(__name__)

router = APIRouter(tags=["plans"])


@router.get("/api/plans")
def api_list_plans(db: Session = Depends(get_db)):
    return plan_service.get_published_plans(db)


@router.get("/api/plans/search")
def api_search_plans(
    category: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    min_bedrooms: int | None = None,
    max_bedrooms: int | None = None,
    min_area: float | None = None,
    max_area: float | None = None,
    style: str | None = None,
    features: str | None = None,
    tags: str | None = None,
    sort_by: str = "date",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
):
    try:
        filters = PlanSearchFilters(
            category=category, min_price=min_price, max_price=max_price,
            min_bedrooms=min_bedrooms, max_bedrooms=max_bedrooms,
            min_area=min_area, max_area=max_area, style=style,
            features=features, tags=tags, sort_by=sort_by, sort_order=sort_order,
        )
    except ValueError as e:
        raise HTTPException(422, str(e))
    return plan_service.search_plans(db, filters)


@router.get("/api/plans/purchases")
def api_my_purchases(user: Profile = Depends(require_user), db: Session = Depends(get_db)):
    return plan_service.get_customer_purchases(db, user.email)


@router.get("/api/plans/{plan_id}")
def api_get_plan(plan_id: str, request: Request, db: Session = Depends(get_db)):
    plan = plan_service.get_plan_by_id(db, plan_id, published_only=False)
    if not plan:
        raise HTTPException(404, "Plan not found")
    if plan.status != plan_service.LIVE_STATUS:
        user = get_user(request, db)
        if not user or not plan_service.can_manage(plan, user):
            raise HTTPException(404, "Plan not found")
    return plan_service.plan_to_dict(plan)


@router.post("/api/plans")
def api_create_plan(body: PlanCreate, user: Profile = Depends(require_provider), db: Session = Depends(get_db)):
    return plan_service.create_plan(db, body, user)


@router.put("/api/plans/{plan_id}")
def api_update_plan(
    plan_id: str,
    body: PlanUpdate,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
):
    result = plan_service.update_plan(db, plan_id, body, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


# ── Files ────────────────────────────────────────────────────────────


@router.post("/api/plans/{plan_id}/files")
async def api_upload_plan_files(
    plan_id: str,
    file_type: str = Form("document"),
    files: list[UploadFile] = File(...),
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
    storage=Depends(get_storage_backend),
):
    uploads = await read_uploads(files)
    result = plan_service.upload_plan_files(db, storage, plan_id, uploads, file_type, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.post("/api/plans/{plan_id}/files/{file_id}/primary")
def api_set_primary_file(
    plan_id: str,
    file_id: str,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
):
    result = plan_service.set_primary_plan_file(db, plan_id, file_id, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.put("/api/plans/{plan_id}/files/order")
def api_reorder_plan_files(
    plan_id: str,
    body: PlanFileOrder,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
):
    result = plan_service.reorder_plan_files(db, plan_id, body.file_ids, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.delete("/api/plans/files/{file_id}")
def api_delete_plan_file(
    file_id: str,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
    storage=Depends(get_storage_backend),
):
    result = plan_service.delete_plan_file(db, storage, file_id, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


# ── Views & Purchases ────────────────────────────────────────────────


@router.post("/api/plans/{plan_id}/view")
def api_track_plan_view(plan_id: str, request: Request, db: Session = Depends(get_db)):
    plan_service.track_plan_view(
        db, plan_id,
        user_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return {"ok": True}


@router.post("/api/plans/{plan_id}/purchase")
@limiter.limit("10/minute")
def api_purchase_plan(
    plan_id: str,
    body: PlanPurchaseRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    result = plan_service.process_plan_purchase(db, plan_id, body)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result
