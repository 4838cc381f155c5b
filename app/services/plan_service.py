"""
plan_service.py — Architectural plans: catalogue, files, views, purchases

Business Rules:
- New plans start as draft, currency KSH, one floor; the author is recorded
  in created_by and only the author or an admin may change the plan
- Public catalogue and plan detail show published plans only
- Features/tags filters match when the plan shares at least one value
- Files go to the plan-files bucket at {plan_id}/{timestamp}-{i}.{ext};
  failed files are skipped; a stored file whose row fails is removed
- A plan has at most one primary file; display_order is 1-based; deleting
  the primary promotes the next file by display_order
- A deleted file leaves storage only after its row delete commits
- View tracking and purchase processing try a database function first

Called by: routers/plans.py
Depends on: rpc.py, fallback.py, storage.py, utils/file_validation.py
"""

import logging
import time
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..fallback import with_fallback
from ..models import ArchitecturalPlan, PlanFile, PlanPurchase, Profile
from ..rpc import call_rpc
from ..schemas.plans import PlanCreate, PlanPurchaseRequest, PlanSearchFilters, PlanUpdate
from ..storage import PLAN_FILES, StorageError, UploadedFile
from ..utils.file_validation import validate_document
from .audit_service import notify_admins

log = logging.getLogger(__name__)

LIVE_STATUS = "published"


def file_to_dict(f: PlanFile) -> dict:
    return {
        "id": f.id,
        "file_type": f.file_type,
        "file_name": f.file_name,
        "file_url": f.file_url,
        "file_size": f.file_size,
        "is_primary": bool(f.is_primary),
        "display_order": f.display_order,
    }


def plan_to_dict(p: ArchitecturalPlan) -> dict:
    price = float(p.price or 0)
    discount = p.discount_percentage or 0
    return {
        "id": p.id,
        "title": p.title,
        "description": p.description,
        "category": p.category,
        "status": p.status,
        "bedrooms": p.bedrooms,
        "bathrooms": p.bathrooms,
        "area": p.area,
        "area_unit": p.area_unit,
        "floors": p.floors,
        "price": price,
        "final_price": round(price * (1 - discount / 100), 2),
        "currency": p.currency,
        "discount_percentage": discount,
        "features": p.features or [],
        "tags": p.tags or [],
        "style": p.style,
        "is_featured": bool(p.is_featured),
        "views": p.views or 0,
        "downloads": p.downloads or 0,
        "purchases": p.purchases or 0,
        "created_by": p.created_by,
        "rejection_reason": p.rejection_reason,
        "published_at": p.published_at.isoformat() if p.published_at else None,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "files": [file_to_dict(f) for f in p.files],
    }


# ── Catalogue ────────────────────────────────────────────────────────


def _plans(db: Session):
    return db.query(ArchitecturalPlan).options(selectinload(ArchitecturalPlan.files))


def get_published_plans(db: Session) -> list[dict]:
    rows = (
        _plans(db)
        .filter(ArchitecturalPlan.status == LIVE_STATUS)
        .order_by(ArchitecturalPlan.created_at.desc())
        .all()
    )
    return [plan_to_dict(p) for p in rows]


def get_all_plans(db: Session) -> list[dict]:
    rows = _plans(db).order_by(ArchitecturalPlan.created_at.desc()).all()
    return [plan_to_dict(p) for p in rows]


def get_plan_by_id(db: Session, plan_id: str, published_only: bool = True) -> ArchitecturalPlan | None:
    q = _plans(db).filter(ArchitecturalPlan.id == plan_id)
    if published_only:
        q = q.filter(ArchitecturalPlan.status == LIVE_STATUS)
    return q.first()


_SORT_COLUMNS = {
    "date": ArchitecturalPlan.created_at,
    "price": ArchitecturalPlan.price,
    "popularity": ArchitecturalPlan.views,
    "downloads": ArchitecturalPlan.downloads,
}


def _overlaps(values, wanted: list[str]) -> bool:
    have = {str(v).lower() for v in (values or [])}
    return any(w.lower() in have for w in wanted)


def search_plans(db: Session, filters: PlanSearchFilters) -> list[dict]:
    q = _plans(db).filter(ArchitecturalPlan.status == LIVE_STATUS)
    if filters.category:
        q = q.filter(ArchitecturalPlan.category == filters.category)
    if filters.min_price is not None:
        q = q.filter(ArchitecturalPlan.price >= filters.min_price)
    if filters.max_price is not None:
        q = q.filter(ArchitecturalPlan.price <= filters.max_price)
    if filters.min_bedrooms is not None:
        q = q.filter(ArchitecturalPlan.bedrooms >= filters.min_bedrooms)
    if filters.max_bedrooms is not None:
        q = q.filter(ArchitecturalPlan.bedrooms <= filters.max_bedrooms)
    if filters.min_area is not None:
        q = q.filter(ArchitecturalPlan.area >= filters.min_area)
    if filters.max_area is not None:
        q = q.filter(ArchitecturalPlan.area <= filters.max_area)
    if filters.style:
        q = q.filter(ArchitecturalPlan.style == filters.style)

    column = _SORT_COLUMNS[filters.sort_by]
    order = column.asc() if filters.sort_order == "asc" else column.desc()
    rows = q.order_by(order, ArchitecturalPlan.id).all()

    # JSON columns: overlap is evaluated here, not in SQL
    if filters.features:
        rows = [p for p in rows if _overlaps(p.features, filters.features)]
    if filters.tags:
        rows = [p for p in rows if _overlaps(p.tags, filters.tags)]
    return [plan_to_dict(p) for p in rows]


# ── Authoring ────────────────────────────────────────────────────────


def can_manage(plan: ArchitecturalPlan, user: Profile) -> bool:
    return user.role == "admin" or plan.created_by == user.id


def create_plan(db: Session, body: PlanCreate, actor: Profile) -> dict:
    data = body.model_dump()
    if actor.role != "admin":
        data["is_featured"] = False
        if data["status"] == LIVE_STATUS:
            data["status"] = "pending"
    plan = ArchitecturalPlan(created_by=actor.id, **data)
    if plan.status == LIVE_STATUS:
        plan.published_at = datetime.now(timezone.utc)
    db.add(plan)
    db.commit()
    log.info(f"Plan created: {plan.id} ({plan.title}) by {actor.email}, status={plan.status}")

    if plan.status == "pending":
        notify_admins(
            db, "plan_submitted", "New plan awaiting review",
            f'"{plan.title}" was submitted for approval.',
            related_entity_type="plan", related_entity_id=plan.id,
        )
    return plan_to_dict(plan)


def update_plan(db: Session, plan_id: str, body: PlanUpdate, actor: Profile) -> dict:
    plan = get_plan_by_id(db, plan_id, published_only=False)
    if not plan:
        return {"error": "Plan not found", "status": 404}
    if not can_manage(plan, actor):
        return {"error": "Not authorized to update this plan", "status": 403}

    data = body.model_dump(exclude_unset=True)
    if actor.role != "admin":
        data.pop("is_featured", None)
        if data.get("status") == LIVE_STATUS:
            return {"error": "Only admins can publish a plan", "status": 403}
    for key, value in data.items():
        setattr(plan, key, value)
    if "status" in data:
        if plan.status == LIVE_STATUS:
            plan.published_at = plan.published_at or datetime.now(timezone.utc)
            plan.approved_by = plan.approved_by or actor.id
            plan.approved_at = plan.approved_at or plan.published_at
        else:
            plan.published_at = None
            plan.approved_by = None
            plan.approved_at = None
    db.commit()
    return plan_to_dict(plan)


# ── Files ────────────────────────────────────────────────────────────


def upload_plan_files(db: Session, storage, plan_id: str, files: list[UploadedFile],
                      file_type: str, actor: Profile, set_primary_from_first: bool = True) -> dict:
    plan = get_plan_by_id(db, plan_id, published_only=False)
    if not plan:
        return {"error": "Plan not found", "status": 404}
    if not can_manage(plan, actor):
        return {"error": "Not authorized to upload files for this plan", "status": 403}

    uploaded, skipped = 0, []
    has_primary = any(f.is_primary for f in plan.files)
    offset = len(plan.files)
    stamp = int(time.time() * 1000)

    for i, f in enumerate(files):
        ok, ext_or_reason = validate_document(f.content, f.filename)
        if not ok:
            skipped.append(ext_or_reason)
            continue
        ext = ext_or_reason or "dat"
        path = f"{plan_id}/{stamp}-{i}.{ext}"
        try:
            url = storage.upload(PLAN_FILES, path, f.content, f.content_type)
        except StorageError as e:
            log.warning(f"Plan file upload failed for {plan_id}: {e}")
            skipped.append(f"{f.filename}: upload failed")
            continue
        try:
            db.add(PlanFile(
                plan_id=plan_id,
                file_type=file_type,
                file_name=path,
                file_url=url,
                file_size=f.size,
                is_primary=set_primary_from_first and not has_primary and uploaded == 0,
                display_order=offset + uploaded + 1,
            ))
            db.commit()
            uploaded += 1
        except SQLAlchemyError as e:
            db.rollback()
            storage.remove(PLAN_FILES, [path])
            log.warning(f"Plan file row insert failed for {plan_id}, removed {path}: {e}")
            skipped.append(f"{f.filename}: could not be saved")

    db.expire(plan, ["files"])
    return {"uploaded": uploaded, "skipped": skipped}


def set_primary_plan_file(db: Session, plan_id: str, file_id: str, actor: Profile) -> dict:
    plan = get_plan_by_id(db, plan_id, published_only=False)
    if not plan:
        return {"error": "Plan not found", "status": 404}
    if not can_manage(plan, actor):
        return {"error": "Not authorized to update this plan", "status": 403}
    target = next((f for f in plan.files if f.id == file_id), None)
    if not target:
        return {"error": "File not found", "status": 404}

    for f in plan.files:
        f.is_primary = f.id == file_id
    db.commit()
    return {"ok": True}


def delete_plan_file(db: Session, storage, file_id: str, actor: Profile) -> dict:
    row = db.get(PlanFile, file_id)
    if not row:
        return {"error": "File not found", "status": 404}
    plan = db.get(ArchitecturalPlan, row.plan_id)
    if plan and not can_manage(plan, actor):
        return {"error": "Not authorized to update this plan", "status": 403}

    path, was_primary = row.file_name, row.is_primary
    remaining = sorted(
        (f for f in (plan.files if plan else []) if f.id != row.id),
        key=lambda f: f.display_order or 0,
    )
    try:
        db.delete(row)
        if was_primary and remaining:
            remaining[0].is_primary = True
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error(f"Plan file delete failed for {file_id}: {e}")
        return {"error": "Failed to delete file", "status": 500}

    # stored object goes only once the row is gone
    storage.remove(PLAN_FILES, [path])
    if plan:
        db.expire(plan, ["files"])
    return {"ok": True}


def reorder_plan_files(db: Session, plan_id: str, ordered_file_ids: list[str], actor: Profile) -> dict:
    plan = get_plan_by_id(db, plan_id, published_only=False)
    if not plan:
        return {"error": "Plan not found", "status": 404}
    if not can_manage(plan, actor):
        return {"error": "Not authorized to update this plan", "status": 403}

    by_id = {f.id: f for f in plan.files}
    for position, file_id in enumerate(ordered_file_ids, start=1):
        if file_id in by_id:
            by_id[file_id].display_order = position
    db.commit()
    return {"ok": True}


# ── Views & Purchases ────────────────────────────────────────────────


def _track_view_rpc(db: Session, plan_id: str, user_ip: str | None = None, user_agent: str | None = None) -> None:
    call_rpc(db, "track_plan_view", p_plan_id=plan_id, p_user_ip=user_ip, p_user_agent=user_agent)


def _track_view_client_side(db: Session, plan_id: str, user_ip: str | None = None,
                            user_agent: str | None = None) -> None:
    try:
        updated = (
            db.query(ArchitecturalPlan)
            .filter(ArchitecturalPlan.id == plan_id)
            .update({ArchitecturalPlan.views: ArchitecturalPlan.views + 1}, synchronize_session=False)
        )
        db.commit()
        if not updated:
            log.debug(f"track_plan_view: plan {plan_id} not found")
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Plan view not tracked for {plan_id}: {e}")


track_plan_view = with_fallback(_track_view_rpc, _track_view_client_side)


def _purchase_rpc(db: Session, plan_id: str, body: PlanPurchaseRequest) -> dict:
    if not get_plan_by_id(db, plan_id):
        return {"error": "Plan not found", "status": 404}
    purchase_id = call_rpc(
        db, "process_plan_purchase",
        p_plan_id=plan_id,
        p_customer_email=body.customer_email,
        p_customer_name=body.customer_name,
        p_customer_phone=body.customer_phone,
        p_payment_method=body.payment_method,
        p_payment_reference=body.payment_reference,
    )
    return {"purchase_id": str(purchase_id)}


def _purchase_client_side(db: Session, plan_id: str, body: PlanPurchaseRequest) -> dict:
    plan = get_plan_by_id(db, plan_id)
    if not plan:
        return {"error": "Plan not found", "status": 404}

    price = float(plan.price or 0)
    purchase = PlanPurchase(
        plan_id=plan.id,
        amount=round(price * (1 - (plan.discount_percentage or 0) / 100), 2),
        currency=plan.currency,
        **body.model_dump(),
    )
    db.add(purchase)
    plan.purchases = (plan.purchases or 0) + 1
    db.commit()
    log.info(f"Plan purchase {purchase.id}: {plan.id} by {body.customer_email}")
    return {"purchase_id": purchase.id}


process_plan_purchase = with_fallback(_purchase_rpc, _purchase_client_side)


def purchase_to_dict(p: PlanPurchase) -> dict:
    return {
        "id": p.id,
        "plan_id": p.plan_id,
        "plan_title": p.plan.title if p.plan else None,
        "customer_email": p.customer_email,
        "customer_name": p.customer_name,
        "amount": float(p.amount or 0),
        "currency": p.currency,
        "status": p.status,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def get_customer_purchases(db: Session, customer_email: str) -> list[dict]:
    rows = (
        db.query(PlanPurchase)
        .filter(PlanPurchase.customer_email == customer_email.strip().lower())
        .order_by(PlanPurchase.created_at.desc())
        .all()
    )
    return [purchase_to_dict(p) for p in rows]
