"""
routers/properties.py — Property listings, images, views and inquiries

Business Rules:
- Browsing and search are public and only show published listings whose
  owner account is live
- An unpublished listing is visible only to its owner and admins
- Providers create listings (pending); admins create them published
- Inquiries can be sent by anyone on a published listing; only the owner
  (or an admin) reads and answers them

Called by: main.py (router mount)
Depends on: services/property_service.py, services/analytics_service.py
"""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_storage_backend, get_user, require_provider, require_user
from ..models import Profile
from ..rate_limit import limiter
from ..schemas.analytics import AnalyticsMetricUpdate, TrackActivityRequest
from ..schemas.listings import (
    InquiryCreate,
    InquiryReply,
    PropertyCreate,
    PropertySearchFilters,
    PropertyUpdate,
)
from ..schemas.responses import PropertyListResponse
from ..services import analytics_service, property_service
from ..storage import read_uploads

log = logging.getLogger(__name__)

router = APIRouter(tags=["properties"])


# ── Browse & Search ──────────────────────────────────────────────────


@router.get("/api/properties")
def api_list_properties(db: Session = Depends(get_db)):
    return property_service.get_published_properties(db)


@router.get("/api/properties/search", response_model=PropertyListResponse)
def api_search_properties(
    query: str | None = None,
    type: str | None = None,
    category: str | None = None,
    city: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    min_bedrooms: int | None = None,
    min_bathrooms: int | None = None,
    min_area: float | None = None,
    max_area: float | None = None,
    amenities: str | None = None,
    sort_by: str = "date",
    sort_order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    try:
        filters = PropertySearchFilters(
            query=query, type=type, category=category, city=city,
            min_price=min_price, max_price=max_price,
            min_bedrooms=min_bedrooms, min_bathrooms=min_bathrooms,
            min_area=min_area, max_area=max_area, amenities=amenities,
            sort_by=sort_by, sort_order=sort_order, page=page, limit=limit,
        )
    except ValueError as e:
        raise HTTPException(422, str(e))
    return property_service.search_properties(db, filters)


@router.get("/api/properties/mine")
def api_my_properties(user: Profile = Depends(require_provider), db: Session = Depends(get_db)):
    return property_service.get_provider_properties(db, user)


@router.get("/api/properties/{property_id}")
def api_get_property(property_id: str, request: Request, db: Session = Depends(get_db)):
    prop = property_service.get_property_by_id(db, property_id)
    if not prop:
        raise HTTPException(404, "Property not found")
    if prop.status != property_service.LIVE_STATUS:
        user = get_user(request, db)
        if not user or not property_service.can_manage(db, prop, user):
            raise HTTPException(404, "Property not found")
    return property_service.property_to_dict(prop)


# ── Create / Update / Delete ─────────────────────────────────────────


@router.post("/api/properties")
def api_create_property(
    body: PropertyCreate,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
    storage=Depends(get_storage_backend),
):
    result = property_service.create_property(db, storage, body, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.put("/api/properties/{property_id}")
def api_update_property(
    property_id: str,
    body: PropertyUpdate,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
):
    result = property_service.update_property(db, property_id, body, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.delete("/api/properties/{property_id}")
def api_delete_property(
    property_id: str,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
    storage=Depends(get_storage_backend),
):
    result = property_service.delete_property(db, storage, property_id, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.post("/api/properties/{property_id}/images")
async def api_upload_images(
    property_id: str,
    files: list[UploadFile] = File(...),
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
    storage=Depends(get_storage_backend),
):
    prop = property_service.get_property_by_id(db, property_id)
    if not prop:
        raise HTTPException(404, "Property not found")
    if not property_service.can_manage(db, prop, user):
        raise HTTPException(403, "Not authorized to update this property")
    uploads = await read_uploads(files)
    return property_service.upload_property_images(db, storage, prop, uploads)


# ── Views & Analytics ────────────────────────────────────────────────


@router.post("/api/properties/{property_id}/view")
def api_record_view(
    property_id: str,
    request: Request,
    source: str = "direct",
    db: Session = Depends(get_db),
):
    user = get_user(request, db)
    client_ip = request.client.host if request.client else None
    if not analytics_service.record_property_view(
        db, property_id, viewer_id=user.id if user else None, viewer_ip=client_ip, source=source,
    ):
        raise HTTPException(404, "Property not found")
    return {"ok": True}


@router.post("/api/properties/{property_id}/metrics")
def api_record_metric(property_id: str, body: AnalyticsMetricUpdate, db: Session = Depends(get_db)):
    prop = property_service.get_property_by_id(db, property_id)
    if not prop or prop.status != property_service.LIVE_STATUS:
        raise HTTPException(404, "Property not found")
    analytics_service.update_property_analytics(db, property_id, body.metric, 1)
    return {"ok": True}


@router.post("/api/activity")
def api_track_activity(
    body: TrackActivityRequest,
    user: Profile = Depends(require_user),
    db: Session = Depends(get_db),
):
    analytics_service.track_user_activity(
        db, user.id, body.activity_type,
        entity_type=body.entity_type, entity_id=body.entity_id, metadata=body.metadata,
    )
    return {"ok": True}


@router.get("/api/properties/{property_id}/analytics")
def api_property_analytics(
    property_id: str,
    days: int = Query(30, ge=1, le=365),
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
):
    prop = property_service.get_property_by_id(db, property_id)
    if not prop:
        raise HTTPException(404, "Property not found")
    if not property_service.can_manage(db, prop, user):
        raise HTTPException(403, "Not authorized to view these analytics")
    return analytics_service.get_property_analytics(db, property_id=property_id, days=days)


# ── Inquiries ────────────────────────────────────────────────────────


@router.post("/api/properties/{property_id}/inquiries")
@limiter.limit("10/minute")
def api_submit_inquiry(
    property_id: str,
    body: InquiryCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    result = property_service.submit_inquiry(db, property_id, body)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.get("/api/inquiries")
def api_my_inquiries(user: Profile = Depends(require_provider), db: Session = Depends(get_db)):
    return property_service.get_provider_inquiries(db, user)


@router.post("/api/inquiries/{inquiry_id}/respond")
def api_respond_to_inquiry(
    inquiry_id: str,
    body: InquiryReply,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
):
    result = property_service.respond_to_inquiry(db, inquiry_id, body.response, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result
