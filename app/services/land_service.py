"""
land_service.py — Land listings: details, documents, search, analytics

Business Rules:
- A land listing is a property (type land) plus one land_details row
- Creation tries the create_land_property database function first and
  falls back to create_property + a land_details insert
- Documents go to the land-documents bucket at
  {property_id}/{document_type}/{timestamp}_{filename}; a stored document
  whose DB row fails is removed
- Analytics normalise area to acres: sqft/43560, sqm/4047, hectares*2.471
- Any analytics failure returns zero counts, never raises

Called by: routers/land.py
Depends on: services/property_service.py, rpc.py, fallback.py, storage.py
"""

import logging
import time
from collections import Counter

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..fallback import with_fallback
from ..models import LandDetails, LandDocument, Profile, Property, PropertyFeatures, PropertyLocation
from ..rpc import call_rpc
from ..schemas.listings import LandDetailsIn, LandSearchFilters, PropertyCreate
from ..storage import LAND_DOCUMENTS, StorageError, UploadedFile
from ..utils.file_validation import validate_document
from . import property_service

log = logging.getLogger(__name__)

# Area unit → multiplier to acres
ACRE_FACTORS = {
    "acres": 1.0,
    "sqft": 1 / 43560,
    "sqm": 1 / 4047,
    "hectares": 2.471,
}

_DETAIL_FIELDS = [c for c in LandDetailsIn.model_fields]


def to_acres(area: float | None, unit: str | None) -> float:
    if not area:
        return 0.0
    return area * ACRE_FACTORS.get(unit or "acres", 1.0)


def land_details_to_dict(d: LandDetails) -> dict:
    out = {"id": d.id, "property_id": d.property_id}
    for field in _DETAIL_FIELDS:
        out[field] = getattr(d, field)
    out["created_at"] = d.created_at.isoformat() if d.created_at else None
    out["updated_at"] = d.updated_at.isoformat() if d.updated_at else None
    return out


def land_property_to_dict(p: Property) -> dict:
    data = property_service.property_to_dict(p)
    data["land_details"] = land_details_to_dict(p.land_details) if p.land_details else None
    return data


# ── Create ───────────────────────────────────────────────────────────


def _as_land(body: PropertyCreate) -> PropertyCreate:
    if body.type == "land":
        return body
    return body.model_copy(update={"type": "land"})


def _create_land_rpc(db: Session, storage, body: PropertyCreate, land: LandDetailsIn,
                     actor: Profile, images: list[UploadedFile] | None = None) -> dict:
    provider = None
    if actor.role != "admin":
        provider = property_service.provider_for(db, actor)
        if not provider:
            return {"error": "Only providers and admins can create properties", "status": 403}

    body = _as_land(body)
    property_data = body.model_dump(mode="json")
    property_data["provider_id"] = provider.id if provider else None
    property_data["status"] = "published" if actor.role == "admin" else "pending"
    property_data["approved_by"] = actor.id if actor.role == "admin" else None

    property_id = call_rpc(
        db, "create_land_property",
        property_data=property_data,
        land_data=land.model_dump(exclude_none=True),
    )
    prop = property_service.get_property_by_id(db, str(property_id))
    image_result = property_service.upload_property_images(db, storage, prop, images or [])
    db.expire(prop)
    log.info(f"Land property created via procedure: {prop.id} by {actor.email}")
    return {"property": land_property_to_dict(prop), "images": image_result}


def _create_land_client_side(db: Session, storage, body: PropertyCreate, land: LandDetailsIn,
                             actor: Profile, images: list[UploadedFile] | None = None) -> dict:
    result = property_service.create_property(db, storage, _as_land(body), actor, images)
    if "error" in result:
        return result

    property_id = result["property"]["id"]
    try:
        db.add(LandDetails(property_id=property_id, **land.model_dump(exclude_none=True)))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Land details not saved for {property_id}: {e}")

    prop = property_service.get_property_by_id(db, property_id)
    db.expire(prop)
    return {"property": land_property_to_dict(prop), "images": result["images"]}


create_land_property = with_fallback(_create_land_rpc, _create_land_client_side)


# ── Details ──────────────────────────────────────────────────────────


def get_land_details(db: Session, property_id: str) -> dict | None:
    row = db.query(LandDetails).filter(LandDetails.property_id == property_id).first()
    return land_details_to_dict(row) if row else None


def update_land_details(db: Session, property_id: str, body: LandDetailsIn, actor: Profile) -> dict:
    """Upsert the land_details row for a listing."""
    prop = db.get(Property, property_id)
    if not prop:
        return {"error": "Property not found", "status": 404}
    if not property_service.can_manage(db, prop, actor):
        return {"error": "Not authorized to update this property", "status": 403}

    row = db.query(LandDetails).filter(LandDetails.property_id == property_id).first()
    if not row:
        row = LandDetails(property_id=property_id)
        db.add(row)
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(row, key, value)
    db.commit()
    return land_details_to_dict(row)


# ── Search ───────────────────────────────────────────────────────────


def search_land_properties(db: Session, filters: LandSearchFilters) -> list[dict]:
    """Published land listings, newest first.

    Area bounds are compared in acres regardless of the listing's unit.
    """
    q = (
        property_service.visible_properties(db)
        .outerjoin(LandDetails, LandDetails.property_id == Property.id)
        .outerjoin(PropertyLocation, PropertyLocation.property_id == Property.id)
        .filter(Property.type == "land", Property.status == property_service.LIVE_STATUS)
    )
    if filters.zoning:
        q = q.filter(LandDetails.zoning == filters.zoning)
    if filters.development_status:
        q = q.filter(LandDetails.development_status == filters.development_status)
    if filters.electricity_available is not None:
        q = q.filter(LandDetails.electricity_available.is_(filters.electricity_available))
    if filters.water_connection_available is not None:
        q = q.filter(LandDetails.water_connection_available.is_(filters.water_connection_available))
    if filters.min_price is not None:
        q = q.filter(Property.price >= filters.min_price)
    if filters.max_price is not None:
        q = q.filter(Property.price <= filters.max_price)
    if filters.city:
        q = q.filter(PropertyLocation.city.ilike(f"%{filters.city.strip()}%"))

    rows = (
        q.options(
            selectinload(Property.location),
            selectinload(Property.features),
            selectinload(Property.amenities),
            selectinload(Property.utilities),
            selectinload(Property.images),
            selectinload(Property.land_details),
        )
        .order_by(Property.created_at.desc())
        .all()
    )

    results = []
    for p in rows:
        acres = to_acres(p.features.area, p.features.area_unit) if p.features else 0.0
        if filters.min_area is not None and acres < filters.min_area:
            continue
        if filters.max_area is not None and acres > filters.max_area:
            continue
        results.append(land_property_to_dict(p))
    return results


# ── Analytics ────────────────────────────────────────────────────────


def _empty_land_analytics() -> dict:
    return {
        "total_land_listings": 0,
        "average_price_per_acre": 0.0,
        "popular_zoning": [],
        "development_status_breakdown": [],
        "infrastructure_availability": {"electricity": 0, "water": 0, "sewer": 0, "internet": 0},
    }


def get_land_analytics(db: Session) -> dict:
    try:
        rows = (
            db.query(Property.price, PropertyFeatures.area, PropertyFeatures.area_unit, LandDetails)
            .outerjoin(PropertyFeatures, PropertyFeatures.property_id == Property.id)
            .outerjoin(LandDetails, LandDetails.property_id == Property.id)
            .filter(Property.type == "land", Property.status == property_service.LIVE_STATUS)
            .all()
        )
    except SQLAlchemyError as e:
        log.error(f"Land analytics failed: {e}")
        return _empty_land_analytics()

    per_acre = []
    zoning = Counter()
    statuses = Counter()
    infra = {"electricity": 0, "water": 0, "sewer": 0, "internet": 0}

    for price, area, unit, details in rows:
        acres = to_acres(area, unit)
        if price and acres > 0:
            per_acre.append(float(price) / acres)
        if details is None:
            continue
        if details.zoning:
            zoning[details.zoning] += 1
        if details.development_status:
            statuses[details.development_status] += 1
        infra["electricity"] += bool(details.electricity_available)
        infra["water"] += bool(details.water_connection_available)
        infra["sewer"] += bool(details.sewer_connection_available)
        infra["internet"] += bool(details.internet_coverage)

    return {
        "total_land_listings": len(rows),
        "average_price_per_acre": sum(per_acre) / len(per_acre) if per_acre else 0.0,
        "popular_zoning": [{"zoning": z, "count": c} for z, c in zoning.most_common()],
        "development_status_breakdown": [
            {"status": s, "count": c} for s, c in statuses.most_common()
        ],
        "infrastructure_availability": infra,
    }


# ── Documents ────────────────────────────────────────────────────────


def document_to_dict(d: LandDocument) -> dict:
    return {
        "id": d.id,
        "property_id": d.property_id,
        "document_type": d.document_type,
        "file_name": d.file_name,
        "file_url": d.file_url,
        "file_size": d.file_size,
        "created_at": d.created_at.isoformat() if d.created_at else None,
    }


def get_land_documents(db: Session, property_id: str) -> list[dict]:
    rows = (
        db.query(LandDocument)
        .filter(LandDocument.property_id == property_id)
        .order_by(LandDocument.created_at.desc())
        .all()
    )
    return [document_to_dict(d) for d in rows]


def upload_land_document(db: Session, storage, property_id: str, file: UploadedFile,
                         document_type: str, actor: Profile) -> dict:
    prop = db.get(Property, property_id)
    if not prop:
        return {"error": "Property not found", "status": 404}
    if not property_service.can_manage(db, prop, actor):
        return {"error": "Not authorized to upload documents for this property", "status": 403}

    ok, reason = validate_document(file.content, file.filename)
    if not ok:
        return {"error": reason, "status": 400}

    path = f"{property_id}/{document_type}/{int(time.time() * 1000)}_{file.filename}"
    try:
        url = storage.upload(LAND_DOCUMENTS, path, file.content, file.content_type)
    except StorageError as e:
        log.warning(f"Land document upload failed for {property_id}: {e}")
        return {"error": "Document upload failed", "status": 502}

    doc = LandDocument(
        property_id=property_id,
        document_type=document_type,
        file_name=file.filename,
        file_url=url,
        storage_path=path,
        file_size=file.size,
    )
    try:
        db.add(doc)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        storage.remove(LAND_DOCUMENTS, [path])
        log.error(f"Land document row insert failed for {property_id}, removed {path}: {e}")
        return {"error": "Failed to save document record", "status": 500}

    log.info(f"Land document {document_type} uploaded for {property_id}")
    return document_to_dict(doc)
