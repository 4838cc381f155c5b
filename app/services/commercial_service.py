"""
commercial_service.py — Commercial listings: details, amenities, search

Business Rules:
- One commercial_property_details row per property; update is an upsert
- Search tries the search_commercial_properties database function and
  falls back to an ORM query returning the same row shape
- Search returns published listings only; limit 50, offset 0 by default
- Required amenities: every named amenity (whole name, case-insensitive)
  must be present and available

Called by: routers/commercial.py
Depends on: rpc.py, fallback.py, services/property_service.py
"""

import logging

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..fallback import with_fallback
from ..models import CommercialAmenity, CommercialPropertyDetails, Profile, Property, PropertyLocation
from ..rpc import call_rpc
from ..schemas.listings import CommercialAmenityIn, CommercialDetailsIn, CommercialSearchFilters
from . import property_service

log = logging.getLogger(__name__)

_DETAIL_FIELDS = list(CommercialDetailsIn.model_fields)


def details_to_dict(d: CommercialPropertyDetails) -> dict:
    out = {"id": d.id, "property_id": d.property_id}
    for field in _DETAIL_FIELDS:
        out[field] = getattr(d, field)
    out["updated_at"] = d.updated_at.isoformat() if d.updated_at else None
    return out


def amenity_to_dict(a: CommercialAmenity) -> dict:
    return {
        "id": a.id,
        "property_id": a.property_id,
        "amenity_type": a.amenity_type,
        "amenity_name": a.amenity_name,
        "description": a.description,
        "is_available": bool(a.is_available),
    }


def _authorized_property(db: Session, property_id: str, actor: Profile) -> tuple[Property | None, dict | None]:
    prop = db.get(Property, property_id)
    if not prop:
        return None, {"error": "Property not found", "status": 404}
    if not property_service.can_manage(db, prop, actor):
        return None, {"error": "Not authorized to update this property", "status": 403}
    return prop, None


# ── Details ──────────────────────────────────────────────────────────


def create_commercial_details(db: Session, property_id: str, body: CommercialDetailsIn, actor: Profile) -> dict:
    _, err = _authorized_property(db, property_id, actor)
    if err:
        return err
    if db.query(CommercialPropertyDetails).filter_by(property_id=property_id).first():
        return {"error": "Commercial details already exist for this property", "status": 409}

    data = body.model_dump(exclude_none=True)
    data.setdefault("loading_docks", 0)
    data.setdefault("parking_spaces", 0)
    data.setdefault("security_deposit_months", 1)
    row = CommercialPropertyDetails(property_id=property_id, **data)
    db.add(row)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error(f"Commercial details insert failed for {property_id}: {e}")
        return {"error": "Failed to create commercial property", "status": 500}
    log.info(f"Commercial details created for {property_id}")
    return details_to_dict(row)


def update_commercial_details(db: Session, property_id: str, body: CommercialDetailsIn, actor: Profile) -> dict:
    _, err = _authorized_property(db, property_id, actor)
    if err:
        return err
    row = db.query(CommercialPropertyDetails).filter_by(property_id=property_id).first()
    if not row:
        row = CommercialPropertyDetails(property_id=property_id)
        db.add(row)
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(row, key, value)
    db.commit()
    return details_to_dict(row)


def get_commercial_details(db: Session, property_id: str) -> dict | None:
    row = db.query(CommercialPropertyDetails).filter_by(property_id=property_id).first()
    return details_to_dict(row) if row else None


# ── Amenities ────────────────────────────────────────────────────────


def add_commercial_amenity(db: Session, property_id: str, body: CommercialAmenityIn, actor: Profile) -> dict:
    _, err = _authorized_property(db, property_id, actor)
    if err:
        return err
    row = CommercialAmenity(property_id=property_id, **body.model_dump())
    db.add(row)
    db.commit()
    return amenity_to_dict(row)


def get_commercial_amenities(db: Session, property_id: str) -> list[dict]:
    rows = (
        db.query(CommercialAmenity)
        .filter(CommercialAmenity.property_id == property_id)
        .order_by(CommercialAmenity.amenity_type, CommercialAmenity.amenity_name)
        .all()
    )
    return [amenity_to_dict(a) for a in rows]


# ── Search ───────────────────────────────────────────────────────────


def _search_rpc(db: Session, filters: CommercialSearchFilters) -> list[dict]:
    rows = call_rpc(
        db, "search_commercial_properties", returns_rows=True,
        search_query=filters.query,
        commercial_type_filter=filters.commercial_type,
        building_class_filter=filters.building_class,
        zoning_filter=filters.zoning,
        min_size=filters.min_size,
        max_size=filters.max_size,
        min_rent=filters.min_rent,
        max_rent=filters.max_rent,
        lease_type_filter=filters.lease_type,
        min_parking=filters.min_parking,
        required_amenities=filters.required_amenities or None,
        limit_count=filters.limit,
        offset_count=filters.offset,
    )
    for row in rows:
        if row.get("price") is not None:
            row["price"] = float(row["price"])
    return rows


def _search_row(p: Property, d: CommercialPropertyDetails, city: str | None) -> dict:
    return {
        "property_id": p.id,
        "title": p.title,
        "description": p.description,
        "price": float(p.price or 0),
        "currency": p.currency,
        "city": city,
        "commercial_type": d.commercial_type,
        "building_class": d.building_class,
        "zoning_type": d.zoning_type,
        "total_building_size": d.total_building_size,
        "available_space": d.available_space,
        "rent_per_sqft": d.rent_per_sqft,
        "lease_type": d.lease_type,
        "parking_spaces": d.parking_spaces,
    }


def _search_orm(db: Session, filters: CommercialSearchFilters) -> list[dict]:
    q = (
        db.query(Property, CommercialPropertyDetails, PropertyLocation.city)
        .join(CommercialPropertyDetails, CommercialPropertyDetails.property_id == Property.id)
        .outerjoin(PropertyLocation, PropertyLocation.property_id == Property.id)
        .filter(Property.status == property_service.LIVE_STATUS)
    )
    if filters.query:
        term = f"%{filters.query.strip()}%"
        q = q.filter(or_(Property.title.ilike(term), Property.description.ilike(term)))
    if filters.commercial_type:
        q = q.filter(CommercialPropertyDetails.commercial_type == filters.commercial_type)
    if filters.building_class:
        q = q.filter(CommercialPropertyDetails.building_class == filters.building_class)
    if filters.zoning:
        q = q.filter(CommercialPropertyDetails.zoning_type == filters.zoning)
    if filters.min_size is not None:
        q = q.filter(CommercialPropertyDetails.total_building_size >= filters.min_size)
    if filters.max_size is not None:
        q = q.filter(CommercialPropertyDetails.total_building_size <= filters.max_size)
    if filters.min_rent is not None:
        q = q.filter(CommercialPropertyDetails.rent_per_sqft >= filters.min_rent)
    if filters.max_rent is not None:
        q = q.filter(CommercialPropertyDetails.rent_per_sqft <= filters.max_rent)
    if filters.lease_type:
        q = q.filter(CommercialPropertyDetails.lease_type == filters.lease_type)
    if filters.min_parking is not None:
        q = q.filter(CommercialPropertyDetails.parking_spaces >= filters.min_parking)
    for name in filters.required_amenities:
        has_amenity = (
            db.query(CommercialAmenity.id)
            .filter(
                CommercialAmenity.property_id == Property.id,
                func.lower(CommercialAmenity.amenity_name) == name.lower(),
                CommercialAmenity.is_available.is_(True),
            )
            .exists()
        )
        q = q.filter(has_amenity)

    rows = (
        q.order_by(Property.created_at.desc())
        .offset(filters.offset)
        .limit(filters.limit)
        .all()
    )
    return [_search_row(p, d, city) for p, d, city in rows]


search_commercial_properties = with_fallback(_search_rpc, _search_orm)
