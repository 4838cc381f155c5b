"""
property_service.py — Property listings: CRUD, images, search, inquiries

Business Rules:
- Admin-authored listings (provider_id null) go live immediately
  (status published + published_at); provider listings start pending
- published_at is set iff status is published; moving out of published
  also clears approved_by
- Amenity filters match whole names, case-insensitively
- An owner edit of a rejected listing resubmits it (pending, rejection
  fields cleared); only admins can publish
- Only the owning provider or an admin may update/delete a listing
- Multi-table writes are best-effort, not transactional: the property row
  is committed first, child rows after; a failed child write is logged
- Images: max 10 per listing, image/* only, <= 10 MB each, stored at
  {property_id}/{timestamp}-{i}.{ext} in the property-images bucket; the
  first stored image is primary; a stored image whose DB row fails is
  removed from storage
- Public listings and search show only published rows whose owner account
  is not soft-deleted

Called by: routers/properties.py, services/land_service.py
Depends on: models, storage.py, utils/file_validation.py,
            services/audit_service.py, services/analytics_service.py
"""

import logging
import time
from datetime import datetime, timezone

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..config import settings
from ..models import (
    Inquiry,
    Profile,
    Property,
    PropertyAmenity,
    PropertyFeatures,
    PropertyImage,
    PropertyLocation,
    PropertyUtility,
    Provider,
)
from ..schemas.listings import InquiryCreate, PropertyCreate, PropertySearchFilters, PropertyUpdate
from ..schemas.responses import PagedResponse
from ..storage import PROPERTY_IMAGES, StorageError, UploadedFile
from ..utils.file_validation import validate_image
from .audit_service import notify_admins, notify_owner

log = logging.getLogger(__name__)

LIVE_STATUS = "published"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Serialization ────────────────────────────────────────────────────


def property_to_dict(p: Property) -> dict:
    loc, feat = p.location, p.features
    return {
        "id": p.id,
        "title": p.title,
        "description": p.description,
        "type": p.type,
        "category": p.category,
        "status": p.status,
        "price": float(p.price or 0),
        "currency": p.currency,
        "provider_id": p.provider_id,
        "views": p.views or 0,
        "inquiries": p.inquiries or 0,
        "is_featured": bool(p.is_featured),
        "rejection_reason": p.rejection_reason,
        "rejected_at": p.rejected_at.isoformat() if p.rejected_at else None,
        "rejected_by": p.rejected_by,
        "published_at": p.published_at.isoformat() if p.published_at else None,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
        "location": {
            "address": loc.address, "city": loc.city, "state": loc.state,
            "country": loc.country, "zip_code": loc.zip_code,
            "latitude": loc.latitude, "longitude": loc.longitude,
        } if loc else None,
        "features": {
            "bedrooms": feat.bedrooms, "bathrooms": feat.bathrooms, "area": feat.area,
            "area_unit": feat.area_unit, "parking": feat.parking,
            "furnished": bool(feat.furnished), "pet_friendly": bool(feat.pet_friendly),
        } if feat else None,
        "amenities": [a.amenity for a in p.amenities],
        "utilities": [u.utility for u in p.utilities],
        "images": [
            {"id": i.id, "url": i.url, "alt_text": i.alt_text,
             "is_primary": bool(i.is_primary), "display_order": i.display_order}
            for i in p.images
        ],
    }


# ── Queries ──────────────────────────────────────────────────────────


def _with_children(q):
    return q.options(
        selectinload(Property.location),
        selectinload(Property.features),
        selectinload(Property.amenities),
        selectinload(Property.utilities),
        selectinload(Property.images),
    )


def visible_properties(db: Session):
    """Properties whose owner account is not soft-deleted (admin-authored included)."""
    return (
        db.query(Property)
        .outerjoin(Provider, Property.provider_id == Provider.id)
        .outerjoin(Profile, Provider.user_id == Profile.id)
        .filter(or_(Property.provider_id.is_(None), Profile.deleted_at.is_(None)))
    )


def _list(db: Session, status: str | None = None) -> list[dict]:
    q = visible_properties(db)
    if status:
        q = q.filter(Property.status == status)
    rows = _with_children(q).order_by(Property.created_at.desc()).all()
    return [property_to_dict(p) for p in rows]


def get_published_properties(db: Session) -> list[dict]:
    return _list(db, LIVE_STATUS)


def get_all_properties(db: Session) -> list[dict]:
    return _list(db)


def get_pending_properties(db: Session) -> list[dict]:
    return _list(db, "pending")


def get_rejected_properties(db: Session) -> list[dict]:
    return _list(db, "rejected")


def get_property_by_id(db: Session, property_id: str) -> Property | None:
    return _with_children(db.query(Property).filter(Property.id == property_id)).first()


def provider_for(db: Session, user: Profile) -> Provider | None:
    return db.query(Provider).filter(Provider.user_id == user.id).first()


def get_provider_properties(db: Session, user: Profile) -> list[dict]:
    """Listings owned by the caller. Admins own the admin-authored listings."""
    q = db.query(Property)
    if user.role == "admin":
        q = q.filter(Property.provider_id.is_(None))
    else:
        provider = provider_for(db, user)
        if not provider:
            return []
        q = q.filter(Property.provider_id == provider.id)
    rows = _with_children(q).order_by(Property.created_at.desc()).all()
    return [property_to_dict(p) for p in rows]


def can_manage(db: Session, prop: Property, user: Profile) -> bool:
    if user.role == "admin":
        return True
    provider = provider_for(db, user)
    return provider is not None and prop.provider_id == provider.id


# ── Create ───────────────────────────────────────────────────────────


def _write_children(db: Session, prop: Property, body: PropertyCreate | PropertyUpdate) -> None:
    """Location, features, amenities, utilities. Best-effort after the property row."""
    try:
        if body.location is not None:
            data = body.location.model_dump()
            data["country"] = data.get("country") or settings.default_country
            if prop.location:
                for key, value in data.items():
                    setattr(prop.location, key, value)
            else:
                db.add(PropertyLocation(property_id=prop.id, **data))
        if body.features is not None:
            data = body.features.model_dump()
            if prop.features:
                for key, value in data.items():
                    setattr(prop.features, key, value)
            else:
                db.add(PropertyFeatures(property_id=prop.id, **data))
        if body.amenities is not None:
            db.query(PropertyAmenity).filter(PropertyAmenity.property_id == prop.id).delete()
            db.add_all(PropertyAmenity(property_id=prop.id, amenity=a) for a in body.amenities)
        if body.utilities is not None:
            db.query(PropertyUtility).filter(PropertyUtility.property_id == prop.id).delete()
            db.add_all(PropertyUtility(property_id=prop.id, utility=u) for u in body.utilities)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning(f"Property {prop.id}: child rows not saved: {e}")
    db.expire(prop)


def upload_property_images(db: Session, storage, prop: Property, files: list[UploadedFile]) -> dict:
    """Store images and their rows. Returns {"uploaded": n, "errors": [...]}."""
    errors = []
    existing = db.query(PropertyImage).filter(PropertyImage.property_id == prop.id).count()
    room = max(settings.max_images_per_property - existing, 0)
    if len(files) > room:
        errors.append(f"Only {settings.max_images_per_property} images allowed per property")
        files = files[:room]

    uploaded = 0
    stamp = int(time.time() * 1000)
    for i, f in enumerate(files):
        ok, ext_or_reason = validate_image(f.content, f.filename)
        if not ok:
            errors.append(ext_or_reason)
            continue

        path = f"{prop.id}/{stamp}-{i}.{ext_or_reason}"
        try:
            url = storage.upload(PROPERTY_IMAGES, path, f.content, f.content_type)
        except StorageError as e:
            log.warning(f"Image upload failed for {prop.id}: {e}")
            errors.append(f"{f.filename}: upload failed")
            continue

        try:
            db.add(PropertyImage(
                property_id=prop.id,
                url=url,
                storage_path=path,
                alt_text=f.filename,
                is_primary=(existing + uploaded == 0),
                display_order=existing + uploaded,
            ))
            db.commit()
            uploaded += 1
        except SQLAlchemyError as e:
            db.rollback()
            storage.remove(PROPERTY_IMAGES, [path])
            log.warning(f"Image row insert failed for {prop.id}, removed {path}: {e}")
            errors.append(f"{f.filename}: could not be saved")

    return {"uploaded": uploaded, "errors": errors}


def create_property(db: Session, storage, body: PropertyCreate, actor: Profile,
                    images: list[UploadedFile] | None = None) -> dict:
    """Create a listing with children and images."""
    provider = None
    if actor.role != "admin":
        provider = provider_for(db, actor)
        if not provider:
            return {"error": "Only providers and admins can create properties", "status": 403}

    is_admin = actor.role == "admin"
    prop = Property(
        title=body.title,
        description=body.description,
        type=body.type,
        category=body.category,
        price=body.price,
        currency=body.currency or settings.default_currency,
        is_featured=body.is_featured if is_admin else False,
        provider_id=provider.id if provider else None,
        status=LIVE_STATUS if is_admin else "pending",
        published_at=_now() if is_admin else None,
        approved_by=actor.id if is_admin else None,
    )
    db.add(prop)
    if provider:
        provider.total_listings = (provider.total_listings or 0) + 1
    db.commit()
    log.info(f"Property created: {prop.id} ({prop.title}) by {actor.email}, status={prop.status}")

    _write_children(db, prop, body)
    image_result = upload_property_images(db, storage, prop, images or [])

    if not is_admin:
        notify_admins(
            db, "property_submitted", "New property awaiting review",
            f'"{prop.title}" was submitted for approval.',
            related_entity_type="property", related_entity_id=prop.id,
        )

    db.expire(prop)
    return {"property": property_to_dict(prop), "images": image_result}


# ── Update / Delete ──────────────────────────────────────────────────


def update_property(db: Session, property_id: str, body: PropertyUpdate, actor: Profile) -> dict:
    prop = get_property_by_id(db, property_id)
    if not prop:
        return {"error": "Property not found", "status": 404}
    if not can_manage(db, prop, actor):
        return {"error": "Not authorized to update this property", "status": 403}

    is_admin = actor.role == "admin"
    if body.status == LIVE_STATUS and not is_admin:
        return {"error": "Only admins can publish a property", "status": 403}

    fields = body.model_dump(
        exclude_unset=True, exclude={"location", "features", "amenities", "utilities", "status"}
    )
    if not is_admin:
        fields.pop("is_featured", None)
    for key, value in fields.items():
        setattr(prop, key, value)

    new_status = body.status
    if new_status is None and prop.status == "rejected" and not is_admin:
        new_status = "pending"  # resubmission after edit

    if new_status is not None:
        prop.status = new_status
        if new_status == LIVE_STATUS:
            prop.published_at = prop.published_at or _now()
            prop.approved_by = prop.approved_by or actor.id
        else:
            prop.published_at = None
            prop.approved_by = None
        if new_status != "rejected":
            prop.rejection_reason = None
            prop.rejected_at = None
            prop.rejected_by = None

    db.commit()
    _write_children(db, prop, body)
    log.info(f"Property {prop.id} updated by {actor.email} (status={prop.status})")
    return property_to_dict(prop)


def delete_property(db: Session, storage, property_id: str, actor: Profile) -> dict:
    prop = get_property_by_id(db, property_id)
    if not prop:
        return {"error": "Property not found", "status": 404}
    if not can_manage(db, prop, actor):
        return {"error": "Not authorized to delete this property", "status": 403}

    paths = [i.storage_path for i in prop.images if i.storage_path]
    if prop.provider:
        prop.provider.total_listings = max((prop.provider.total_listings or 0) - 1, 0)
    db.delete(prop)
    db.commit()
    storage.remove(PROPERTY_IMAGES, paths)
    log.info(f"Property {property_id} deleted by {actor.email}")
    return {"status": "deleted", "id": property_id}


# ── Search ───────────────────────────────────────────────────────────

_SORT_COLUMNS = {
    "date": Property.created_at,
    "price": Property.price,
    "size": PropertyFeatures.area,
    "popularity": Property.views,
}


def search_properties(db: Session, filters: PropertySearchFilters) -> dict:
    """Published listings matching the filters, sorted and paginated."""
    q = (
        visible_properties(db)
        .outerjoin(PropertyLocation, PropertyLocation.property_id == Property.id)
        .outerjoin(PropertyFeatures, PropertyFeatures.property_id == Property.id)
        .filter(Property.status == LIVE_STATUS)
    )
    if filters.query:
        term = f"%{filters.query.strip()}%"
        q = q.filter(or_(Property.title.ilike(term), Property.description.ilike(term)))
    if filters.type:
        q = q.filter(Property.type == filters.type)
    if filters.category:
        q = q.filter(Property.category == filters.category)
    if filters.min_price is not None:
        q = q.filter(Property.price >= filters.min_price)
    if filters.max_price is not None:
        q = q.filter(Property.price <= filters.max_price)
    if filters.city:
        q = q.filter(PropertyLocation.city.ilike(f"%{filters.city.strip()}%"))
    if filters.min_bedrooms is not None:
        q = q.filter(PropertyFeatures.bedrooms >= filters.min_bedrooms)
    if filters.min_bathrooms is not None:
        q = q.filter(PropertyFeatures.bathrooms >= filters.min_bathrooms)
    if filters.min_area is not None:
        q = q.filter(PropertyFeatures.area >= filters.min_area)
    if filters.max_area is not None:
        q = q.filter(PropertyFeatures.area <= filters.max_area)
    for amenity in filters.amenities:
        q = q.filter(
            Property.amenities.any(func.lower(PropertyAmenity.amenity) == amenity.lower())
        )

    total = q.count()
    column = _SORT_COLUMNS[filters.sort_by]
    order = column.asc() if filters.sort_order == "asc" else column.desc()
    rows = (
        _with_children(q)
        .order_by(order, Property.id)
        .offset((filters.page - 1) * filters.limit)
        .limit(filters.limit)
        .all()
    )
    return {
        "properties": [property_to_dict(p) for p in rows],
        "total": total,
        "page": filters.page,
        "limit": filters.limit,
        "total_pages": PagedResponse.pages(total, filters.limit),
    }


# ── Inquiries ────────────────────────────────────────────────────────


def inquiry_to_dict(i: Inquiry) -> dict:
    return {
        "id": i.id,
        "property_id": i.property_id,
        "property_title": i.property.title if i.property else None,
        "inquirer_name": i.inquirer_name,
        "inquirer_email": i.inquirer_email,
        "inquirer_phone": i.inquirer_phone,
        "message": i.message,
        "status": i.status,
        "response": i.response,
        "responded_at": i.responded_at.isoformat() if i.responded_at else None,
        "created_at": i.created_at.isoformat() if i.created_at else None,
    }


def submit_inquiry(db: Session, property_id: str, body: InquiryCreate) -> dict:
    from .analytics_service import update_property_analytics

    prop = db.get(Property, property_id)
    if not prop or prop.status != LIVE_STATUS:
        return {"error": "Property not found", "status": 404}

    inquiry = Inquiry(property_id=prop.id, **body.model_dump())
    db.add(inquiry)
    prop.inquiries = (prop.inquiries or 0) + 1
    if prop.provider:
        prop.provider.total_inquiries = (prop.provider.total_inquiries or 0) + 1
    db.commit()
    log.info(f"Inquiry {inquiry.id} on property {prop.id} from {body.inquirer_email}")

    update_property_analytics(db, prop.id, "inquiry", 1)
    notify_owner(
        db, prop.provider.user_id if prop.provider else None,
        "new_inquiry", "New inquiry",
        f'{body.inquirer_name} asked about "{prop.title}".',
        related_entity_type="inquiry", related_entity_id=inquiry.id,
    )
    return inquiry_to_dict(inquiry)


def get_provider_inquiries(db: Session, user: Profile) -> list[dict]:
    q = db.query(Inquiry).join(Property, Inquiry.property_id == Property.id)
    if user.role == "admin":
        pass
    else:
        provider = provider_for(db, user)
        if not provider:
            return []
        q = q.filter(Property.provider_id == provider.id)
    return [inquiry_to_dict(i) for i in q.order_by(Inquiry.created_at.desc()).all()]


def respond_to_inquiry(db: Session, inquiry_id: str, response: str, user: Profile) -> dict:
    inquiry = db.get(Inquiry, inquiry_id)
    if not inquiry:
        return {"error": "Inquiry not found", "status": 404}
    if not can_manage(db, inquiry.property, user):
        return {"error": "Not authorized to respond to this inquiry", "status": 403}

    inquiry.response = response.strip()
    inquiry.status = "responded"
    inquiry.responded_at = _now()
    db.commit()
    return inquiry_to_dict(inquiry)
