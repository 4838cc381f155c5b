"""
routers/commercial.py — Commercial listing details, amenities and search

Called by: main.py (router mount)
Depends on: services/commercial_service.py
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_provider
from ..models import Profile
from ..schemas.listings import CommercialAmenityIn, CommercialDetailsIn, CommercialSearchFilters
from ..services import commercial_service

router = APIRouter(tags=["commercial"])


@router.get("/api/commercial/search")
def api_search_commercial(
    query: str | None = None,
    commercial_type: str | None = None,
    building_class: str | None = None,
    zoning: str | None = None,
    min_size: float | None = None,
    max_size: float | None = None,
    min_rent: float | None = None,
    max_rent: float | None = None,
    lease_type: str | None = None,
    min_parking: int | None = None,
    required_amenities: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    filters = CommercialSearchFilters(
        query=query, commercial_type=commercial_type, building_class=building_class,
        zoning=zoning, min_size=min_size, max_size=max_size,
        min_rent=min_rent, max_rent=max_rent, lease_type=lease_type,
        min_parking=min_parking, required_amenities=required_amenities,
        limit=limit, offset=offset,
    )
    return commercial_service.search_commercial_properties(db, filters)


@router.get("/api/commercial/{property_id}")
def api_get_commercial(property_id: str, db: Session = Depends(get_db)):
    details = commercial_service.get_commercial_details(db, property_id)
    if details is None:
        raise HTTPException(404, "Commercial details not found")
    return {
        "details": details,
        "amenities": commercial_service.get_commercial_amenities(db, property_id),
    }


@router.post("/api/commercial/{property_id}")
def api_create_commercial(
    property_id: str,
    body: CommercialDetailsIn,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
):
    result = commercial_service.create_commercial_details(db, property_id, body, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.put("/api/commercial/{property_id}")
def api_update_commercial(
    property_id: str,
    body: CommercialDetailsIn,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
):
    result = commercial_service.update_commercial_details(db, property_id, body, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.post("/api/commercial/{property_id}/amenities")
def api_add_commercial_amenity(
    property_id: str,
    body: CommercialAmenityIn,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
):
    result = commercial_service.add_commercial_amenity(db, property_id, body, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result
