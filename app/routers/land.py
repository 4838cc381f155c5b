"""
routers/land.py — Land listings: details, search, documents, market stats

Business Rules:
- Creating a land listing writes the property and its land details in one
  call (database procedure when available, sequential writes otherwise)
- Area filters are given in acres regardless of each listing's unit
- Documents go to the land-documents bucket; only the owner or an admin
  can upload

Called by: main.py (router mount)
Depends on: services/land_service.py
"""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_storage_backend, require_provider
from ..models import Profile
from ..schemas.listings import LandDetailsIn, LandPropertyCreate, LandSearchFilters
from ..services import land_service
from ..storage import read_uploads

log = logging.getLogger(__name__)

router = APIRouter(tags=["land"])


@router.post("/api/land")
def api_create_land_property(
    body: LandPropertyCreate,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
    storage=Depends(get_storage_backend),
):
    result = land_service.create_land_property(db, storage, body.listing, body.land, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.get("/api/land/search")
def api_search_land(
    zoning: str | None = None,
    min_area: float | None = None,
    max_area: float | None = None,
    development_status: str | None = None,
    electricity_available: bool | None = None,
    water_connection_available: bool | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    city: str | None = None,
    db: Session = Depends(get_db),
):
    filters = LandSearchFilters(
        zoning=zoning, min_area=min_area, max_area=max_area,
        development_status=development_status,
        electricity_available=electricity_available,
        water_connection_available=water_connection_available,
        min_price=min_price, max_price=max_price, city=city,
    )
    return land_service.search_land_properties(db, filters)


@router.get("/api/land/analytics")
def api_land_analytics(db: Session = Depends(get_db)):
    return land_service.get_land_analytics(db)


@router.get("/api/land/{property_id}/details")
def api_get_land_details(property_id: str, db: Session = Depends(get_db)):
    details = land_service.get_land_details(db, property_id)
    if details is None:
        raise HTTPException(404, "Land details not found")
    return details


@router.put("/api/land/{property_id}/details")
def api_update_land_details(
    property_id: str,
    body: LandDetailsIn,
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
):
    result = land_service.update_land_details(db, property_id, body, user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result


@router.get("/api/land/{property_id}/documents")
def api_land_documents(property_id: str, db: Session = Depends(get_db)):
    return land_service.get_land_documents(db, property_id)


@router.post("/api/land/{property_id}/documents")
async def api_upload_land_document(
    property_id: str,
    document_type: str = Form(...),
    file: UploadFile = File(...),
    user: Profile = Depends(require_provider),
    db: Session = Depends(get_db),
    storage=Depends(get_storage_backend),
):
    (upload,) = await read_uploads([file])
    result = land_service.upload_land_document(db, storage, property_id, upload, document_type.strip(), user)
    if "error" in result:
        raise HTTPException(result.get("status", 400), result["error"])
    return result
