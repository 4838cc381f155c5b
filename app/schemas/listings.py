"""
schemas/listings.py — Pydantic models for properties, inquiries, land and commercial

Business Rules:
- Title is required and non-empty; price cannot be negative
- Property type: house | apartment | land | commercial | airbnb
- Property category: sale | rent | short-term-rental
- Amenities/utilities accept a list or a comma-separated string
- Search sorts by date | price | size | popularity, asc | desc

Called by: routers/properties.py, routers/land.py, routers/commercial.py,
           services/property_service.py, services/land_service.py,
           services/commercial_service.py
Depends on: pydantic, utils.split_list
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from ..utils import split_list

PropertyType = Literal["house", "apartment", "land", "commercial", "airbnb"]
PropertyCategory = Literal["sale", "rent", "short-term-rental"]
AreaUnit = Literal["sqft", "sqm", "acres", "hectares"]


# ── Properties ───────────────────────────────────────────────────────


class LocationIn(BaseModel):
    address: str = ""
    city: str = ""
    state: str = ""
    country: str | None = None
    zip_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class FeaturesIn(BaseModel):
    bedrooms: int | None = None
    bathrooms: int | None = None
    area: float = 0
    area_unit: AreaUnit = "sqft"
    parking: int | None = None
    furnished: bool = False
    pet_friendly: bool = False


class PropertyCreate(BaseModel):
    title: str
    description: str = ""
    type: PropertyType
    category: PropertyCategory
    price: float = Field(..., ge=0)
    currency: str = "KSH"
    is_featured: bool = False
    location: LocationIn = Field(default_factory=LocationIn)
    features: FeaturesIn = Field(default_factory=FeaturesIn)
    amenities: list[str] = Field(default_factory=list)
    utilities: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("amenities", "utilities", mode="before")
    @classmethod
    def split_items(cls, v):
        return split_list(v)


class PropertyUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    type: PropertyType | None = None
    category: PropertyCategory | None = None
    price: float | None = Field(None, ge=0)
    currency: str | None = None
    status: Literal["draft", "pending", "published", "sold", "rented"] | None = None
    is_featured: bool | None = None
    location: LocationIn | None = None
    features: FeaturesIn | None = None
    amenities: list[str] | None = None
    utilities: list[str] | None = None

    @field_validator("amenities", "utilities", mode="before")
    @classmethod
    def split_items(cls, v):
        return None if v is None else split_list(v)


class PropertySearchFilters(BaseModel):
    query: str | None = None
    type: PropertyType | None = None
    category: PropertyCategory | None = None
    city: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    min_bedrooms: int | None = None
    min_bathrooms: int | None = None
    min_area: float | None = None
    max_area: float | None = None
    amenities: list[str] = Field(default_factory=list)
    sort_by: Literal["date", "price", "size", "popularity"] = "date"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

    @field_validator("amenities", mode="before")
    @classmethod
    def split_items(cls, v):
        return split_list(v)


# ── Inquiries ────────────────────────────────────────────────────────


class InquiryCreate(BaseModel):
    inquirer_name: str
    inquirer_email: str
    inquirer_phone: str | None = None
    message: str

    @field_validator("inquirer_name", "message")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field is required")
        return v


class InquiryReply(BaseModel):
    response: str = Field(..., min_length=1)


# ── Land ─────────────────────────────────────────────────────────────


class LandDetailsIn(BaseModel):
    zoning: str | None = None
    title_deed_available: bool | None = None
    survey_done: bool | None = None
    land_use_permit: bool | None = None
    topography: str | None = None
    soil_type: str | None = None
    road_access: str | None = None
    distance_to_main_road_km: float | None = None
    electricity_available: bool | None = None
    water_connection_available: bool | None = None
    sewer_connection_available: bool | None = None
    internet_coverage: bool | None = None
    development_status: str | None = None
    subdivision_potential: bool | None = None
    agricultural_potential: str | None = None


class LandPropertyCreate(BaseModel):
    listing: PropertyCreate
    land: LandDetailsIn = Field(default_factory=LandDetailsIn)


class LandSearchFilters(BaseModel):
    zoning: str | None = None
    min_area: float | None = None
    max_area: float | None = None
    development_status: str | None = None
    electricity_available: bool | None = None
    water_connection_available: bool | None = None
    min_price: float | None = None
    max_price: float | None = None
    city: str | None = None


# ── Commercial ───────────────────────────────────────────────────────


class CommercialDetailsIn(BaseModel):
    commercial_type: str | None = None
    building_class: Literal["A", "B", "C"] | None = None
    zoning_type: str | None = None
    year_built: int | None = None
    total_building_size: float | None = None
    available_space: float | None = None
    ceiling_height: float | None = None
    loading_docks: int | None = None
    parking_spaces: int | None = None
    lease_type: str | None = None
    lease_term_min: int | None = None
    lease_term_max: int | None = None
    rent_per_sqft: float | None = None
    cam_charges: float | None = None
    security_deposit_months: int | None = None
    current_occupancy_rate: float | None = Field(None, ge=0, le=100)
    occupancy_certificate_valid: bool | None = None
    fire_safety_compliant: bool | None = None
    ada_compliant: bool | None = None
    signage_rights: bool | None = None
    drive_through_available: bool | None = None
    restaurant_approved: bool | None = None


class CommercialSearchFilters(BaseModel):
    query: str | None = None
    commercial_type: str | None = None
    building_class: str | None = None
    zoning: str | None = None
    min_size: float | None = None
    max_size: float | None = None
    min_rent: float | None = None
    max_rent: float | None = None
    lease_type: str | None = None
    min_parking: int | None = None
    required_amenities: list[str] = Field(default_factory=list)
    limit: int = Field(50, ge=1, le=200)
    offset: int = Field(0, ge=0)

    @field_validator("required_amenities", mode="before")
    @classmethod
    def split_items(cls, v):
        return split_list(v)


class CommercialAmenityIn(BaseModel):
    amenity_type: str
    amenity_name: str
    description: str | None = None
    is_available: bool = True
