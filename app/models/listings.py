"""Listing models — Properties and their child tables, land & commercial details."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base, created_at_column, id_column, updated_at_column


class Property(Base):
    __tablename__ = "properties"
    id = id_column()
    title = Column(String(500), nullable=False)
    description = Column(Text, default="")
    type = Column(String(20), nullable=False)  # house | apartment | land | commercial | airbnb
    category = Column(String(30), nullable=False)  # sale | rent | short-term-rental
    status = Column(
        String(20), default="pending", nullable=False, index=True
    )  # draft | pending | approved | rejected | published | sold | rented
    price = Column(Numeric(14, 2), nullable=False, default=0)
    currency = Column(String(10), default="KSH")
    provider_id = Column(String(36), ForeignKey("providers.id"), index=True)  # null = admin-authored
    views = Column(Integer, default=0)
    inquiries = Column(Integer, default=0)
    is_featured = Column(Boolean, default=False)

    # Moderation
    rejection_reason = Column(Text)
    rejected_at = Column(UTCDateTime)
    rejected_by = Column(String(36))
    approved_by = Column(String(36))
    published_at = Column(UTCDateTime)

    created_at = created_at_column()
    updated_at = updated_at_column()

    provider = relationship("Provider", back_populates="properties")
    location = relationship(
        "PropertyLocation", uselist=False, cascade="all, delete-orphan", back_populates="property"
    )
    features = relationship(
        "PropertyFeatures", uselist=False, cascade="all, delete-orphan", back_populates="property"
    )
    amenities = relationship("PropertyAmenity", cascade="all, delete-orphan")
    utilities = relationship("PropertyUtility", cascade="all, delete-orphan")
    images = relationship(
        "PropertyImage", cascade="all, delete-orphan", order_by="PropertyImage.display_order"
    )
    land_details = relationship("LandDetails", uselist=False, cascade="all, delete-orphan")
    commercial_details = relationship(
        "CommercialPropertyDetails", uselist=False, cascade="all, delete-orphan"
    )


class PropertyLocation(Base):
    __tablename__ = "property_locations"
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), unique=True)
    address = Column(String(500), default="")
    city = Column(String(255), default="", index=True)
    state = Column(String(255), default="")
    country = Column(String(100), default="Kenya")
    zip_code = Column(String(20))
    latitude = Column(Float)
    longitude = Column(Float)
    created_at = created_at_column()

    property = relationship("Property", back_populates="location")


class PropertyFeatures(Base):
    __tablename__ = "property_features"
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), unique=True)
    bedrooms = Column(Integer)
    bathrooms = Column(Integer)
    area = Column(Float, default=0)
    area_unit = Column(String(10), default="sqft")  # sqft | sqm | acres | hectares
    parking = Column(Integer)
    furnished = Column(Boolean, default=False)
    pet_friendly = Column(Boolean, default=False)
    created_at = created_at_column()

    property = relationship("Property", back_populates="features")


class PropertyAmenity(Base):
    __tablename__ = "property_amenities"
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    amenity = Column(String(255), nullable=False)
    created_at = created_at_column()


class PropertyUtility(Base):
    __tablename__ = "property_utilities"
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    utility = Column(String(255), nullable=False)
    created_at = created_at_column()


class PropertyImage(Base):
    __tablename__ = "property_images"
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    url = Column(String(1000), nullable=False)
    storage_path = Column(String(500))
    alt_text = Column(String(500))
    is_primary = Column(Boolean, default=False)
    display_order = Column(Integer, default=0)
    created_at = created_at_column()


class Inquiry(Base):
    __tablename__ = "inquiries"
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    inquirer_name = Column(String(255), nullable=False)
    inquirer_email = Column(String(255), nullable=False)
    inquirer_phone = Column(String(50))
    message = Column(Text, nullable=False)
    status = Column(String(20), default="new")  # new | responded | closed
    response = Column(Text)
    responded_at = Column(UTCDateTime)
    created_at = created_at_column()

    property = relationship("Property")


class PropertyView(Base):
    __tablename__ = "property_views"
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    viewer_id = Column(String(36))
    viewer_ip = Column(String(64))
    source = Column(String(50), default="direct")
    viewed_at = created_at_column()


class PropertyAnalytics(Base):
    __tablename__ = "property_analytics"
    __table_args__ = (UniqueConstraint("property_id", "date", name="uq_property_analytics_day"),)
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    date = Column(Date, nullable=False, index=True)
    views = Column(Integer, default=0)
    inquiries = Column(Integer, default=0)
    favorites = Column(Integer, default=0)
    shares = Column(Integer, default=0)


# ── Land ─────────────────────────────────────────────────────────────


class LandDetails(Base):
    __tablename__ = "land_details"
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), unique=True)
    zoning = Column(String(50))  # residential, agricultural, commercial, mixed, industrial
    title_deed_available = Column(Boolean, default=False)
    survey_done = Column(Boolean, default=False)
    land_use_permit = Column(Boolean, default=False)
    topography = Column(String(50))
    soil_type = Column(String(50))
    road_access = Column(String(50))
    distance_to_main_road_km = Column(Float)
    electricity_available = Column(Boolean, default=False)
    water_connection_available = Column(Boolean, default=False)
    sewer_connection_available = Column(Boolean, default=False)
    internet_coverage = Column(Boolean, default=False)
    development_status = Column(String(50))  # raw, serviced, partially_developed
    subdivision_potential = Column(Boolean, default=False)
    agricultural_potential = Column(String(50))
    created_at = created_at_column()
    updated_at = updated_at_column()


class LandDocument(Base):
    __tablename__ = "land_documents"
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    document_type = Column(String(50), nullable=False)  # title_deed, survey_map, permit, ...
    file_name = Column(String(500), nullable=False)
    file_url = Column(String(1000), nullable=False)
    storage_path = Column(String(500))
    file_size = Column(Integer)
    created_at = created_at_column()


# ── Commercial ───────────────────────────────────────────────────────


class CommercialPropertyDetails(Base):
    __tablename__ = "commercial_property_details"
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), unique=True)
    commercial_type = Column(String(50))  # office, retail, warehouse, industrial, ...
    building_class = Column(String(5))  # A | B | C
    zoning_type = Column(String(50))
    year_built = Column(Integer)
    total_building_size = Column(Float)
    available_space = Column(Float)
    ceiling_height = Column(Float)
    loading_docks = Column(Integer, default=0)
    parking_spaces = Column(Integer, default=0)
    lease_type = Column(String(30))  # gross, net, triple_net, modified_gross
    lease_term_min = Column(Integer)
    lease_term_max = Column(Integer)
    rent_per_sqft = Column(Float)
    cam_charges = Column(Float)
    security_deposit_months = Column(Integer, default=1)
    current_occupancy_rate = Column(Float)
    occupancy_certificate_valid = Column(Boolean, default=False)
    fire_safety_compliant = Column(Boolean, default=False)
    ada_compliant = Column(Boolean, default=False)
    signage_rights = Column(Boolean, default=False)
    drive_through_available = Column(Boolean, default=False)
    restaurant_approved = Column(Boolean, default=False)
    created_at = created_at_column()
    updated_at = updated_at_column()


class CommercialAmenity(Base):
    __tablename__ = "commercial_amenities"
    id = id_column()
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    amenity_type = Column(String(50), nullable=False)
    amenity_name = Column(String(255), nullable=False)
    description = Column(Text)
    is_available = Column(Boolean, default=True)
    created_at = created_at_column()
