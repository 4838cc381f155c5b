"""Architectural plan models."""

from sqlalchemy import JSON, Boolean, Column, Float, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base, created_at_column, id_column, updated_at_column


class ArchitecturalPlan(Base):
    __tablename__ = "architectural_plans"
    id = id_column()
    title = Column(String(500), nullable=False)
    description = Column(Text, default="")
    category = Column(String(50))  # bungalow, maisonette, villa, apartment, commercial, ...
    status = Column(
        String(20), default="draft", nullable=False, index=True
    )  # draft | pending | approved | published | rejected | archived
    bedrooms = Column(Integer)
    bathrooms = Column(Integer)
    area = Column(Float)
    area_unit = Column(String(10), default="sqft")
    floors = Column(Integer, default=1)
    price = Column(Numeric(14, 2), default=0)
    currency = Column(String(10), default="KSH")
    discount_percentage = Column(Float, default=0)
    features = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    style = Column(String(50))
    is_featured = Column(Boolean, default=False)

    views = Column(Integer, default=0)
    downloads = Column(Integer, default=0)
    purchases = Column(Integer, default=0)

    # Moderation
    created_by = Column(String(36))
    approved_by = Column(String(36))
    approved_at = Column(UTCDateTime)
    rejected_by = Column(String(36))
    rejected_at = Column(UTCDateTime)
    rejection_reason = Column(Text)
    published_at = Column(UTCDateTime)

    created_at = created_at_column()
    updated_at = updated_at_column()

    files = relationship(
        "PlanFile", cascade="all, delete-orphan", order_by="PlanFile.display_order"
    )


class PlanFile(Base):
    __tablename__ = "plan_files"
    id = id_column()
    plan_id = Column(String(36), ForeignKey("architectural_plans.id", ondelete="CASCADE"), index=True)
    file_type = Column(String(30), nullable=False)  # floor_plan, elevation, render, pdf, cad
    file_name = Column(String(500), nullable=False)  # storage path
    file_url = Column(String(1000), nullable=False)
    file_size = Column(Integer)
    is_primary = Column(Boolean, default=False)
    display_order = Column(Integer, default=0)
    created_at = created_at_column()


class PlanPurchase(Base):
    __tablename__ = "plan_purchases"
    id = id_column()
    plan_id = Column(String(36), ForeignKey("architectural_plans.id"), index=True)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(50))
    amount = Column(Numeric(14, 2), default=0)
    currency = Column(String(10), default="KSH")
    payment_method = Column(String(50))
    payment_reference = Column(String(255))
    status = Column(String(20), default="completed")
    created_at = created_at_column()

    plan = relationship("ArchitecturalPlan")
